"""Data models for script dubbing."""

from dataclasses import dataclass, field

from dubbing_studio.errors import AudioReleasedError

# Job lifecycle statuses
DETECTING = "detecting"
QUEUED = "queued"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"
JOB_STATUSES = (DETECTING, QUEUED, PROCESSING, COMPLETED, FAILED)

GENDERS = ("Male", "Female", "Neutral")

# character name -> voice name
CharacterMap = dict[str, str]


@dataclass(frozen=True)
class Voice:
    name: str          # provider voice identifier
    display_name: str  # human label, may repeat across categories
    gender: str        # "Male", "Female" or "Neutral"


class AudioResource:
    """Playable WAV output owned by a completed job until released."""

    def __init__(self, data: bytes):
        self._data = data

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise AudioReleasedError("Audio resource has been released.")
        return self._data

    def __len__(self) -> int:
        return len(self.data)

    def release(self) -> None:
        """Drop the audio bytes. Safe to call twice."""
        self._data = None


@dataclass
class Job:
    id: int
    file_name: str
    text: str
    status: str = DETECTING                  # one of JOB_STATUSES
    character_map: CharacterMap = field(default_factory=dict)
    audio: AudioResource | None = None
    error: str | None = None
    progress: str = ""
    queue_seq: int = 0                       # order in which the job entered "queued"
