"""Job store and the controller that drives detection, synthesis, and assembly."""

import dataclasses
import logging
import mimetypes
import os
import threading
from typing import Callable

from dubbing_studio.assembly import assemble_wav
from dubbing_studio.constants import (
    MAX_SEGMENT_CHARS,
    NARRATOR_KEY,
    DEFAULT_NEUTRAL_VOICE,
    ADDED_CHARACTER_VOICE,
    MAX_SPEAKERS,
)
from dubbing_studio.credentials import CredentialRotator
from dubbing_studio.errors import (
    CredentialsExhaustedError,
    InvalidScriptError,
    JobNotFoundError,
    JobStateError,
    NoCredentialsError,
    QueueBusyError,
    TooManySpeakersError,
)
from dubbing_studio.models import (
    AudioResource,
    CharacterMap,
    Job,
    DETECTING,
    QUEUED,
    PROCESSING,
    COMPLETED,
    FAILED,
)
from dubbing_studio.segmenter import split_into_segments
from dubbing_studio.tts import detect_characters, synthesize_segment
from dubbing_studio.voices import build_character_map, is_narrator, narrator_only_map

logger = logging.getLogger(__name__)

EXHAUSTED_DIAGNOSTIC = "All API keys are out of quota or invalid. Check your keys and their quota."
DETECTION_FAILED_DIAGNOSTIC = "Could not detect characters automatically. Add them manually."

# status -> statuses it may move to
TRANSITIONS = {
    DETECTING: {QUEUED, FAILED},
    QUEUED: {PROCESSING, QUEUED},
    PROCESSING: {COMPLETED, FAILED},
    FAILED: {QUEUED},
    COMPLETED: set(),
}


class JobStore:
    """Jobs keyed by id, in creation order.

    Reads hand out copies; the stored record only changes through put().
    """

    def __init__(self):
        self._jobs: dict[int, Job] = {}

    def __contains__(self, job_id: int) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def get(self, job_id: int) -> Job:
        try:
            job = self._jobs[job_id]
        except KeyError:
            raise JobNotFoundError(job_id) from None
        return dataclasses.replace(job, character_map=dict(job.character_map))

    def put(self, job: Job) -> None:
        self._jobs[job.id] = job

    def remove(self, job_id: int) -> Job:
        job = self.get(job_id)
        del self._jobs[job_id]
        return job

    def all(self) -> list[Job]:
        return [self.get(job_id) for job_id in self._jobs]


class JobController:
    """Owns every job and runs them one at a time.

    Batch runs process queued jobs in the order they were queued. A pause
    request is honoured between jobs; the job in flight always finishes.
    """

    def __init__(
        self,
        rotator: CredentialRotator,
        max_segment_chars: int = MAX_SEGMENT_CHARS,
        on_change: Callable[[Job], None] | None = None,
    ):
        self.rotator = rotator
        self.max_segment_chars = max_segment_chars
        self.on_change = on_change
        self._store = JobStore()
        self._next_id = 1
        self._queue_seq = 0
        self._pause_requested = threading.Event()
        self._batch_active = False
        self._running = False

    # --- Queries ---

    def get(self, job_id: int) -> Job:
        return self._store.get(job_id)

    def jobs(self) -> list[Job]:
        return self._store.all()

    def queued_count(self) -> int:
        return sum(1 for job in self._store.all() if job.status == QUEUED)

    @property
    def is_batch_active(self) -> bool:
        return self._batch_active

    @property
    def is_paused(self) -> bool:
        return self._batch_active and not self._running and self._pause_requested.is_set()

    # --- State changes ---

    def _save(self, job: Job) -> Job:
        self._store.put(job)
        if self.on_change is not None:
            # A failing listener must not strand the job mid-transition.
            try:
                self.on_change(self._store.get(job.id))
            except Exception:
                logger.exception("on_change callback failed for job %d", job.id)
        return self._store.get(job.id)

    def _update(self, job_id: int, **changes) -> Job:
        job = self._store.get(job_id)
        return self._save(dataclasses.replace(job, **changes))

    def _transition(self, job_id: int, status: str, **changes) -> Job:
        job = self._store.get(job_id)
        if status not in TRANSITIONS[job.status]:
            raise JobStateError(f"Job {job_id} cannot move from {job.status} to {status}")
        if status == QUEUED and job.status != QUEUED:
            self._queue_seq += 1
            changes["queue_seq"] = self._queue_seq
        logger.debug("Job %d: %s -> %s", job_id, job.status, status)
        return self._save(dataclasses.replace(job, status=status, **changes))

    def _require_credentials(self) -> None:
        if not len(self.rotator):
            raise NoCredentialsError()

    # --- Intake and detection ---

    def add_script(self, file_name: str, text: str) -> Job:
        """Create a job for a script. It starts in the detecting status."""
        job = Job(id=self._next_id, file_name=file_name, text=text)
        self._next_id += 1
        logger.info("Added job %d for %s (%d chars)", job.id, file_name, len(text))
        return self._save(job)

    def add_file(self, path: str) -> Job:
        """Read a UTF-8 .txt file and create a job for it."""
        mime_type, _ = mimetypes.guess_type(path)
        if mime_type != "text/plain":
            raise InvalidScriptError(f"Not a text file: {path}")
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except UnicodeDecodeError as e:
            raise InvalidScriptError(f"File is not valid UTF-8: {path}") from e
        return self.add_script(os.path.basename(path), text)

    def detect(self, job_id: int) -> Job:
        """Detect characters for a job and queue it, or fail it with a narrator-only map."""
        job = self._store.get(job_id)
        if job.status != DETECTING:
            raise JobStateError(f"Job {job_id} is {job.status}, not {DETECTING}")
        self._require_credentials()

        try:
            character_map = build_character_map(detect_characters(job.text, self.rotator))
        except Exception as e:
            logger.error("Character detection failed for job %d: %s", job_id, e)
            if isinstance(e, CredentialsExhaustedError):
                error = EXHAUSTED_DIAGNOSTIC
            else:
                error = DETECTION_FAILED_DIAGNOSTIC
            return self._transition(job_id, FAILED, character_map=narrator_only_map(), error=error)

        return self._transition(job_id, QUEUED, character_map=character_map)

    def detect_pending(self) -> list[Job]:
        """Run detection for every job still detecting, in creation order."""
        return [self.detect(job.id) for job in self._store.all() if job.status == DETECTING]

    # --- Voice edits ---

    def update_character_map(self, job_id: int, character_map: CharacterMap) -> Job:
        """Replace a queued or failed job's voice assignments and (re)queue it.

        The narrator entry is kept even if the new map leaves it out.
        """
        job = self._store.get(job_id)
        if job.status not in (QUEUED, FAILED):
            raise JobStateError(f"Voices of job {job_id} cannot be edited while {job.status}")
        new_map = dict(character_map)
        if NARRATOR_KEY not in new_map:
            new_map[NARRATOR_KEY] = job.character_map.get(NARRATOR_KEY, DEFAULT_NEUTRAL_VOICE)
        return self._transition(job_id, QUEUED, character_map=new_map, error=None)

    def assign_voice(self, job_id: int, character: str, voice: str) -> Job:
        job = self._store.get(job_id)
        if character not in job.character_map:
            raise KeyError(f"Unknown character {character!r} in job {job_id}")
        return self.update_character_map(job_id, {**job.character_map, character: voice})

    def add_character(self, job_id: int, name: str, voice: str = ADDED_CHARACTER_VOICE) -> Job:
        """Add a character; blank and already-mapped names are ignored."""
        job = self._store.get(job_id)
        name = name.strip()
        if not name or name in job.character_map or is_narrator(name):
            return job
        return self.update_character_map(job_id, {**job.character_map, name: voice})

    def remove_character(self, job_id: int, name: str) -> Job:
        if name == NARRATOR_KEY:
            raise ValueError("The narrator cannot be removed")
        job = self._store.get(job_id)
        new_map = {k: v for k, v in job.character_map.items() if k != name}
        return self.update_character_map(job_id, new_map)

    # --- Running ---

    def _speakers(self, job: Job) -> list[str]:
        return [name for name, voice in job.character_map.items() if name != NARRATOR_KEY and voice]

    def _synthesize(self, job: Job) -> bytes:
        speakers = self._speakers(job)
        if len(speakers) > MAX_SPEAKERS:
            raise TooManySpeakersError(speakers)

        segments = split_into_segments(job.text, self.max_segment_chars)
        total = len(segments)
        fragments = []
        for i, segment in enumerate(segments, 1):
            self._update(job.id, progress=f"Generating segment {i}/{total}...")
            if len(speakers) == MAX_SPEAKERS:
                bindings = {name: job.character_map[name] for name in speakers}
                pcm = synthesize_segment(segment, self.rotator, speakers=bindings)
            else:
                primary = speakers[0] if speakers else NARRATOR_KEY
                voice = job.character_map.get(primary) or DEFAULT_NEUTRAL_VOICE
                pcm = synthesize_segment(segment, self.rotator, voice=voice)
            if pcm:
                fragments.append(pcm)
            logger.debug("Job %d: segment %d/%d -> %d bytes", job.id, i, total, len(pcm))

        self._update(job.id, progress="Assembling audio...")
        return assemble_wav(fragments)

    def _process(self, job_id: int) -> Job:
        """Run one queued job to completion or failure. Never raises for job errors."""
        job = self._transition(job_id, PROCESSING, progress="Preparing...", error=None)
        try:
            wav = self._synthesize(job)
        except Exception as e:
            logger.error("Job %d (%s) failed: %s", job_id, job.file_name, e)
            if isinstance(e, CredentialsExhaustedError):
                error = EXHAUSTED_DIAGNOSTIC
            else:
                error = f"Generation failed: {e}"
            return self._transition(job_id, FAILED, error=error, progress="")

        logger.info("Job %d (%s) completed: %d bytes", job_id, job.file_name, len(wav))
        return self._transition(job_id, COMPLETED, audio=AudioResource(wav), progress="")

    def _queued_ids(self) -> list[int]:
        queued = [job for job in self._store.all() if job.status == QUEUED]
        return [job.id for job in sorted(queued, key=lambda j: j.queue_seq)]

    def run_all(self) -> list[Job]:
        """Process queued jobs in queue order until done or paused.

        Returns the jobs processed by this call. A paused batch stays active
        until resume() drains it.
        """
        if self._running:
            raise QueueBusyError("A run is already in progress")
        self._require_credentials()

        self._batch_active = True
        self._pause_requested.clear()
        self._running = True
        processed = []
        try:
            for job_id in self._queued_ids():
                if self._pause_requested.is_set():
                    logger.info("Batch paused with %d job(s) queued", self.queued_count())
                    return processed
                if job_id not in self._store or self._store.get(job_id).status != QUEUED:
                    continue
                processed.append(self._process(job_id))
        except BaseException:
            self._batch_active = False
            raise
        finally:
            self._running = False

        self._batch_active = False
        self._pause_requested.clear()
        return processed

    def pause(self) -> None:
        """Stop the batch before its next job starts."""
        if not self._batch_active:
            raise JobStateError("No batch run is active")
        self._pause_requested.set()

    def resume(self) -> list[Job]:
        """Continue a paused batch over the jobs still queued."""
        if not self.is_paused:
            raise JobStateError("The batch is not paused")
        return self.run_all()

    def run_one(self, job_id: int) -> Job:
        """Process a single queued job. Refused while a batch is active."""
        if self._batch_active or self._running:
            raise QueueBusyError("Cannot run a single job while the queue is running")
        job = self._store.get(job_id)
        if job.status != QUEUED:
            raise JobStateError(f"Job {job_id} is {job.status}, not {QUEUED}")
        self._require_credentials()

        self._running = True
        try:
            return self._process(job_id)
        finally:
            self._running = False

    # --- Teardown ---

    def delete_job(self, job_id: int) -> None:
        """Remove a job and release its audio. Refused while it is processing."""
        job = self._store.get(job_id)
        if job.status == PROCESSING:
            raise JobStateError(f"Job {job_id} is processing and cannot be deleted")
        self._store.remove(job_id)
        if job.audio is not None:
            job.audio.release()
        logger.info("Deleted job %d (%s)", job_id, job.file_name)

    def close(self) -> None:
        """Release every job's audio."""
        for job in self._store.all():
            if job.audio is not None:
                job.audio.release()
