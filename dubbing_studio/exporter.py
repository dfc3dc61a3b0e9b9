"""Export completed job audio with a provenance manifest."""

import json
import os
import re
from datetime import datetime, timezone

from pydub import AudioSegment

from dubbing_studio.assembly import parse_wav_header
from dubbing_studio.constants import (
    OUTPUT_BITRATE,
    OUTPUT_DIR,
    VERSION,
    WAV_HEADER_SIZE,
)
from dubbing_studio.errors import JobStateError
from dubbing_studio.models import Job, COMPLETED


def slug_from_path(script_path: str) -> str:
    """Convert a script filename to an output directory slug.

    "Chapter One.txt" → "chapter_one"
    "/path/to/The Open Window.txt" → "the_open_window"
    """
    basename = os.path.splitext(os.path.basename(script_path))[0]
    slug = re.sub(r"[^a-zA-Z0-9]+", "_", basename).strip("_").lower()
    return slug or "script"


def wav_to_audio_segment(wav: bytes) -> AudioSegment:
    """Wrap assembled WAV bytes in a pydub AudioSegment without re-decoding."""
    header = parse_wav_header(wav)
    return AudioSegment(
        data=wav[WAV_HEADER_SIZE:WAV_HEADER_SIZE + header.data_size],
        sample_width=header.bits_per_sample // 8,
        frame_rate=header.sample_rate,
        channels=header.channels,
    )


def export(job: Job, output_base: str = OUTPUT_DIR, fmt: str = "wav") -> str:
    """Write a completed job's audio to disk.

    Creates:
      - <output_base>/<slug>/<slug>.wav (or .mp3)
      - <output_base>/<slug>/output.json (provenance manifest)

    WAV output is the assembled bytes verbatim; MP3 goes through pydub and
    needs ffmpeg. Returns the path to the audio file.
    """
    if job.status != COMPLETED or job.audio is None:
        raise JobStateError(f"Job {job.id} has no audio to export ({job.status})")
    if fmt not in ("wav", "mp3"):
        raise ValueError(f"Unsupported export format: {fmt}")

    slug = slug_from_path(job.file_name)
    project_dir = os.path.join(output_base, slug)
    os.makedirs(project_dir, exist_ok=True)
    output_path = os.path.join(project_dir, f"{slug}.{fmt}")

    wav = job.audio.data
    audio = wav_to_audio_segment(wav)
    if fmt == "wav":
        with open(output_path, "wb") as f:
            f.write(wav)
    else:
        audio.export(output_path, format="mp3", bitrate=OUTPUT_BITRATE)

    manifest = {
        "job": job.id,
        "source": job.file_name,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "producer_version": VERSION,
        "format": fmt,
        "cast": job.character_map,
        "stats": {
            "duration_seconds": round(len(audio) / 1000, 1),
            "pcm_bytes": len(audio.raw_data),
            "characters": len(job.character_map) - 1,
        },
    }

    manifest_path = os.path.join(project_dir, "output.json")
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2, ensure_ascii=False)

    return output_path
