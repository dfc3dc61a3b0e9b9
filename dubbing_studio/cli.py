"""CLI interface with subcommand routing."""

import argparse
import logging
import os
import shutil
import sys

from dubbing_studio.constants import (
    OUTPUT_DIR,
    MAX_SEGMENT_CHARS,
    CREDENTIALS_ENV_VAR,
    VERSION,
)
from dubbing_studio.credentials import CredentialRotator, load_credentials
from dubbing_studio.errors import DubbingError
from dubbing_studio.exporter import export, slug_from_path
from dubbing_studio.models import Job, COMPLETED, FAILED, PROCESSING
from dubbing_studio.pipeline import JobController
from dubbing_studio.tts import preview_voice
from dubbing_studio.voices import VOICE_CATEGORIES, all_voices, categories_for, find_voice


def _check_ffmpeg():
    """Verify ffmpeg is installed."""
    if not shutil.which("ffmpeg"):
        print("Error: ffmpeg is required for MP3 output but not found.", file=sys.stderr)
        print("Install it, or use --format wav.", file=sys.stderr)
        raise SystemExit(1)


def _load_rotator(args) -> CredentialRotator:
    """Build the key pool, exiting if no keys are configured."""
    try:
        keys = load_credentials(args.keys_file)
    except OSError as e:
        print(f"Error: Could not read keys file: {e}", file=sys.stderr)
        raise SystemExit(1)
    if not keys:
        print("Error: No API keys configured.", file=sys.stderr)
        print(f"Set {CREDENTIALS_ENV_VAR} (one key per line) or pass --keys-file.", file=sys.stderr)
        raise SystemExit(1)
    return CredentialRotator(keys)


def _parse_voice_overrides(values: list[str]) -> dict[str, str]:
    overrides = {}
    for item in values or []:
        if "=" not in item:
            print(f"Error: --voice expects CHARACTER=VOICE, got: {item}", file=sys.stderr)
            raise SystemExit(1)
        character, voice = (part.strip() for part in item.split("=", 1))
        if find_voice(voice) is None:
            print(f"Error: Unknown voice: {voice}", file=sys.stderr)
            raise SystemExit(1)
        overrides[character] = find_voice(voice).name
    return overrides


def _print_progress(job: Job) -> None:
    if job.status == PROCESSING and job.progress:
        print(f"  [{job.file_name}] {job.progress}")


def _print_cast(job: Job) -> None:
    for name, voice in job.character_map.items():
        print(f"  {name:<20} → {voice}")


def cmd_run(args):
    """Dub one or more scripts end to end."""
    if args.max_chars < 1:
        print(f"Error: --max-chars must be a positive integer, got {args.max_chars}", file=sys.stderr)
        raise SystemExit(1)
    if args.format == "mp3":
        _check_ffmpeg()

    rotator = _load_rotator(args)
    overrides = _parse_voice_overrides(args.voice)
    controller = JobController(rotator, max_segment_chars=args.max_chars, on_change=_print_progress)

    for path in args.files:
        try:
            controller.add_file(path)
        except (DubbingError, OSError) as e:
            print(f"Error: Skipping {path}: {e}", file=sys.stderr)

    if not controller.jobs():
        print("Error: No scripts to process.", file=sys.stderr)
        raise SystemExit(1)

    print(f"Detecting characters in {len(controller.jobs())} script(s)...")
    for job in controller.detect_pending():
        if job.status == FAILED:
            print(f"  {job.file_name}: {job.error}", file=sys.stderr)
        if overrides:
            cast = {**job.character_map, **overrides}
            job = controller.update_character_map(job.id, cast)
        print(f"{job.file_name}:")
        _print_cast(job)

    print(f"Generating audio for {controller.queued_count()} script(s)...")
    controller.run_all()

    failures = 0
    for job in controller.jobs():
        if job.status == COMPLETED:
            output_path = export(job, output_base=args.output, fmt=args.format)
            print(f"Done: {output_path}")
        else:
            failures += 1
            print(f"Failed: {job.file_name}: {job.error}", file=sys.stderr)
    controller.close()

    if failures:
        raise SystemExit(1)


def cmd_detect(args):
    """Show the characters and default voices detected in a script."""
    rotator = _load_rotator(args)
    controller = JobController(rotator)
    try:
        job = controller.add_file(args.file)
    except (DubbingError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)

    job = controller.detect(job.id)
    if job.status == FAILED:
        print(f"Warning: {job.error}", file=sys.stderr)
    print(f"{job.file_name}:")
    _print_cast(job)


def cmd_voices(args):
    """List available voices."""
    if args.category:
        if args.category not in VOICE_CATEGORIES:
            print(f"Error: Unknown category: {args.category}", file=sys.stderr)
            print(f"Run '{args.prog} categories' to see them.", file=sys.stderr)
            raise SystemExit(1)
        voices = VOICE_CATEGORIES[args.category]
    else:
        voices = all_voices()

    filter_str = args.filter.lower() if args.filter else None
    if filter_str:
        voices = [v for v in voices if filter_str in v.display_name.lower()]
    if not voices:
        print("No matching voices found.")
        return

    print("Available voices:")
    for v in voices:
        print(f"  {v.name:<10} {v.display_name:<20} {v.gender}")
        if args.verbose:
            print(f"             in: {', '.join(categories_for(v.name))}")


def cmd_categories(args):
    """List voice categories."""
    for name, voices in VOICE_CATEGORIES.items():
        print(f"  {name:<20} {', '.join(v.display_name for v in voices)}")


def cmd_preview(args):
    """Synthesize a short sample in one voice."""
    voice = find_voice(args.voice)
    if voice is None:
        print(f"Error: Unknown voice: {args.voice}", file=sys.stderr)
        raise SystemExit(1)

    rotator = _load_rotator(args)
    try:
        wav = preview_voice(voice.name, rotator)
    except DubbingError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)

    output_path = args.out or f"preview_{slug_from_path(voice.name)}.wav"
    parent = os.path.dirname(output_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(output_path, "wb") as f:
        f.write(wav)
    print(f"Preview written to {output_path}")


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="dubbing-studio",
        description="Dubbing Studio: turn text scripts into narrated audio",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_keys_option(p):
        p.add_argument("--keys-file", help=f"File with one API key per line (default: ${CREDENTIALS_ENV_VAR})")

    # run
    run_parser = subparsers.add_parser("run", help="Dub one or more text scripts")
    run_parser.add_argument("files", nargs="+", help="Paths to .txt scripts")
    run_parser.add_argument("-o", "--output", default=OUTPUT_DIR, help="Output directory")
    run_parser.add_argument("--format", choices=["wav", "mp3"], default="wav", help="Audio format")
    run_parser.add_argument("--max-chars", type=int, default=MAX_SEGMENT_CHARS, help="Max characters per request")
    run_parser.add_argument("--voice", action="append", metavar="CHARACTER=VOICE", help="Override a character's voice")
    add_keys_option(run_parser)
    run_parser.set_defaults(func=cmd_run)

    # detect
    detect_parser = subparsers.add_parser("detect", help="Detect characters in a script")
    detect_parser.add_argument("file", help="Path to a .txt script")
    add_keys_option(detect_parser)
    detect_parser.set_defaults(func=cmd_detect)

    # voices
    voices_parser = subparsers.add_parser("voices", help="List available voices")
    voices_parser.add_argument("--category", help="Only voices in this category")
    voices_parser.add_argument("--filter", help="Filter voices by substring")
    voices_parser.set_defaults(func=cmd_voices)

    # categories
    categories_parser = subparsers.add_parser("categories", help="List voice categories")
    categories_parser.set_defaults(func=cmd_categories)

    # preview
    preview_parser = subparsers.add_parser("preview", help="Synthesize a sample of a voice")
    preview_parser.add_argument("voice", help="Voice name, e.g. Kore")
    preview_parser.add_argument("-o", "--out", help="Output WAV path")
    add_keys_option(preview_parser)
    preview_parser.set_defaults(func=cmd_preview)

    args = parser.parse_args(argv)
    args.prog = parser.prog

    if not args.command:
        parser.print_help()
        return

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")

    args.func(args)
