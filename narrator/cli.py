"""CLI interface with subcommand routing."""

import argparse
import asyncio
import json
import logging
import os
import re
import sys

from narrator.config import SETTING_KEYS, load_settings, save_settings, update_setting
from narrator.constants import DATA_DIR, SETTINGS_FILE, PROGRESS_FILE, VERSION
from narrator.device import PygameDevice
from narrator.models import PlaybackState
from narrator.orchestrator import Orchestrator
from narrator.progress import ProgressReporter, ProgressTracker
from narrator.segmenter import preview, segment_text
from narrator.tts import make_client
from narrator.voices import list_voices


def slug_from_name(name: str) -> str:
    """Convert a file or directory name to an id slug.

    "Chapter 01.txt" → "chapter_01"
    """
    stem = os.path.splitext(os.path.basename(name))[0]
    return re.sub(r"[^\w]+", "_", stem).strip("_").lower()


def _data_dir(args) -> str:
    return os.path.expanduser(args.data_dir)


def _settings_path(args) -> str:
    return os.path.join(_data_dir(args), SETTINGS_FILE)


def _progress_path(args) -> str:
    return os.path.join(_data_dir(args), PROGRESS_FILE)


def _read_text(file_path: str) -> str:
    """Read a chapter file or exit with an error."""
    if not os.path.exists(file_path):
        print(f"Error: File not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    with open(file_path, encoding="utf-8") as f:
        text = f.read()
    if not text.strip():
        print(f"Error: File is empty: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    return text


def _ids_for(file_path: str, book: str | None, chapter: str | None) -> tuple[str, str]:
    """Book defaults to the parent directory's slug, chapter to the file's."""
    parent = os.path.dirname(os.path.abspath(file_path))
    book_id = book or slug_from_name(parent) or "book"
    chapter_id = chapter or slug_from_name(file_path)
    return book_id, chapter_id


def cmd_chunks(args):
    """Print how a chapter file is segmented."""
    text = _read_text(args.file)
    settings = load_settings(_settings_path(args))
    ideal = args.ideal or settings.ideal_length
    hard_max = args.max or settings.max_length
    try:
        chunks = segment_text(text, ideal=ideal, hard_max=hard_max)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)

    if args.json:
        print(json.dumps([{"index": c.index, "text": c.text} for c in chunks], ensure_ascii=False, indent=2))
        return
    for chunk in chunks:
        print(f"{chunk.index:>5}  {len(chunk.text):>5}  {preview(chunk.text)}")
    print(f"{len(chunks)} chunks (ideal {ideal}, max {hard_max})")


async def _narrate(chunks, start, book_id, chapter_id, settings, tracker) -> PlaybackState:
    """Play one chapter until it ends or fails. Returns the final state."""
    device = PygameDevice(fmt=settings.response_format if settings.backend == "openai" else "mp3")
    orchestrator = Orchestrator(
        make_client(settings), device, settings,
        reporter=ProgressReporter(tracker, book_id),
    )
    finished = asyncio.Event()
    total = len(chunks)

    def on_state(state):
        if state is PlaybackState.PLAYING:
            chunk = orchestrator.session.current_chunk
            print(f"  [{chunk.index + 1}/{total}] {preview(chunk.text)}")
        elif state in (PlaybackState.ENDED, PlaybackState.ERROR):
            finished.set()

    orchestrator.on_state_change(on_state)
    orchestrator.on_error(lambda message: print(f"Error: {message}", file=sys.stderr))

    session = orchestrator.start(chunks, start, book_id=book_id, chapter_id=chapter_id)
    try:
        if session.state not in (PlaybackState.ENDED, PlaybackState.ERROR):
            await finished.wait()
        return session.state
    finally:
        orchestrator.stop()


def cmd_read(args):
    """Narrate a chapter file, resuming where it was left."""
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    text = _read_text(args.file)
    settings = load_settings(_settings_path(args))
    chunks = segment_text(text, ideal=settings.ideal_length, hard_max=settings.max_length)
    if not chunks:
        print(f"Error: Nothing to read in: {args.file}", file=sys.stderr)
        raise SystemExit(1)

    book_id, chapter_id = _ids_for(args.file, args.book, args.chapter)
    tracker = ProgressTracker(_progress_path(args))
    if args.start is not None:
        start = args.start
    else:
        start = tracker.resume_index_for(book_id, chapter_id)
    if not 0 <= start < len(chunks):
        # Chapter text changed since the pointer was saved
        start = 0

    print(f"Reading {book_id}/{chapter_id}: {len(chunks)} chunks, from {start + 1}")
    try:
        state = asyncio.run(_narrate(chunks, start, book_id, chapter_id, settings, tracker))
    except KeyboardInterrupt:
        print("\nStopped. Progress saved.")
        return

    if state is PlaybackState.ERROR:
        raise SystemExit(1)
    print("Done.")


def cmd_voices(args):
    """List available voices."""
    settings = load_settings(_settings_path(args))
    voices = asyncio.run(list_voices(settings))
    filter_str = args.filter.lower() if args.filter else None
    if filter_str:
        voices = [v for v in voices if filter_str in v.id.lower() or filter_str in v.display_name.lower()]
    if not voices:
        print("No matching voices found.")
        return
    print("Available voices:")
    for v in voices:
        marker = "*" if v.id == settings.voice else " "
        print(f" {marker} {v.id:<28} {v.display_name}")


def cmd_set(args):
    """Update one setting."""
    path = _settings_path(args)
    settings = load_settings(path)
    try:
        settings = update_setting(settings, args.key, args.value)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(f"Valid keys: {', '.join(SETTING_KEYS)}", file=sys.stderr)
        raise SystemExit(1)
    save_settings(path, settings)
    shown = "****" if args.key == "api-key" else args.value
    print(f"Updated: {args.key} → {shown}")


def cmd_progress(args):
    """Show reading progress of a book."""
    tracker = ProgressTracker(_progress_path(args))
    record = tracker.get(args.book)
    if record is None:
        print(f"No progress recorded for: {args.book}")
        return
    print(f"Book:      {record.book_id}")
    print(f"Last read: {record.chapter_id} (chunk {record.chunk_index + 1})")
    completed = ", ".join(sorted(record.completed_chapter_ids)) or "none"
    print(f"Completed: {completed}")


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="narrator",
        description="Narrator — read chapters aloud with a speech-synthesis service",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--data-dir", default=DATA_DIR, help="Directory for settings and progress")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # chunks
    chunks_parser = subparsers.add_parser("chunks", help="Show how a chapter is segmented")
    chunks_parser.add_argument("file", help="Path to the chapter text file")
    chunks_parser.add_argument("--ideal", type=int, help="Ideal chunk length")
    chunks_parser.add_argument("--max", type=int, help="Hard maximum chunk length")
    chunks_parser.add_argument("--json", action="store_true", help="Print chunks as JSON")
    chunks_parser.set_defaults(func=cmd_chunks)

    # read
    read_parser = subparsers.add_parser("read", help="Narrate a chapter")
    read_parser.add_argument("file", help="Path to the chapter text file")
    read_parser.add_argument("--book", help="Book id (default: parent directory name)")
    read_parser.add_argument("--chapter", help="Chapter id (default: file name)")
    read_parser.add_argument("--from", dest="start", type=int, help="Chunk index to start from")
    read_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    read_parser.set_defaults(func=cmd_read)

    # voices
    voices_parser = subparsers.add_parser("voices", help="List available voices")
    voices_parser.add_argument("--filter", help="Filter voices by substring")
    voices_parser.set_defaults(func=cmd_voices)

    # set
    set_parser = subparsers.add_parser("set", help="Update a setting")
    set_parser.add_argument("key", help=f"One of: {', '.join(SETTING_KEYS)}")
    set_parser.add_argument("value", help="New value")
    set_parser.set_defaults(func=cmd_set)

    # progress
    progress_parser = subparsers.add_parser("progress", help="Show reading progress of a book")
    progress_parser.add_argument("book", help="Book id")
    progress_parser.set_defaults(func=cmd_progress)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()
