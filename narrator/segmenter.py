"""Split chapter text into speakable chunks."""

import re
import unicodedata

from narrator.constants import (
    IDEAL_CHUNK_LENGTH,
    MAX_CHUNK_LENGTH,
    SENTENCE_WINDOW,
    CLAUSE_WINDOW,
)
from narrator.errors import SegmentationError
from narrator.models import Chunk

# Horizontal whitespace: everything \s matches except the line break itself
_HSPACE_RE = re.compile(r"[^\S\n]+")

SENTENCE_MARKS = ".!?。！？…"
CLAUSE_MARKS = ",;:，；、："
# Closing quotes and brackets stay attached to the mark before them
CLOSERS = "\"'”’」』）)]】》"


def normalize_text(text: str) -> list[str]:
    """Normalize line breaks and whitespace, returning the non-blank lines.

    Each returned line is one paragraph candidate.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = (_HSPACE_RE.sub(" ", line).strip() for line in text.split("\n"))
    return [line for line in lines if line]


def _find_cut(window: str, marks: str, bounds: tuple[float, float], ideal: int, at_end: bool) -> int | None:
    """Return the cut offset after a mark in ``marks`` closest to ``ideal``.

    Only cut offsets within ``bounds`` (multiples of ideal) qualify.
    ``at_end`` says whether the window runs to the end of the paragraph.
    """
    lo, hi = bounds[0] * ideal, bounds[1] * ideal
    candidates = []
    i = 0
    while i < len(window):
        if window[i] not in marks:
            i += 1
            continue
        end = i + 1
        while end < len(window) and (window[end] in marks or window[end] in CLOSERS):
            end += 1
        run = window[i:end]
        # A lone ASCII period needs a following space to count ("3.14", "a.m")
        if set(run) == {"."}:
            followed_by_space = end < len(window) and window[end].isspace()
            if not (followed_by_space or (end == len(window) and at_end)):
                i = end
                continue
        if lo <= end <= hi:
            candidates.append(end)
        i = end
    if not candidates:
        return None
    return min(candidates, key=lambda c: (abs(c - ideal), -c))


def _split_paragraph(para: str, ideal: int, hard_max: int) -> list[str]:
    """Walk a paragraph longer than ``ideal`` and cut it into pieces."""
    pieces = []
    pos = 0
    while len(para) - pos > ideal:
        window = para[pos:pos + hard_max]
        at_end = pos + hard_max >= len(para)
        cut = _find_cut(window, SENTENCE_MARKS, SENTENCE_WINDOW, ideal, at_end)
        if cut is None:
            cut = _find_cut(window, CLAUSE_MARKS, CLAUSE_WINDOW, ideal, at_end)
        if cut is None:
            # No punctuation in range: hard cut at the window edge
            cut = len(window)
        if cut <= 0:
            raise SegmentationError(f"walk stalled at offset {pos} of {len(para)}")
        pieces.append(para[pos:pos + cut])
        pos += cut
    if pos < len(para):
        pieces.append(para[pos:])
    return pieces


def segment_text(text: str, ideal: int = IDEAL_CHUNK_LENGTH, hard_max: int = MAX_CHUNK_LENGTH) -> list[Chunk]:
    """Split raw chapter text into an ordered list of Chunks.

    Short paragraphs become one chunk verbatim. Longer ones are cut after a
    sentence mark near ``ideal``, else after a comma-class mark, else at the
    ``hard_max`` window edge. No chunk exceeds ``hard_max`` and the
    non-whitespace characters of the input survive in order.
    """
    if ideal < 1:
        raise ValueError(f"ideal chunk length must be positive, got {ideal}")
    if hard_max < ideal:
        raise ValueError(f"hard maximum ({hard_max}) is below ideal length ({ideal})")

    texts = []
    for para in normalize_text(text):
        if len(para) <= ideal:
            texts.append(para)
        else:
            texts.extend(_split_paragraph(para, ideal, hard_max))

    chunks = []
    for piece in texts:
        piece = piece.strip()
        if piece:
            chunks.append(Chunk(index=len(chunks), text=piece))
    return chunks


def is_unspeakable(text: str) -> bool:
    """True when text has no letter, digit or CJK ideograph to read aloud."""
    return not any(unicodedata.category(ch)[0] in "LN" for ch in text)


def preview(text: str, width: int = 60) -> str:
    """One-line abbreviation of a chunk for listings."""
    flat = " ".join(text.split())
    if len(flat) <= width:
        return flat
    return flat[:width - 1] + "…"
