"""Split scripts into sentence-aligned segments for synthesis requests."""

import re

from dubbing_studio.constants import MAX_SEGMENT_CHARS

# A sentence is a run ending in terminators, or the unterminated tail.
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+|[^.!?]+$")


def split_sentences(text: str) -> list[str]:
    """Split text into stripped, non-empty sentences, keeping terminators."""
    sentences = []
    for match in _SENTENCE_RE.finditer(text):
        sentence = match.group(0).strip()
        if sentence:
            sentences.append(sentence)
    return sentences


def split_into_segments(text: str, max_chars: int = MAX_SEGMENT_CHARS) -> list[str]:
    """Pack sentences greedily into segments of at most max_chars.

    Text that already fits is returned as a single untouched segment.
    Sentences inside a segment are joined by one space. A sentence longer
    than max_chars gets a segment of its own and is never truncated.
    """
    if max_chars < 1:
        raise ValueError(f"max_chars must be positive, got {max_chars}")

    if len(text) <= max_chars:
        return [text]

    segments = []
    current = ""
    for sentence in split_sentences(text):
        if current and len(current) + 1 + len(sentence) > max_chars:
            segments.append(current)
            current = sentence
        else:
            current = f"{current} {sentence}" if current else sentence

    if current:
        segments.append(current)

    return segments
