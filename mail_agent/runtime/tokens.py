"""Split assistant text into incremental tokens for low-latency rendering."""

import re
from typing import Iterator, List

_WHITESPACE_RUN = re.compile(r"(\s+)")


def split_segments(text: str) -> List[str]:
    """Split text into alternating word and whitespace segments.

    ``"".join(split_segments(text)) == text`` for every input.
    """
    return [segment for segment in _WHITESPACE_RUN.split(text) if segment]


def stream_text(text: str) -> Iterator[str]:
    """Yield the non-blank segments of ``text`` in source order."""
    for segment in split_segments(text):
        if not segment.isspace():
            yield segment
