"""Context-window budgeting for generation calls."""

import math
from collections.abc import Callable, Sequence
from typing import TypeVar

T = TypeVar("T")


def estimate_tokens(text: str) -> int:
    """Approximate token count as characters / 4, rounded up, minimum 1."""
    return max(1, math.ceil(len(text) / 4))


def truncate_context(
    chunks: Sequence[T],
    max_tokens: int,
    key: Callable[[T], str] | None = None,
) -> list[T]:
    """
    Select the longest prefix of chunks that fits in a token budget.

    Chunks are taken in order until the next one would push the running
    estimate over ``max_tokens``. The first chunk is always returned for
    non-empty input, even when it alone exceeds the budget; trimming the
    text of a single chunk is the caller's concern.

    Args:
        chunks: Candidate chunks in priority order
        max_tokens: Approximate token budget
        key: Extracts the text of a chunk (defaults to the chunk itself)

    Returns:
        Prefix of ``chunks``
    """
    if not chunks:
        return []

    text_of = key or (lambda chunk: chunk)
    selected: list[T] = []
    used = 0

    for chunk in chunks:
        cost = estimate_tokens(text_of(chunk))
        if used + cost > max_tokens:
            break
        selected.append(chunk)
        used += cost

    if not selected:
        selected.append(chunks[0])

    return selected
