"""Split ordered sequences into request-sized batches."""
from typing import List, Sequence, TypeVar

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """
    Partition ``items`` into consecutive lists of ``size`` elements.

    Every chunk but the last holds exactly ``size`` elements and joining the
    chunks gives back the input in its original order. An empty input yields
    no chunks.

    Args:
        items: Ordered sequence to split
        size: Maximum chunk length, at least 1

    Returns:
        List of chunks
    """
    if size < 1:
        raise ValueError(f"chunk size must be at least 1, got {size}")
    return [list(items[start:start + size]) for start in range(0, len(items), size)]
