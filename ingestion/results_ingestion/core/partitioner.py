from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass(frozen=True)
class ChunkBounds:
    """Half-open index range [start, stop) owned by exactly one worker."""
    index: int
    start: int
    stop: int

    @property
    def size(self) -> int:
        return self.stop - self.start


@dataclass(frozen=True)
class Partition:
    chunk_size: int
    chunks: List[ChunkBounds] = field(default_factory=list)


def _ceil_div(a: int, b: int) -> int:
    # Integer-only: float division loses precision above 2**53
    return -(-a // b)


def partition(total: int, workers: int) -> Partition:
    """
    Splits [0, total) into at most `workers` contiguous, non-overlapping chunks.

    chunk_size = ceil(total / workers); chunk i covers
    [i * chunk_size, min(total, (i + 1) * chunk_size)). Empty chunks are never
    emitted, so total < workers yields fewer chunks. The last chunk may be short.
    """
    if workers < 1:
        raise ValueError(f"Worker count must be >= 1, got {workers}")
    if total < 0:
        raise ValueError(f"Total must be >= 0, got {total}")

    chunk_size = _ceil_div(total, workers)
    chunks = []
    if chunk_size == 0:
        return Partition(chunk_size=0, chunks=chunks)

    for i in range(workers):
        start = i * chunk_size
        if start >= total:
            break
        chunks.append(ChunkBounds(index=i, start=start, stop=min(total, start + chunk_size)))
    return Partition(chunk_size=chunk_size, chunks=chunks)


def partition_range(start: int, end: int, workers: int) -> Tuple[int, List[Tuple[int, int]]]:
    """
    Inclusive numeric form: [start, end] -> (chunk_size, [(chunk_start, chunk_end), ...]).
    Exact for ranges of any width.
    """
    if end < start:
        return 0, []
    plan = partition(end - start + 1, workers)
    return plan.chunk_size, [(start + c.start, start + c.stop - 1) for c in plan.chunks]
