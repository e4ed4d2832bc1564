"""Part boundaries for multipart uploads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from s3connector.infra.storage.errors import InvalidInputError

# S3 minimum part size; every part but the last is exactly this long.
PART_SIZE_BYTES = 5 * 1024 * 1024


class NoMoreParts(Exception):
    """Raised when a part number lies past the last part of an upload."""


@dataclass(frozen=True, slots=True)
class PartPlan:
    part_number: int
    offset: int
    size_bytes: int
    total_parts: int

    @property
    def is_last(self) -> bool:
        return self.part_number == self.total_parts


def count_parts(total_size_bytes: int, part_size_bytes: int = PART_SIZE_BYTES) -> int:
    """Number of parts for an object; a zero-length object still has one."""
    if total_size_bytes < 0:
        raise InvalidInputError("total_size_bytes must not be negative")
    if part_size_bytes <= 0:
        raise InvalidInputError("part_size_bytes must be positive")
    return max(1, -(-total_size_bytes // part_size_bytes))


def plan_part(
    total_size_bytes: int,
    part_number: int,
    part_size_bytes: int = PART_SIZE_BYTES,
) -> PartPlan:
    """Compute offset and length of a 1-based part.

    Raises:
        NoMoreParts: If ``part_number`` is past the last part.
        InvalidInputError: If ``part_number`` is not positive.
    """
    if part_number < 1:
        raise InvalidInputError(f"Invalid part number {part_number}")
    total_parts = count_parts(total_size_bytes, part_size_bytes)
    if part_number > total_parts:
        raise NoMoreParts(part_number)

    offset = part_size_bytes * (part_number - 1)
    size = part_size_bytes
    if part_number == total_parts:
        size = total_size_bytes - offset
    return PartPlan(
        part_number=part_number,
        offset=offset,
        size_bytes=size,
        total_parts=total_parts,
    )


def iter_parts(
    total_size_bytes: int, part_size_bytes: int = PART_SIZE_BYTES
) -> Iterator[PartPlan]:
    total_parts = count_parts(total_size_bytes, part_size_bytes)
    for part_number in range(1, total_parts + 1):
        yield plan_part(total_size_bytes, part_number, part_size_bytes)
