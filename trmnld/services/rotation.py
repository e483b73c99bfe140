"""Forward, wrapping rotation through the image catalog."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..errors import EmptyCatalogError
from .catalog import CatalogEntry, ImageCatalog


@dataclass(frozen=True)
class RotationStep:
    entry: CatalogEntry
    duration: int

    @property
    def cursor(self) -> int:
        return self.entry.ordinal


def next_ordinal(cursor: Optional[int], size: int) -> int:
    if size <= 0:
        raise EmptyCatalogError('No images found')
    if cursor is None or cursor < 0 or cursor >= size - 1:
        return 0
    return cursor + 1


def next_entry(cursor: Optional[int], catalog: ImageCatalog) -> RotationStep:
    """Return the entry after ``cursor``, wrapping to the first image.

    Pure: the caller stores ``step.cursor`` back into the device session.
    """
    ordinal = next_ordinal(cursor, len(catalog))
    entry = catalog.entry_at(ordinal)
    return RotationStep(entry=entry, duration=entry.duration)
