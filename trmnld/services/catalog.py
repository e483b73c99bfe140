"""Image catalog: the sorted, immutable list of images served to devices."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterator, List, Optional, Tuple

from .. import config
from ..errors import CatalogLoadError

logger = config.logger

IMAGE_EXTENSIONS = ('.bmp', '.png')
DURATION_SEPARATOR = '--'


@dataclass(frozen=True)
class CatalogEntry:
    """A servable image: its path relative to the image root and its slot."""

    path: str
    ordinal: int
    duration: int

    @property
    def filename(self) -> str:
        return PurePosixPath(self.path).name


def duration_of(path: str, default: int = config.DEFAULT_REFRESH_RATE) -> int:
    """Parse the display duration from a ``name--<seconds>.ext`` suffix.

    Only the segment after the last ``--`` counts; anything that is not a
    positive integer falls back to ``default``.
    """
    stem = os.path.splitext(path)[0]
    parts = stem.split(DURATION_SEPARATOR)
    if len(parts) < 2:
        return default
    suffix = parts[-1]
    if not suffix.isascii() or not suffix.isdigit():
        return default
    value = int(suffix)
    return value if value > 0 else default


def is_image_file(name: str) -> bool:
    return os.path.splitext(name)[1].lower() in IMAGE_EXTENSIONS


def _raise_walk_error(exc: OSError) -> None:
    raise exc


def scan_image_paths(root: str) -> List[str]:
    """Return image paths under ``root`` as sorted POSIX-style relative paths."""
    if not os.path.isdir(root):
        raise CatalogLoadError(f'Image directory {root} does not exist or is not a directory')
    found: List[str] = []
    try:
        for current, _, files in os.walk(root, onerror=_raise_walk_error):
            for name in files:
                if not is_image_file(name):
                    continue
                relative = os.path.relpath(os.path.join(current, name), root)
                found.append(Path(relative).as_posix())
    except OSError as exc:
        raise CatalogLoadError(f'Failed to read image directory {root}: {exc}') from exc
    # Plain code-point order: "img10" sorts before "img2".
    found.sort()
    return found


class ImageCatalog:
    """Ordered images below a root directory, loaded once at startup."""

    def __init__(self, root: str, entries: Tuple[CatalogEntry, ...] = ()) -> None:
        self.root = os.path.abspath(root)
        self._entries = tuple(entries)
        self._by_path = {entry.path: entry for entry in self._entries}

    @classmethod
    def load(cls, root: str, default_duration: Optional[int] = None) -> ImageCatalog:
        fallback = default_duration if default_duration and default_duration > 0 else config.REFRESH_RATE
        paths = scan_image_paths(root)
        entries = tuple(
            CatalogEntry(path=path, ordinal=ordinal, duration=duration_of(path, fallback))
            for ordinal, path in enumerate(paths)
        )
        catalog = cls(root, entries)
        logger.info('[Catalog] Found %d images in %s', len(catalog), catalog.root)
        return catalog

    @classmethod
    def from_paths(cls, root: str, paths: List[str], default_duration: int = config.DEFAULT_REFRESH_RATE) -> ImageCatalog:
        """Build a catalog from already-known relative paths, without touching disk."""
        ordered = sorted(PurePosixPath(path).as_posix() for path in paths)
        return cls(root, tuple(
            CatalogEntry(path=path, ordinal=ordinal, duration=duration_of(path, default_duration))
            for ordinal, path in enumerate(ordered)
        ))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    @property
    def paths(self) -> List[str]:
        return [entry.path for entry in self._entries]

    def entry_at(self, ordinal: int) -> CatalogEntry:
        if ordinal < 0 or ordinal >= len(self._entries):
            raise IndexError(f'Catalog ordinal {ordinal} is out of range')
        return self._entries[ordinal]

    def first(self) -> Optional[CatalogEntry]:
        return self._entries[0] if self._entries else None

    def get(self, path: str) -> Optional[CatalogEntry]:
        return self._by_path.get(path)

    def resolve(self, path: str) -> Optional[Path]:
        """Map a catalog path to its file, refusing anything outside the root.

        Only the cleaned path is checked, not symlink targets: a link inside
        the root was listed at load time and is served like any other entry.
        """
        entry = self._by_path.get(PurePosixPath(path).as_posix())
        if entry is None:
            return None
        root = os.path.normpath(self.root)
        candidate = os.path.normpath(os.path.join(root, entry.path))
        if os.path.commonpath([root, candidate]) != root or candidate == root:
            return None
        return Path(candidate)
