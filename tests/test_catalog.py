from pathlib import Path
from typing import List

import pytest

from trmnld.errors import CatalogLoadError
from trmnld.services.catalog import ImageCatalog, duration_of


def _write_images(root: Path, names: List[str]) -> None:
    for name in names:
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(b'BM' + name.encode('utf-8'))


@pytest.mark.parametrize(
    ('name', 'expected'),
    [
        ('photo--45.png', 45),
        ('photo.png', 900),
        ('photo--0.png', 900),
        ('a--b--30.png', 30),
        ('photo--abc.png', 900),
        ('photo--.png', 900),
        ('sub/dir--5/photo.bmp', 900),
        ('sub/photo--12.bmp', 12)
    ]
)
def test_duration_from_filename(name, expected):
    assert duration_of(name) == expected


def test_duration_default_can_be_overridden():
    assert duration_of('photo.png', 60) == 60
    assert duration_of('photo--5.png', 60) == 5


def test_load_filters_and_sorts_recursively(tmp_path: Path):
    _write_images(tmp_path, ['c.bmp', 'a.png', 'nested/b.PNG', 'notes.txt', 'nested/skip.jpg'])
    catalog = ImageCatalog.load(str(tmp_path))

    assert catalog.paths == ['a.png', 'c.bmp', 'nested/b.PNG']
    assert [entry.ordinal for entry in catalog] == [0, 1, 2]
    assert catalog.first().path == 'a.png'
    assert catalog.entry_at(2).filename == 'b.PNG'


def test_load_uses_plain_lexicographic_order(tmp_path: Path):
    _write_images(tmp_path, ['img2.png', 'img10.png', 'B.png', 'a.png'])
    catalog = ImageCatalog.load(str(tmp_path))
    assert catalog.paths == ['B.png', 'a.png', 'img10.png', 'img2.png']


def test_load_records_durations(tmp_path: Path):
    _write_images(tmp_path, ['slow--120.png', 'fast--5.bmp', 'plain.png'])
    catalog = ImageCatalog.load(str(tmp_path), default_duration=900)
    durations = {entry.path: entry.duration for entry in catalog}
    assert durations == {'fast--5.bmp': 5, 'plain.png': 900, 'slow--120.png': 120}


def test_empty_directory_is_a_valid_catalog(tmp_path: Path):
    catalog = ImageCatalog.load(str(tmp_path))
    assert len(catalog) == 0
    assert not catalog
    assert catalog.first() is None


def test_missing_directory_fails_to_load(tmp_path: Path):
    with pytest.raises(CatalogLoadError):
        ImageCatalog.load(str(tmp_path / 'missing'))


def test_file_root_fails_to_load(tmp_path: Path):
    target = tmp_path / 'image.png'
    target.write_bytes(b'BM')
    with pytest.raises(CatalogLoadError):
        ImageCatalog.load(str(target))


def test_entry_at_out_of_range(tmp_path: Path):
    _write_images(tmp_path, ['a.png'])
    catalog = ImageCatalog.load(str(tmp_path))
    with pytest.raises(IndexError):
        catalog.entry_at(1)


def test_resolve_only_returns_catalog_files(tmp_path: Path):
    images = tmp_path / 'images'
    _write_images(images, ['a.png', 'sub/b.bmp'])
    (tmp_path / 'secret.png').write_bytes(b'secret')
    catalog = ImageCatalog.load(str(images))

    assert catalog.resolve('a.png') == images / 'a.png'
    assert catalog.resolve('sub/b.bmp') == images / 'sub' / 'b.bmp'
    assert catalog.resolve('../secret.png') is None
    assert catalog.resolve('missing.png') is None


def test_symlinked_image_outside_root_resolves(tmp_path: Path):
    library = tmp_path / 'library'
    _write_images(library, ['photo.png'])
    images = tmp_path / 'images'
    images.mkdir()
    (images / 'photo.png').symlink_to(library / 'photo.png')
    catalog = ImageCatalog.load(str(images))

    assert catalog.paths == ['photo.png']
    resolved = catalog.resolve('photo.png')
    assert resolved == images / 'photo.png'
    assert resolved.read_bytes() == b'BMphoto.png'
