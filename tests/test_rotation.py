from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from trmnld.errors import EmptyCatalogError
from trmnld.services import rotation
from trmnld.services.catalog import ImageCatalog
from trmnld.services.sessions import SessionTable


def _catalog(*paths: str) -> ImageCatalog:
    return ImageCatalog.from_paths('/srv/images', list(paths))


def test_scenario_wraps_after_last_image():
    catalog = _catalog('a.png', 'b.png', 'c.png')

    first = rotation.next_entry(None, catalog)
    assert (first.entry.path, first.cursor) == ('a.png', 0)
    second = rotation.next_entry(first.cursor, catalog)
    assert (second.entry.path, second.cursor) == ('b.png', 1)
    third = rotation.next_entry(second.cursor, catalog)
    assert (third.entry.path, third.cursor) == ('c.png', 2)
    fourth = rotation.next_entry(third.cursor, catalog)
    assert (fourth.entry.path, fourth.cursor) == ('a.png', 0)


@pytest.mark.parametrize('size', [1, 2, 5, 12])
def test_full_tour_visits_every_ordinal_once(size):
    catalog = _catalog(*[f'img{idx:02d}.png' for idx in range(size)])
    cursor = None
    visited = []
    for _ in range(size):
        step = rotation.next_entry(cursor, catalog)
        visited.append(step.cursor)
        cursor = step.cursor
    assert visited == list(range(size))
    assert rotation.next_entry(cursor, catalog).cursor == 0


def test_single_image_always_returns_it():
    catalog = _catalog('only--30.png')
    step = rotation.next_entry(0, catalog)
    assert step.cursor == 0
    assert step.duration == 30


def test_empty_catalog_always_fails():
    catalog = _catalog()
    for cursor in (None, 0, 3):
        with pytest.raises(EmptyCatalogError):
            rotation.next_entry(cursor, catalog)


def test_out_of_range_cursor_restarts():
    catalog = _catalog('a.png', 'b.png')
    assert rotation.next_entry(7, catalog).cursor == 0
    assert rotation.next_entry(-1, catalog).cursor == 0


def test_step_carries_configured_duration():
    catalog = _catalog('a--45.png', 'b.png')
    assert rotation.next_entry(None, catalog).duration == 45
    assert rotation.next_entry(0, catalog).duration == 900


def test_session_table_creates_unset_session_once():
    table = SessionTable()
    session = table.session_for('AA:BB')
    assert session.cursor is None
    assert session.request_count == 0
    assert table.session_for('AA:BB') is session
    assert len(table) == 1
    assert 'AA:BB' in table


def test_session_table_advance_updates_cursor_and_timestamp():
    table = SessionTable()
    table.session_for('AA:BB')
    updated = table.advance('AA:BB', 2, 1234.0)
    assert updated.cursor == 2
    assert updated.last_update == 1234.0
    assert updated.request_count == 1
    assert table.get('AA:BB') == updated
    assert [session.key for session in table.snapshot()] == ['AA:BB']


def test_concurrent_first_requests_share_one_session():
    table = SessionTable()
    catalog = _catalog('a.png', 'b.png', 'c.png')
    workers = 8
    barrier = Barrier(workers)

    def _display() -> int:
        barrier.wait()
        session = table.session_for('new-device')
        step = rotation.next_entry(session.cursor, catalog)
        table.advance('new-device', step.cursor)
        return step.cursor

    with ThreadPoolExecutor(max_workers=workers) as pool:
        cursors = list(pool.map(lambda _: _display(), range(workers)))

    assert len(table) == 1
    final = table.get('new-device')
    assert final.cursor in set(cursors)
    assert 0 <= final.cursor < len(catalog)
    assert final.request_count == workers
