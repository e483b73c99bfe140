import logging
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from trmnld import config, main
from trmnld.errors import CatalogLoadError

CONFIG_GLOBALS = (
    'SECRET_KEY_BASE',
    'IMAGE_DIR',
    'SERVER_BIND',
    'SERVER_PORT',
    'SETUP_ENABLED',
    'SESSION_KEYING',
    'ALLOWED_DEVICES',
    'REFRESH_RATE',
    'PLACEHOLDER_WIDTH',
    'PLACEHOLDER_HEIGHT',
    'LOG_BOOK_SIZE'
)
ENV_NAMES = (
    'SECRET_KEY_BASE',
    'IMAGE_DIR',
    'SERVER_BIND',
    'SERVER_PORT',
    'SETUP_ENABLED',
    'SESSION_KEYING',
    'ALLOWED_DEVICES',
    'DEFAULT_REFRESH_RATE'
)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Run each test against fresh config globals and no installed runtime."""
    for name in CONFIG_GLOBALS:
        monkeypatch.setattr(config, name, getattr(config, name))
    monkeypatch.setattr(config, '_ENV_OVERRIDES', set())
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(main.app.state, 'runtime', None, raising=False)


def _secret_warnings(caplog):
    return [record for record in caplog.records if 'SECRET_KEY_BASE' in record.getMessage()]


def test_run_exits_when_image_directory_is_missing(tmp_path: Path, monkeypatch):
    started = []
    monkeypatch.setattr(main.uvicorn, 'run', lambda *args, **kwargs: started.append(kwargs))

    with pytest.raises(SystemExit) as excinfo:
        main.run([str(tmp_path / 'missing')])
    assert excinfo.value.code == 1
    assert started == []


def test_run_applies_cli_flags(tmp_path: Path, monkeypatch):
    (tmp_path / 'a.png').write_bytes(b'BM')
    started = []
    monkeypatch.setattr(main.uvicorn, 'run', lambda app, **kwargs: started.append(kwargs))
    monkeypatch.setenv('SECRET_KEY_BASE', 'cli-secret')

    main.run([
        str(tmp_path),
        '--port', '8080',
        '--bind', '127.0.0.1',
        '--setup',
        '--allow', 'aa:bb:cc:dd:ee:ff',
        '--session-keying', 'credential'
    ])

    assert started == [{'host': '127.0.0.1', 'port': 8080, 'log_level': 'info'}]
    runtime = main.app.state.runtime
    assert runtime.catalog.paths == ['a.png']
    assert runtime.policy.setup_enabled is True
    assert runtime.policy.allowed_devices == frozenset({'AA:BB:CC:DD:EE:FF'})
    assert runtime.policy.session_keying == 'credential'
    assert runtime.policy.secret == 'cli-secret'


def test_run_warns_when_secret_is_unset(tmp_path: Path, monkeypatch, caplog):
    monkeypatch.setattr(main.uvicorn, 'run', lambda *args, **kwargs: None)

    with caplog.at_level(logging.WARNING, logger='trmnld'):
        main.run([str(tmp_path)])
    assert len(_secret_warnings(caplog)) == 1


def test_lifespan_fails_when_image_directory_is_missing(tmp_path: Path):
    config.IMAGE_DIR = str(tmp_path / 'missing')

    with pytest.raises(CatalogLoadError):
        with TestClient(main.app):
            pass
    assert main.app.state.runtime is None


def test_lifespan_loads_catalog_and_warns_about_default_secret(tmp_path: Path, caplog):
    (tmp_path / 'a.png').write_bytes(b'BM')
    config.IMAGE_DIR = str(tmp_path)
    config.SECRET_KEY_BASE = ''

    with caplog.at_level(logging.WARNING, logger='trmnld'):
        with TestClient(main.app) as client:
            payload = client.get('/status').json()

    assert payload['catalog']['images'] == ['a.png']
    assert payload['auth']['default_secret'] is True
    assert len(_secret_warnings(caplog)) == 1


def test_lifespan_is_quiet_with_configured_secret(tmp_path: Path, caplog):
    config.IMAGE_DIR = str(tmp_path)
    config.SECRET_KEY_BASE = 'configured'

    with caplog.at_level(logging.WARNING, logger='trmnld'):
        with TestClient(main.app) as client:
            assert client.get('/status').status_code == 200

    assert _secret_warnings(caplog) == []
