from __future__ import annotations

import logging
from os import environ, getcwd
from os.path import abspath, isdir
from sys import stdout

# Logging Configuration
LOG_LEVEL = environ.get('LOG_LEVEL', 'INFO').upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=stdout
)
logger = logging.getLogger('trmnld')

# Pillow emits very noisy DEBUG logs (PNG chunk dumps). Keep them at INFO+.
logging.getLogger('PIL').setLevel(logging.INFO)
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('httpcore').setLevel(logging.WARNING)

logger.info('[Config] loading module')

_TRUE_VALUES = {'true', '1', 't', 'yes', 'on'}

# Weak fallback used when SECRET_KEY_BASE is unset. Anyone who knows a MAC
# address can derive its API key while this is in effect.
DEFAULT_SECRET_KEY = 'TRMNL'
DEFAULT_REFRESH_RATE = 900
SESSION_KEYING_MODES = ('device', 'credential')

SECRET_KEY_BASE = ''
IMAGE_DIR = getcwd()
SERVER_BIND = '0.0.0.0'
SERVER_PORT = 3000
SETUP_ENABLED = False
SESSION_KEYING = 'device'
ALLOWED_DEVICES: frozenset[str] = frozenset()
REFRESH_RATE = DEFAULT_REFRESH_RATE
PLACEHOLDER_WIDTH = 800
PLACEHOLDER_HEIGHT = 480
LOG_BOOK_SIZE = 200

_ENV_OVERRIDES: set[str] = set()


def _env_str(name: str, default: str, config_key: str) -> str:
    value = environ.get(name)
    if value is None:
        return default
    _ENV_OVERRIDES.add(config_key)
    return value


def _env_bool(name: str, default: bool, config_key: str) -> bool:
    value = environ.get(name)
    if value is None:
        return default
    _ENV_OVERRIDES.add(config_key)
    return value.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int, config_key: str) -> int:
    value = environ.get(name)
    if value is None:
        return default
    try:
        number = int(value)
        _ENV_OVERRIDES.add(config_key)
        return number
    except ValueError:
        logger.warning('[Config] Invalid int for %s: %s', name, value)
        return default


def normalize_device_id(device_id: str | None) -> str:
    """Device identifiers are case-insensitive; compare them upper-cased."""
    return (device_id or '').strip().upper()


def parse_device_list(raw) -> frozenset[str]:
    """Parse a comma separated string (or iterable) of MAC addresses."""
    if raw is None:
        return frozenset()
    items = raw.split(',') if isinstance(raw, str) else raw
    return frozenset(normalized for normalized in (normalize_device_id(item) for item in items) if normalized)


def _coerce_session_keying(value: str) -> str:
    mode = (value or '').strip().lower()
    if mode not in SESSION_KEYING_MODES:
        logger.warning('[Config] Unknown session keying %r, falling back to device', value)
        return 'device'
    return mode


def _apply_environment_overrides() -> None:
    global SECRET_KEY_BASE, IMAGE_DIR, SERVER_BIND, SERVER_PORT
    global SETUP_ENABLED, SESSION_KEYING, ALLOWED_DEVICES, REFRESH_RATE
    global PLACEHOLDER_WIDTH, PLACEHOLDER_HEIGHT, LOG_BOOK_SIZE
    _ENV_OVERRIDES.clear()

    SECRET_KEY_BASE = _env_str('SECRET_KEY_BASE', '', 'secret_key_base')
    IMAGE_DIR = _env_str('IMAGE_DIR', getcwd(), 'image_dir')
    SERVER_BIND = _env_str('SERVER_BIND', '0.0.0.0', 'server_bind')
    SERVER_PORT = _env_int('SERVER_PORT', 3000, 'server_port')
    SETUP_ENABLED = _env_bool('SETUP_ENABLED', False, 'setup_enabled')
    SESSION_KEYING = _coerce_session_keying(_env_str('SESSION_KEYING', 'device', 'session_keying'))
    ALLOWED_DEVICES = parse_device_list(_env_str('ALLOWED_DEVICES', '', 'allowed_devices'))
    REFRESH_RATE = _env_int('DEFAULT_REFRESH_RATE', DEFAULT_REFRESH_RATE, 'refresh_rate')
    PLACEHOLDER_WIDTH = _env_int('PLACEHOLDER_WIDTH', 800, 'placeholder_width')
    PLACEHOLDER_HEIGHT = _env_int('PLACEHOLDER_HEIGHT', 480, 'placeholder_height')
    LOG_BOOK_SIZE = _env_int('LOG_BOOK_SIZE', 200, 'log_book_size')


def env_overrides() -> list[str]:
    """Config keys whose value came from the environment (secrets excluded)."""
    return sorted(key for key in _ENV_OVERRIDES if key != 'secret_key_base')


def secret_key() -> str:
    """Return the configured server secret, or the weak default."""
    return SECRET_KEY_BASE or DEFAULT_SECRET_KEY


def warn_if_default_secret() -> bool:
    if SECRET_KEY_BASE:
        return False
    logger.warning(
        '[Config] SECRET_KEY_BASE environment variable is not set. '
        'Unauthorized clients will be able to fetch screens.'
    )
    return True


def load_config(image_dir: str | None = None) -> None:
    """Apply environment overrides and resolve the image directory."""
    global IMAGE_DIR
    _apply_environment_overrides()
    if image_dir:
        IMAGE_DIR = image_dir
    IMAGE_DIR = abspath(IMAGE_DIR)
    if not isdir(IMAGE_DIR):
        logger.warning('[Config] Image directory %s does not exist', IMAGE_DIR)


def _coerce_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def update_config(key: str, value) -> None:
    """Update an in-memory configuration value."""
    global SECRET_KEY_BASE, IMAGE_DIR, SERVER_BIND, SERVER_PORT
    global SETUP_ENABLED, SESSION_KEYING, ALLOWED_DEVICES, REFRESH_RATE
    global PLACEHOLDER_WIDTH, PLACEHOLDER_HEIGHT, LOG_BOOK_SIZE

    if key == 'secret_key_base':
        logger.info('[Config] Updating %s', key)
    else:
        logger.info('[Config] Updating %s to %s', key, value)

    if key == 'secret_key_base':
        SECRET_KEY_BASE = str(value)
    elif key == 'image_dir':
        IMAGE_DIR = abspath(str(value))
    elif key == 'server_bind':
        SERVER_BIND = str(value)
    elif key == 'server_port':
        SERVER_PORT = int(value)
    elif key == 'setup_enabled':
        SETUP_ENABLED = _coerce_bool(value)
    elif key == 'session_keying':
        SESSION_KEYING = _coerce_session_keying(str(value))
    elif key == 'allowed_devices':
        ALLOWED_DEVICES = parse_device_list(value)
    elif key == 'refresh_rate':
        REFRESH_RATE = int(value)
    elif key == 'placeholder_width':
        PLACEHOLDER_WIDTH = int(value)
    elif key == 'placeholder_height':
        PLACEHOLDER_HEIGHT = int(value)
    elif key == 'log_book_size':
        LOG_BOOK_SIZE = int(value)
    else:
        logger.warning('[Config] Unknown config key: %s', key)


def apply_cli_overrides(entries: dict) -> None:
    """Apply command line values; explicit flags win over the environment."""
    for key, raw_value in entries.items():
        if raw_value is None:
            continue
        update_config(key, raw_value)


_apply_environment_overrides()
