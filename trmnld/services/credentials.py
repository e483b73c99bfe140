"""Stateless device API keys and the authentication policy around them.

A device's API key is ``sha1(MAC + SECRET_KEY_BASE)``. Nothing is stored: the
key is recomputed on every request, so the server secret is the only trust
anchor and there is no device registry to migrate or corrupt.
"""

from __future__ import annotations

import hmac
import re
from dataclasses import dataclass
from hashlib import sha1
from typing import Iterable, Optional

from .. import config
from ..errors import (
    DeviceNotAllowedError,
    MissingIdentifierError,
    ProvisioningDisabledError,
    UnauthorizedCredentialError
)

FRIENDLY_ID_LENGTH = 6
TOKEN_KEY_PREFIX_LENGTH = 8
_API_KEY_PATTERN = re.compile(r'^[0-9a-f]{40}$')


def derive_api_key(device_id: str, secret: Optional[str] = None) -> str:
    normalized = config.normalize_device_id(device_id)
    if not normalized:
        raise MissingIdentifierError()
    secret_value = secret if secret else config.secret_key()
    return sha1(f"{normalized}{secret_value}".encode('utf-8')).hexdigest()


def friendly_id(api_key: str) -> str:
    """Short ``ABC-123`` form of an API key, shown on the device during setup."""
    prefix = api_key[:FRIENDLY_ID_LENGTH].upper()
    half = FRIENDLY_ID_LENGTH // 2
    return f"{prefix[:half]}-{prefix[half:]}"


def validate_api_key(device_id: str, supplied: Optional[str], secret: Optional[str] = None) -> bool:
    expected = derive_api_key(device_id, secret)
    candidate = (supplied or '').strip()
    if not candidate:
        return False
    return hmac.compare_digest(expected, candidate.lower())


def is_plausible_api_key(value: Optional[str]) -> bool:
    return bool(_API_KEY_PATTERN.match((value or '').strip().lower()))


def token_session_key(api_key: str) -> str:
    """Synthetic session key for a credential whose device ID is unknown.

    API keys are one-way, so the original MAC cannot be recovered; sessions
    keyed this way follow the credential, not the hardware.
    """
    return f"token:{api_key.strip().lower()[:TOKEN_KEY_PREFIX_LENGTH]}"


@dataclass(frozen=True)
class AuthPolicy:
    """Which devices may provision and how display requests are keyed."""

    setup_enabled: bool = False
    session_keying: str = 'device'
    allowed_devices: frozenset = frozenset()
    secret: Optional[str] = None

    @classmethod
    def from_config(cls) -> AuthPolicy:
        return cls(
            setup_enabled=config.SETUP_ENABLED,
            session_keying=config.SESSION_KEYING,
            allowed_devices=config.ALLOWED_DEVICES,
            secret=config.SECRET_KEY_BASE or None
        )

    @classmethod
    def with_allow_list(cls, devices: Iterable[str], **kwargs) -> AuthPolicy:
        return cls(allowed_devices=config.parse_device_list(list(devices)), **kwargs)

    @property
    def uses_allow_list(self) -> bool:
        return bool(self.allowed_devices)

    @property
    def keys_by_credential(self) -> bool:
        return self.session_keying == 'credential'

    def check_provisioning(self, device_id: str) -> str:
        """Return the normalised device ID if it may be provisioned."""
        normalized = config.normalize_device_id(device_id)
        if not normalized:
            raise MissingIdentifierError('MAC address required in ID header')
        if not self.setup_enabled:
            raise ProvisioningDisabledError('Setup not enabled')
        if self.uses_allow_list and normalized not in self.allowed_devices:
            raise DeviceNotAllowedError(f'Device {normalized} is not allowed')
        return normalized

    def session_key(self, device_id: Optional[str], api_key: Optional[str]) -> str:
        """Resolve the session key for an authenticated display request.

        Under ``device`` keying the ID header is mandatory and the token must
        match it. Under ``credential`` keying a request without an ID header is
        accepted on a plausible token alone and keyed by the token prefix.
        """
        normalized = config.normalize_device_id(device_id)
        token = (api_key or '').strip()
        if not normalized and not self.keys_by_credential:
            raise MissingIdentifierError()
        if not token:
            raise UnauthorizedCredentialError('Access-Token header required')
        if normalized:
            if not validate_api_key(normalized, token, self.secret):
                raise UnauthorizedCredentialError(f'Invalid access token for {normalized}')
            return normalized
        if not is_plausible_api_key(token):
            raise UnauthorizedCredentialError('Access token is not a valid API key')
        return token_session_key(token)

    def describe(self) -> dict:
        return {
            'setup_enabled': self.setup_enabled,
            'session_keying': self.session_keying,
            'allow_list': sorted(self.allowed_devices),
            'default_secret': not self.secret
        }
