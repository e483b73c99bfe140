"""Provisioning, display and log flows for TRMNL devices.

These functions know nothing about HTTP: they take the runtime and the raw
header values, and return structured results for the routes to encode.
"""

from __future__ import annotations

import json
from time import time
from typing import Any, Optional
from urllib.parse import quote

from .. import config
from ..errors import (
    DeviceNotAllowedError,
    EmptyCatalogError,
    MalformedLogPayloadError,
    MissingIdentifierError,
    ProvisioningDisabledError,
    UnauthorizedCredentialError
)
from ..models import DisplayResult, LogAccepted, ProvisionResult
from . import rotation
from .credentials import TOKEN_KEY_PREFIX_LENGTH, derive_api_key, friendly_id
from .state import Runtime

logger = config.logger

IMAGE_ROUTE_PREFIX = '/images'
PLACEHOLDER_ROUTE = '/image/no-image.bmp'


def image_url(base_url: str, path: str) -> str:
    return f"{base_url}{IMAGE_ROUTE_PREFIX}/{quote(path)}"


def placeholder_url(base_url: str) -> str:
    return f"{base_url}{PLACEHOLDER_ROUTE}"


def provision(runtime: Runtime, device_id: Optional[str], base_url: str) -> ProvisionResult:
    """Issue the API key for a device, subject to the setup policy."""
    try:
        normalized = runtime.policy.check_provisioning(device_id or '')
    except MissingIdentifierError as exc:
        logger.info('[Setup] rejected request without ID header')
        return ProvisionResult(success=False, status=404, message=str(exc))
    except ProvisioningDisabledError as exc:
        logger.warning('[Setup] attempt from MAC address %s denied - setup not enabled', device_id)
        return ProvisionResult(success=False, status=500, error=str(exc))
    except DeviceNotAllowedError as exc:
        logger.warning('[Setup] %s', exc)
        return ProvisionResult(success=False, status=403, error='Device not allowed')

    api_key = derive_api_key(normalized, runtime.policy.secret)
    short_id = friendly_id(api_key)
    first = runtime.catalog.first()
    url = image_url(base_url, first.path) if first else placeholder_url(base_url)
    logger.info('[Setup] MAC address %s was authenticated as %s', normalized, short_id)
    return ProvisionResult(
        success=True,
        status=200,
        api_key=api_key,
        friendly_id=short_id,
        message=f"Device registered with friendly ID '{short_id}'",
        image_url=url
    )


def display(
    runtime: Runtime,
    device_id: Optional[str],
    api_key: Optional[str],
    base_url: str,
    now: Optional[float] = None
) -> DisplayResult:
    """Authenticate the device and advance its rotation by one image."""
    try:
        key = runtime.policy.session_key(device_id, api_key)
    except (MissingIdentifierError, UnauthorizedCredentialError) as exc:
        logger.warning('[Display] rejected device %r: %s', device_id, exc)
        return DisplayResult(success=False, status=500, error='Device not found', reset_firmware=True)

    session = runtime.sessions.session_for(key)
    try:
        step = rotation.next_entry(session.cursor, runtime.catalog)
    except EmptyCatalogError as exc:
        logger.warning('[Display] %s for %s', exc, key)
        return DisplayResult(
            success=False,
            status=404,
            refresh_rate=config.REFRESH_RATE,
            image_url=placeholder_url(base_url)
        )

    runtime.sessions.advance(key, step.cursor, time() if now is None else now)
    logger.debug('[Display] %s -> #%d %s (%ss)', key, step.cursor, step.entry.path, step.duration)
    return DisplayResult(
        success=True,
        status=0,
        refresh_rate=step.duration,
        image_path=step.entry.path,
        image_url=image_url(base_url, step.entry.path)
    )


def parse_log_payload(body: bytes) -> Any:
    """Return the opaque ``log`` member of a device log submission.

    A JSON ``null`` body carries no log and is accepted as one.
    """
    if not body:
        raise MalformedLogPayloadError('Log payload is empty')
    try:
        parsed = json.loads(body.decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedLogPayloadError(f'Log payload is not valid JSON: {exc}') from exc
    if parsed is None:
        return None
    if not isinstance(parsed, dict):
        raise MalformedLogPayloadError('Log payload must be a JSON object')
    return parsed.get('log')


def accept_log(runtime: Runtime, api_key: Optional[str], body: bytes) -> LogAccepted:
    token = (api_key or '').strip()
    if not token:
        raise UnauthorizedCredentialError('Access-Token header required')
    log_value = parse_log_payload(body)
    record = LogAccepted(token_prefix=token[:TOKEN_KEY_PREFIX_LENGTH], log=log_value)
    logger.info('Device log [%s]: %s', record.token_prefix, json.dumps(log_value, separators=(',', ':')))
    logs_array = log_value.get('logs_array') if isinstance(log_value, dict) else None
    if isinstance(logs_array, list):
        for entry in logs_array:
            logger.info('[Client Log] [%s] %s', record.token_prefix, entry)
    runtime.logbook.append(record)
    return record
