"""Structured results returned by the device handlers.

The HTTP layer turns these into the JSON bodies the TRMNL firmware expects;
``to_payload`` mirrors the field names and omission rules of that protocol.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from . import config


@dataclass(frozen=True)
class ProvisionResult:
    success: bool
    status: int
    api_key: str = ''
    friendly_id: str = ''
    message: str = ''
    image_url: str = ''
    error: str = ''

    def to_payload(self) -> Dict[str, Any]:
        if self.success or self.status == 404:
            return {
                'status': self.status,
                'api_key': self.api_key,
                'friendly_id': self.friendly_id,
                'image_url': self.image_url,
                'message': self.message
            }
        # Refusals reuse the display response shape.
        return {
            'status': self.status,
            'refresh_rate': 0,
            'reset_firmware': False,
            'update_firmware': False,
            'error': self.error
        }


@dataclass(frozen=True)
class DisplayResult:
    success: bool
    status: int
    refresh_rate: int = config.DEFAULT_REFRESH_RATE
    image_path: str = ''
    image_url: str = ''
    reset_firmware: bool = False
    error: str = ''

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'status': self.status,
            'refresh_rate': self.refresh_rate,
            'reset_firmware': self.reset_firmware,
            'update_firmware': False
        }
        if self.image_url:
            payload['image_url'] = self.image_url
        if self.image_path:
            payload['filename'] = self.image_path
        if self.error:
            payload['error'] = self.error
        return payload


@dataclass(frozen=True)
class LogAccepted:
    """A device log record that was accepted; ``log`` is kept uninterpreted."""

    token_prefix: str
    log: Any = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> Dict[str, Any]:
        return {
            'token': self.token_prefix,
            'timestamp': self.received_at.replace(microsecond=0).isoformat(),
            'log': self.log
        }


@dataclass(frozen=True)
class SessionView:
    key: str
    cursor: Optional[int]
    image: Optional[str]
    last_update: str
    request_count: int
