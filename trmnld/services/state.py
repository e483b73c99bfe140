"""Runtime state shared by the request handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from time import time
from typing import List, Optional

from fastapi import FastAPI, Request

from .. import config, utils
from ..models import SessionView
from .catalog import ImageCatalog
from .credentials import AuthPolicy
from .logbook import DeviceLogBook
from .sessions import SessionTable

logger = config.logger


@dataclass
class Runtime:
    """Everything a request handler needs, passed in rather than looked up globally.

    The catalog is read-only after construction; the session table and log
    book carry their own locks.
    """

    catalog: ImageCatalog
    policy: AuthPolicy = field(default_factory=AuthPolicy)
    sessions: SessionTable = field(default_factory=SessionTable)
    logbook: DeviceLogBook = field(default_factory=DeviceLogBook)
    started_at: float = field(default_factory=time)


def build_runtime(image_dir: Optional[str] = None) -> Runtime:
    """Load the catalog and policy from configuration. Raises CatalogLoadError."""
    config.warn_if_default_secret()
    catalog = ImageCatalog.load(image_dir or config.IMAGE_DIR, config.REFRESH_RATE)
    return Runtime(
        catalog=catalog,
        policy=AuthPolicy.from_config(),
        logbook=DeviceLogBook(config.LOG_BOOK_SIZE)
    )


def install_runtime(app: FastAPI, runtime: Runtime) -> Runtime:
    app.state.runtime = runtime
    return runtime


def has_runtime(app: FastAPI) -> bool:
    return getattr(app.state, 'runtime', None) is not None


def get_runtime(request: Request) -> Runtime:
    """FastAPI dependency returning the runtime attached to the application."""
    runtime = getattr(request.app.state, 'runtime', None)
    if runtime is None:
        raise RuntimeError('trmnld runtime is not initialised')
    return runtime


def request_base_url(request: Request) -> str:
    return str(request.base_url).rstrip('/')


def session_views(runtime: Runtime) -> List[SessionView]:
    views: List[SessionView] = []
    for session in runtime.sessions.snapshot():
        image = None
        if session.cursor is not None and 0 <= session.cursor < len(runtime.catalog):
            image = runtime.catalog.entry_at(session.cursor).path
        views.append(SessionView(
            key=session.key,
            cursor=session.cursor,
            image=image,
            last_update=utils.to_iso_timestamp(session.last_update),
            request_count=session.request_count
        ))
    return views
