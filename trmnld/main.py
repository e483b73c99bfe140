#! /usr/bin/env python
"""FastAPI entrypoint and CLI for the trmnld slideshow server."""

from __future__ import annotations

import argparse
import sys
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Awaitable, Callable, List, Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .errors import CatalogLoadError
from .routes import api_router, image_router
from .services import state

###################################################################################################

logger = config.logger

__version__ = '0.1.0'

CORS_ALLOWED_HEADERS = [
    'Content-Type',
    'Access-Token',
    'ID',
    'Battery-Voltage',
    'FW-Version',
    'RSSI',
    'Height',
    'Width',
    'Special-Function'
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not state.has_runtime(app):
        # CatalogLoadError propagates here and aborts startup.
        logger.info('[Main] Loading image catalog from %s', config.IMAGE_DIR)
        state.install_runtime(app, state.build_runtime())
    yield


app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_methods=['GET', 'POST', 'OPTIONS'],
    allow_headers=CORS_ALLOWED_HEADERS
)


@app.middleware('http')
async def log_request(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    started = perf_counter()
    response = await call_next(request)
    client = request.client.host if request.client else 'unknown'
    logger.info(
        '%s %s %s - %s %.1fms',
        request.method,
        request.url.path,
        client,
        response.status_code,
        (perf_counter() - started) * 1000
    )
    return response
app.include_router(api_router)
app.include_router(image_router)


def _parse_cli_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='TRMNL slideshow server',
        epilog='SECRET_KEY_BASE is optional but highly recommended; it is used for device API key generation.'
    )
    parser.add_argument('image_dir', nargs='?', default=None, help='Directory containing images (default: current directory)')
    parser.add_argument('--port', type=int, default=None, help='Port to listen on (default: 3000)')
    parser.add_argument('--bind', default=None, help='Address to bind to (default: 0.0.0.0)')
    parser.add_argument('--setup', action='store_true', help='Allow device provisioning via /api/setup')
    parser.add_argument(
        '--allow',
        action='append',
        default=[],
        metavar='MAC',
        help='Only provision these MAC addresses (repeatable)'
    )
    parser.add_argument(
        '--session-keying',
        choices=config.SESSION_KEYING_MODES,
        default=None,
        help='Key rotation sessions by device MAC or by API key prefix'
    )
    parser.add_argument('--version', action='version', version=f'trmnld {__version__}')
    return parser.parse_args(argv)


def _prepare_runtime(args: argparse.Namespace) -> state.Runtime:
    config.load_config(args.image_dir)
    config.apply_cli_overrides({
        'server_port': args.port,
        'server_bind': args.bind,
        'setup_enabled': True if args.setup else None,
        'allowed_devices': args.allow or None,
        'session_keying': args.session_keying
    })
    runtime = state.build_runtime()
    return state.install_runtime(app, runtime)


def _log_startup(runtime: state.Runtime) -> None:
    logger.info('[Main] trmnld %s starting on %s:%s', __version__, config.SERVER_BIND, config.SERVER_PORT)
    logger.info('[Main] Serving images from: %s', runtime.catalog.root)
    logger.info('[Main] Found %d images', len(runtime.catalog))
    if runtime.policy.setup_enabled:
        logger.info('[Main] Device provisioning enabled via --setup flag')
    else:
        logger.info('[Main] Device provisioning disabled - use --setup flag to enable')
    if runtime.policy.uses_allow_list:
        logger.info('[Main] Provisioning restricted to %d allowed devices', len(runtime.policy.allowed_devices))
    logger.info('[Main] Sessions keyed by %s', runtime.policy.session_keying)


def run(argv: Optional[List[str]] = None) -> None:
    args = _parse_cli_args(sys.argv[1:] if argv is None else argv)
    try:
        runtime = _prepare_runtime(args)
    except CatalogLoadError as exc:
        logger.error('[Main] Failed to load images: %s', exc)
        sys.exit(1)
    _log_startup(runtime)
    uvicorn.run(
        app,
        host=config.SERVER_BIND,
        port=config.SERVER_PORT,
        log_level='info'
    )


if __name__ == '__main__':
    run()
