"""API routes for the trmnld server."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from time import time
from typing import Optional

import psutil
from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse, Response

from .. import config, utils
from ..errors import TrmnldError
from ..services import device, state
from ..services.state import Runtime

router = APIRouter()
logger = config.logger


@router.get('/api/setup')
@router.get('/api/setup/')
def api_setup(
    request: Request,
    runtime: Runtime = Depends(state.get_runtime),
    device_id: Optional[str] = Header(None, alias='ID')
) -> JSONResponse:
    """Provision a device: derive its API key and friendly ID from the MAC."""
    result = device.provision(runtime, device_id, state.request_base_url(request))
    return JSONResponse(result.to_payload())


@router.get('/api/display')
@router.get('/api/display/')
async def display(
    request: Request,
    runtime: Runtime = Depends(state.get_runtime),
    device_id: Optional[str] = Header(None, alias='ID'),
    access_token: Optional[str] = Header(None, alias='Access-Token'),
    battery_voltage: Optional[str] = Header(None, alias='Battery-Voltage'),
    rssi: Optional[str] = Header(None, alias='RSSI'),
    fw_version: Optional[str] = Header(None, alias='FW-Version'),
    refresh_rate: Optional[str] = Header(None, alias='Refresh-Rate')
) -> JSONResponse:
    """Main firmware endpoint returning the next image URL and its refresh rate.

    The device's reported Refresh-Rate is logged only; the served rate comes
    from the image's filename or the configured default.
    """
    logger.info(
        '[API] /api/display - device: %s battery: %s rssi: %s fw: %s refresh: %s',
        device_id,
        battery_voltage,
        rssi,
        fw_version,
        refresh_rate
    )
    result = device.display(runtime, device_id, access_token, state.request_base_url(request))
    return JSONResponse(result.to_payload())


@router.post('/api/log')
@router.post('/api/log/')
async def api_log(
    request: Request,
    runtime: Runtime = Depends(state.get_runtime),
    access_token: Optional[str] = Header(None, alias='Access-Token')
) -> Response:
    """Accept a device log record and echo it to the server log."""
    body = await request.body()
    try:
        device.accept_log(runtime, access_token, body)
    except TrmnldError as exc:
        logger.warning('[API] /api/log rejected: %s', exc)
        return Response(status_code=exc.status)
    return Response(status_code=204)


@router.get('/status')
def status_view(runtime: Runtime = Depends(state.get_runtime)) -> JSONResponse:
    """Report uptime, catalog size and the rotation state of every known device."""
    uptime_seconds = int(time() - runtime.started_at)
    sessions = [
        {
            'key': view.key,
            'cursor': view.cursor,
            'image': view.image,
            'last_update': view.last_update,
            'request_count': view.request_count
        }
        for view in state.session_views(runtime)
    ]
    return JSONResponse({
        'server': {
            'uptime': str(timedelta(seconds=uptime_seconds)),
            'cpu_load': psutil.cpu_percent(interval=None),
            'current_time': utils.to_iso_datetime(datetime.now(timezone.utc)),
            'env_overrides': config.env_overrides()
        },
        'catalog': {
            'root': runtime.catalog.root,
            'count': len(runtime.catalog),
            'images': runtime.catalog.paths
        },
        'auth': runtime.policy.describe(),
        'devices': sessions
    })


@router.get('/server/log')
def log_view(
    request: Request,
    runtime: Runtime = Depends(state.get_runtime),
    limit: int = Query(30, ge=1, le=200),
    response_format: str = Query('text', alias='format')
) -> Response:
    """Return the most recent device log records."""
    records = runtime.logbook.recent(limit)

    wants_json = 'application/json' in (request.headers.get('accept') or '').lower() or response_format.lower() == 'json'
    if wants_json:
        return JSONResponse([record.to_payload() for record in records])

    lines = []
    for record in records:
        payload = record.to_payload()
        lines.append(f"{payload['timestamp']} -- [{payload['token']}] -- {payload['log']}")
    return Response(content='\n'.join(lines), media_type='text/plain')
