"""Image-serving routes for the trmnld server."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse, Response

from .. import config, utils
from ..services import state
from ..services.state import Runtime

router = APIRouter()
logger = config.logger

MEDIA_TYPES = {'.bmp': 'image/bmp', '.png': 'image/png'}


def _client_host(request: Request) -> str:
    client = request.client
    return client.host if client else 'unknown'


@router.get('/images/{image_path:path}')
def serve_catalog_image(
    request: Request,
    image_path: str,
    runtime: Runtime = Depends(state.get_runtime)
) -> Response:
    """Serve a file from the image catalog."""
    if not image_path:
        raise HTTPException(status_code=404, detail='Unknown image path')
    if '..' in image_path.split('/'):
        raise HTTPException(status_code=403, detail='Forbidden')
    resolved = runtime.catalog.resolve(image_path)
    if resolved is None or not resolved.is_file():
        raise HTTPException(status_code=404, detail='Unknown image path')
    logger.info('[API] /images/%s - serving image for IP: %s', image_path, _client_host(request))
    return FileResponse(resolved, media_type=MEDIA_TYPES.get(resolved.suffix.lower(), 'application/octet-stream'))


@router.get('/image/no-image.bmp')
def serve_placeholder() -> Response:
    """Serve the generated "no image available" screen."""
    payload = utils.get_no_image().getvalue()
    headers = {'Content-Length': str(len(payload)), 'Cache-Control': 'no-store'}
    return Response(content=payload, media_type='image/bmp', headers=headers)
