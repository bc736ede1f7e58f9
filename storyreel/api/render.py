"""Render API endpoints - streamed progress over HTTP."""

import json
import logging
import os
from contextlib import aclosing
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse, StreamingResponse

from storyreel.config import get_settings
from storyreel.exceptions import RenderInProgressError
from storyreel.render.pipeline import RenderPipeline
from storyreel.schemas.render import RenderEvent
from storyreel.schemas.timeline import RenderPayload

router = APIRouter()
logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def get_render_pipeline() -> RenderPipeline:
    return RenderPipeline()


async def _ndjson_lines(events: AsyncIterator[RenderEvent]) -> AsyncIterator[str]:
    async with aclosing(events):
        async for event in events:
            yield json.dumps(event.to_wire()) + "\n"


@router.post("/render")
async def start_render(
    payload: RenderPayload,
    pipeline: RenderPipeline = Depends(get_render_pipeline),
) -> StreamingResponse:
    """
    Render a timeline.

    The response is a newline-delimited JSON stream of render events; the
    last line carries either ``filePath`` or ``error``.
    """
    if pipeline.gate.busy:
        raise RenderInProgressError()

    logger.info(
        f"[RENDER] Render requested: {len(payload.layers)} layers, "
        f"{len(payload.media_library)} media items"
    )
    return StreamingResponse(
        _ndjson_lines(pipeline.render(payload)),
        media_type=NDJSON_MEDIA_TYPE,
    )


@router.get("/render/outputs/{file_name}")
async def get_render_output(file_name: str) -> FileResponse:
    """Serve a rendered file from the output directory."""
    if file_name in (".", "..") or os.path.basename(file_name) != file_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file name",
        )

    settings = get_settings()
    path = os.path.join(settings.render_output_dir, file_name)
    if not os.path.isfile(path):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File not found: {file_name}",
        )

    return FileResponse(path, media_type="video/mp4", filename=file_name)
