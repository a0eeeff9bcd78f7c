"""
Convert Endpoint - Transparent WebP Conversion

GET /api/v1/convert - Download an image, remove its white background, and
publish a full-size WebP plus a square thumbnail to the object store.

The response is a plain-text transcript of every step that ran:
- 200 when the artifacts were written, or already existed
- 400 for any validation, connection, download, processing or upload failure
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from src.api.dependencies import get_pipeline
from src.modules.conversion.models import ConversionRequest
from src.modules.conversion.options import parse_options
from src.pipeline.orchestrator import ConversionPipeline

router = APIRouter()


@router.get("", response_class=PlainTextResponse)
async def convert_image(
    source: Optional[str] = Query(None, description="HTTP(S) URL of the source image"),
    destination: Optional[str] = Query(None, description="Locator: s3://bucket/path/file-name"),
    width: Optional[str] = Query(None, description="Thumbnail edge, 16-512 (default 200)"),
    quality: Optional[str] = Query(None, description="WebP quality, 5-100 (default 70)"),
    fuzz: Optional[str] = Query(None, description="White match tolerance %, 0-100 (default 3)"),
    maximumDesiredHeight: Optional[str] = Query(None, description="Downscale above, 16-16000 (default 1024)"),
    overwrite: Optional[str] = Query(None, description="'true' skips the existence check"),
    cdnPath: Optional[str] = Query(None, description="CDN path used for the existence probe"),
    rejectGreyscale: Optional[str] = Query(None, description="'false' allows greyscale images"),
    pipeline: ConversionPipeline = Depends(get_pipeline),
):
    """
    Convert an image to a transparent WebP.

    Numeric options outside their range fall back to their defaults.
    """
    request_id = str(uuid.uuid4())

    request = ConversionRequest(
        source_url=source,
        destination=destination,
        options=parse_options(
            width=width,
            quality=quality,
            fuzz=fuzz,
            max_height=maximumDesiredHeight,
            overwrite=overwrite,
            reject_greyscale=rejectGreyscale,
            cdn_path=cdnPath,
        ),
    )

    result = await pipeline.run(request, request_id=request_id)

    return PlainTextResponse(
        result.transcript,
        status_code=result.http_status,
        headers={"X-Request-ID": request_id},
    )
