"""
Caption generation endpoint.

Responsibilities:
- Validate the post settings sent by the client
- Ask the caption generator for three captions
- Answer {"captions": [...]} or {"error": ...} with HTTP 500
"""

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from engageperfect.core.exceptions import UpstreamFailed
from engageperfect.core.logger import logger
from engageperfect.models.request_models import CaptionRequest
from engageperfect.models.response_models import CaptionResponse
from engageperfect.routes.deps import get_caption_generator
from engageperfect.services.caption_generator import CaptionGenerator

router = APIRouter(prefix="/captions", tags=["Captions"])


@router.post("/", response_model=CaptionResponse)
async def generate_captions(
    request: CaptionRequest,
    generator: CaptionGenerator = Depends(get_caption_generator),
):
    missing = request.missing_fields()
    if missing:
        return JSONResponse(status_code=400, content={"error": f"Missing required fields: {', '.join(missing)}"})

    try:
        captions = await run_in_threadpool(
            generator.generate,
            request.platform,
            request.niche,
            request.goal,
            request.tone,
            request.imageMetadata,
        )
    except UpstreamFailed as e:
        logger.error(f"Error generating captions: {str(e)}")
        return JSONResponse(status_code=500, content={"error": str(e)})

    return CaptionResponse(captions=captions)
