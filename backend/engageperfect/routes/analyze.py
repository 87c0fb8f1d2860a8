"""
Vision analysis endpoint.

Accepts an image and returns its labels, dominant colours, objects,
landmarks, face moods and safe-search verdicts.
"""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool

from engageperfect.core.exceptions import UpstreamFailed
from engageperfect.core.logger import logger
from engageperfect.core.utils import guess_mime_type
from engageperfect.models.analysis_models import ImageAnalysis
from engageperfect.routes.deps import get_vision_analyzer, http_error
from engageperfect.services.vision_analyzer import VisionAnalyzer

router = APIRouter(prefix="/analyze", tags=["Analyze"])


@router.post("/", response_model=ImageAnalysis)
async def analyze_image(
    file: UploadFile = File(...),
    analyzer: VisionAnalyzer = Depends(get_vision_analyzer),
):
    mime_type = file.content_type or guess_mime_type(file.filename or "")
    if not mime_type or not mime_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Only images can be analyzed")

    data = await file.read()
    try:
        return await run_in_threadpool(analyzer.analyze, data)
    except UpstreamFailed as e:
        logger.error(f"Analysis of {file.filename} failed: {str(e)}")
        raise http_error(e)
