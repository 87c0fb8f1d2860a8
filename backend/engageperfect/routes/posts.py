"""
Post endpoints used after the wizard.

Responsibilities:
- Fetch a user's posts
- Save the selected (possibly edited) caption with its hashtags
- Download the composed post image
- Build the copy-link text
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from engageperfect.core.exceptions import PostCreationError
from engageperfect.core.logger import logger
from engageperfect.core.utils import extract_hashtags
from engageperfect.models.media_models import PostRecord
from engageperfect.models.request_models import CaptionSelectRequest
from engageperfect.models.response_models import PostResponse, ShareTextResponse
from engageperfect.routes.deps import get_composer, get_owner_id, get_repository, http_error
from engageperfect.services.post_composer import DOWNLOAD_FILE_NAME, PostComposer, share_text

router = APIRouter(prefix="/posts", tags=["Posts"])


def _load_post(post_id: str, owner_id: str, repository) -> PostRecord:
    try:
        row = repository.get_post(post_id)
    except Exception as e:
        logger.error(f"Failed to load post {post_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

    if not row or str(row.get("user_id")) != owner_id:
        raise HTTPException(status_code=404, detail="Post not found")
    return PostRecord.from_row(row)


@router.get("/", response_model=list[PostResponse])
def list_posts(
    limit: int = 50,
    owner_id: str = Depends(get_owner_id),
    repository=Depends(get_repository),
):
    try:
        rows = repository.list_posts(owner_id, limit=limit)
    except Exception as e:
        logger.error(f"Failed to list posts for {owner_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
    return [PostResponse.from_record(PostRecord.from_row(row)) for row in rows]


@router.get("/{post_id}", response_model=PostResponse)
def get_post(post_id: str, owner_id: str = Depends(get_owner_id), repository=Depends(get_repository)):
    return PostResponse.from_record(_load_post(post_id, owner_id, repository))


@router.put("/{post_id}/caption", response_model=PostResponse)
def select_caption(
    post_id: str,
    request: CaptionSelectRequest,
    owner_id: str = Depends(get_owner_id),
    repository=Depends(get_repository),
):
    """Stores the caption the user picked and the hashtags it carries."""
    record = _load_post(post_id, owner_id, repository)
    hashtags = extract_hashtags(request.caption)

    try:
        repository.update_selected_caption(post_id, request.caption, hashtags)
    except Exception as e:
        logger.error(f"Failed to save caption for post {post_id}: {str(e)}")
        raise HTTPException(status_code=502, detail=f"Saving the caption failed: {e}")

    record.selected_caption = request.caption
    record.hashtags = hashtags
    return PostResponse.from_record(record)


@router.get("/{post_id}/download")
def download_post(
    post_id: str,
    owner_id: str = Depends(get_owner_id),
    repository=Depends(get_repository),
    composer: PostComposer = Depends(get_composer),
):
    """PNG of the post image with its caption underneath."""
    record = _load_post(post_id, owner_id, repository)
    if not record.image_url:
        raise HTTPException(status_code=404, detail="Post has no media")

    try:
        image = composer.fetch_image(record.image_url)
        png = composer.compose(image, record.selected_caption or "")
    except PostCreationError as e:
        raise http_error(e)

    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{DOWNLOAD_FILE_NAME}"'},
    )


@router.get("/{post_id}/share-text", response_model=ShareTextResponse)
def get_share_text(post_id: str, owner_id: str = Depends(get_owner_id), repository=Depends(get_repository)):
    record = _load_post(post_id, owner_id, repository)
    return ShareTextResponse(text=share_text(record.image_url or "", record.selected_caption or ""))
