"""
Post composition for download and copy-link sharing.

Renders the post image with its caption underneath on a white card,
word-wrapped to the image width, and builds the text copied when the
user shares a link.
"""

import io
from typing import List, Optional

import requests
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from engageperfect.core.config import settings
from engageperfect.core.exceptions import TransformFailed, UpstreamFailed
from engageperfect.core.logger import logger

DOWNLOAD_FILE_NAME = "engageperfect-post.png"

CAPTION_AREA_HEIGHT = 200
MARGIN = 20
LINE_HEIGHT = 20
FIRST_BASELINE = 30
FONT_SIZE = 16


def branded_caption(caption: str, signature: Optional[str] = None) -> str:
    signature = settings.CAPTION_SIGNATURE if signature is None else signature
    return f"{caption}\n\n{signature}" if signature else caption


def share_text(image_url: str, caption: str) -> str:
    """Text placed on the clipboard by "Copy Link"."""
    return f"{image_url}\n\n{branded_caption(caption)}"


def wrap_words(text: str, max_width: int, measure) -> List[str]:
    """Greedy word wrap; a single over-long word gets its own line."""
    lines = []
    line = ""
    for word in text.split(" "):
        candidate = f"{line}{word} "
        if line and measure(candidate) > max_width:
            lines.append(line.rstrip())
            line = f"{word} "
        else:
            line = candidate
    lines.append(line.rstrip())
    return lines


def _load_font(size: int = FONT_SIZE):
    try:
        return ImageFont.load_default(size=size)
    except TypeError:
        # Pillow < 10.1 has no sized default font
        return ImageFont.load_default()


class PostComposer:
    """Builds the downloadable post image."""

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()

    def fetch_image(self, image_url: str) -> bytes:
        try:
            response = self.session.get(image_url, timeout=settings.VISION_TIMEOUT_SECONDS)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch post image {image_url}: {str(e)}")
            raise UpstreamFailed("Could not fetch the post image", cause=e) from e
        return response.content

    def compose(self, image_data: bytes, caption: str) -> bytes:
        """
        Render image + branded caption as PNG.

        Raises:
            TransformFailed: If the image cannot be decoded
        """
        try:
            image = Image.open(io.BytesIO(image_data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise TransformFailed("Could not decode the post image", cause=e) from e

        image = image.convert("RGBA")
        canvas = Image.new("RGB", (image.width, image.height + CAPTION_AREA_HEIGHT), "white")
        canvas.paste(image, (0, 0), mask=image)

        draw = ImageDraw.Draw(canvas)
        font = _load_font()

        def measure(text):
            return draw.textlength(text, font=font)

        y = image.height + FIRST_BASELINE
        for paragraph in branded_caption(caption).split("\n"):
            for line in wrap_words(paragraph, image.width - 2 * MARGIN, measure):
                # y is the baseline, as with canvas fillText
                draw.text((MARGIN, y - FONT_SIZE), line, fill="black", font=font)
                y += LINE_HEIGHT

        buffer = io.BytesIO()
        canvas.save(buffer, format="PNG")
        logger.info(f"Composed post image {canvas.width}x{canvas.height}")
        return buffer.getvalue()
