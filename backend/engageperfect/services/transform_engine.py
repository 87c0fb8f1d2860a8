"""
Transform Engine

Responsibilities:
- Apply the user's crop rectangle and rotation to the source image
- Re-encode the result, keeping the source container when possible
- Describe the final bytes (content type, dimensions, name)

The drawing surface is sized to the crop (or the full frame). Rotation
is applied to the drawing transform before drawing, around the surface
centre, so the output keeps the surface dimensions for every angle.
"""

import io
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from engageperfect.core.config import settings
from engageperfect.core.exceptions import TransformFailed
from engageperfect.core.logger import logger
from engageperfect.core.utils import file_extension, replace_extension
from engageperfect.models.media_models import (
    VALID_ROTATIONS,
    CropRegion,
    MediaSource,
    TransformResult,
)

# Exact cos/sin for quarter turns, so composed rotations stay exact
_QUARTER_TURNS = {0: (1, 0), 90: (0, 1), 180: (-1, 0), 270: (0, -1)}

Affine = Tuple[float, float, float, float, float, float]


def drawing_transform(width: int, height: int, rotation: int) -> Affine:
    """
    Affine mapping surface pixels back to source pixels for a clockwise
    rotation about the surface centre (translate, rotate, translate back).

    Returned in Pillow's AFFINE order (a, b, c, d, e, f):
    x_src = a*x + b*y + c, y_src = d*x + e*y + f.
    """
    rotation = rotation % 360
    if rotation not in _QUARTER_TURNS:
        raise TransformFailed(f"Unsupported rotation: {rotation} degrees")

    cos, sin = _QUARTER_TURNS[rotation]
    cx, cy = width / 2, height / 2
    return (
        cos, sin, cx - cos * cx - sin * cy,
        -sin, cos, cy + sin * cx - cos * cy,
    )


class TransformEngine:
    """Produces the final upload bytes from a MediaSource and user edits."""

    FORMAT_CONTENT_TYPES = {
        "JPEG": "image/jpeg",
        "PNG": "image/png",
        "WEBP": "image/webp",
    }
    FORMAT_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "WEBP": "webp"}
    FALLBACK_FORMAT = "JPEG"

    def __init__(self, jpeg_quality: int = None):
        self.jpeg_quality = jpeg_quality or settings.JPEG_QUALITY

    def transform(
        self,
        source: MediaSource,
        crop: Optional[CropRegion] = None,
        rotation: int = 0,
        rendered_image: Optional[Image.Image] = None,
    ) -> TransformResult:
        """
        Apply crop and rotation to the source.

        Args:
            source: Media to transform
            crop: Region to keep; None keeps the full frame
            rotation: Clockwise degrees, one of 0/90/180/270
            rendered_image: Already decoded image, if the caller has one

        Returns:
            TransformResult describing the final encoded bytes

        Raises:
            TransformFailed: Undecodable source, crop out of bounds,
                unsupported rotation, or encoder failure
        """
        if rotation not in VALID_ROTATIONS:
            raise TransformFailed(f"Unsupported rotation: {rotation} degrees")

        if crop is None and rotation == 0:
            return self._passthrough(source, rendered_image)

        if not source.is_image:
            raise TransformFailed(f"Cannot crop or rotate {source.mime_type} media")

        image = rendered_image if rendered_image is not None else self._decode(source)
        natural_width, natural_height = image.size

        if crop is not None:
            if not crop.fits_within(natural_width, natural_height):
                raise TransformFailed(
                    f"Crop {crop} exceeds image bounds {natural_width}x{natural_height}"
                )
            box = crop.box()
        else:
            box = (0, 0, natural_width, natural_height)

        output_format = self._output_format(source, image)
        surface = self._render(image, box, rotation, output_format)
        data = self._encode(surface, output_format)

        name = source.original_file_name
        if file_extension(name) not in self._extensions_for(output_format):
            name = replace_extension(name, self.FORMAT_EXTENSIONS[output_format])

        logger.info(
            f"Transformed {source.original_file_name}: crop={box}, rotation={rotation}, "
            f"{surface.width}x{surface.height} {output_format} ({len(data)} bytes)"
        )

        return TransformResult(
            final_bytes=data,
            content_type=self.FORMAT_CONTENT_TYPES[output_format],
            width=surface.width,
            height=surface.height,
            original_name=name,
        )

    def _passthrough(self, source: MediaSource, rendered_image: Optional[Image.Image]) -> TransformResult:
        """
        Untouched media keeps its original bytes. Dimensions stay None
        for video and for image formats Pillow cannot read (HEIC, SVG).
        """
        width = height = None
        if rendered_image is not None:
            width, height = rendered_image.size
        elif source.is_image:
            try:
                width, height = self._decode(source).size
            except TransformFailed as e:
                logger.info(f"Passing {source.original_file_name} through without dimensions: {str(e)}")

        return TransformResult(
            final_bytes=source.raw_bytes,
            content_type=source.mime_type,
            width=width,
            height=height,
            original_name=source.original_file_name,
        )

    def _decode(self, source: MediaSource) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(source.raw_bytes))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise TransformFailed(f"Could not decode {source.original_file_name}", cause=e) from e

        source_format = image.format
        # Browsers render with EXIF orientation applied; natural size follows it
        image = ImageOps.exif_transpose(image)
        image.format = source_format
        return image

    def _output_format(self, source: MediaSource, image: Image.Image) -> str:
        fmt = (image.format or "").upper()
        if fmt not in self.FORMAT_CONTENT_TYPES:
            for candidate, content_type in self.FORMAT_CONTENT_TYPES.items():
                if content_type == source.mime_type:
                    fmt = candidate
                    break
        return fmt if fmt in self.FORMAT_CONTENT_TYPES else self.FALLBACK_FORMAT

    def _render(self, image: Image.Image, box: Tuple[int, int, int, int], rotation: int, output_format: str) -> Image.Image:
        mode = "RGB" if output_format == "JPEG" else "RGBA"
        width, height = box[2] - box[0], box[3] - box[1]
        background = (0, 0, 0) if mode == "RGB" else (0, 0, 0, 0)

        try:
            surface = Image.new(mode, (width, height), background)
            region = image.crop(box)
            if region.mode != mode:
                region = self._convert(region, mode)

            if rotation:
                region = region.transform(
                    (width, height),
                    Image.Transform.AFFINE,
                    drawing_transform(width, height, rotation),
                    resample=Image.Resampling.NEAREST,
                    fillcolor=background,
                )
            surface.paste(region, (0, 0))
        except (OSError, ValueError, MemoryError) as e:
            raise TransformFailed("Could not allocate or draw the output surface", cause=e) from e

        return surface

    @staticmethod
    def _convert(image: Image.Image, mode: str) -> Image.Image:
        if mode == "RGB" and image.mode in ("RGBA", "LA", "P"):
            rgba = image.convert("RGBA")
            flattened = Image.new("RGB", rgba.size, (0, 0, 0))
            flattened.paste(rgba, mask=rgba.split()[3])
            return flattened
        return image.convert(mode)

    def _encode(self, surface: Image.Image, output_format: str) -> bytes:
        buffer = io.BytesIO()
        options = {}
        if output_format in ("JPEG", "WEBP"):
            options["quality"] = self.jpeg_quality
        try:
            surface.save(buffer, format=output_format, **options)
        except (OSError, ValueError) as e:
            raise TransformFailed(f"Could not encode image as {output_format}", cause=e) from e
        return buffer.getvalue()

    def _extensions_for(self, output_format: str) -> Tuple[str, ...]:
        if output_format == "JPEG":
            return ("jpg", "jpeg", "jfif")
        return (self.FORMAT_EXTENSIONS[output_format],)
