import io

import pytest
from PIL import Image

from engageperfect.core.exceptions import TransformFailed
from engageperfect.models.media_models import CropRegion, MediaEdits
from engageperfect.services.transform_engine import TransformEngine, drawing_transform

from conftest import make_image_bytes, make_source

IDENTITY = (1, 0, 0, 0, 1, 0)


@pytest.fixture
def engine():
    return TransformEngine()


def _decode(data):
    return Image.open(io.BytesIO(data))


@pytest.mark.parametrize("rotation", [0, 90, 180, 270])
def test_output_matches_crop_for_every_rotation(engine, jpeg_bytes, rotation):
    crop = CropRegion(100, 100, 400, 300)
    result = engine.transform(make_source(jpeg_bytes), crop, rotation)

    assert (result.width, result.height) == (400, 300)
    assert _decode(result.final_bytes).size == (400, 300)


@pytest.mark.parametrize("rotation", [90, 180, 270])
def test_output_matches_natural_size_without_crop(engine, jpeg_bytes, rotation):
    result = engine.transform(make_source(jpeg_bytes), None, rotation)

    assert (result.width, result.height) == (1000, 800)
    assert _decode(result.final_bytes).size == (1000, 800)
    assert result.content_type == "image/jpeg"


def test_untouched_media_passes_through(engine, jpeg_bytes):
    source = make_source(jpeg_bytes)
    result = engine.transform(source)

    assert result.final_bytes is source.raw_bytes
    assert (result.width, result.height) == (1000, 800)
    assert result.original_name == "photo.jpg"


def test_untouched_video_passes_through(engine):
    source = make_source(b"\x00\x00\x00\x18ftypmp42", "video/mp4", "clip.mp4")
    result = engine.transform(source)

    assert result.final_bytes == source.raw_bytes
    assert result.content_type == "video/mp4"
    assert result.width is None and result.height is None


def test_video_cannot_be_rotated(engine):
    source = make_source(b"\x00\x00\x00\x18ftypmp42", "video/mp4", "clip.mp4")
    with pytest.raises(TransformFailed):
        engine.transform(source, None, 90)


def test_crop_outside_image_is_rejected(engine, jpeg_bytes):
    with pytest.raises(TransformFailed):
        engine.transform(make_source(jpeg_bytes), CropRegion(900, 700, 200, 200), 0)


def test_empty_crop_is_rejected(engine, jpeg_bytes):
    with pytest.raises(TransformFailed):
        engine.transform(make_source(jpeg_bytes), CropRegion(10, 10, 0, 50), 0)


def test_undecodable_image_fails(engine):
    with pytest.raises(TransformFailed):
        engine.transform(make_source(b"definitely not an image"), CropRegion(0, 0, 1, 1), 0)


def test_unsupported_rotation_fails(engine, jpeg_bytes):
    with pytest.raises(TransformFailed):
        engine.transform(make_source(jpeg_bytes), None, 45)


def test_quarter_turn_is_clockwise_about_centre(engine):
    img = Image.new("RGB", (2, 2))
    img.putpixel((0, 0), (255, 0, 0))
    img.putpixel((1, 0), (0, 255, 0))
    img.putpixel((0, 1), (0, 0, 255))
    img.putpixel((1, 1), (255, 255, 255))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")

    result = engine.transform(make_source(buffer.getvalue(), "image/png", "grid.png"), None, 90)
    out = _decode(result.final_bytes).convert("RGB")

    assert result.content_type == "image/png"
    assert out.getpixel((0, 0)) == (0, 0, 255)
    assert out.getpixel((1, 0)) == (255, 0, 0)
    assert out.getpixel((1, 1)) == (0, 255, 0)
    assert out.getpixel((0, 1)) == (255, 255, 255)


def test_crop_keeps_exact_region(engine):
    img = Image.new("RGB", (10, 10), (0, 0, 0))
    for x in range(5, 10):
        for y in range(10):
            img.putpixel((x, y), (255, 255, 255))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")

    result = engine.transform(make_source(buffer.getvalue(), "image/png", "half.png"), CropRegion(5, 0, 5, 10), 0)
    out = _decode(result.final_bytes).convert("RGB")

    assert out.size == (5, 10)
    assert set(out.getdata()) == {(255, 255, 255)}


def test_png_alpha_is_preserved(engine):
    data = make_image_bytes(20, 20, fmt="PNG", color=(10, 20, 30, 0), mode="RGBA")
    result = engine.transform(make_source(data, "image/png", "clear.png"), CropRegion(0, 0, 10, 10), 0)

    out = _decode(result.final_bytes)
    assert out.mode == "RGBA"
    assert out.getpixel((0, 0))[3] == 0


def test_unsupported_container_falls_back_to_jpeg(engine):
    data = make_image_bytes(30, 20, fmt="GIF", color=1, mode="P")
    result = engine.transform(make_source(data, "image/gif", "anim.gif"), None, 180)

    assert result.content_type == "image/jpeg"
    assert result.original_name == "anim.jpg"
    assert _decode(result.final_bytes).format == "JPEG"


def test_four_rotations_return_to_identity():
    edits = MediaEdits()
    for _ in range(4):
        edits.rotate()

    assert edits.rotation == 0
    assert drawing_transform(400, 300, edits.rotation) == IDENTITY


def test_half_turn_maps_corners():
    a, b, c, d, e, f = drawing_transform(400, 300, 180)
    # Surface origin samples the source's far corner
    assert (a, b, d, e) == (-1, 0, 0, -1)
    assert (c, f) == (400, 300)


def test_untouched_unreadable_image_passes_through(engine):
    source = make_source(b"<svg xmlns='http://www.w3.org/2000/svg'/>", "image/svg+xml", "logo.svg")
    result = engine.transform(source)

    assert result.final_bytes is source.raw_bytes
    assert result.content_type == "image/svg+xml"
    assert result.width is None and result.height is None


def test_unreadable_image_cannot_be_rotated(engine):
    source = make_source(b"<svg xmlns='http://www.w3.org/2000/svg'/>", "image/svg+xml", "logo.svg")
    with pytest.raises(TransformFailed):
        engine.transform(source, None, 90)
