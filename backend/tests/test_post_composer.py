import io

import pytest
import requests
from PIL import Image

from engageperfect.core.exceptions import TransformFailed, UpstreamFailed
from engageperfect.services.post_composer import (
    CAPTION_AREA_HEIGHT,
    PostComposer,
    branded_caption,
    share_text,
    wrap_words,
)

from conftest import make_image_bytes


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, response):
        self.response = response

    def get(self, url, **kwargs):
        return self.response


def test_branded_caption_appends_signature():
    assert branded_caption("Sunny days #beach", "-- me") == "Sunny days #beach\n\n-- me"
    assert branded_caption("plain", "") == "plain"


def test_share_text_puts_link_first():
    text = share_text("https://storage.test/media/a.jpg", "Hello")
    assert text.startswith("https://storage.test/media/a.jpg\n\nHello\n\n")


def test_wrap_words_respects_width():
    lines = wrap_words("one two three four five", 11, len)
    assert lines == ["one two", "three four", "five"]


def test_wrap_words_keeps_long_word_on_own_line():
    assert wrap_words("supercalifragilistic ok", 5, len) == ["supercalifragilistic", "ok"]


def test_compose_adds_caption_area():
    composer = PostComposer(session=FakeSession(None))
    png = composer.compose(make_image_bytes(300, 200), "A caption long enough to wrap over a couple of lines #test")

    out = Image.open(io.BytesIO(png))
    assert out.format == "PNG"
    assert out.size == (300, 200 + CAPTION_AREA_HEIGHT)
    assert out.convert("RGB").getpixel((299, 200 + CAPTION_AREA_HEIGHT - 1)) == (255, 255, 255)


def test_compose_rejects_non_image():
    with pytest.raises(TransformFailed):
        PostComposer(session=FakeSession(None)).compose(b"nope", "caption")


def test_fetch_image_error_is_upstream_failure():
    composer = PostComposer(session=FakeSession(FakeResponse(status_code=404)))
    with pytest.raises(UpstreamFailed):
        composer.fetch_image("https://storage.test/media/missing.jpg")
