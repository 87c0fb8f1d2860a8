import io
import threading
import uuid

import pytest
from PIL import Image

from engageperfect.models.media_models import MediaSource, PreviewHandle


def make_image_bytes(width=64, height=48, fmt="JPEG", color=(200, 30, 30), mode="RGB"):
    img = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def make_source(data, mime_type="image/jpeg", name="photo.jpg"):
    return MediaSource(
        raw_bytes=data,
        mime_type=mime_type,
        original_file_name=name,
        preview=PreviewHandle(url="data:,"),
    )


class FakeStore:
    """Object store with non-overwrite semantics and chunked progress."""

    def __init__(self, chunks=4, fail_put=False, fail_url=False):
        self.objects = {}
        self.chunks = chunks
        self.fail_put = fail_put
        self.fail_url = fail_url
        self.completed_puts = 0
        self.url_calls = 0
        self._lock = threading.Lock()

    def upload_file(self, file_path, data, content_type="application/octet-stream", on_progress=None):
        if self.fail_put:
            raise RuntimeError("storage unavailable")
        with self._lock:
            if file_path in self.objects:
                raise RuntimeError(f"The resource already exists: {file_path}")
        total = len(data)
        if on_progress:
            for i in range(self.chunks + 1):
                on_progress(total * i // self.chunks, total)
        with self._lock:
            self.objects[file_path] = (data, content_type)
            self.completed_puts += 1
        return file_path

    def get_public_url(self, file_path):
        self.url_calls += 1
        if self.fail_url:
            raise RuntimeError("no public url")
        return f"https://storage.test/media/{file_path}"


class FakeRepository:
    """In-memory posts table."""

    def __init__(self, fail_insert=False, fail_update=False):
        self.posts = {}
        self.settings_updates = []
        self.caption_updates = []
        self.fail_insert = fail_insert
        self.fail_update = fail_update

    def create_post(self, image_url, user_id, platform):
        if self.fail_insert:
            raise RuntimeError("insert rejected")
        post_id = str(uuid.uuid4())
        row = {
            "id": post_id,
            "image_url": image_url,
            "platform": platform,
            "user_id": user_id,
            "niche": None,
            "goal": None,
            "tone": None,
            "selected_caption": None,
            "hashtags": None,
            "created_at": "2026-01-01T00:00:00+00:00",
        }
        self.posts[post_id] = row
        return dict(row)

    def update_post_settings(self, post_id, platform, niche, goal, tone):
        if self.fail_update:
            raise RuntimeError("update rejected")
        values = {"platform": platform, "niche": niche, "goal": goal, "tone": tone}
        self.settings_updates.append((post_id, values))
        self.posts[post_id].update(values)

    def update_selected_caption(self, post_id, caption, hashtags=None):
        self.caption_updates.append((post_id, caption, hashtags))
        self.posts[post_id].update({"selected_caption": caption, "hashtags": hashtags or []})

    def get_post(self, post_id):
        row = self.posts.get(post_id)
        return dict(row) if row else None

    def list_posts(self, user_id, limit=50):
        return [dict(r) for r in self.posts.values() if r["user_id"] == user_id][:limit]


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes(1000, 800)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def repository():
    return FakeRepository()
