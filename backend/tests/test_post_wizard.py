import asyncio
import io
import threading

import pytest
from PIL import Image

from engageperfect.core.exceptions import PersistenceFailed, UploadFailed, ValidationFailed
from engageperfect.models.media_models import CropRegion, PostRecord
from engageperfect.services.media_capture import DroppedFile, MediaCaptureSource
from engageperfect.services.post_wizard import COMPLETE, PostWizard
from engageperfect.services.transform_engine import TransformEngine
from engageperfect.services.upload_coordinator import UploadCoordinator

from conftest import FakeRepository, FakeStore

SELECTIONS = {"platform": "Instagram", "niche": "Fitness", "goal": "Sales", "tone": "Casual"}


class GatedCoordinator:
    """Coordinator whose upload waits until the test opens the gate."""

    def __init__(self, fail=False):
        self.gate = asyncio.Event()
        self.calls = 0
        self.fail = fail

    async def upload(self, result, owner_id, on_progress=None):
        self.calls += 1
        await self.gate.wait()
        if self.fail:
            raise UploadFailed("storage unavailable")
        return PostRecord(id=f"post-{self.calls}", image_url="https://storage.test/x.jpg", platform="default", user_id=owner_id)


class HeldEngine(TransformEngine):
    """Transform that blocks its worker thread until released."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def transform(self, source, crop=None, rotation=0, rendered_image=None):
        self.started.set()
        self.release.wait(timeout=5)
        return super().transform(source, crop, rotation, rendered_image)


def _wizard(store=None, repository=None, coordinator=None, engine=None):
    repository = repository or FakeRepository()
    coordinator = coordinator or UploadCoordinator(store=store or FakeStore(), repository=repository)
    return PostWizard(MediaCaptureSource(), "user-1", engine=engine, coordinator=coordinator, repository=repository)


async def _until_uploading(coordinator):
    while coordinator.calls == 0:
        await asyncio.sleep(0.01)


async def _drop(wizard, data):
    await wizard.capture.acquire_from_drop([DroppedFile("photo.jpg", "image/jpeg", data)])


async def _fill_selections(wizard):
    for name, value in SELECTIONS.items():
        wizard.select(name, value)
        if not wizard.is_last_step:
            assert await wizard.next() is True


def test_full_flow_uploads_cropped_rotated_media(jpeg_bytes):
    store = FakeStore()
    repository = FakeRepository()
    wizard = _wizard(store, repository)

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        wizard.edits.crop = CropRegion(100, 100, 400, 300)
        wizard.edits.rotate()

        assert await wizard.next() is True
        assert wizard.step_name == "platform"

        await _fill_selections(wizard)
        assert wizard.step_name == "tone"
        return await wizard.complete()

    record = asyncio.run(scenario())

    (key, (data, content_type)), = store.objects.items()
    assert Image.open(io.BytesIO(data)).size == (400, 300)
    assert content_type == "image/jpeg"
    assert key.endswith(".jpg")

    assert wizard.step_name == COMPLETE
    assert record.platform == "Instagram"
    assert repository.settings_updates == [(record.id, SELECTIONS)]
    assert repository.posts[record.id]["niche"] == "Fitness"


def test_next_without_media_is_rejected():
    wizard = _wizard()
    with pytest.raises(ValidationFailed):
        asyncio.run(wizard.next())
    assert wizard.step_name == "media"


def test_second_next_during_upload_is_ignored(jpeg_bytes):
    coordinator = GatedCoordinator()
    wizard = _wizard(coordinator=coordinator)

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        first = asyncio.create_task(wizard.next())
        await asyncio.sleep(0)
        assert wizard.upload_in_flight

        second = await wizard.next()
        coordinator.gate.set()
        return await first, second

    first, second = asyncio.run(scenario())

    assert (first, second) == (True, False)
    assert coordinator.calls == 1
    assert wizard.step_name == "platform"
    assert not wizard.upload_in_flight


def test_upload_result_for_cleared_media_is_discarded(jpeg_bytes):
    coordinator = GatedCoordinator()
    wizard = _wizard(coordinator=coordinator)

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        pending = asyncio.create_task(wizard.next())
        await _until_uploading(coordinator)
        wizard.clear_media()
        coordinator.gate.set()
        return await pending

    assert asyncio.run(scenario()) is False
    assert wizard.step_name == "media"
    assert wizard.state.post_id is None
    assert wizard.record is None


def test_upload_failure_for_cleared_media_is_ignored(jpeg_bytes):
    coordinator = GatedCoordinator(fail=True)
    wizard = _wizard(coordinator=coordinator)

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        pending = asyncio.create_task(wizard.next())
        await _until_uploading(coordinator)
        wizard.clear_media()
        coordinator.gate.set()
        return await pending

    assert asyncio.run(scenario()) is False


def test_media_cleared_during_transform_is_never_uploaded(jpeg_bytes):
    store = FakeStore()
    repository = FakeRepository()
    engine = HeldEngine()
    wizard = _wizard(store, repository, engine=engine)

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        wizard.edits.rotate()
        pending = asyncio.create_task(wizard.next())
        await asyncio.to_thread(engine.started.wait, 5)
        wizard.clear_media()
        engine.release.set()
        return await pending

    assert asyncio.run(scenario()) is False
    assert store.objects == {}
    assert repository.posts == {}
    assert wizard.step_name == "media"
    assert not wizard.upload_in_flight


def test_unreadable_image_uploads_untouched():
    store = FakeStore()
    repository = FakeRepository()
    wizard = _wizard(store, repository)
    svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"><rect width="10" height="10"/></svg>'

    async def scenario():
        await wizard.capture.acquire_from_drop([DroppedFile("logo.svg", "image/svg+xml", svg)])
        return await wizard.next()

    assert asyncio.run(scenario()) is True
    (key, (data, content_type)), = store.objects.items()
    assert data == svg
    assert content_type == "image/svg+xml"
    assert key.endswith(".svg")
    assert wizard.record.id in repository.posts
    assert wizard.step_name == "platform"


def test_upload_failure_keeps_media_step(jpeg_bytes):
    wizard = _wizard(store=FakeStore(fail_put=True))

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        with pytest.raises(UploadFailed):
            await wizard.next()

    asyncio.run(scenario())
    assert wizard.step_name == "media"
    assert not wizard.upload_in_flight
    assert wizard.capture.source is not None


def test_going_back_to_media_does_not_upload_again(jpeg_bytes):
    store = FakeStore()
    wizard = _wizard(store)

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        await wizard.next()
        wizard.back()
        assert wizard.step_name == "media"
        return await wizard.next()

    assert asyncio.run(scenario()) is True
    assert len(store.objects) == 1
    assert wizard.step_name == "platform"


def test_replacing_media_after_upload_uploads_again(jpeg_bytes):
    store = FakeStore()
    wizard = _wizard(store)

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        await wizard.next()
        wizard.back()
        await _drop(wizard, jpeg_bytes)
        await wizard.next()

    asyncio.run(scenario())
    assert len(store.objects) == 2


def test_attribute_step_requires_selection(jpeg_bytes):
    wizard = _wizard()

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        await wizard.next()
        with pytest.raises(ValidationFailed):
            await wizard.next()
        wizard.select("platform", "Twitter")
        return await wizard.next()

    assert asyncio.run(scenario()) is True
    assert wizard.step_name == "niche"


def test_select_validates_choices():
    wizard = _wizard()

    with pytest.raises(ValidationFailed):
        wizard.select("platform", "MySpace")
    with pytest.raises(ValidationFailed):
        wizard.select("mood", "Happy")

    wizard.select("niche", "  Fashion ")
    assert wizard.state.selections["niche"] == "Fashion"
    wizard.select("niche", "")
    assert "niche" not in wizard.state.selections


def test_back_on_first_step_is_rejected():
    wizard = _wizard()
    with pytest.raises(ValidationFailed):
        wizard.back()


def test_complete_requires_last_step(jpeg_bytes):
    wizard = _wizard()

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        await wizard.next()
        with pytest.raises(ValidationFailed):
            await wizard.complete()

    asyncio.run(scenario())
    assert not wizard.state.completed


def test_next_on_last_step_is_rejected(jpeg_bytes):
    wizard = _wizard()

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        await wizard.next()
        await _fill_selections(wizard)
        with pytest.raises(ValidationFailed):
            await wizard.next()

    asyncio.run(scenario())
    assert wizard.step_name == "tone"


def test_complete_with_missing_selection_is_rejected(jpeg_bytes):
    wizard = _wizard()

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        await wizard.next()
        await _fill_selections(wizard)
        wizard.select("tone", "")
        with pytest.raises(ValidationFailed):
            await wizard.complete()

    asyncio.run(scenario())
    assert not wizard.state.completed


def test_failed_settings_update_keeps_wizard_on_last_step(jpeg_bytes):
    repository = FakeRepository(fail_update=True)
    wizard = _wizard(repository=repository)

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        await wizard.next()
        await _fill_selections(wizard)
        with pytest.raises(PersistenceFailed):
            await wizard.complete()

    asyncio.run(scenario())
    assert wizard.step_name == "tone"
    assert not wizard.state.completed


def test_progress_events_reach_listener(jpeg_bytes):
    wizard = _wizard()
    seen = []
    wizard.on_progress = lambda p: seen.append(p.percentage)

    async def scenario():
        await _drop(wizard, jpeg_bytes)
        await wizard.next()

    asyncio.run(scenario())
    assert seen[0] == 0
    assert seen[-1] == 100
    assert seen == sorted(seen)
