"""
Post Wizard

Multi-step flow that collects the post's attributes:

    media -> platform -> niche -> goal -> tone -> complete

Responsibilities:
- Gate next() on the current step's requirement
- Run transform + upload when leaving the media step
- Ignore upload results whose media was cleared meanwhile
- Persist the selections against the uploaded post on complete()

All state changes happen on the event loop. Blocking work (encoding,
Supabase calls) is pushed to worker threads and awaited.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

from engageperfect.core.database import DatabaseManager
from engageperfect.core.exceptions import PersistenceFailed, ValidationFailed
from engageperfect.core.logger import logger
from engageperfect.models.media_models import MediaEdits, PostRecord, UploadProgress
from engageperfect.services.media_capture import MediaCaptureSource
from engageperfect.services.transform_engine import TransformEngine
from engageperfect.services.upload_coordinator import UploadCoordinator

PLATFORMS = ("Instagram", "LinkedIn", "Facebook", "Twitter", "TikTok")
GOALS = ("Sales", "Drive Engagement", "Grow Followers", "Share Knowledge", "Brand Awareness")
TONES = ("Professional", "Casual", "Humorous", "Persuasive", "Inspirational")

COMPLETE = "complete"


@dataclass(frozen=True)
class WizardStep:
    name: str
    title: str
    field: Optional[str] = None
    choices: Optional[Tuple[str, ...]] = None

    @property
    def is_media(self) -> bool:
        return self.field is None


MEDIA_STEP = WizardStep("media", "Upload Media")

DEFAULT_STEPS = (
    MEDIA_STEP,
    WizardStep("platform", "Choose Platform", "platform", PLATFORMS),
    WizardStep("niche", "Industry/Niche", "niche"),
    WizardStep("goal", "Select Goal", "goal", GOALS),
    WizardStep("tone", "Select Tone", "tone", TONES),
)


@dataclass
class WizardState:
    current_step: int = 0
    selections: Dict[str, str] = field(default_factory=dict)
    post_id: Optional[str] = None
    completed: bool = False


class PostWizard:
    """State machine for one post-creation session."""

    def __init__(
        self,
        capture: MediaCaptureSource,
        owner_id: str,
        edits: Optional[MediaEdits] = None,
        engine: Optional[TransformEngine] = None,
        coordinator: Optional[UploadCoordinator] = None,
        repository=DatabaseManager,
        steps: Tuple[WizardStep, ...] = DEFAULT_STEPS,
        on_progress: Optional[Callable[[UploadProgress], None]] = None,
        on_complete: Optional[Callable[["PostWizard"], None]] = None,
    ):
        if not steps or not steps[0].is_media:
            raise ValueError("The first wizard step must be the media step")

        self.capture = capture
        self.owner_id = owner_id
        self.edits = edits or MediaEdits()
        self.engine = engine or TransformEngine()
        self.coordinator = coordinator or UploadCoordinator()
        self.repository = repository
        self.steps = steps
        self.on_progress = on_progress
        self.on_complete = on_complete

        self.state = WizardState()
        self.record: Optional[PostRecord] = None
        self.progress: Optional[UploadProgress] = None
        self._uploaded_generation: Optional[int] = None
        self._upload_in_flight = False

    # ==================== INTROSPECTION ====================

    @property
    def step(self) -> Optional[WizardStep]:
        if self.state.completed:
            return None
        return self.steps[self.state.current_step]

    @property
    def step_name(self) -> str:
        return COMPLETE if self.state.completed else self.step.name

    @property
    def is_last_step(self) -> bool:
        return self.state.current_step == len(self.steps) - 1

    @property
    def upload_in_flight(self) -> bool:
        return self._upload_in_flight

    @property
    def selection_fields(self) -> Tuple[str, ...]:
        return tuple(s.field for s in self.steps if not s.is_media)

    def media_uploaded(self) -> bool:
        """An upload succeeded for the media currently selected."""
        return (
            self.state.post_id is not None
            and self._uploaded_generation == self.capture.generation
        )

    # ==================== EDITING ====================

    def select(self, field_name: str, value: str):
        """Record a selection for one of the attribute steps."""
        if self.state.completed:
            raise ValidationFailed("The wizard is already complete")

        step = next((s for s in self.steps if s.field == field_name), None)
        if step is None:
            raise ValidationFailed(f"Unknown selection: {field_name}")

        value = (value or "").strip()
        if step.choices and value and value not in step.choices:
            raise ValidationFailed(
                f"{value!r} is not a valid {field_name}; choose one of {', '.join(step.choices)}"
            )

        if value:
            self.state.selections[field_name] = value
        else:
            self.state.selections.pop(field_name, None)

    def clear_media(self):
        """Drop the current source; any upload still running for it is discarded."""
        self.capture.clear()
        self.edits.reset()
        self.state.post_id = None
        self.record = None
        self._uploaded_generation = None

    # ==================== TRANSITIONS ====================

    async def next(self) -> bool:
        """
        Advance one step.

        Returns:
            True if the wizard advanced, False if the call was ignored
            (an upload is already running, or its media was cleared)

        Raises:
            ValidationFailed: The current step's requirement is not met
            TransformFailed / UploadFailed: The media step's upload failed
        """
        step = self._require_active()

        if step.is_media:
            if self.media_uploaded():
                self.state.current_step += 1
                return True
            if self._upload_in_flight:
                logger.debug("next() ignored: upload already in flight")
                return False
            return await self._upload_and_advance()

        if self.is_last_step:
            raise ValidationFailed(f"{step.title} is the last step; complete the wizard instead")

        if not self.state.selections.get(step.field):
            raise ValidationFailed(f"{step.title}: a {step.field} is required")

        self.state.current_step += 1
        return True

    def back(self):
        """Go back one step; collected selections are kept."""
        self._require_active()
        if self.state.current_step == 0:
            raise ValidationFailed("Already on the first step")
        self.state.current_step -= 1

    async def complete(self) -> PostRecord:
        """
        Persist platform/niche/goal/tone on the uploaded post.

        Raises:
            ValidationFailed: Not on the last step or something is missing
            PersistenceFailed: The update failed; the wizard stays put
        """
        self._require_active()
        if not self.is_last_step:
            raise ValidationFailed(f"Cannot complete from the {self.step.title} step")

        missing = [f for f in self.selection_fields if not self.state.selections.get(f)]
        if missing:
            raise ValidationFailed(f"Missing selections: {', '.join(missing)}")
        if not self.state.post_id:
            raise ValidationFailed("No uploaded media to attach the post settings to")

        values = {f: self.state.selections[f] for f in self.selection_fields}
        try:
            await asyncio.to_thread(self.repository.update_post_settings, self.state.post_id, **values)
        except Exception as e:
            logger.error(f"Saving settings for post {self.state.post_id} failed: {str(e)}")
            raise PersistenceFailed("Saving the post settings failed", cause=e) from e

        self.state.completed = True
        if self.record is not None:
            for name, value in values.items():
                setattr(self.record, name, value)

        logger.info(f"Wizard complete for post {self.state.post_id}")
        if self.on_complete:
            self.on_complete(self)
        return self.record

    # ==================== INTERNALS ====================

    def _require_active(self) -> WizardStep:
        if self.state.completed:
            raise ValidationFailed("The wizard is already complete")
        return self.step

    async def _upload_and_advance(self) -> bool:
        source = self.capture.source
        if source is None:
            raise ValidationFailed("Select or capture media before continuing")

        generation = self.capture.generation
        crop, rotation = self.edits.crop, self.edits.rotation
        self._upload_in_flight = True
        self.progress = UploadProgress()
        try:
            result = await asyncio.to_thread(self.engine.transform, source, crop, rotation)
            if generation != self.capture.generation:
                logger.info(f"Skipping upload of {source.original_file_name}: media changed while transforming")
                return False
            record = await self.coordinator.upload(
                result,
                self.owner_id,
                on_progress=lambda p: self._track_progress(p, generation),
            )
        except Exception:
            if generation != self.capture.generation:
                logger.info("Ignoring failed upload: media changed while uploading")
                return False
            raise
        finally:
            self._upload_in_flight = False

        if generation != self.capture.generation:
            logger.info(f"Discarding upload result for post {record.id}: media changed while uploading")
            return False

        self.record = record
        self.state.post_id = record.id
        self._uploaded_generation = generation
        self.state.current_step += 1
        return True

    def _track_progress(self, progress: UploadProgress, generation: int):
        if generation != self.capture.generation:
            return
        self.progress = progress
        if self.on_progress:
            self.on_progress(progress)
