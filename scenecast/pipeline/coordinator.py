"""
Drives one artifact generation: provider call, normalization, storage, progress.
"""

from __future__ import annotations

import base64
import logging
import mimetypes
import time
from pathlib import Path
from typing import Any, Callable, Sequence

import replicate
import requests

from scenecast.ai_generation import (
    ArtifactReference,
    ChatImageClient,
    ImageEditClient,
    ReplicateImageClient,
    SpeechClient,
    audio_reference,
    image_edit_reference,
    image_reference_from_text,
)
from scenecast.common.config import BACKEND_REPLICATE, GenerationSettings, ProviderSettings
from scenecast.common.errors import DeadlineExceeded, GenerationError, InvalidRequestError, ProviderError
from scenecast.common.llm import CompletionCallable
from scenecast.progress import ProgressEvent, ProgressHub, Stage
from scenecast.storage import ArtifactStore, MediaKind, StoredArtifact, filename_stem

from .models import BatchItem, BatchOutcome, GenerationKind, GenerationRequest
from .retry import Deadline, RetryPolicy, SleepFunction, with_retry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0

_PERCENT = {
    Stage.PREPARING: 10,
    Stage.INVOKING: 30,
    Stage.MATERIALIZING: 70,
    Stage.COMPLETED: 100,
}

_LABELS = {
    GenerationKind.CHARACTER: "character portrait",
    GenerationKind.SCENE_IMAGE: "scene illustration",
    GenerationKind.SCENE_AUDIO: "scene narration",
}


class GenerationCoordinator:
    """
    Composes provider clients, the retry policy, the artifact store, and the progress hub.

    ``generate`` runs on the caller's thread. Progress for ``task_id`` is published to
    the hub as the run moves through preparing, invoking, materializing, and
    completed (or failed); the same failure is also raised to the caller.

    Parameters
    ----------
    settings:
        Provider configuration for every content kind.
    hub:
        Receives progress events; observers subscribe to it independently.
    store:
        Where artifacts are written and stale ones retired.
    retry_policy:
        Attempt ceiling and backoff for provider calls.
    sleep:
        Backoff sleep, replaceable in tests.
    completion_fn, session, replicate_client:
        Transport overrides forwarded to the provider clients. Mainly useful for testing.
    clock:
        Source of the timestamp embedded in artifact filenames.
    """

    def __init__(
        self,
        settings: GenerationSettings,
        hub: ProgressHub,
        store: ArtifactStore,
        *,
        retry_policy: RetryPolicy | None = None,
        sleep: SleepFunction = time.sleep,
        completion_fn: CompletionCallable | None = None,
        session: requests.Session | None = None,
        replicate_client: replicate.Client | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._hub = hub
        self._store = store
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._completion_fn = completion_fn
        self._session = session
        self._replicate_client = replicate_client
        self._clock = clock

    @property
    def hub(self) -> ProgressHub:
        return self._hub

    @property
    def store(self) -> ArtifactStore:
        return self._store

    def generate(
        self,
        request: GenerationRequest,
        *,
        task_id: str,
        timeout: float | None = DEFAULT_TIMEOUT,
        deadline: Deadline | None = None,
    ) -> StoredArtifact:
        """
        Generate the artifact described by ``request`` and return where it was stored.

        Raises a :class:`GenerationError` subclass on failure after publishing a
        terminal ``failed`` event for ``task_id``.
        """
        deadline = deadline or Deadline(timeout)
        label = _LABELS[request.kind]
        stage = Stage.PREPARING

        try:
            self._publish(task_id, stage, f"Preparing {label}...")
            settings = self._provider_settings(request)
            if not request.prompt.strip():
                raise InvalidRequestError(f"Nothing to generate the {label} from.")

            stage = Stage.INVOKING
            self._publish(task_id, stage, f"Generating {label}...")
            reference = self._invoke(request, settings, deadline)
            deadline.check()

            stage = Stage.MATERIALIZING
            self._publish(task_id, stage, f"Saving {label}...")
            stored = self._store.materialize(
                reference,
                request.kind.media,
                filename_stem(request.kind.filename_prefix, request.entity_index, now=self._clock()),
                timeout=deadline.remaining(),
            )
            self._retire_prior(request, stored)
        except GenerationError as exc:
            logger.error("Generating %s for task %s failed: %s", label, task_id, exc)
            self._publish_failure(task_id, stage, label, exc)
            raise
        except Exception as exc:
            logger.exception("Unexpected failure generating %s for task %s.", label, task_id)
            self._publish_failure(task_id, stage, label, exc)
            raise

        self._hub.publish(
            ProgressEvent(
                task_id=task_id,
                stage=Stage.COMPLETED,
                message=f"{label.capitalize()} ready.",
                percent=_PERCENT[Stage.COMPLETED],
                completed=True,
            )
        )
        logger.info("Generated %s at %s (task %s).", label, stored.relative_url, task_id)
        return stored

    def generate_all(
        self,
        items: Sequence[BatchItem],
        *,
        task_id: str,
        timeout: float | None = DEFAULT_TIMEOUT,
        deadline: Deadline | None = None,
    ) -> list[BatchOutcome]:
        """
        Generate every item in order, each under its own ``timeout``.

        Aggregate progress (``current``/``total``/``success``) is published for
        ``task_id``; each item's own stage events go to ``<task_id>/<position>``.
        Blank prompts are skipped and a failed item does not stop the run. Only
        cancellation or expiry of ``deadline`` aborts the batch, with a terminal
        ``failed`` event and :class:`DeadlineExceeded`.
        """
        batch_deadline = deadline or Deadline(None)
        total = len(items)
        outcomes: list[BatchOutcome] = []
        logger.info("Starting batch %s with %d items.", task_id, total)

        for position, item in enumerate(items, start=1):
            name = item.name or f"{_LABELS[item.request.kind]} {position}"
            if not item.request.prompt.strip():
                self._publish_batch(task_id, position, total, f"{name} has no description, skipped.", False)
                outcomes.append(BatchOutcome(position, name, skipped=True))
                continue

            try:
                batch_deadline.check()
            except DeadlineExceeded as exc:
                self._abort_batch(task_id, position, total, exc)
                raise

            self._publish_batch(
                task_id, position, total, f"Generating {position}/{total}: {name}", False, done=position - 1
            )
            try:
                stored = self.generate(
                    item.request,
                    task_id=f"{task_id}/{position}",
                    deadline=batch_deadline.child(timeout),
                )
            except GenerationError as exc:
                if batch_deadline.expired:
                    self._abort_batch(task_id, position, total, exc)
                    raise DeadlineExceeded(f"batch stopped at item {position}/{total}: {exc}") from exc
                self._publish_batch(task_id, position, total, f"{name} failed: {exc}", False)
                outcomes.append(BatchOutcome(position, name, error=str(exc) or exc.__class__.__name__))
                continue

            self._publish_batch(task_id, position, total, f"Generated {position}/{total}: {name}", True)
            outcomes.append(BatchOutcome(position, name, artifact=stored))

        generated = sum(1 for outcome in outcomes if outcome.succeeded)
        self._hub.publish(
            ProgressEvent(
                task_id=task_id,
                stage=Stage.COMPLETED,
                message=f"Batch finished: {generated} of {total} generated.",
                percent=100,
                completed=True,
                current=total,
                total=total,
                success=True,
            )
        )
        logger.info("Batch %s finished: %d of %d generated.", task_id, generated, total)
        return outcomes

    def _provider_settings(self, request: GenerationRequest) -> ProviderSettings:
        if request.kind is GenerationKind.SCENE_AUDIO:
            return self._settings.resolved_voice().require("voice")
        if request.reference_images:
            return self._settings.resolved_image_edit().require("image_edit")
        return self._settings.resolved_image().require("image")

    def _invoke(
        self,
        request: GenerationRequest,
        settings: ProviderSettings,
        deadline: Deadline,
    ) -> ArtifactReference:
        if request.kind is GenerationKind.SCENE_AUDIO:
            client = SpeechClient(settings, session=self._session)
            payload = self._retry(
                lambda: client.synthesize(request.prompt.strip(), timeout=deadline.remaining()),
                deadline,
                label="speech request",
            )
            return audio_reference(payload)

        if settings.backend == BACKEND_REPLICATE:
            replicate_client = ReplicateImageClient(settings, client=self._replicate_client)
            reference_image = self._first_reference_image(request.reference_images)
            text = self._retry(
                lambda: replicate_client.request_image(request.prompt, reference_image=reference_image),
                deadline,
                label="replicate request",
            )
            return image_reference_from_text(text)

        if request.reference_images:
            edit_client = ImageEditClient(settings, session=self._session)
            images = self._load_reference_images(request.reference_images)
            payload = self._retry(
                lambda: edit_client.request_edit(request.prompt, images, timeout=deadline.remaining()),
                deadline,
                label="image edit request",
            )
            return image_edit_reference(payload)

        chat_client = ChatImageClient(settings, completion_fn=self._completion_fn)
        text = self._retry(
            lambda: chat_client.request_image(request.prompt, timeout=deadline.remaining()),
            deadline,
            label="image request",
        )
        return image_reference_from_text(text)

    def _retry(self, attempt_fn: Callable[[], Any], deadline: Deadline, *, label: str) -> Any:
        return with_retry(
            attempt_fn,
            self._retry_policy,
            retry_on=(ProviderError,),
            sleep=self._sleep,
            deadline=deadline,
            label=label,
        )

    def _first_reference_image(self, references: tuple[str, ...]) -> str | None:
        if not references:
            return None
        images = self._load_reference_images(references)
        if len(images) > 1:
            logger.info("Replicate takes a single reference image; using the first of %d.", len(images))
        return images[0] if images else None

    def _load_reference_images(self, references: tuple[str, ...]) -> list[str]:
        images: list[str] = []
        for reference in references:
            if reference.lower().startswith(("data:", "http://", "https://")):
                images.append(reference)
                continue
            path = self._store.resolve(reference, MediaKind.IMAGE) or Path(reference).expanduser()
            try:
                data = path.read_bytes()
            except OSError as exc:
                logger.warning("Skipping unreadable reference image %s: %s", path, exc)
                continue
            mime_type, _ = mimetypes.guess_type(path.name)
            encoded = base64.b64encode(data).decode("ascii")
            images.append(f"data:{mime_type or 'image/png'};base64,{encoded}")
        logger.info("Loaded %d of %d reference images.", len(images), len(references))
        return images

    def _retire_prior(self, request: GenerationRequest, stored: StoredArtifact) -> None:
        prior = request.prior_artifact_path
        if not prior or prior == stored.relative_url:
            return
        if self._store.resolve(prior, request.kind.media) == stored.absolute_path:
            return
        self._store.retire(prior, request.kind.media)

    def _publish(self, task_id: str, stage: Stage, message: str) -> None:
        self._hub.publish(
            ProgressEvent(task_id=task_id, stage=stage, message=message, percent=_PERCENT[stage])
        )

    def _publish_failure(self, task_id: str, stage: Stage, label: str, exc: BaseException) -> None:
        self._hub.publish(
            ProgressEvent(
                task_id=task_id,
                stage=Stage.FAILED,
                message=f"Generating {label} failed.",
                percent=_PERCENT.get(stage, 0),
                completed=True,
                error=str(exc) or exc.__class__.__name__,
            )
        )

    def _publish_batch(
        self,
        task_id: str,
        position: int,
        total: int,
        message: str,
        success: bool,
        *,
        done: int | None = None,
    ) -> None:
        finished = position if done is None else done
        self._hub.publish(
            ProgressEvent(
                task_id=task_id,
                stage=Stage.BATCH,
                message=message,
                percent=finished * 100 // total,
                current=position,
                total=total,
                success=success,
            )
        )

    def _abort_batch(self, task_id: str, position: int, total: int, exc: BaseException) -> None:
        logger.warning("Batch %s stopped at item %d/%d: %s", task_id, position, total, exc)
        self._hub.publish(
            ProgressEvent(
                task_id=task_id,
                stage=Stage.FAILED,
                message=f"Batch stopped at item {position}/{total}.",
                percent=(position - 1) * 100 // total,
                completed=True,
                error=str(exc) or exc.__class__.__name__,
                current=position,
                total=total,
                success=False,
            )
        )
