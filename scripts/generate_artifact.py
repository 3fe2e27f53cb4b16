"""
CLI example to generate one character portrait, scene illustration, or scene narration.

Usage:
    python scripts/generate_artifact.py \
        --config config/settings.yaml \
        --kind scene_image \
        --index 2 \
        --prompt "A rain-soaked rooftop at dusk, two rivals facing each other"
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
import uuid
from pathlib import Path
from typing import Any

from tqdm.auto import tqdm

# Ensure project root is on the Python path when running as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from scenecast import (
    ArtifactStore,
    GenerationCoordinator,
    GenerationKind,
    GenerationRequest,
    ProgressEvent,
    ProgressHub,
    load_settings,
)
from scenecast.common import GenerationError
from scenecast.progress import Subscription


class ProgressTracker:
    """
    Renders hub events for one task as a tqdm bar plus status lines.
    """

    def __init__(self, label: str) -> None:
        self._bar = tqdm(total=100, desc=label, unit="%")

    def __call__(self, event: ProgressEvent) -> None:
        self._bar.update(max(event.percent - self._bar.n, 0))
        if event.error:
            self._write(f"[{event.stage.value}] {event.message} {event.error}")
        else:
            self._write(f"[{event.stage.value}] {event.message}")

    def close(self) -> None:
        self._bar.close()

    @staticmethod
    def _write(message: str) -> None:
        tqdm.write(message)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a single SceneCast artifact.")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the settings YAML/JSON file (environment variables override it).",
    )
    parser.add_argument(
        "--kind",
        required=True,
        choices=[kind.value for kind in GenerationKind],
        help="What to generate.",
    )
    parser.add_argument(
        "--index",
        type=int,
        default=0,
        help="Zero-based index of the character or scene.",
    )
    parser.add_argument(
        "--prompt",
        required=True,
        help="Fully formed prompt (or narration text for scene_audio).",
    )
    parser.add_argument(
        "--reference-image",
        action="append",
        default=[],
        help="Character image (path, /generated/images/... URL, or data URL) to draw into the scene (repeatable).",
    )
    parser.add_argument(
        "--prior",
        default=None,
        help="Relative URL of the artifact this one replaces.",
    )
    parser.add_argument(
        "--task-id",
        default=None,
        help="Progress task id (random when omitted).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=300.0,
        help="Overall deadline in seconds.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.config)
    hub = ProgressHub()
    coordinator = GenerationCoordinator(settings, hub, ArtifactStore(settings.generated_root))

    request = GenerationRequest(
        kind=GenerationKind(args.kind),
        entity_index=args.index,
        prompt=args.prompt,
        reference_images=tuple(args.reference_image),
        prior_artifact_path=args.prior,
    )
    task_id = args.task_id or uuid.uuid4().hex
    subscription = hub.subscribe(task_id)
    outcome: dict[str, Any] = {}

    def _run() -> None:
        try:
            outcome["artifact"] = coordinator.generate(request, task_id=task_id, timeout=args.timeout)
        except GenerationError as exc:
            outcome["error"] = exc

    worker = threading.Thread(target=_run, name=f"generate-{task_id}", daemon=True)
    tracker = ProgressTracker(request.kind.value)
    worker.start()
    try:
        _follow(subscription, tracker)
    finally:
        tracker.close()
        hub.unsubscribe(task_id, subscription)
    worker.join()

    artifact = outcome.get("artifact")
    if artifact is None:
        print(f"Generation failed: {outcome.get('error', 'unexpected error')}", file=sys.stderr)
        return 1
    print(artifact.relative_url)
    return 0


def _follow(subscription: Subscription, tracker: ProgressTracker) -> None:
    for event in subscription:
        tracker(event)


if __name__ == "__main__":
    raise SystemExit(main())
