"""Per-session annotation merge store."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from callrelay.backend.models import Annotation


class AnnotationStore:
    """Last-write-wins store keyed by annotation id, in insertion order."""

    def __init__(self) -> None:
        self._annotations: dict[str, Annotation] = {}

    def __len__(self) -> int:
        return len(self._annotations)

    def get(self, annotation_id: str) -> Annotation | None:
        return self._annotations.get(annotation_id)

    def upsert(self, annotation: Annotation) -> Annotation:
        existing = self._annotations.get(annotation.id)
        if existing is None:
            self._annotations[annotation.id] = annotation
            return annotation
        # The first author stays attached to the id.
        updated = replace(
            existing,
            text=annotation.text,
            x=annotation.x,
            y=annotation.y,
            object_id=annotation.object_id,
        )
        self._annotations[annotation.id] = updated
        return updated

    def snapshot(self) -> list[dict[str, Any]]:
        return [annotation.to_wire() for annotation in self._annotations.values()]
