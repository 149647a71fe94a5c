from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from genxai.config import Settings, load_settings
from genxai.errors import ServiceError
from genxai.queries.images import validate_image_file
from genxai.service import ServiceClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Prediction:
    label: str
    confidence: float
    x_min: int = 0
    y_min: int = 0
    x_max: int = 0
    y_max: int = 0


def _prediction(item: dict[str, Any], label_key: str) -> Prediction:
    return Prediction(
        label=str(item.get(label_key, "unknown")),
        confidence=float(item.get("confidence", 0.0)),
        x_min=int(item.get("x_min", 0)),
        y_min=int(item.get("y_min", 0)),
        x_max=int(item.get("x_max", 0)),
        y_max=int(item.get("y_max", 0)),
    )


class DeepStackClient(ServiceClient):
    service_name = "DeepStack"

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "DeepStackClient":
        settings = settings or load_settings()
        endpoint = settings.services.deepstack
        return cls(endpoint.url, endpoint.timeout)

    def _vision(self, path: str, files: dict | None = None, data: dict | None = None) -> dict[str, Any]:
        body = self.post_json(path, files=files, data=data)
        if not isinstance(body, dict):
            raise ServiceError(self.service_name, "response was not an object")
        if not body.get("success", False):
            raise ServiceError(self.service_name, str(body.get("error") or "request was not successful"))
        return body

    def _single_image(self, path: str, image: str | Path, data: dict | None = None) -> dict[str, Any]:
        image_path = validate_image_file(image)
        with image_path.open("rb") as fh:
            return self._vision(path, files={"image": (image_path.name, fh)}, data=data)

    def register_face(self, identifier: str, image_paths: Sequence[str | Path]) -> str:
        if not identifier.strip():
            raise ValueError("identifier must be a non-empty string")
        images = [validate_image_file(path) for path in image_paths]
        if not images:
            raise ValueError("at least one image is required to register a face")

        with ExitStack() as stack:
            files = {
                f"image{idx}": (image.name, stack.enter_context(image.open("rb")))
                for idx, image in enumerate(images, start=1)
            }
            body = self._vision("/v1/vision/face/register", files=files, data={"userid": identifier})
        logger.debug("Registered %d image(s) for %s", len(images), identifier)
        return str(body.get("message", "face registration complete"))

    def unregister_face(self, identifier: str) -> None:
        self._vision("/v1/vision/face/delete", data={"userid": identifier})

    def list_faces(self) -> list[str]:
        body = self._vision("/v1/vision/face/list")
        return sorted(str(face) for face in body.get("faces", []))

    def recognize_faces(self, image: str | Path, min_confidence: float = 0.5) -> list[Prediction]:
        body = self._single_image("/v1/vision/face/recognize", image, data={"min_confidence": min_confidence})
        return [_prediction(item, "userid") for item in body.get("predictions", [])]

    def detect_objects(self, image: str | Path, min_confidence: float = 0.5) -> list[Prediction]:
        body = self._single_image("/v1/vision/detection", image, data={"min_confidence": min_confidence})
        return [_prediction(item, "label") for item in body.get("predictions", [])]

    def classify_scene(self, image: str | Path) -> Prediction:
        body = self._single_image("/v1/vision/scene", image)
        return Prediction(label=str(body.get("label", "unknown")), confidence=float(body.get("confidence", 0.0)))
