from __future__ import annotations

from pathlib import Path
from typing import Sequence

from .client import DeepStackClient, Prediction


def register_face(identifier: str, image_paths: Sequence[str | Path]) -> str:
    return DeepStackClient.from_settings().register_face(identifier, image_paths)


def unregister_face(identifier: str) -> None:
    DeepStackClient.from_settings().unregister_face(identifier)


def get_registered_faces() -> list[str]:
    return DeepStackClient.from_settings().list_faces()


def recognize_faces(image_path: str, min_confidence: float = 0.5) -> list[Prediction]:
    return DeepStackClient.from_settings().recognize_faces(image_path, min_confidence=min_confidence)


def detect_objects(image_path: str, min_confidence: float = 0.5) -> list[Prediction]:
    return DeepStackClient.from_settings().detect_objects(image_path, min_confidence=min_confidence)


def classify_scene(image_path: str) -> Prediction:
    return DeepStackClient.from_settings().classify_scene(image_path)
