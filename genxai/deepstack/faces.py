from __future__ import annotations

import logging
from pathlib import Path

from genxai.errors import ImageValidationError, ServiceError
from genxai.queries.ai_settings import get_ai_known_faces_rootpath
from genxai.queries.images import iter_images

from .client import DeepStackClient

logger = logging.getLogger(__name__)


def register_all_faces(
    faces_directory: str | None = None,
    client: DeepStackClient | None = None,
    force: bool = False,
) -> dict[str, int]:
    """Register every person folder under the known-faces root.

    Each subfolder name is used as the person identifier; all valid images
    inside it are uploaded together. Returns the number of images registered
    per person.
    """
    root = Path(get_ai_known_faces_rootpath(faces_directory))
    if not root.is_dir():
        raise FileNotFoundError(f"Known faces directory not found: {root}")

    client = client or DeepStackClient.from_settings()
    known = set(client.list_faces())
    registered: dict[str, int] = {}

    for person_dir in sorted(p for p in root.iterdir() if p.is_dir()):
        identifier = person_dir.name
        if identifier in known and not force:
            logger.debug("Skipping %s: already registered", identifier)
            continue
        images = list(iter_images([person_dir], recurse=False))
        if not images:
            logger.warning("No images found for %s", identifier)
            continue
        if identifier in known:
            client.unregister_face(identifier)
        try:
            client.register_face(identifier, images)
        except (ServiceError, ImageValidationError) as exc:
            logger.warning("Failed to register %s: %s", identifier, exc)
            continue
        registered[identifier] = len(images)

    return registered
