from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Iterable

from genxai.deepstack.client import DeepStackClient
from genxai.errors import GenXAIError
from genxai.lmstudio.client import LMStudioClient
from genxai.lmstudio.query import invoke_llm_query

from .ai_settings import get_ai_image_collection, get_ai_meta_language
from .images import iter_images, validate_image_file

logger = logging.getLogger(__name__)

SIDECAR_SUFFIX = ".genxai.json"

KEYWORDS_PROMPT = (
    "Analyze this image. Respond with a single JSON object with the keys "
    '"short_description" (at most 80 characters), "long_description" and '
    '"keywords" (a list of single words). Write all text in {language}.'
)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass(slots=True)
class ImageDescription:
    short_description: str = ""
    long_description: str = ""
    keywords: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ImageMetadata:
    description: ImageDescription | None = None
    people: list[str] | None = None
    objects: list[str] | None = None
    scenes: list[str] | None = None
    language: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageMetadata":
        description = data.get("description")
        return cls(
            description=ImageDescription(
                short_description=str(description.get("short_description", "")),
                long_description=str(description.get("long_description", "")),
                keywords=[str(k) for k in description.get("keywords", [])],
            )
            if isinstance(description, dict)
            else None,
            people=_str_list(data.get("people")),
            objects=_str_list(data.get("objects")),
            scenes=_str_list(data.get("scenes")),
            language=str(data.get("language", "")),
        )


def _str_list(value: object) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def sidecar_path(image: str | Path) -> Path:
    image = Path(image)
    return image.with_name(image.name + SIDECAR_SUFFIX)


def load_image_metadata(image: str | Path) -> ImageMetadata:
    path = sidecar_path(image)
    if not path.is_file():
        return ImageMetadata()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logger.warning("Ignoring unreadable metadata %s: %s", path, exc)
        return ImageMetadata()
    return ImageMetadata.from_dict(data if isinstance(data, dict) else {})


def save_image_metadata(image: str | Path, metadata: ImageMetadata) -> Path:
    path = sidecar_path(image)
    path.write_text(json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def parse_description(answer: str) -> ImageDescription:
    text = _FENCE.sub("", answer.strip())
    start, end = text.find("{"), text.rfind("}")
    if start < 0 or end < start:
        raise GenXAIError("LLM answer did not contain a JSON object")
    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise GenXAIError(f"LLM answer was not valid JSON: {exc}") from exc
    keywords = data.get("keywords") or []
    if isinstance(keywords, str):
        keywords = [k.strip() for k in keywords.split(",")]
    return ImageDescription(
        short_description=str(data.get("short_description", "")).strip(),
        long_description=str(data.get("long_description", "")).strip(),
        keywords=[str(k).strip() for k in keywords if str(k).strip()],
    )


def describe_image(image: Path, language: str, lmstudio: LMStudioClient, model: str | None = None) -> ImageDescription:
    answer = invoke_llm_query(
        KEYWORDS_PROMPT.format(language=language),
        model=model,
        temperature=0.0,
        attachments=[image],
        client=lmstudio,
    )
    return parse_description(answer)


def update_image_metadata(
    path: str | Path,
    lmstudio: LMStudioClient | None = None,
    deepstack: DeepStackClient | None = None,
    force: bool = False,
    language: str | None = None,
    model: str | None = None,
) -> ImageMetadata:
    """Fill in the missing parts of an image's metadata sidecar.

    Descriptions come from LM Studio, people, objects and scenes from
    DeepStack; a client left as None skips its parts. Descriptions in another
    language than the requested one are regenerated.
    """
    image = validate_image_file(path)
    language = get_ai_meta_language(language)
    metadata = load_image_metadata(image)
    if force:
        # only the parts of the services being asked are recomputed
        if lmstudio is not None:
            metadata.description = None
        if deepstack is not None:
            metadata.people = metadata.objects = metadata.scenes = None

    if lmstudio is not None and (metadata.description is None or metadata.language != language):
        metadata.description = describe_image(image, language, lmstudio, model=model)
        metadata.language = language

    if deepstack is not None:
        if metadata.people is None:
            metadata.people = sorted({p.label for p in deepstack.recognize_faces(image) if p.label != "unknown"})
        if metadata.objects is None:
            metadata.objects = sorted({p.label for p in deepstack.detect_objects(image)})
        if metadata.scenes is None:
            metadata.scenes = [deepstack.classify_scene(image).label]

    save_image_metadata(image, metadata)
    return metadata


def update_all_image_metadata(
    directories: Iterable[str | Path] | None = None,
    lmstudio: LMStudioClient | None = None,
    deepstack: DeepStackClient | None = None,
    force: bool = False,
    language: str | None = None,
) -> int:
    updated = 0
    for image in iter_images(directories or get_ai_image_collection()):
        try:
            update_image_metadata(image, lmstudio=lmstudio, deepstack=deepstack, force=force, language=language)
        except GenXAIError as exc:
            logger.warning("Failed to update metadata for %s: %s", image, exc)
            continue
        updated += 1
    return updated
