from __future__ import annotations

import logging
from pathlib import Path

from genxai.config import load_settings
from genxai.errors import PreferenceError

from .languages import get_default_web_language, normalize_language
from .preferences import get_preference, set_preference

logger = logging.getLogger(__name__)

META_LANGUAGE = "AIMetaLanguage"
KNOWN_FACES_ROOTPATH = "AIKnownFacesRootpath"
IMAGE_INDEX_PATH = "ImageIndexPath"
IMAGE_COLLECTION = "AIImageCollection"


def _expand(path: str | Path) -> str:
    return str(Path(path).expanduser().resolve())


def _validated_language(language: str) -> str:
    normalized = normalize_language(language)
    if normalized is None:
        raise PreferenceError(f"Unsupported language: {language}")
    return normalized


def get_ai_meta_language(
    language: str | None = None,
    *,
    preferences_path: str | Path | None = None,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> str:
    if language and language.strip():
        return _validated_language(language)
    return str(
        get_preference(
            META_LANGUAGE,
            get_default_web_language(),
            preferences_path=preferences_path,
            session_only=session_only,
            clear_session=clear_session,
            skip_session=skip_session,
        )
    )


def set_ai_meta_language(
    language: str | None = None,
    *,
    preferences_path: str | Path | None = None,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> None:
    value = _validated_language(language) if language and language.strip() else get_default_web_language()
    set_preference(
        META_LANGUAGE,
        value,
        preferences_path=preferences_path,
        session_only=session_only,
        clear_session=clear_session,
        skip_session=skip_session,
    )


def default_pictures_path() -> Path:
    return Path.home() / "Pictures"


def get_ai_known_faces_rootpath(
    faces_directory: str | None = None,
    *,
    preferences_path: str | Path | None = None,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> str:
    if faces_directory and faces_directory.strip():
        return _expand(faces_directory)
    value = get_preference(
        KNOWN_FACES_ROOTPATH,
        str(default_pictures_path() / "Faces"),
        preferences_path=preferences_path,
        session_only=session_only,
        clear_session=clear_session,
        skip_session=skip_session,
    )
    return _expand(value)


def set_ai_known_faces_rootpath(
    faces_directory: str | None = None,
    *,
    preferences_path: str | Path | None = None,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> None:
    path = faces_directory if faces_directory and faces_directory.strip() else default_pictures_path() / "Faces"
    set_preference(
        KNOWN_FACES_ROOTPATH,
        _expand(path),
        preferences_path=preferences_path,
        session_only=session_only,
        clear_session=clear_session,
        skip_session=skip_session,
    )


def get_image_index_path(
    *,
    preferences_path: str | Path | None = None,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> str:
    default = str(load_settings().state_dir / "images.sqlite3")
    return _expand(
        get_preference(
            IMAGE_INDEX_PATH,
            default,
            preferences_path=preferences_path,
            session_only=session_only,
            clear_session=clear_session,
            skip_session=skip_session,
        )
    )


def set_image_index_path(
    database_file_path: str | None = None,
    *,
    preferences_path: str | Path | None = None,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> None:
    if clear_session:
        set_preference(IMAGE_INDEX_PATH, None, clear_session=True)
        return
    if not database_file_path or not database_file_path.strip():
        raise PreferenceError("database_file_path is required when not clearing the session")

    expanded = Path(_expand(database_file_path))
    if not expanded.parent.exists():
        expanded.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Created parent directory: %s", expanded.parent)

    set_preference(
        IMAGE_INDEX_PATH,
        str(expanded),
        preferences_path=preferences_path,
        session_only=session_only,
        skip_session=skip_session,
    )


def get_ai_image_collection(
    *,
    preferences_path: str | Path | None = None,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> list[str]:
    value = get_preference(
        IMAGE_COLLECTION,
        [str(default_pictures_path())],
        preferences_path=preferences_path,
        session_only=session_only,
        clear_session=clear_session,
        skip_session=skip_session,
    )
    if isinstance(value, str):
        value = [value]
    return [_expand(item) for item in value or []]


def _dedupe(directories: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for directory in directories:
        key = directory.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(directory)
    return out


def set_ai_image_collection(
    image_directories: list[str],
    *,
    preferences_path: str | Path | None = None,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> list[str]:
    directories = _dedupe([_expand(item) for item in image_directories])
    set_preference(
        IMAGE_COLLECTION,
        directories,
        preferences_path=preferences_path,
        session_only=session_only,
        clear_session=clear_session,
        skip_session=skip_session,
    )
    return directories


def add_image_directories(
    image_directories: list[str],
    *,
    preferences_path: str | Path | None = None,
    session_only: bool = False,
    clear_session: bool = False,
    skip_session: bool = False,
) -> list[str]:
    if not image_directories:
        raise PreferenceError("At least one image directory is required")

    current = get_ai_image_collection(
        preferences_path=preferences_path,
        session_only=session_only,
        clear_session=clear_session,
        skip_session=skip_session,
    )
    logger.debug("Current image directories: [%s]", ", ".join(current))

    merged = list(current)
    for directory in image_directories:
        expanded = _expand(directory)
        if any(existing.lower() == expanded.lower() for existing in merged):
            logger.debug("Directory already exists: %s", expanded)
            continue
        logger.debug("Adding directory: %s", expanded)
        merged.append(expanded)

    return set_ai_image_collection(
        merged,
        preferences_path=preferences_path,
        session_only=session_only,
        skip_session=skip_session,
    )
