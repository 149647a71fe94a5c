from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from urllib.parse import quote_plus

from genxai.errors import GenXAIError
from genxai.queries.images import validate_image_file

from .paths import get_comfyui_base_path

logger = logging.getLogger(__name__)

BACKGROUND_SETTING = "Comfy.Canvas.BackgroundImage"
BACKGROUND_FORMATS = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp")


def _settings_path(comfy_path: Path) -> Path:
    return comfy_path / "user" / "default" / "comfy.settings.json"


def background_url(file_name: str) -> str:
    encoded = quote_plus(f"backgrounds/{file_name}")
    return f"/api/view?filename={encoded}&type=input&subfolder=backgrounds"


def set_comfyui_background_image(
    image_path: str | Path | None = None,
    clear: bool = False,
    comfy_path: str | Path | None = None,
) -> str | None:
    if not clear and not image_path:
        raise ValueError("image_path is required unless clear is set")

    base = Path(comfy_path) if comfy_path else get_comfyui_base_path()
    settings_path = _settings_path(base)
    backgrounds_dir = base / "input" / "backgrounds"
    logger.debug("ComfyUI path: %s", base)

    if not settings_path.is_file():
        raise FileNotFoundError(
            f"ComfyUI settings file not found at: {settings_path}. Please ensure ComfyUI has been run at least once."
        )
    try:
        settings = json.loads(settings_path.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError as exc:
        raise GenXAIError(f"Failed to read ComfyUI settings file: {exc}") from exc
    if not isinstance(settings, dict):
        raise GenXAIError("ComfyUI settings file does not contain an object")

    url: str | None = None
    if clear:
        if settings.pop(BACKGROUND_SETTING, None) is None:
            logger.debug("No background image was configured")
    else:
        image = validate_image_file(image_path, extensions=BACKGROUND_FORMATS)
        backgrounds_dir.mkdir(parents=True, exist_ok=True)
        destination = backgrounds_dir / image.name
        shutil.copyfile(image, destination)
        logger.debug("Copied background image to: %s", destination)
        url = background_url(image.name)
        settings[BACKGROUND_SETTING] = url

    settings_path.write_text(json.dumps(settings, indent=2), encoding="utf-8")
    logger.debug("Updated ComfyUI settings file")
    return url
