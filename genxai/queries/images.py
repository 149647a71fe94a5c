from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from genxai.errors import ImageValidationError

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp", ".tiff", ".tif")


def validate_image_file(path: str | Path, extensions: Iterable[str] = IMAGE_EXTENSIONS) -> Path:
    image = Path(path).expanduser()
    if not image.is_file():
        raise FileNotFoundError(f"Image file not found: {image}")
    allowed = tuple(extensions)
    if image.suffix.lower() not in allowed:
        names = ", ".join(ext.lstrip(".") for ext in allowed)
        raise ImageValidationError(f"Invalid image format. Supported formats: {names}")
    return image


def iter_images(directories: Iterable[str | Path], recurse: bool = True) -> Iterator[Path]:
    for directory in directories:
        root = Path(directory).expanduser()
        if not root.is_dir():
            continue
        candidates = root.rglob("*") if recurse else root.glob("*")
        for candidate in sorted(candidates):
            if candidate.is_file() and candidate.suffix.lower() in IMAGE_EXTENSIONS:
                yield candidate
