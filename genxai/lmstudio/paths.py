from __future__ import annotations

import logging
import os
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LMStudioPaths:
    lmstudio_exe: str | None
    lms_exe: str | None


_cached: LMStudioPaths | None = None


def _local_appdata() -> Path:
    value = os.environ.get("LOCALAPPDATA", "").strip()
    return Path(value) if value else Path.home() / "AppData" / "Local"


def lmstudio_candidates() -> list[Path]:
    if sys.platform == "win32":
        local = _local_appdata()
        return [
            local / "LM-Studio" / "lm studio.exe",
            local / "Programs" / "LM-Studio" / "lm studio.exe",
            local / "Programs" / "LM Studio" / "lm studio.exe",
        ]
    if sys.platform == "darwin":
        return [Path("/Applications/LM Studio.app/Contents/MacOS/LM Studio")]
    return [
        Path.home() / "Applications" / "LM-Studio.AppImage",
        Path.home() / ".local" / "bin" / "lm-studio",
    ]


def lms_candidates() -> list[Path]:
    home = Path.home()
    if sys.platform == "win32":
        local = _local_appdata()
        return [
            home / ".cache" / "lm-studio" / "bin" / "lms.exe",
            home / ".lmstudio" / "bin" / "lms.exe",
            local / "LM-Studio" / "lms.exe",
            local / "Programs" / "LM-Studio" / "lms.exe",
            local / "Programs" / "LM Studio" / "lms.exe",
            local / "Programs" / "LM Studio" / "resources" / "app" / ".webpack" / "lms.exe",
        ]
    return [
        home / ".cache" / "lm-studio" / "bin" / "lms",
        home / ".lmstudio" / "bin" / "lms",
    ]


def _first_existing(paths: list[Path]) -> str | None:
    for path in paths:
        if path.is_file():
            return str(path)
    return None


def get_lmstudio_paths() -> LMStudioPaths:
    global _cached
    if _cached is not None and _cached.lmstudio_exe and _cached.lms_exe:
        return _cached

    logger.debug("Searching for LM Studio executables")
    lmstudio_exe = _first_existing(lmstudio_candidates()) or shutil.which("lm-studio")
    lms_exe = _first_existing(lms_candidates()) or shutil.which("lms")
    logger.debug("Found LM Studio: %s", lmstudio_exe)
    logger.debug("Found LMS: %s", lms_exe)

    _cached = LMStudioPaths(lmstudio_exe=lmstudio_exe, lms_exe=lms_exe)
    return _cached


def clear_paths_cache() -> None:
    global _cached
    _cached = None


def is_lmstudio_installed() -> bool:
    paths = get_lmstudio_paths()
    return bool(
        paths.lms_exe
        and Path(paths.lms_exe).is_file()
        and paths.lmstudio_exe
        and Path(paths.lmstudio_exe).is_file()
    )
