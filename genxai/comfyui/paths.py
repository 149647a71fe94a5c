from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

ELECTRON_INSTALL = Path("Programs") / "@comfyorgcomfyui-electron" / "resources" / "ComfyUI"


@dataclass(slots=True)
class ModelPathCandidate:
    path: Path
    configured: bool


def comfyui_base_paths() -> list[Path]:
    bases: list[Path] = []
    override = os.environ.get("GENXAI_COMFYUI_PATH", "").strip()
    if override:
        bases.append(Path(override).expanduser().resolve())
    local_appdata = os.environ.get("LOCALAPPDATA", "").strip()
    if local_appdata:
        bases.append((Path(local_appdata) / ELECTRON_INSTALL).resolve())
    else:
        logger.debug("LOCALAPPDATA not set; using current directory fallback for ComfyUI")
        bases.append((Path.cwd() / "ComfyUI").resolve())
    return bases


def get_comfyui_base_path() -> Path:
    bases = comfyui_base_paths()
    for base in bases:
        if base.is_dir():
            return base
    return bases[0]


def _first_entry(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return None


def _configured_path(yaml_path: Path, subfolder: str) -> Path | None:
    try:
        data = yaml.safe_load(yaml_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Cannot read %s: %s", yaml_path, exc)
        return None
    if not isinstance(data, dict):
        return None

    sections = [data["custom"]] if isinstance(data.get("custom"), dict) else []
    sections += [section for key, section in data.items() if key != "custom" and isinstance(section, dict)]
    for section in sections:
        entry = _first_entry(section.get(subfolder))
        if entry is None:
            continue
        base = _first_entry(section.get("base_path"))
        path = Path(base) / entry if base else Path(entry)
        logger.debug("Configured path for %s from %s: %s", subfolder, yaml_path, path)
        return path.expanduser().resolve()

    direct = data.get(subfolder)
    entry = None if isinstance(direct, dict) else _first_entry(direct)
    if entry is not None:
        path = Path(entry)
        if not path.is_absolute():
            path = yaml_path.parent / path
        logger.debug("Direct path for %s from %s: %s", subfolder, yaml_path, path)
        return path.expanduser().resolve()
    return None


def _candidates(subfolder: str) -> list[ModelPathCandidate]:
    out: list[ModelPathCandidate] = []
    for base in comfyui_base_paths():
        yaml_path = base / "extra_model_paths.yaml"
        if subfolder and yaml_path.is_file():
            configured = _configured_path(yaml_path, subfolder)
            if configured is not None:
                out.append(ModelPathCandidate(configured, configured=True))
                continue
        sub_path = Path("models") / subfolder if subfolder else Path()
        out.append(ModelPathCandidate((base / sub_path).resolve(), configured=False))
    return out


def get_comfyui_model_path(subfolder: str = "checkpoints", return_all: bool = False) -> Path | list[Path]:
    candidates = _candidates(subfolder)
    if return_all:
        return [candidate.path for candidate in candidates]

    for candidate in candidates:
        if candidate.configured:
            logger.debug("Using custom configured path: %s", candidate.path)
            return candidate.path
        if candidate.path.exists():
            logger.debug("Found existing path: %s", candidate.path)
            return candidate.path

    for base in comfyui_base_paths():
        if base.is_dir():
            preferred = (base / "models" / subfolder) if subfolder else base
            logger.debug("Installation at %s, preferred: %s", base, preferred)
            return preferred

    logger.debug("Fallback: %s", candidates[0].path)
    return candidates[0].path
