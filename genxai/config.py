from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from genxai.errors import SettingsError

DEFAULT_SETTINGS_PATH = Path("~/.genxai/settings.yaml")
DEFAULT_STATE_DIR = Path("~/.genxai")


@dataclass(slots=True)
class ServiceEndpoint:
    url: str
    timeout: float = 30.0


@dataclass(slots=True)
class ServicesConfig:
    lmstudio: ServiceEndpoint = field(default_factory=lambda: ServiceEndpoint("http://localhost:1234", 120.0))
    deepstack: ServiceEndpoint = field(default_factory=lambda: ServiceEndpoint("http://localhost:5000", 30.0))
    comfyui: ServiceEndpoint = field(default_factory=lambda: ServiceEndpoint("http://127.0.0.1:8188", 30.0))
    transcription: ServiceEndpoint = field(default_factory=lambda: ServiceEndpoint("http://localhost:8000", 300.0))


@dataclass(slots=True)
class LMStudioConfig:
    model: str = ""
    temperature: float = 0.2
    max_tokens: int = -1
    port: int = 1234


@dataclass(slots=True)
class Settings:
    state_dir: Path = field(default_factory=lambda: DEFAULT_STATE_DIR.expanduser())
    services: ServicesConfig = field(default_factory=ServicesConfig)
    lmstudio: LMStudioConfig = field(default_factory=LMStudioConfig)
    tools: dict = field(default_factory=dict)

    @property
    def audit_dir(self) -> Path:
        return self.state_dir / "audit"

    @property
    def preferences_path(self) -> Path:
        return self.state_dir / "preferences.jsonl"


_ENV_OVERRIDES = {
    "GENXAI_LMSTUDIO_URL": "lmstudio",
    "GENXAI_DEEPSTACK_URL": "deepstack",
    "GENXAI_COMFYUI_URL": "comfyui",
    "GENXAI_TRANSCRIBE_URL": "transcription",
}


def _ensure_mapping(value: object, field_name: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SettingsError(f"{field_name} must be a mapping")
    return value


def _endpoint(data: dict, name: str, default: ServiceEndpoint) -> ServiceEndpoint:
    item = data.get(name)
    if item is None:
        return default
    if isinstance(item, str):
        return ServiceEndpoint(url=item, timeout=default.timeout)
    item = _ensure_mapping(item, f"services.{name}")
    try:
        timeout = float(item.get("timeout", default.timeout))
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"services.{name}.timeout must be a number") from exc
    return ServiceEndpoint(url=str(item.get("url", default.url)), timeout=timeout)


def resolve_settings_path(path: str | Path | None = None) -> Path:
    if path:
        return Path(path).expanduser()
    env_path = os.environ.get("GENXAI_SETTINGS", "").strip()
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_SETTINGS_PATH.expanduser()


def load_settings(path: str | Path | None = None) -> Settings:
    path_obj = resolve_settings_path(path)
    data: dict = {}
    if path_obj.exists():
        try:
            data = yaml.safe_load(path_obj.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise SettingsError(f"Invalid settings file {path_obj}: {exc}") from exc
        if not isinstance(data, dict):
            raise SettingsError("Settings must be a mapping")

    defaults = ServicesConfig()
    services_data = _ensure_mapping(data.get("services"), "services")
    services = ServicesConfig(
        lmstudio=_endpoint(services_data, "lmstudio", defaults.lmstudio),
        deepstack=_endpoint(services_data, "deepstack", defaults.deepstack),
        comfyui=_endpoint(services_data, "comfyui", defaults.comfyui),
        transcription=_endpoint(services_data, "transcription", defaults.transcription),
    )

    lms_data = _ensure_mapping(data.get("lmstudio"), "lmstudio")
    try:
        lmstudio = LMStudioConfig(
            model=str(lms_data.get("model", "")),
            temperature=float(lms_data.get("temperature", 0.2)),
            max_tokens=int(lms_data.get("max_tokens", -1)),
            port=int(lms_data.get("port", 1234)),
        )
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"Invalid lmstudio settings: {exc}") from exc

    state_dir = Path(str(data.get("state_dir", DEFAULT_STATE_DIR))).expanduser()
    tools = _ensure_mapping(data.get("tools"), "tools")

    settings = Settings(state_dir=state_dir, services=services, lmstudio=lmstudio, tools=tools)
    _apply_env_overrides(settings)
    return settings


def _apply_env_overrides(settings: Settings) -> None:
    for env_name, service in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name, "").strip()
        if value:
            getattr(settings.services, service).url = value
    state_dir = os.environ.get("GENXAI_STATE_DIR", "").strip()
    if state_dir:
        settings.state_dir = Path(state_dir).expanduser()
