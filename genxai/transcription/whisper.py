from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

from genxai.config import Settings, load_settings
from genxai.errors import ServiceError
from genxai.queries.languages import language_code, normalize_language
from genxai.service import ServiceClient

logger = logging.getLogger(__name__)


class TranscriptionClient(ServiceClient):
    service_name = "Transcription"

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "TranscriptionClient":
        settings = settings or load_settings()
        endpoint = settings.services.transcription
        return cls(endpoint.url, endpoint.timeout)

    def transcribe_file(self, path: Path, language: str | None = None, model: str = "whisper-1") -> dict[str, Any]:
        data = {"model": model, "response_format": "verbose_json"}
        if language:
            data["language"] = language
        with path.open("rb") as fh:
            body = self.post_json("/v1/audio/transcriptions", files={"file": (path.name, fh)}, data=data)
        if not isinstance(body, dict):
            raise ServiceError(self.service_name, "transcription response was not an object")
        return body


def whisper_language(language: str | None) -> str | None:
    if not language:
        return None
    if len(language) == 2 and language.isalpha():
        return language.lower()
    name = normalize_language(language)
    if name is None:
        raise ValueError(f"Unsupported language: {language}")
    code = language_code(name)
    if code is None:
        logger.debug("No whisper code for %s; letting the server detect the language", name)
    return code


def _timestamp(seconds: float) -> str:
    millis = max(0, int(round(seconds * 1000)))
    hours, millis = divmod(millis, 3_600_000)
    minutes, millis = divmod(millis, 60_000)
    secs, millis = divmod(millis, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def segments_to_srt(segments: Iterable[dict[str, Any]]) -> str:
    blocks: list[str] = []
    index = 0
    for segment in segments:
        text = str(segment.get("text", "")).strip()
        if not text:
            continue
        index += 1
        start = _timestamp(float(segment.get("start", 0.0)))
        end = _timestamp(float(segment.get("end", 0.0)))
        blocks.append(f"{index}\n{start} --> {end}\n{text}\n")
    return "\n".join(blocks)


def transcribe(
    path: str | Path,
    language: str | None = None,
    srt: bool = False,
    model: str = "whisper-1",
    client: TranscriptionClient | None = None,
) -> str:
    """Transcribe an audio or video file, optionally as SRT subtitles."""
    source = Path(path).expanduser()
    if not source.is_file():
        raise FileNotFoundError(f"Audio file not found: {source}")

    client = client or TranscriptionClient.from_settings()
    body = client.transcribe_file(source, language=whisper_language(language), model=model)
    if srt:
        segments = body.get("segments") or []
        if not segments and body.get("text"):
            duration = float(body.get("duration", 0.0))
            segments = [{"start": 0.0, "end": duration, "text": body["text"]}]
        return segments_to_srt(segments)
    return str(body.get("text", "")).strip()
