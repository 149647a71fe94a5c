from __future__ import annotations

import logging

from genxai.config import Settings
from genxai.lmstudio.client import LMStudioClient
from genxai.lmstudio.query import invoke_llm_query
from genxai.queries.languages import normalize_language

logger = logging.getLogger(__name__)

TRANSLATOR_INSTRUCTIONS = (
    "Translate the text the user sends into {language}. Keep line breaks, formatting, "
    "markdown, code and names exactly as they are. Respond with the translation only, "
    "without comments or explanations."
)


def split_chunks(text: str, chunk_size: int = 2000) -> list[str]:
    """Split text at line boundaries into pieces no longer than chunk_size.

    Line endings stay attached to their line so joining the chunks gives back
    the original text. A line longer than chunk_size is cut hard.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    chunks: list[str] = []
    current = ""
    for line in text.splitlines(keepends=True):
        while len(line) > chunk_size:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:chunk_size])
            line = line[chunk_size:]
        if len(current) + len(line) > chunk_size:
            chunks.append(current)
            current = ""
        current += line
    if current:
        chunks.append(current)
    return chunks


def _leading_break(chunk: str) -> str:
    return chunk[: len(chunk) - len(chunk.lstrip("\r\n"))]


def _trailing_break(chunk: str) -> str:
    stripped = chunk.rstrip("\r\n")
    return chunk[len(stripped):]


def translate_text(
    text: str,
    language: str = "English",
    instructions: str = "",
    model: str | None = None,
    chunk_size: int = 2000,
    client: LMStudioClient | None = None,
    settings: Settings | None = None,
) -> str:
    if not text:
        return ""
    target = normalize_language(language)
    if target is None:
        raise ValueError(f"Unsupported language: {language}")

    system = TRANSLATOR_INSTRUCTIONS.format(language=target)
    if instructions:
        system = f"{system}\n{instructions}"

    parts: list[str] = []
    chunks = split_chunks(text, chunk_size)
    for idx, chunk in enumerate(chunks, start=1):
        if not chunk.strip():
            parts.append(chunk)
            continue
        logger.debug("Translating chunk %d/%d (%d chars)", idx, len(chunks), len(chunk))
        translated = invoke_llm_query(
            chunk,
            instructions=system,
            model=model,
            temperature=0.0,
            client=client,
            settings=settings,
        )
        parts.append(_leading_break(chunk) + translated + _trailing_break(chunk))
    return "".join(parts)
