from __future__ import annotations

from typing import Any

from genxai.config import Settings, load_settings
from genxai.service import ServiceClient


class LMStudioClient(ServiceClient):
    service_name = "LM Studio"

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "LMStudioClient":
        settings = settings or load_settings()
        endpoint = settings.services.lmstudio
        return cls(endpoint.url, endpoint.timeout)

    def list_models(self) -> list[dict[str, Any]]:
        body = self.get_json("/v1/models")
        return list(body.get("data", [])) if isinstance(body, dict) else []

    def chat(
        self,
        messages: list[dict[str, Any]],
        model: str = "",
        temperature: float = 0.2,
        max_tokens: int = -1,
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False,
        }
        if model:
            payload["model"] = model
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        return self.post_json("/v1/chat/completions", json=payload)

    def embeddings(self, texts: list[str], model: str = "") -> list[list[float]]:
        payload: dict[str, Any] = {"input": texts}
        if model:
            payload["model"] = model
        body = self.post_json("/v1/embeddings", json=payload)
        items = sorted(body.get("data", []), key=lambda item: item.get("index", 0))
        return [list(item.get("embedding", [])) for item in items]
