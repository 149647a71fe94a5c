from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path
from typing import Any

from genxai.config import Settings, load_settings
from genxai.errors import GenXAIError, ServiceError
from genxai.service import ServiceClient

logger = logging.getLogger(__name__)


class ComfyUIClient(ServiceClient):
    service_name = "ComfyUI"

    def __init__(self, base_url: str, timeout: float = 30.0, client_id: str | None = None):
        super().__init__(base_url, timeout)
        self.client_id = client_id or uuid.uuid4().hex

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ComfyUIClient":
        settings = settings or load_settings()
        endpoint = settings.services.comfyui
        return cls(endpoint.url, endpoint.timeout)

    def queue_status(self) -> dict[str, list]:
        body = self.get_json("/queue")
        if not isinstance(body, dict):
            raise ServiceError(self.service_name, "queue response was not an object")
        return {
            "queue_running": list(body.get("queue_running", [])),
            "queue_pending": list(body.get("queue_pending", [])),
        }

    def is_queue_empty(self) -> bool:
        # an unreachable server has nothing queued
        try:
            status = self.queue_status()
        except GenXAIError as exc:
            logger.debug("Queue status unavailable, treating as empty: %s", exc)
            return True
        return not status["queue_running"] and not status["queue_pending"]

    def list_checkpoints(self) -> list[str]:
        body = self.get_json("/object_info/CheckpointLoaderSimple")
        try:
            names = body["CheckpointLoaderSimple"]["input"]["required"]["ckpt_name"][0]
        except (KeyError, IndexError, TypeError):
            return []
        return [str(name) for name in names]

    def queue_prompt(self, workflow: dict[str, Any]) -> str:
        body = self.post_json("/prompt", json={"prompt": workflow, "client_id": self.client_id})
        if not isinstance(body, dict) or "prompt_id" not in body:
            detail = body.get("error") if isinstance(body, dict) else body
            raise ServiceError(self.service_name, f"prompt was rejected: {detail}")
        prompt_id = str(body["prompt_id"])
        logger.debug("Queued prompt %s", prompt_id)
        return prompt_id

    def history(self, prompt_id: str) -> dict[str, Any] | None:
        body = self.get_json(f"/history/{prompt_id}")
        if not isinstance(body, dict):
            return None
        entry = body.get(prompt_id)
        return entry if isinstance(entry, dict) else None

    def wait_for_prompt(self, prompt_id: str, poll_interval: float = 1.0, timeout: float = 600.0) -> dict[str, Any]:
        deadline = time.monotonic() + timeout
        while True:
            entry = self.history(prompt_id)
            if entry is not None:
                status = entry.get("status") or {}
                if status.get("status_str") == "error":
                    raise ServiceError(self.service_name, f"prompt {prompt_id} failed")
                if status.get("completed", True):
                    return entry
            if time.monotonic() >= deadline:
                raise TimeoutError(f"ComfyUI prompt {prompt_id} did not finish within {timeout} seconds")
            time.sleep(poll_interval)

    @staticmethod
    def output_images(entry: dict[str, Any]) -> list[dict[str, str]]:
        images: list[dict[str, str]] = []
        for node_output in (entry.get("outputs") or {}).values():
            for image in node_output.get("images", []):
                images.append(
                    {
                        "filename": str(image.get("filename", "")),
                        "subfolder": str(image.get("subfolder", "")),
                        "type": str(image.get("type", "output")),
                    }
                )
        return images

    def download_image(self, filename: str, subfolder: str = "", folder_type: str = "output") -> bytes:
        response = self.get("/view", params={"filename": filename, "subfolder": subfolder, "type": folder_type})
        return response.content

    def upload_image(self, path: str | Path, overwrite: bool = True) -> str:
        image = Path(path)
        if not image.is_file():
            raise FileNotFoundError(f"Image file not found: {image}")
        with image.open("rb") as fh:
            body = self.post_json(
                "/upload/image",
                files={"image": (image.name, fh)},
                data={"overwrite": "true" if overwrite else "false"},
            )
        return str(body.get("name", image.name)) if isinstance(body, dict) else image.name


def is_comfyui_queue_empty(client: ComfyUIClient | None = None) -> bool:
    return (client or ComfyUIClient.from_settings()).is_queue_empty()
