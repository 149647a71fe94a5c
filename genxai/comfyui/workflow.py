from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Any

from genxai.errors import ServiceError

from .client import ComfyUIClient

logger = logging.getLogger(__name__)


def build_text_to_image_workflow(
    prompt: str,
    negative_prompt: str = "",
    model: str = "",
    width: int = 1024,
    height: int = 1024,
    steps: int = 20,
    cfg: float = 7.0,
    seed: int | None = None,
    sampler: str = "euler",
    scheduler: str = "normal",
    filename_prefix: str = "genxai",
) -> dict[str, Any]:
    """Build the default checkpoint -> KSampler -> SaveImage graph in API format."""
    if not prompt.strip():
        raise ValueError("prompt must be a non-empty string")
    if seed is None:
        seed = random.randint(0, 2**32 - 1)
    return {
        "3": {
            "class_type": "KSampler",
            "inputs": {
                "seed": seed,
                "steps": steps,
                "cfg": cfg,
                "sampler_name": sampler,
                "scheduler": scheduler,
                "denoise": 1.0,
                "model": ["4", 0],
                "positive": ["6", 0],
                "negative": ["7", 0],
                "latent_image": ["5", 0],
            },
        },
        "4": {"class_type": "CheckpointLoaderSimple", "inputs": {"ckpt_name": model}},
        "5": {"class_type": "EmptyLatentImage", "inputs": {"width": width, "height": height, "batch_size": 1}},
        "6": {"class_type": "CLIPTextEncode", "inputs": {"text": prompt, "clip": ["4", 1]}},
        "7": {"class_type": "CLIPTextEncode", "inputs": {"text": negative_prompt, "clip": ["4", 1]}},
        "8": {"class_type": "VAEDecode", "inputs": {"samples": ["3", 0], "vae": ["4", 2]}},
        "9": {"class_type": "SaveImage", "inputs": {"filename_prefix": filename_prefix, "images": ["8", 0]}},
    }


def generate_image(
    prompt: str,
    output_dir: str | Path,
    negative_prompt: str = "",
    model: str | None = None,
    width: int = 1024,
    height: int = 1024,
    steps: int = 20,
    cfg: float = 7.0,
    seed: int | None = None,
    timeout: float = 600.0,
    poll_interval: float = 1.0,
    client: ComfyUIClient | None = None,
) -> list[Path]:
    client = client or ComfyUIClient.from_settings()
    if not model:
        checkpoints = client.list_checkpoints()
        if not checkpoints:
            raise ServiceError(client.service_name, "no checkpoint models are available")
        model = checkpoints[0]
        logger.debug("Using checkpoint %s", model)

    workflow = build_text_to_image_workflow(
        prompt,
        negative_prompt=negative_prompt,
        model=model,
        width=width,
        height=height,
        steps=steps,
        cfg=cfg,
        seed=seed,
    )
    prompt_id = client.queue_prompt(workflow)
    entry = client.wait_for_prompt(prompt_id, poll_interval=poll_interval, timeout=timeout)

    out_dir = Path(output_dir).expanduser()
    out_dir.mkdir(parents=True, exist_ok=True)
    saved: list[Path] = []
    for image in client.output_images(entry):
        data = client.download_image(image["filename"], image["subfolder"], image["type"])
        target = out_dir / Path(image["filename"]).name
        target.write_bytes(data)
        saved.append(target)
    logger.debug("Saved %d image(s) for prompt %s", len(saved), prompt_id)
    return saved
