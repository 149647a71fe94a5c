from __future__ import annotations

import logging
import time

import psutil

logger = logging.getLogger(__name__)

COMFYUI_PROCESS_NAME = "comfyui"


def _comfyui_processes() -> list[psutil.Process]:
    found: list[psutil.Process] = []
    for proc in psutil.process_iter(["name"]):
        name = (proc.info.get("name") or "").lower()
        if name.endswith(".exe"):
            name = name[:-4]
        if name == COMFYUI_PROCESS_NAME:
            found.append(proc)
    return found


def stop_comfyui() -> int:
    processes = _comfyui_processes()
    if not processes:
        logger.debug("No ComfyUI processes found running")
        return 0

    logger.debug("Found %d ComfyUI process(es) to terminate", len(processes))
    stopped = 0
    for proc in processes:
        try:
            proc.kill()
            stopped += 1
        except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
            logger.warning("Failed to stop ComfyUI process %s: %s", proc.pid, exc)

    time.sleep(0.5)
    if _comfyui_processes():
        logger.warning("Some ComfyUI processes could not be terminated")
    return stopped
