from __future__ import annotations

import logging
import shutil
import subprocess

import psutil

logger = logging.getLogger(__name__)

CAPABLE_GPU_BYTES = 4 * 1024 * 1024 * 1024


def get_number_of_cpu_cores() -> int:
    """Logical core count, computed as physical cores times two."""
    physical = psutil.cpu_count(logical=False)
    if not physical:
        logical = psutil.cpu_count(logical=True) or 1
        logger.debug("Physical core count unavailable, using %d logical cores", logical)
        return logical
    logger.debug("Found %d physical cores", physical)
    return physical * 2


def get_cpu_core() -> int:
    return get_number_of_cpu_cores()


def _gpu_memory_bytes() -> list[int]:
    exe = shutil.which("nvidia-smi")
    if exe is None:
        return []
    try:
        proc = subprocess.run(
            [exe, "--query-gpu=memory.total", "--format=csv,noheader,nounits"],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("nvidia-smi failed: %s", exc)
        return []
    if proc.returncode != 0:
        return []
    out: list[int] = []
    for line in proc.stdout.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            out.append(int(float(line)) * 1024 * 1024)
        except ValueError:
            continue
    return out


def get_has_capable_gpu(min_bytes: int = CAPABLE_GPU_BYTES) -> bool:
    capable = [size for size in _gpu_memory_bytes() if size >= min_bytes]
    logger.debug("Detected %d GPUs with at least %d bytes", len(capable), min_bytes)
    return bool(capable)
