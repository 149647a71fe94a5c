from __future__ import annotations

import base64
import json
import logging
import os
import shutil
import subprocess
import sys
import time
from typing import Any, Callable

import psutil

from genxai.errors import GenXAIError, NotInstalledError

from .paths import clear_paths_cache, get_lmstudio_paths, is_lmstudio_installed

logger = logging.getLogger(__name__)

LMSTUDIO_PROCESS_NAME = "lm studio"
LMSTUDIO_WINGET_ID = "ElementLabs.LMStudio"

ConsentFn = Callable[[str], bool]


def _process_name(proc: psutil.Process) -> str:
    name = (proc.info.get("name") or "").lower()
    return name[:-4] if name.endswith(".exe") else name


def find_lmstudio_processes(show_window: bool = False) -> list[psutil.Process]:
    found: list[psutil.Process] = []
    for proc in psutil.process_iter(["name", "cmdline"]):
        if _process_name(proc) != LMSTUDIO_PROCESS_NAME:
            continue
        if show_window and "--headless" in (proc.info.get("cmdline") or []):
            continue
        found.append(proc)
    return found


def is_lmstudio_running(show_window: bool = False) -> bool:
    return bool(find_lmstudio_processes(show_window=show_window))


def _winget_installed(winget: str) -> bool:
    proc = subprocess.run(
        [winget, "list", "--id", LMSTUDIO_WINGET_ID, "--exact"],
        capture_output=True,
        text=True,
        check=False,
    )
    return proc.returncode == 0 and LMSTUDIO_WINGET_ID.lower() in proc.stdout.lower()


def install_lmstudio(consent: ConsentFn | None = None, force: bool = False) -> bool:
    """Install LM Studio with winget.

    Nothing is installed unless `consent` approves or `force` is set.
    """
    winget = shutil.which("winget")
    if winget is None:
        raise NotInstalledError("winget is not available; install LM Studio from https://lmstudio.ai")

    logger.debug("Checking if LM Studio is already installed")
    if _winget_installed(winget):
        logger.debug("LM Studio is already installed")
        return False

    if not force and (consent is None or not consent("Install LM Studio (Element Labs) using WinGet?")):
        logger.warning("Installation consent denied for LM Studio")
        return False

    logger.info("Installing LM Studio")
    proc = subprocess.run(
        [
            winget,
            "install",
            "--id",
            LMSTUDIO_WINGET_ID,
            "--exact",
            "--accept-package-agreements",
            "--accept-source-agreements",
        ],
        capture_output=True,
        text=True,
        check=False,
    )
    if proc.returncode != 0:
        raise GenXAIError(f"Failed to install LM Studio: winget exited with {proc.returncode}")
    clear_paths_cache()
    return True


def start_lmstudio(
    show_window: bool = False,
    passthru: bool = False,
    timeout: float = 30,
    port: int = 1234,
    consent: ConsentFn | None = None,
    force_install: bool = False,
) -> psutil.Process | None:
    if not is_lmstudio_installed():
        logger.info("LM Studio not found, initiating installation")
        install_lmstudio(consent=consent, force=force_install)

    if not is_lmstudio_running(show_window=show_window) or show_window:
        paths = get_lmstudio_paths()
        if not paths.lmstudio_exe:
            raise NotInstalledError("LM Studio executable could not be located")

        if paths.lms_exe:
            subprocess.Popen([paths.lms_exe, "server", "start", "--port", str(port)])
            time.sleep(4)
        subprocess.Popen([paths.lmstudio_exe])
        time.sleep(4)

        logger.debug("Waiting for LM Studio process")
        started = time.monotonic()
        while not is_lmstudio_running():
            if time.monotonic() - started >= timeout:
                raise TimeoutError(f"LM Studio failed to start within {timeout} seconds")
            time.sleep(1)

    if passthru:
        processes = find_lmstudio_processes(show_window=True)
        return processes[0] if processes else None
    return None


def _run_lms_json(*args: str) -> Any:
    lms = get_lmstudio_paths().lms_exe
    if not lms or not is_lmstudio_installed():
        raise NotInstalledError("LM Studio is not installed or not found in expected location")

    logger.debug("Running %s %s", lms, " ".join(args))
    proc = subprocess.run([lms, *args, "--json"], capture_output=True, text=True, check=False)
    if proc.returncode != 0:
        raise GenXAIError(f"lms {' '.join(args)} failed: {proc.stderr.strip() or proc.returncode}")
    try:
        return json.loads(proc.stdout or "[]")
    except json.JSONDecodeError as exc:
        raise GenXAIError(f"lms {' '.join(args)} returned invalid JSON") from exc


def get_model_list() -> list[dict[str, Any]]:
    return list(_run_lms_json("ls"))


def get_loaded_model_list() -> list[dict[str, Any]]:
    return list(_run_lms_json("ps"))


def mcp_deeplink(server_name: str = "GenXdev", url: str = "http://localhost:2175/mcp") -> str:
    config = {"servers": {server_name: {"type": "http", "url": url}}}
    encoded = base64.b64encode(json.dumps(config, indent=4).encode("utf-8")).decode("ascii")
    return f"lmstudio://mcp?config={encoded}"


def _open_uri(uri: str) -> None:
    if sys.platform == "win32":
        os.startfile(uri)  # type: ignore[attr-defined]
        return
    opener = "open" if sys.platform == "darwin" else "xdg-open"
    subprocess.Popen([opener, uri])


def add_mcp_server(server_name: str = "GenXdev", url: str = "http://localhost:2175/mcp") -> str:
    deeplink = mcp_deeplink(server_name, url)
    logger.debug("Constructed LM Studio deeplink: %s", deeplink)
    _open_uri(deeplink)
    return deeplink
