from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from genxai.errors import NotInstalledError

logger = logging.getLogger(__name__)

DEFAULT_DIFF_TOOL = "WinMergeU.exe"


def invoke_diff_tool(
    source: str | Path,
    target: str | Path,
    wait: bool = False,
    executable: str = DEFAULT_DIFF_TOOL,
) -> int | None:
    exe = shutil.which(executable)
    if exe is None:
        raise NotInstalledError(f"Diff tool not found on PATH: {executable}")

    source_path = Path(source).expanduser().resolve()
    target_path = Path(target).expanduser().resolve()
    logger.debug("Comparing %s with %s using %s", source_path, target_path, exe)

    proc = subprocess.Popen([exe, str(source_path), str(target_path)])
    if wait:
        return proc.wait()
    return None
