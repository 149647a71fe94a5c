import subprocess
from pathlib import Path

import pytest

from genxai.core import difftool, hardware
from genxai.core.similarity import get_vector_similarity
from genxai.errors import NotInstalledError


def test_vector_similarity_normalizes_cosine():
    assert get_vector_similarity([1, 0], [1, 0]) == 1.0
    assert get_vector_similarity([1, 0], [-1, 0]) == 0.0
    assert get_vector_similarity([1, 0], [0, 1]) == 0.5
    assert get_vector_similarity([1, 2, 3], [1, 2, 4]) == pytest.approx(0.99573, abs=1e-6)


def test_vector_similarity_zero_magnitude_and_errors():
    assert get_vector_similarity([0, 0], [1, 1]) == 0.0
    with pytest.raises(ValueError, match="same length"):
        get_vector_similarity([1], [1, 2])
    with pytest.raises(ValueError, match="cannot be empty"):
        get_vector_similarity([], [])
    with pytest.raises(ValueError, match="must contain values"):
        get_vector_similarity(None, [1])


def test_cpu_cores_double_physical(monkeypatch):
    monkeypatch.setattr(hardware.psutil, "cpu_count", lambda logical=True: 8 if logical else 4)
    assert hardware.get_number_of_cpu_cores() == 8
    assert hardware.get_cpu_core() == 8


def test_cpu_cores_fall_back_to_logical(monkeypatch):
    monkeypatch.setattr(hardware.psutil, "cpu_count", lambda logical=True: 6 if logical else None)
    assert hardware.get_number_of_cpu_cores() == 6


def test_capable_gpu_from_nvidia_smi(monkeypatch):
    monkeypatch.setattr(hardware.shutil, "which", lambda name: "/usr/bin/nvidia-smi")

    def fake_run(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 0, stdout="2048\n8192\n", stderr="")

    monkeypatch.setattr(hardware.subprocess, "run", fake_run)
    assert hardware.get_has_capable_gpu() is True
    assert hardware.get_has_capable_gpu(min_bytes=16 * 1024**3) is False


def test_no_gpu_tool_means_no_capable_gpu(monkeypatch):
    monkeypatch.setattr(hardware.shutil, "which", lambda name: None)
    assert hardware.get_has_capable_gpu() is False


def test_diff_tool_missing_raises(monkeypatch):
    monkeypatch.setattr(difftool.shutil, "which", lambda name: None)
    with pytest.raises(NotInstalledError):
        difftool.invoke_diff_tool("a.txt", "b.txt")


def test_diff_tool_launches_with_expanded_paths(tmp_path: Path, monkeypatch):
    launched = {}

    class FakeProc:
        def wait(self):
            return 0

    def fake_popen(args):
        launched["args"] = args
        return FakeProc()

    monkeypatch.setattr(difftool.shutil, "which", lambda name: "/opt/meld")
    monkeypatch.setattr(difftool.subprocess, "Popen", fake_popen)
    assert difftool.invoke_diff_tool(tmp_path / "a.txt", tmp_path / "b.txt", wait=True) == 0
    assert launched["args"] == ["/opt/meld", str((tmp_path / "a.txt").resolve()), str((tmp_path / "b.txt").resolve())]
