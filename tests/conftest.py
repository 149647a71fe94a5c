from pathlib import Path

import pytest

from genxai.bootstrap.loader import COMMANDS
from genxai.lmstudio import paths as lmstudio_paths
from genxai.queries import preferences


@pytest.fixture(autouse=True)
def isolated_state(tmp_path: Path, monkeypatch):
    state_dir = tmp_path / "state"
    monkeypatch.setenv("GENXAI_SETTINGS", str(tmp_path / "settings.yaml"))
    monkeypatch.setenv("GENXAI_STATE_DIR", str(state_dir))
    monkeypatch.setenv("GENXAI_DEFAULT_LANGUAGE", "English")
    for name in ("GENXAI_LMSTUDIO_URL", "GENXAI_DEEPSTACK_URL", "GENXAI_COMFYUI_URL", "GENXAI_TRANSCRIBE_URL"):
        monkeypatch.delenv(name, raising=False)
    preferences._SESSION.clear()
    lmstudio_paths.clear_paths_cache()
    COMMANDS.clear()
    yield state_dir
    preferences._SESSION.clear()
    COMMANDS.clear()


class FakeResp:
    def __init__(self, payload=None, status_code=200, content=b"", url="http://fake"):
        self._payload = payload
        self.status_code = status_code
        self.content = content
        self.url = url
        self.text = "" if payload is None else str(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def fake_resp():
    return FakeResp
