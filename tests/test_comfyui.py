import json
from pathlib import Path

import pytest

from genxai.comfyui import paths as comfy_paths
from genxai.comfyui import process as comfy_process
from genxai.comfyui.background import BACKGROUND_SETTING, set_comfyui_background_image
from genxai.comfyui.client import ComfyUIClient
from genxai.comfyui.workflow import build_text_to_image_workflow, generate_image
from genxai.errors import ImageValidationError, ServiceError


def _install(tmp_path: Path, monkeypatch) -> Path:
    base = tmp_path / "appdata" / "Programs" / "@comfyorgcomfyui-electron" / "resources" / "ComfyUI"
    base.mkdir(parents=True)
    monkeypatch.setenv("LOCALAPPDATA", str(tmp_path / "appdata"))
    monkeypatch.delenv("GENXAI_COMFYUI_PATH", raising=False)
    return base


def test_model_path_defaults_to_models_subfolder(tmp_path: Path, monkeypatch):
    base = _install(tmp_path, monkeypatch)
    assert comfy_paths.get_comfyui_model_path("loras") == (base / "models" / "loras").resolve()
    assert comfy_paths.get_comfyui_model_path("loras", return_all=True) == [(base / "models" / "loras").resolve()]


def test_model_path_prefers_custom_section(tmp_path: Path, monkeypatch):
    base = _install(tmp_path, monkeypatch)
    (base / "extra_model_paths.yaml").write_text(
        f"""
comfyui:
  base_path: {tmp_path / "other"}
  checkpoints: models/checkpoints
custom:
  base_path: {tmp_path / "models"}
  checkpoints: |
    sd
    sdxl
""".strip()
    )
    assert comfy_paths.get_comfyui_model_path() == (tmp_path / "models" / "sd").resolve()
    assert comfy_paths.get_comfyui_model_path("vae") == (base / "models" / "vae").resolve()


def test_model_path_without_install_uses_current_directory(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("LOCALAPPDATA", raising=False)
    monkeypatch.delenv("GENXAI_COMFYUI_PATH", raising=False)
    monkeypatch.chdir(tmp_path)
    assert comfy_paths.get_comfyui_model_path() == (tmp_path / "ComfyUI" / "models" / "checkpoints").resolve()


def test_background_image_is_copied_and_configured(tmp_path: Path):
    comfy = tmp_path / "ComfyUI"
    settings_file = comfy / "user" / "default" / "comfy.settings.json"
    settings_file.parent.mkdir(parents=True)
    settings_file.write_text(json.dumps({"Comfy.Theme": "dark"}))
    image = tmp_path / "my wallpaper.png"
    image.write_bytes(b"\x89PNG")

    url = set_comfyui_background_image(image, comfy_path=comfy)
    assert url == "/api/view?filename=backgrounds%2Fmy+wallpaper.png&type=input&subfolder=backgrounds"
    assert (comfy / "input" / "backgrounds" / "my wallpaper.png").read_bytes() == b"\x89PNG"
    saved = json.loads(settings_file.read_text())
    assert saved[BACKGROUND_SETTING] == url
    assert saved["Comfy.Theme"] == "dark"

    set_comfyui_background_image(clear=True, comfy_path=comfy)
    assert BACKGROUND_SETTING not in json.loads(settings_file.read_text())


def test_background_image_validation(tmp_path: Path):
    comfy = tmp_path / "ComfyUI"
    with pytest.raises(FileNotFoundError, match="run at least once"):
        set_comfyui_background_image(tmp_path / "x.png", comfy_path=comfy)
    settings_file = comfy / "user" / "default" / "comfy.settings.json"
    settings_file.parent.mkdir(parents=True)
    settings_file.write_text("{}")
    tiff = tmp_path / "x.tiff"
    tiff.write_bytes(b"II*")
    with pytest.raises(ImageValidationError):
        set_comfyui_background_image(tiff, comfy_path=comfy)


def test_queue_empty_treats_errors_as_empty(monkeypatch, fake_resp):
    monkeypatch.setattr(
        "genxai.service.requests.get",
        lambda url, timeout, **kw: fake_resp({"queue_running": [["x"]], "queue_pending": []}),
    )
    assert ComfyUIClient("http://comfy").is_queue_empty() is False

    monkeypatch.setattr("genxai.service.requests.get", lambda url, timeout, **kw: fake_resp(None, status_code=500))
    assert ComfyUIClient("http://comfy").is_queue_empty() is True


def test_workflow_graph_is_wired():
    workflow = build_text_to_image_workflow("a red fox", negative_prompt="blurry", model="sdxl.safetensors", seed=7)
    assert workflow["4"]["inputs"]["ckpt_name"] == "sdxl.safetensors"
    assert workflow["6"]["inputs"]["text"] == "a red fox"
    assert workflow["7"]["inputs"]["text"] == "blurry"
    assert workflow["3"]["inputs"]["seed"] == 7
    assert workflow["3"]["inputs"]["positive"] == ["6", 0]
    assert workflow["9"]["inputs"]["images"] == ["8", 0]
    with pytest.raises(ValueError):
        build_text_to_image_workflow("  ")


def test_generate_image_queues_waits_and_downloads(tmp_path: Path, monkeypatch, fake_resp):
    posted = {}
    history = {
        "p1": {
            "status": {"completed": True, "status_str": "success"},
            "outputs": {"9": {"images": [{"filename": "genxai_0001.png", "subfolder": "", "type": "output"}]}},
        }
    }

    def fake_get(url, timeout, params=None):
        if url.endswith("/object_info/CheckpointLoaderSimple"):
            return fake_resp({"CheckpointLoaderSimple": {"input": {"required": {"ckpt_name": [["base.safetensors"]]}}}})
        if url.endswith("/history/p1"):
            return fake_resp(history)
        if url.endswith("/view"):
            assert params == {"filename": "genxai_0001.png", "subfolder": "", "type": "output"}
            return fake_resp(None, content=b"PNGDATA")
        raise AssertionError(url)

    def fake_post(url, timeout, json=None):
        posted.update(json)
        return fake_resp({"prompt_id": "p1"})

    monkeypatch.setattr("genxai.service.requests.get", fake_get)
    monkeypatch.setattr("genxai.service.requests.post", fake_post)
    client = ComfyUIClient("http://comfy", client_id="me")
    saved = generate_image("a fox", tmp_path / "out", client=client, seed=1)

    assert saved == [tmp_path / "out" / "genxai_0001.png"]
    assert saved[0].read_bytes() == b"PNGDATA"
    assert posted["client_id"] == "me"
    assert posted["prompt"]["4"]["inputs"]["ckpt_name"] == "base.safetensors"


def test_rejected_prompt_and_failed_history(monkeypatch, fake_resp):
    monkeypatch.setattr(
        "genxai.service.requests.post", lambda url, timeout, **kw: fake_resp({"error": "bad node", "node_errors": {}})
    )
    with pytest.raises(ServiceError, match="bad node"):
        ComfyUIClient("http://comfy").queue_prompt({})

    monkeypatch.setattr(
        "genxai.service.requests.get",
        lambda url, timeout, **kw: fake_resp({"p": {"status": {"status_str": "error", "completed": False}}}),
    )
    with pytest.raises(ServiceError, match="failed"):
        ComfyUIClient("http://comfy").wait_for_prompt("p", poll_interval=0)


def test_wait_for_prompt_times_out(monkeypatch, fake_resp):
    monkeypatch.setattr("genxai.service.requests.get", lambda url, timeout, **kw: fake_resp({}))
    with pytest.raises(TimeoutError):
        ComfyUIClient("http://comfy").wait_for_prompt("p", poll_interval=0, timeout=0)


def test_stop_comfyui_kills_matching_processes(monkeypatch):
    killed = []

    class FakeProc:
        def __init__(self, name, pid):
            self.info = {"name": name}
            self.pid = pid

        def kill(self):
            killed.append(self.pid)

    procs = [FakeProc("ComfyUI.exe", 1), FakeProc("python", 2), FakeProc("comfyui", 3)]
    calls = iter([procs, []])
    monkeypatch.setattr(comfy_process.psutil, "process_iter", lambda attrs: iter(next(calls)))
    monkeypatch.setattr(comfy_process.time, "sleep", lambda s: None)
    assert comfy_process.stop_comfyui() == 2
    assert killed == [1, 3]


def test_model_path_reads_top_level_entry(tmp_path: Path, monkeypatch):
    base = _install(tmp_path, monkeypatch)
    (base / "extra_model_paths.yaml").write_text(f"checkpoints: {tmp_path / 'ckpts'}\nloras: shared/loras\n")
    assert comfy_paths.get_comfyui_model_path() == (tmp_path / "ckpts").resolve()
    assert comfy_paths.get_comfyui_model_path("loras") == (base / "shared" / "loras").resolve()
