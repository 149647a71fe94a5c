from pathlib import Path

import pytest

from genxai.deepstack.client import DeepStackClient
from genxai.deepstack.faces import register_all_faces
from genxai.errors import ImageValidationError, ServiceError


def _image(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\xff\xd8\xff")
    return path


def test_register_face_uploads_numbered_images(tmp_path: Path, monkeypatch, fake_resp):
    captured = {}

    def fake_post(url, timeout, files=None, data=None):
        captured["url"] = url
        captured["files"] = sorted(files)
        captured["data"] = data
        return fake_resp({"success": True, "message": "face added"})

    monkeypatch.setattr("genxai.service.requests.post", fake_post)
    client = DeepStackClient("http://vision:5000")
    message = client.register_face("alice", [_image(tmp_path / "a.jpg"), _image(tmp_path / "b.png")])

    assert message == "face added"
    assert captured["url"] == "http://vision:5000/v1/vision/face/register"
    assert captured["files"] == ["image1", "image2"]
    assert captured["data"] == {"userid": "alice"}


def test_invalid_images_are_rejected_before_upload(tmp_path: Path):
    client = DeepStackClient("http://vision:5000")
    bad = tmp_path / "notes.txt"
    bad.write_text("x")
    with pytest.raises(ImageValidationError, match="Supported formats"):
        client.register_face("alice", [bad])
    with pytest.raises(FileNotFoundError):
        client.detect_objects(tmp_path / "missing.jpg")


def test_unsuccessful_response_raises(tmp_path: Path, monkeypatch, fake_resp):
    monkeypatch.setattr(
        "genxai.service.requests.post",
        lambda url, timeout, **kw: fake_resp({"success": False, "error": "No face found"}),
    )
    with pytest.raises(ServiceError, match="No face found"):
        DeepStackClient("http://vision:5000").recognize_faces(_image(tmp_path / "x.jpg"))


def test_predictions_are_parsed(tmp_path: Path, monkeypatch, fake_resp):
    payloads = {
        "/v1/vision/face/recognize": {
            "success": True,
            "predictions": [{"userid": "alice", "confidence": 0.91, "x_min": 1, "y_min": 2, "x_max": 3, "y_max": 4}],
        },
        "/v1/vision/detection": {"success": True, "predictions": [{"label": "dog", "confidence": 0.8}]},
        "/v1/vision/scene": {"success": True, "label": "beach", "confidence": 0.7},
    }

    def fake_post(url, timeout, **kwargs):
        return fake_resp(payloads[url.replace("http://vision:5000", "")])

    monkeypatch.setattr("genxai.service.requests.post", fake_post)
    client = DeepStackClient("http://vision:5000")
    image = _image(tmp_path / "x.jpg")

    [face] = client.recognize_faces(image)
    assert (face.label, face.confidence, face.x_max) == ("alice", 0.91, 3)
    assert client.detect_objects(image)[0].label == "dog"
    assert client.classify_scene(image).label == "beach"


def test_register_all_faces_skips_known_people(tmp_path: Path, monkeypatch):
    _image(tmp_path / "faces" / "alice" / "1.jpg")
    _image(tmp_path / "faces" / "bob" / "1.jpg")
    _image(tmp_path / "faces" / "bob" / "2.jpg")
    (tmp_path / "faces" / "carol").mkdir()

    class FakeClient:
        def __init__(self):
            self.registered = {}
            self.removed = []

        def list_faces(self):
            return ["alice"]

        def unregister_face(self, identifier):
            self.removed.append(identifier)

        def register_face(self, identifier, images):
            self.registered[identifier] = [p.name for p in images]

    client = FakeClient()
    result = register_all_faces(str(tmp_path / "faces"), client=client)
    assert result == {"bob": 2}
    assert client.registered == {"bob": ["1.jpg", "2.jpg"]}

    forced = FakeClient()
    assert register_all_faces(str(tmp_path / "faces"), client=forced, force=True) == {"alice": 1, "bob": 2}
    assert forced.removed == ["alice"]


def test_register_all_faces_requires_directory(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        register_all_faces(str(tmp_path / "nowhere"), client=object())
