import json
from pathlib import Path

import pytest

from genxai.deepstack.client import Prediction
from genxai.errors import GenXAIError
from genxai.queries import ai_settings
from genxai.queries.index import ImageIndex, ImageRecord, export_image_index, find_images
from genxai.queries.metadata import (
    ImageDescription,
    ImageMetadata,
    load_image_metadata,
    parse_description,
    save_image_metadata,
    sidecar_path,
    update_all_image_metadata,
    update_image_metadata,
)


def _image(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\xff\xd8\xff")
    return path


class FakeDeepStack:
    def __init__(self):
        self.calls = 0

    def recognize_faces(self, image):
        self.calls += 1
        return [Prediction("bob", 0.9), Prediction("unknown", 0.4), Prediction("alice", 0.8), Prediction("bob", 0.7)]

    def detect_objects(self, image):
        return [Prediction("dog", 0.8), Prediction("car", 0.6), Prediction("dog", 0.5)]

    def classify_scene(self, image):
        return Prediction("beach", 0.7)


def test_sidecar_round_trip_keeps_missing_parts_missing(tmp_path: Path):
    image = _image(tmp_path / "a.jpg")
    assert sidecar_path(image).name == "a.jpg.genxai.json"
    save_image_metadata(image, ImageMetadata(people=["alice"], language="English"))

    loaded = load_image_metadata(image)
    assert loaded.people == ["alice"]
    assert loaded.description is None
    assert loaded.objects is None


def test_corrupt_sidecar_is_ignored(tmp_path: Path):
    image = _image(tmp_path / "a.jpg")
    sidecar_path(image).write_text("{broken")
    assert load_image_metadata(image) == ImageMetadata()


def test_parse_description_handles_fences_and_comma_keywords():
    answer = '```json\n{"short_description": "A dog", "long_description": "A dog on a beach.", "keywords": "dog, beach ,"}\n```'
    description = parse_description(answer)
    assert description == ImageDescription("A dog", "A dog on a beach.", ["dog", "beach"])
    with pytest.raises(GenXAIError):
        parse_description("I cannot see any image.")


def test_update_fills_only_missing_parts(tmp_path: Path, monkeypatch):
    image = _image(tmp_path / "a.jpg")
    prompts = []

    def fake_query(query, model, temperature, attachments, client):
        prompts.append(query)
        return '{"short_description": "Strand", "long_description": "Hond op strand", "keywords": ["hond"]}'

    monkeypatch.setattr("genxai.queries.metadata.invoke_llm_query", fake_query)
    deepstack = FakeDeepStack()

    metadata = update_image_metadata(image, lmstudio=object(), deepstack=deepstack, language="Dutch")
    assert metadata.people == ["alice", "bob"]
    assert metadata.objects == ["car", "dog"]
    assert metadata.scenes == ["beach"]
    assert metadata.description.keywords == ["hond"]
    assert metadata.language == "Dutch"
    assert "Dutch" in prompts[0]

    update_image_metadata(image, lmstudio=object(), deepstack=deepstack, language="Dutch")
    assert len(prompts) == 1
    assert deepstack.calls == 1

    update_image_metadata(image, lmstudio=object(), language="German")
    assert len(prompts) == 2
    saved = json.loads(sidecar_path(image).read_text())
    assert saved["language"] == "German"
    assert saved["people"] == ["alice", "bob"]


def test_force_recomputes_supplied_services(tmp_path: Path):
    image = _image(tmp_path / "a.jpg")
    save_image_metadata(image, ImageMetadata(people=["old"], objects=[], scenes=[]))
    deepstack = FakeDeepStack()
    metadata = update_image_metadata(image, deepstack=deepstack, force=True)
    assert metadata.people == ["alice", "bob"]
    assert metadata.description is None


def test_update_all_skips_failures(tmp_path: Path, monkeypatch):
    _image(tmp_path / "pics" / "a.jpg")
    _image(tmp_path / "pics" / "sub" / "b.png")
    (tmp_path / "pics" / "notes.txt").write_text("x")

    class FailingOnB(FakeDeepStack):
        def classify_scene(self, image):
            if image.name == "b.png":
                raise GenXAIError("scene service down")
            return super().classify_scene(image)

    assert update_all_image_metadata([tmp_path / "pics"], deepstack=FailingOnB()) == 1
    assert sidecar_path(tmp_path / "pics" / "a.jpg").is_file()
    assert not sidecar_path(tmp_path / "pics" / "sub" / "b.png").exists()


def _indexed(tmp_path: Path) -> ImageIndex:
    index = ImageIndex(tmp_path / "index.sqlite3")
    index.add(ImageRecord("/p/beach.jpg", "Dog at the beach", keywords=["dog", "sand"], people=["alice"], scenes=["beach"]))
    index.add(ImageRecord("/p/city.jpg", "Busy street", keywords=["car"], people=["bob"], objects=["car"]))
    index.add(ImageRecord("/p/park.jpg", "Park", keywords=["Dogs"], people=["alice", "bob"], scenes=["park"]))
    return index


def test_search_matches_any_or_all(tmp_path: Path):
    index = _indexed(tmp_path)
    assert index.count() == 3
    assert [r.path for r in index.search()] == ["/p/beach.jpg", "/p/city.jpg", "/p/park.jpg"]
    assert [r.path for r in index.search(keywords=["dog"])] == ["/p/beach.jpg", "/p/park.jpg"]
    assert [r.path for r in index.search(keywords=["STREET"])] == ["/p/city.jpg"]
    assert [r.path for r in index.search(people=["al*"], scenes=["park"])] == ["/p/beach.jpg", "/p/park.jpg"]
    assert [r.path for r in index.search(people=["al*"], scenes=["park"], match_all=True)] == ["/p/park.jpg"]
    assert [r.path for r in index.search(people=["alice", "bob"], match_all=True)] == ["/p/park.jpg"]
    assert index.search(objects=["boat"]) == []


def test_find_images_builds_index_from_sidecars(tmp_path: Path):
    pics = tmp_path / "pics"
    image = _image(pics / "a.jpg")
    _image(pics / "b.jpg")
    save_image_metadata(
        image,
        ImageMetadata(description=ImageDescription("Cat", "A cat asleep", ["cat"]), people=[], objects=["cat"], scenes=[]),
    )
    ai_settings.set_ai_image_collection([str(pics)])
    index_path = tmp_path / "db" / "images.sqlite3"

    found = find_images(keywords=["asleep"], index_path=index_path)
    assert [Path(r.path).name for r in found] == ["a.jpg"]
    assert ImageIndex(index_path).count() == 2

    (pics / "b.jpg").unlink()
    assert len(find_images(index_path=index_path)) == 2
    assert len(find_images(index_path=index_path, rebuild=True)) == 1
    assert export_image_index(index_path=index_path) == 1


def test_force_keeps_parts_of_skipped_services(tmp_path: Path):
    image = _image(tmp_path / "a.jpg")
    save_image_metadata(
        image,
        ImageMetadata(description=ImageDescription("Cat", "A cat", ["cat"]), people=["old"], language="English"),
    )
    metadata = update_image_metadata(image, deepstack=FakeDeepStack(), force=True)
    assert metadata.description == ImageDescription("Cat", "A cat", ["cat"])
    assert metadata.people == ["alice", "bob"]
    assert load_image_metadata(image).description.short_description == "Cat"
