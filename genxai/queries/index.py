from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Sequence

from .ai_settings import get_ai_image_collection, get_image_index_path
from .images import iter_images
from .metadata import load_image_metadata

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ImageRecord:
    path: str
    short_description: str = ""
    long_description: str = ""
    keywords: list[str] = field(default_factory=list)
    people: list[str] = field(default_factory=list)
    objects: list[str] = field(default_factory=list)
    scenes: list[str] = field(default_factory=list)
    language: str = ""


def _matches(patterns: Sequence[str], values: Iterable[str], match_all: bool) -> bool:
    lowered = [value.lower() for value in values]
    hits = [any(fnmatchcase(value, pattern.lower()) for value in lowered) for pattern in patterns]
    return all(hits) if match_all else any(hits)


def _keyword_values(record: ImageRecord) -> list[str]:
    return record.keywords + [record.short_description, record.long_description]


def _keyword_patterns(keywords: Sequence[str]) -> list[str]:
    # plain words also match inside the descriptions
    return [k if any(ch in k for ch in "*?[") else f"*{k}*" for k in keywords]


class ImageIndex:
    """SQLite index over image metadata sidecars."""

    def __init__(self, db_path: str | Path):
        self._db_path = str(Path(db_path).expanduser())
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_tables(self) -> None:
        conn = self._conn()
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS images (
                path TEXT PRIMARY KEY,
                data TEXT NOT NULL
            )
            """
        )
        conn.commit()
        conn.close()

    def add(self, record: ImageRecord) -> None:
        conn = self._conn()
        conn.execute(
            "INSERT OR REPLACE INTO images (path, data) VALUES (?, ?)",
            (record.path, json.dumps(_record_dict(record))),
        )
        conn.commit()
        conn.close()

    def all(self) -> list[ImageRecord]:
        conn = self._conn()
        rows = conn.execute("SELECT path, data FROM images ORDER BY path").fetchall()
        conn.close()
        return [ImageRecord(path=row[0], **json.loads(row[1])) for row in rows]

    def count(self) -> int:
        conn = self._conn()
        (total,) = conn.execute("SELECT COUNT(*) FROM images").fetchone()
        conn.close()
        return int(total)

    def rebuild(self, directories: Iterable[str | Path]) -> int:
        records = [_record_for(image) for image in iter_images(directories)]
        conn = self._conn()
        conn.execute("DELETE FROM images")
        conn.executemany(
            "INSERT OR REPLACE INTO images (path, data) VALUES (?, ?)",
            [(record.path, json.dumps(_record_dict(record))) for record in records],
        )
        conn.commit()
        conn.close()
        logger.debug("Indexed %d image(s) into %s", len(records), self._db_path)
        return len(records)

    def search(
        self,
        keywords: Sequence[str] = (),
        people: Sequence[str] = (),
        objects: Sequence[str] = (),
        scenes: Sequence[str] = (),
        match_all: bool = False,
    ) -> list[ImageRecord]:
        criteria = [
            (_keyword_patterns(keywords), _keyword_values),
            (list(people), lambda r: r.people),
            (list(objects), lambda r: r.objects),
            (list(scenes), lambda r: r.scenes),
        ]
        criteria = [(patterns, values) for patterns, values in criteria if patterns]
        records = self.all()
        if not criteria:
            return records

        found: list[ImageRecord] = []
        for record in records:
            results = [_matches(patterns, values(record), match_all) for patterns, values in criteria]
            if (all(results) if match_all else any(results)):
                found.append(record)
        return found


def _record_dict(record: ImageRecord) -> dict:
    return {
        "short_description": record.short_description,
        "long_description": record.long_description,
        "keywords": record.keywords,
        "people": record.people,
        "objects": record.objects,
        "scenes": record.scenes,
        "language": record.language,
    }


def _record_for(image: Path) -> ImageRecord:
    metadata = load_image_metadata(image)
    description = metadata.description
    return ImageRecord(
        path=str(image),
        short_description=description.short_description if description else "",
        long_description=description.long_description if description else "",
        keywords=list(description.keywords) if description else [],
        people=list(metadata.people or []),
        objects=list(metadata.objects or []),
        scenes=list(metadata.scenes or []),
        language=metadata.language,
    )


def find_images(
    keywords: Sequence[str] = (),
    people: Sequence[str] = (),
    objects: Sequence[str] = (),
    scenes: Sequence[str] = (),
    match_all: bool = False,
    index_path: str | Path | None = None,
    directories: Sequence[str | Path] | None = None,
    rebuild: bool = False,
) -> list[ImageRecord]:
    path = Path(index_path or get_image_index_path()).expanduser()
    existed = path.is_file()
    index = ImageIndex(path)
    if rebuild or not existed or directories:
        index.rebuild(directories or get_ai_image_collection())
    return index.search(keywords, people=people, objects=objects, scenes=scenes, match_all=match_all)


def export_image_index(
    directories: Sequence[str | Path] | None = None,
    index_path: str | Path | None = None,
) -> int:
    index = ImageIndex(index_path or get_image_index_path())
    return index.rebuild(directories or get_ai_image_collection())
