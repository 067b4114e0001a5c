# -*- coding: utf-8 -*-
"""
File-backed storage for published JSON documents and raw uploads.

Every JSON document is written to a temporary file next to its target and
moved into place with ``os.replace``, so a reader sees either the previous
document or the new one, never a partial write.
"""
from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import typing as t
from datetime import datetime, timezone
from pathlib import Path

from .models import UPLOAD_KINDS, UploadMeta, UploadedFile


logger = logging.getLogger(__name__)

ROUTINE_KEY = "published/routine.json"
TIF_KEY = "published/tif.json"
BOOKINGS_KEY = "bookings.json"

PUBLISHED_KEYS = {"routine": ROUTINE_KEY, "tif": TIF_KEY}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def name_from_key(key: t.Optional[str]) -> t.Optional[str]:
    if not key:
        return None
    return key.rsplit("/", 1)[-1]


class PublicationStore:
    """Key/value JSON store rooted at a directory."""

    def __init__(self, root: str | os.PathLike[str], uploads_base_url: t.Optional[str] = None) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.uploads_base_url = uploads_base_url.rstrip("/") if uploads_base_url else None

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Invalid storage key: {key}")
        return path

    # ------------------------------------------------------------------
    # JSON documents
    # ------------------------------------------------------------------

    def set_json(self, key: str, payload: t.Any) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def get_json(self, key: str) -> t.Optional[t.Any]:
        path = self._path(key)
        if not path.is_file():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def delete_json(self, key: str) -> None:
        path = self._path(key)
        if path.is_file():
            path.unlink()

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    # ------------------------------------------------------------------
    # Raw uploads: exactly one file per kind
    # ------------------------------------------------------------------

    def _upload_dir(self, kind: str) -> Path:
        if kind not in UPLOAD_KINDS:
            raise ValueError(f"kind must be one of {', '.join(UPLOAD_KINDS)}")
        return self._path(f"uploads/{kind}")

    def save_single(self, kind: str, filename: str, content: bytes) -> UploadedFile:
        """Store ``content`` as the only upload of ``kind``, replacing the previous one."""
        directory = self._upload_dir(kind)
        safe_name = Path(filename or f"{kind}.xlsx").name
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True)
        target = directory / safe_name
        target.write_bytes(content)
        logger.info("Saved %s upload %s (%d bytes)", kind, safe_name, len(content))
        return self._record(kind, target)

    def get_single(self, kind: str) -> t.Optional[UploadedFile]:
        directory = self._upload_dir(kind)
        if not directory.is_dir():
            return None
        files = sorted(p for p in directory.iterdir() if p.is_file())
        if not files:
            return None
        return self._record(kind, files[0])

    def delete_single(self, kind: str) -> None:
        directory = self._upload_dir(kind)
        if directory.exists():
            shutil.rmtree(directory)

    def upload_source(self, item: UploadedFile) -> str:
        """Local path of an upload when it is on disk, otherwise its public URL."""
        path = self._path(item.key)
        if path.is_file() or not item.url:
            return str(path)
        return item.url

    def _record(self, kind: str, path: Path) -> UploadedFile:
        stat = path.stat()
        key = f"uploads/{kind}/{path.name}"
        return UploadedFile(
            kind=kind,
            key=key,
            file_name=path.name,
            size=stat.st_size,
            uploaded_at=datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat(),
            url=f"{self.uploads_base_url}/{key}" if self.uploads_base_url else None,
        )

    def set_upload_meta(self, kind: str, meta: UploadMeta) -> None:
        self.set_json(f"meta/{kind}.json", meta.to_dict())

    def get_upload_meta(self, kind: str) -> t.Optional[UploadMeta]:
        data = self.get_json(f"meta/{kind}.json")
        return UploadMeta.from_dict(data) if data is not None else None

    def delete_upload_meta(self, kind: str) -> None:
        self.delete_json(f"meta/{kind}.json")
