# -*- coding: utf-8 -*-
"""
Publishing: turning the latest raw upload into the JSON documents read by
every view.

Publishing is best-effort. Reading the upload, parsing it and writing the
document are separate steps; a failure in any of them is reported to the
caller and never retried here.
"""
from __future__ import annotations

import logging
import typing as t

from .models import PublishedPayload, UploadMeta
from .routine import parse_routine_file
from .sheet_utils import SheetParseError, load_upload
from .store import PUBLISHED_KEYS, PublicationStore, name_from_key, utc_now_iso
from .teachers import parse_teacher_info_file


logger = logging.getLogger(__name__)

PARSE_WARNINGS = {
    "routine": "Saved file, but parsing failed. Check format.",
    "tif": "TIF saved but parsing failed. Check column headers.",
}


def parse_upload(kind: str, content: bytes, filename: str) -> list[dict[str, t.Any]]:
    """Parse raw upload bytes into the JSON rows published for ``kind``."""
    if kind == "routine":
        return [row.to_dict() for row in parse_routine_file(content, filename)]
    if kind == "tif":
        return [teacher.to_dict() for teacher in parse_teacher_info_file(content, filename)]
    raise ValueError(f"Unknown upload kind: {kind}")


def publish(
        store: PublicationStore,
        kind: str,
        data: list[dict[str, t.Any]],
        file_name: t.Optional[str] = None,
        meta: t.Optional[UploadMeta] = None,
) -> PublishedPayload:
    """Replace the published document of ``kind`` in a single write."""
    payload_meta: dict[str, t.Any] = {}
    if file_name:
        payload_meta["fileName"] = file_name
    if meta is not None:
        payload_meta.update(meta.to_dict())
    payload = PublishedPayload(data=list(data), meta=payload_meta, updated_at=utc_now_iso())
    store.set_json(PUBLISHED_KEYS[kind], payload.to_dict())
    logger.info("Published %s: %d rows from %s", kind, len(payload.data), file_name or "request body")
    return payload


def handle_upload(
        store: PublicationStore,
        kind: str,
        filename: str,
        content: bytes,
        meta: UploadMeta,
) -> dict[str, t.Any]:
    """
    Save a raw upload with its metadata, then parse and publish it.

    A routine that fails to parse leaves the previously published routine in
    place. A teacher-info file that fails to parse publishes an empty list.
    Either way the raw file stays saved and the result carries a warning.
    """
    saved = store.save_single(kind, filename, content)
    store.set_upload_meta(kind, meta)
    result: dict[str, t.Any] = {"ok": True, "key": saved.key, "url": saved.url}
    try:
        data = parse_upload(kind, content, saved.file_name)
    except SheetParseError as e:
        logger.warning("Parsing %s upload %s failed: %s", kind, saved.file_name, e)
        if kind == "tif":
            publish(store, kind, [], saved.file_name, meta)
        result.update(warn=PARSE_WARNINGS[kind], error=str(e))
        return result
    publish(store, kind, data, saved.file_name, meta)
    return result


def publish_latest_upload(store: PublicationStore, kind: str) -> t.Optional[PublishedPayload]:
    """
    Re-parse the current raw upload of ``kind`` and publish it.

    :return: The new payload, or None when nothing is uploaded.
    """
    item = store.get_single(kind)
    if item is None:
        return None
    content = load_upload(store.upload_source(item))
    data = parse_upload(kind, content, item.file_name)
    return publish(store, kind, data, item.file_name, store.get_upload_meta(kind))


def publish_all(store: PublicationStore, body: t.Optional[t.Mapping[str, t.Any]] = None) -> dict[str, bool]:
    """
    Publish both kinds. Arrays given in ``body`` are published as-is;
    otherwise the latest upload is parsed.
    """
    body = body or {}
    done: dict[str, bool] = {}
    for kind in PUBLISHED_KEYS:
        rows = body.get(kind)
        if isinstance(rows, list):
            item = store.get_single(kind)
            publish(store, kind, rows, name_from_key(item.key) if item else None, store.get_upload_meta(kind))
            done[kind] = True
        else:
            done[kind] = publish_latest_upload(store, kind) is not None
    return done


def read_published(store: PublicationStore, kind: str) -> dict[str, t.Any]:
    """
    The published document of ``kind`` with ``meta.fileName`` taken from the
    current raw upload when there is one.
    """
    stored = store.get_json(PUBLISHED_KEYS[kind])
    payload = PublishedPayload.from_dict(stored if isinstance(stored, dict) else None)
    item = store.get_single(kind)
    if item is not None:
        payload.meta["fileName"] = item.file_name
    return payload.to_dict()


def clear_kind(store: PublicationStore, kind: str) -> None:
    """Remove the raw upload of ``kind``, its metadata and its published document."""
    store.delete_single(kind)
    store.delete_upload_meta(kind)
    store.delete_json(PUBLISHED_KEYS[kind])
    logger.info("Cleared %s upload and published document", kind)


def clear_published(store: PublicationStore) -> None:
    for key in PUBLISHED_KEYS.values():
        store.delete_json(key)
