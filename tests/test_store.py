# -*- coding: utf-8 -*-
"""Tests for the publication store and the upload/publish flow."""
import pytest

from routine_core.models import UploadMeta
from routine_core.publisher import (
    PARSE_WARNINGS,
    clear_kind,
    clear_published,
    handle_upload,
    publish_all,
    publish_latest_upload,
    read_published,
)
from routine_core.store import ROUTINE_KEY, TIF_KEY, PublicationStore


def test_set_json_replaces_document_without_leftovers(store):
    store.set_json(ROUTINE_KEY, {"data": [1]})
    store.set_json(ROUTINE_KEY, {"data": [1, 2]})
    assert store.get_json(ROUTINE_KEY) == {"data": [1, 2]}
    assert store.exists(ROUTINE_KEY)
    leftovers = [p.name for p in (store.root / "published").iterdir()]
    assert leftovers == ["routine.json"], "temporary files must not remain"

    store.delete_json(ROUTINE_KEY)
    assert store.get_json(ROUTINE_KEY) is None
    assert not store.exists(ROUTINE_KEY)
    store.delete_json(ROUTINE_KEY)  # deleting twice is harmless


def test_keys_cannot_escape_root(store):
    with pytest.raises(ValueError):
        store.set_json("../outside.json", {})


def test_save_single_keeps_one_file_per_kind(tmp_path):
    store = PublicationStore(tmp_path, uploads_base_url="https://files.example.edu/")
    store.save_single("routine", "routine_v1.xlsx", b"first")
    saved = store.save_single("routine", "routine_v2.csv", b"second")

    assert saved.key == "uploads/routine/routine_v2.csv"
    assert saved.url == "https://files.example.edu/uploads/routine/routine_v2.csv"
    assert [p.name for p in (tmp_path / "uploads" / "routine").iterdir()] == ["routine_v2.csv"]
    current = store.get_single("routine")
    assert (current.file_name, current.size) == ("routine_v2.csv", 6)
    assert store.get_single("tif") is None
    assert store.upload_source(current) == str((tmp_path / "uploads" / "routine" / "routine_v2.csv").resolve())

    store.delete_single("routine")
    assert store.get_single("routine") is None
    with pytest.raises(ValueError):
        store.save_single("timetable", "x.csv", b"")


def test_upload_meta(store):
    store.set_upload_meta("routine", UploadMeta(version="v2", effective_from="2024-07-01"))
    assert store.get_json("meta/routine.json") == {"version": "v2", "effectiveFrom": "2024-07-01"}
    assert store.get_upload_meta("routine") == UploadMeta("v2", "2024-07-01")
    store.delete_upload_meta("routine")
    assert store.get_upload_meta("routine") is None


def test_handle_upload_publishes_routine(store, routine_csv):
    result = handle_upload(store, "routine", "routine_v2.csv", routine_csv, UploadMeta(version="v2"))
    assert result == {"ok": True, "key": "uploads/routine/routine_v2.csv", "url": None}

    published = store.get_json(ROUTINE_KEY)
    assert len(published["data"]) == 5
    assert published["data"][0] == {
        "day": "Sunday", "slot": "08:30-10:00", "room": "701",
        "batch": "61_A", "course": "CSE101", "teacher": "ABC - Alice Brown",
    }
    assert published["meta"] == {"fileName": "routine_v2.csv", "version": "v2"}
    assert published["updatedAt"]


def test_routine_parse_failure_keeps_published_routine(store, routine_csv):
    handle_upload(store, "routine", "routine.csv", routine_csv, UploadMeta())
    before = store.get_json(ROUTINE_KEY)

    result = handle_upload(store, "routine", "broken.csv", b"Room,Batch\n701,61_A\n", UploadMeta())
    assert result["ok"] is True
    assert result["warn"] == PARSE_WARNINGS["routine"]
    assert "Missing required columns" in result["error"]
    assert store.get_json(ROUTINE_KEY) == before
    assert store.get_single("routine").file_name == "broken.csv", "raw file is saved regardless"


def test_tif_parse_failure_publishes_empty_directory(store, tif_csv):
    handle_upload(store, "tif", "tif.csv", tif_csv, UploadMeta())
    assert len(store.get_json(TIF_KEY)["data"]) == 2

    result = handle_upload(store, "tif", "tif_bad.csv", b"Name,Phone\nAlice,0171\n", UploadMeta())
    assert result["warn"] == PARSE_WARNINGS["tif"]
    assert store.get_json(TIF_KEY)["data"] == []


def test_read_published_defaults_and_file_name(store, routine_csv):
    assert read_published(store, "routine") == {"data": [], "meta": {}, "updatedAt": None}

    handle_upload(store, "routine", "routine_v1.csv", routine_csv, UploadMeta())
    # A later upload that fails to parse still names the current file
    handle_upload(store, "routine", "routine_v2.csv", b"Room\n701\n", UploadMeta())
    payload = read_published(store, "routine")
    assert len(payload["data"]) == 5
    assert payload["meta"]["fileName"] == "routine_v2.csv"


def test_publish_all_uses_body_arrays_or_latest_upload(store, routine_csv, tif_csv):
    assert publish_all(store) == {"routine": False, "tif": False}

    store.save_single("routine", "routine.csv", routine_csv)
    done = publish_all(store, {"tif": [{"initial": "ABC", "name": "Alice Brown"}]})
    assert done == {"routine": True, "tif": True}
    assert len(store.get_json(ROUTINE_KEY)["data"]) == 5
    assert store.get_json(TIF_KEY)["data"] == [{"initial": "ABC", "name": "Alice Brown"}]

    store.save_single("tif", "tif.csv", tif_csv)
    payload = publish_latest_upload(store, "tif")
    assert [t["initial"] for t in payload.data] == ["ABC", "XYZ"]
    assert payload.meta == {"fileName": "tif.csv"}


def test_clear_kind_and_clear_published(store, routine_csv, tif_csv):
    handle_upload(store, "routine", "routine.csv", routine_csv, UploadMeta(version="v1"))
    handle_upload(store, "tif", "tif.csv", tif_csv, UploadMeta())

    clear_kind(store, "routine")
    assert store.get_single("routine") is None
    assert store.get_upload_meta("routine") is None
    assert not store.exists(ROUTINE_KEY)
    assert store.exists(TIF_KEY)

    clear_published(store)
    assert not store.exists(TIF_KEY)
    assert store.get_single("tif") is not None, "raw uploads survive unpublishing"
