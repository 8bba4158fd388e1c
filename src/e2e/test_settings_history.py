# src/e2e/test_settings_history.py

import json
import re
import threading
from pathlib import Path

import pytest

from correctnow import config as CFG
from correctnow.engine import accuracy_score, can_check
from correctnow.history import make_doc, make_store
from correctnow.settings import Settings, load_settings, save_settings


# ---------- settings ----------

def test_missing_settings_file_gives_defaults(tmp_path: Path):
    s = load_settings(tmp_path / "nope.json")
    assert s == Settings()
    assert s.enabled is True and s.language == "auto"
    assert s.api_base_url == CFG.DEFAULT_API_BASE_URL


def test_settings_roundtrip_creates_folder(tmp_path: Path):
    path = tmp_path / "cfg" / "settings.json"
    save_settings(Settings(language="French", auto_check=True, api_key="k"), path)
    loaded = load_settings(path)
    assert loaded.language == "French" and loaded.auto_check is True and loaded.api_key == "k"


def test_partial_and_unknown_keys(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"enabled": False, "theme": "dark"}), encoding="utf-8")
    s = load_settings(path)
    assert s.enabled is False
    assert s.language == "auto"


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]"])
def test_corrupt_settings_fall_back_to_defaults(tmp_path: Path, raw):
    path = tmp_path / "settings.json"
    path.write_text(raw, encoding="utf-8")
    assert load_settings(path) == Settings()


def test_wrong_typed_settings_are_coerced_or_dropped(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({
        "enabled": "false",
        "auto_check": 1,
        "language": 42,
        "api_key": None,
        "api_base_url": "http://localhost:8787",
    }), encoding="utf-8")
    s = load_settings(path)
    assert s.enabled is False
    assert s.auto_check is False
    assert s.language == "auto"
    assert s.api_key == ""
    assert s.api_base_url == "http://localhost:8787"


# ---------- gating ----------

def test_can_check_bounds():
    assert not can_check("  hi  ")
    assert can_check("abc")
    assert can_check("word " * CFG.WORD_LIMIT)
    assert not can_check("word " * (CFG.WORD_LIMIT + 1))


def test_accuracy_score():
    assert accuracy_score(0, 3) == 0
    assert accuracy_score(10, 0) == 100
    assert accuracy_score(10, 2) == 80
    assert accuracy_score(3, 9) == 0


# ---------- history ----------

def test_make_doc_fields():
    doc = make_doc("  First line that is the title\nsecond line  ")
    assert re.fullmatch(r"doc-\d+-[0-9a-f]{6}", doc.id)
    assert doc.title == "First line that is the title"
    assert doc.text == "First line that is the title\nsecond line"
    assert doc.updated_at.endswith("+00:00")

    long_doc = make_doc("x" * 500)
    assert len(long_doc.title) == CFG.TITLE_CHARS
    assert len(long_doc.preview) == CFG.PREVIEW_CHARS
    assert make_doc("   ").title == "Untitled"


@pytest.mark.parametrize("dsn", ["memory://", "sqlite"])
def test_store_newest_first_with_limit(tmp_path: Path, dsn):
    if dsn == "sqlite":
        dsn = f"sqlite:///{tmp_path / 'docs.sqlite'}"
    store = make_store(dsn, limit=3)
    try:
        for i in range(5):
            store.upsert(f"text {i}", doc_id=f"d{i}")
        assert [d.id for d in store.recent()] == ["d4", "d3", "d2"]
        assert store.count() == 3

        # updating moves a doc to the front
        store.upsert("text 2 again", doc_id="d2")
        assert [d.id for d in store.recent()] == ["d2", "d4", "d3"]
        assert store.read("d2").text == "text 2 again"

        store.delete("d4")
        assert store.count() == 2
        with pytest.raises(KeyError):
            store.read("d4")
    finally:
        store.close()


@pytest.mark.e2e
def test_sqlite_history_survives_reopen(tmp_path: Path):
    dsn = f"sqlite:///{tmp_path / 'sub' / 'docs.sqlite'}"
    store = make_store(dsn)
    saved = store.upsert("I have an apple.")
    store.close()

    again = make_store(dsn)
    try:
        assert again.read(saved.id) == saved
        assert again.count() == 1
    finally:
        again.close()


def test_unknown_dsn_rejected():
    with pytest.raises(ValueError):
        make_store("postgres://nope")


def test_sqlite_store_shared_across_threads(tmp_path: Path):
    store = make_store(f"sqlite:///{tmp_path / 'docs.sqlite'}")
    try:
        worker = threading.Thread(target=store.upsert, args=("Written elsewhere",))
        worker.start()
        worker.join()
        assert [d.text for d in store.recent()] == ["Written elsewhere"]
        assert store.count() == 1
    finally:
        store.close()
