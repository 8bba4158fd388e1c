# src/e2e/test_integration_cli.py

import json
from pathlib import Path

import pytest

import correctnow.__main__ as cli
from correctnow.client import ProofreadError
from correctnow.history import make_store
from correctnow.models import ProofreadResult

CHANGES = [
    {"original": "has", "corrected": "have"},
    {"original": "a apple", "corrected": "an apple"},
]


def _changes_file(tmp: Path, payload) -> str:
    p = tmp / "changes.json"
    p.write_text(json.dumps(payload), encoding="utf-8")
    return str(p)


@pytest.mark.e2e
def test_cli_accept_all_json(tmp_path: Path, capsys):
    path = _changes_file(tmp_path, {"corrected_text": "I have an apple.", "changes": CHANGES})
    rc = cli.main(["--text", "I has a apple.", "--changes", path, "--accept-all", "--json"])
    assert rc == 0
    data = json.loads(capsys.readouterr().out)
    assert data["text"] == "I have an apple."
    assert [s["status"] for s in data["suggestions"]] == ["accepted", "accepted"]


@pytest.mark.e2e
def test_cli_marks_occurrences_without_color(tmp_path: Path, capsys):
    path = _changes_file(tmp_path, [{"original": "teh", "corrected": "the", "explanation": "typo"}])
    rc = cli.main(["--text", "teh cat", "--changes", path])
    assert rc == 0
    out = capsys.readouterr().out
    assert "[teh] cat" in out
    assert "typo" in out
    assert out.rstrip().endswith("teh cat")


@pytest.mark.e2e
def test_cli_reads_file_and_saves_history(tmp_path: Path, capsys):
    src = tmp_path / "note.txt"
    src.write_text("I has a apple.", encoding="utf-8")
    path = _changes_file(tmp_path, CHANGES)
    dsn = f"sqlite:///{tmp_path / 'docs.sqlite'}"

    rc = cli.main(["--file", str(src), "--changes", path, "--accept-all", "--history", dsn])
    assert rc == 0
    assert "(saved as doc-" in capsys.readouterr().out

    store = make_store(dsn)
    try:
        assert [d.text for d in store.recent()] == ["I have an apple."]
    finally:
        store.close()


@pytest.mark.e2e
def test_cli_repl_commands(tmp_path: Path, capsys, monkeypatch):
    path = _changes_file(tmp_path, CHANGES)
    answers = iter([":accept 1", ":ignore 0", ":accept x", ":nope", ":text", ""])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))

    rc = cli.main(["--text", "I has a apple.", "--changes", path, "--repl", "--json"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "bad suggestion number 'x'" in out
    assert "unknown command ':nope'" in out
    data = json.loads(out[out.index("{"):])
    assert data["text"] == "I has an apple."
    assert [s["status"] for s in data["suggestions"]] == ["ignored", "accepted"]


@pytest.mark.e2e
def test_cli_calls_service_with_settings(tmp_path: Path, capsys, monkeypatch):
    seen = {}

    def fake_proofread(base, text, language, api_key):
        seen.update(base=base, text=text, language=language, api_key=api_key)
        return ProofreadResult("I have an apple.", CHANGES)

    monkeypatch.setattr(cli, "proofread", fake_proofread)
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"language": "English", "api_key": "k"}), encoding="utf-8")

    rc = cli.main(["--text", "I has a apple.", "--settings", str(settings),
                   "--api", "localhost:8787", "--accept-all", "--json"])
    assert rc == 0
    assert seen == {"base": "localhost:8787", "text": "I has a apple.", "language": "English", "api_key": "k"}
    assert json.loads(capsys.readouterr().out)["text"] == "I have an apple."


def test_cli_disabled_in_settings(tmp_path: Path, capsys):
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"enabled": False}), encoding="utf-8")
    assert cli.main(["--text", "I has a apple.", "--settings", str(settings)]) == 2
    assert "disabled" in capsys.readouterr().err


def test_cli_text_too_short(tmp_path: Path, capsys):
    assert cli.main(["--text", "hi", "--settings", str(tmp_path / "none.json")]) == 2
    assert "at least 3 characters" in capsys.readouterr().err


def test_cli_service_failure(tmp_path: Path, capsys, monkeypatch):
    def failing(*args, **kw):
        raise ProofreadError("Missing API Base URL")

    monkeypatch.setattr(cli, "proofread", failing)
    assert cli.main(["--text", "I has a apple.", "--settings", str(tmp_path / "none.json")]) == 1
    assert "Check failed: Missing API Base URL" in capsys.readouterr().err


@pytest.mark.parametrize("raw", [None, "{not json"])
def test_cli_unreadable_changes_file(tmp_path: Path, capsys, raw):
    path = tmp_path / "changes.json"
    if raw is not None:
        path.write_text(raw, encoding="utf-8")
    rc = cli.main(["--text", "I has a apple.", "--changes", str(path)])
    assert rc == 1
    captured = capsys.readouterr()
    assert captured.err.startswith("Check failed: ")
    assert captured.out == ""
