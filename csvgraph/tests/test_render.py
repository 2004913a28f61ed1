import subprocess
from types import SimpleNamespace

import pytest

from csvgraph import CsvGraphUserError
from csvgraph import render


def test_save_dot_file_creates_parent(tmp_path):
    """save_dot_file creates missing parent directories."""
    p = render.save_dot_file(tmp_path / "gen" / "graph.dot", "graph G {}\n")
    assert p.read_text(encoding="utf-8") == "graph G {}\n"


def test_run_dot_invokes_engine(tmp_path, monkeypatch):
    """run_dot calls the configured engine with format and paths."""
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return SimpleNamespace(returncode=0, stderr=b"")

    monkeypatch.setattr(subprocess, "run", fake_run)
    out = render.run_dot(tmp_path / "g.dot", tmp_path / "g.pdf", "pdf", engine="neato")
    assert out == tmp_path / "g.pdf"
    assert calls == [["neato", "-Tpdf", str(tmp_path / "g.dot"), "-o", str(tmp_path / "g.pdf")]]


def test_run_dot_rejects_unknown_format(tmp_path):
    """run_dot rejects formats outside png and pdf."""
    with pytest.raises(CsvGraphUserError) as ex:
        render.run_dot(tmp_path / "g.dot", tmp_path / "g.svg", "svg")
    assert getattr(ex.value, "code", None) == "E_RENDER_FORMAT"


def test_run_dot_missing_engine(tmp_path, monkeypatch):
    """a missing Graphviz binary raises E_RENDER_ENGINE_MISSING."""
    def fake_run(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(subprocess, "run", fake_run)
    with pytest.raises(CsvGraphUserError) as ex:
        render.run_dot(tmp_path / "g.dot", tmp_path / "g.png")
    assert getattr(ex.value, "code", None) == "E_RENDER_ENGINE_MISSING"


def test_run_dot_failure_carries_stderr(tmp_path, monkeypatch):
    """a failing engine's stderr ends up in the error."""
    monkeypatch.setattr(subprocess, "run", lambda cmd, **kw: SimpleNamespace(returncode=1, stderr=b"syntax error"))
    with pytest.raises(CsvGraphUserError) as ex:
        render.run_dot(tmp_path / "g.dot", tmp_path / "g.png")
    assert ex.value.code == "E_RENDER_FAILED"
    assert "syntax error" in str(ex.value)


def test_open_file_never_raises(tmp_path, monkeypatch):
    """open_file reports failure instead of raising."""
    def fake_run(cmd, **kwargs):
        raise OSError("no viewer")

    monkeypatch.setattr(render.platform, "system", lambda: "Linux")
    monkeypatch.setattr(subprocess, "run", fake_run)
    assert render.open_file(tmp_path / "g.png") is False

    monkeypatch.setattr(render.platform, "system", lambda: "Plan9")
    assert render.open_file(tmp_path / "g.png") is False
