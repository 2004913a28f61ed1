import os

import petl as etl
import pytest

from csvgraph import CsvGraphUserError, Sink


def test_sink_missing_directory_fails_fast(tmp_path):
    """Sink fails fast when the output directory is missing."""
    with pytest.raises(CsvGraphUserError) as ex:
        Sink(str(tmp_path / "nope" / "out.csv"))
    assert getattr(ex.value, "code", None) == "E_SINK_DIR_NOT_FOUND"


@pytest.mark.skipif(os.name == "nt" or getattr(os, "geteuid", lambda: 0)() == 0,
                    reason="permission bits are not enforced here")
def test_sink_unwritable_directory(tmp_path):
    """Sink fails fast when the output directory is not writable."""
    d = tmp_path / "ro"
    d.mkdir()
    d.chmod(0o500)
    try:
        with pytest.raises(CsvGraphUserError) as ex:
            Sink(d / "out.csv")
        assert getattr(ex.value, "code", None) == "E_SINK_NOT_WRITABLE"
    finally:
        d.chmod(0o700)


def test_sink_writes_newline_terminated_csv(tmp_path):
    """Sink writes newline-terminated CSV lines."""
    out = tmp_path / "out.csv"
    Sink(out).write(etl.wrap([("id", "name"), ("1", "alice"), ("2", "")]))
    assert out.read_text(encoding="utf-8") == "id,name\n1,alice\n2,\n"


def test_sink_defaults_to_stdout():
    """Sink without a uri writes to stdout."""
    s = Sink()
    assert s.is_stdout
    assert str(s) == "Sink(<stdout>)"


def test_sink_write_wraps_os_errors(tmp_path, monkeypatch):
    """OS errors while writing are wrapped as E_SINK_WRITE."""
    def boom(*_, **__):
        raise OSError("disk full")

    monkeypatch.setattr(etl, "tocsv", boom)
    with pytest.raises(CsvGraphUserError) as ex:
        Sink(tmp_path / "out.csv").write(etl.wrap([("a",)]))
    assert getattr(ex.value, "code", None) == "E_SINK_WRITE"
