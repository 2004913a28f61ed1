import petl as etl
import pytest

from csvgraph import CsvGraphUserError, Pipeline, Sink, Source, TableDescriptor, Transform
from csvgraph.tests import DATA_DIR


def _make_source(tmp_path, name="in.csv", text="id,name,age\n1,alice,30\n2,bob,25\n"):
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return Source(str(p))


def _make_sink(tmp_path, name="out.csv"):
    return Sink(str(tmp_path / name))


def test_pipeline_then_validates_step_type(tmp_path):
    pipe = Pipeline(_make_source(tmp_path))
    with pytest.raises(CsvGraphUserError) as ex:
        pipe.then("not-a-step")  # type: ignore[arg-type]
    assert getattr(ex.value, "code", None) == "E_PIPELINE_STEP"


def test_pipeline_then_rejects_transform_after_sink(tmp_path):
    pipe = Pipeline(_make_source(tmp_path)).then(_make_sink(tmp_path))
    with pytest.raises(CsvGraphUserError) as ex:
        pipe.then(Transform("select", params={"columns": ["id"]}))
    assert getattr(ex.value, "code", None) == "E_PIPELINE_ORDER"


def test_pipeline_then_returns_new_pipeline(tmp_path):
    pipe = Pipeline(_make_source(tmp_path))
    pipe2 = pipe.then(Transform("drop", params={"columns": ["age"]}))
    assert pipe.steps == []
    assert len(pipe2.steps) == 1


def test_pipeline_preflight_rejects_unknown_step_type(tmp_path):
    pipe = Pipeline(_make_source(tmp_path), steps=[object()])
    with pytest.raises(CsvGraphUserError) as ex:
        pipe.preflight()
    assert getattr(ex.value, "code", None) == "E_PIPELINE_STEP_TYPE"


def test_pipeline_preflight_checks_columns_before_reading_rows(tmp_path):
    pipe = Pipeline(_make_source(tmp_path)).then(Transform("select", params={"columns": ["salary"]}))
    with pytest.raises(CsvGraphUserError) as ex:
        pipe.preflight()
    assert getattr(ex.value, "code", None) == "E_COLUMN_NOT_FOUND"


def test_pipeline_run_records_checkpoints(tmp_path):
    sink = _make_sink(tmp_path)
    pipe = (
        Pipeline(_make_source(tmp_path))
        .then(Transform("drop", params={"columns": ["age"]}))
        .then(sink)
    )
    ctx = pipe.run()

    assert [c[1]["kind"] for c in ctx.checkpoints] == ["transform", "sink"]
    assert ctx.checkpoints[0][1]["header"] == ["id", "name"]
    assert ctx.descriptor.headers == ("id", "name")
    assert (tmp_path / "out.csv").read_text(encoding="utf-8") == "id,name\n1,alice\n2,bob\n"


def test_pipeline_join_then_select(tmp_path):
    ages = tmp_path / "cities.csv"
    ages.write_text("person,city\n1,Nairobi\n2,Kampala\n", encoding="utf-8")
    pipe = (
        Pipeline(_make_source(tmp_path))
        .then(Transform("join", params={"right": str(ages), "left_on": "id", "right_on": "person"}))
        .then(Transform("select", params={"columns": ["city", "name"]}))
    )
    assert pipe.preview(5) == [("name", "city"), ("alice", "Nairobi"), ("bob", "Kampala")]


def test_pipeline_concat_sources():
    pipe = Pipeline(Source(DATA_DIR / "users.csv")).then(
        Transform("concat", params={"others": [Source(DATA_DIR / "users.csv")]})
    )
    assert etl.nrows(pipe.table()) == 6


def test_pipeline_uses_given_descriptor(tmp_path):
    src = _make_source(tmp_path)
    desc = TableDescriptor(name="people", headers=("id", "name", "age"), primary_key="id")
    ctx = Pipeline(src, descriptor=desc).then(_make_sink(tmp_path)).run()
    assert ctx.descriptor is desc


def test_pipeline_str(tmp_path):
    pipe = Pipeline(_make_source(tmp_path)).then(Transform("drop", params={"columns": ["age"]}))
    text = str(pipe)
    assert text.startswith("Pipeline(start=")
    assert "-> Transform(op=drop" in text
