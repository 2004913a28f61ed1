import pytest

from csvgraph import CsvGraphUserError, ForeignKey
from csvgraph.sql import parse_sql, parse_sql_file
from csvgraph.tests import DATA_DIR


def test_parse_sample_schema():
    """the sample schema yields tables, primary keys and foreign keys in order."""
    tables = {t.name: t for t in parse_sql_file(DATA_DIR / "schema.sql")}
    assert list(tables) == ["users", "posts", "comments", "tags"]

    assert tables["users"].headers == ("id", "name", "email")
    assert tables["users"].primary_key == "id"
    assert tables["users"].foreign_keys == ()

    assert tables["posts"].foreign_keys == (ForeignKey("user_id", "users", "id"),)
    assert tables["comments"].primary_key == "id"
    assert tables["comments"].foreign_keys == (ForeignKey("post_id", "posts", "id"),)


def test_table_names_lower_cased_columns_kept():
    """table names are lower-cased and column names kept as written."""
    (t,) = parse_sql("CREATE TABLE Orders (OrderId INT PRIMARY KEY, Total NUMERIC(10, 2));")
    assert t.name == "orders"
    assert t.headers == ("OrderId", "Total")
    assert t.primary_key == "OrderId"


def test_alter_table_adds_foreign_key():
    text = """
    CREATE TABLE a (id INT PRIMARY KEY);
    CREATE TABLE b (id INT PRIMARY KEY, a_id INT);
    ALTER TABLE b ADD CONSTRAINT fk_b_a FOREIGN KEY (a_id) REFERENCES a (id);
    """
    tables = {t.name: t for t in parse_sql(text)}
    assert tables["b"].foreign_keys == (ForeignKey("a_id", "a", "id"),)


def test_reference_without_column_uses_primary_key():
    text = """
    CREATE TABLE b (id INT PRIMARY KEY, a_id INT REFERENCES a);
    CREATE TABLE a (code TEXT PRIMARY KEY);
    """
    tables = {t.name: t for t in parse_sql(text)}
    assert tables["b"].foreign_keys == (ForeignKey("a_id", "a", "code"),)


def test_reference_without_column_or_primary_key_is_skipped(caplog):
    text = """
    CREATE TABLE a (code TEXT);
    CREATE TABLE b (a_id INT REFERENCES a);
    """
    with caplog.at_level("WARNING"):
        tables = {t.name: t for t in parse_sql(text)}
    assert tables["b"].foreign_keys == ()
    assert "skipped" in caplog.text


def test_non_table_statements_are_ignored():
    text = """
    CREATE INDEX idx_a ON a (id);
    CREATE TABLE a (id INT);
    INSERT INTO a VALUES (1);
    """
    assert [t.name for t in parse_sql(text)] == ["a"]


def test_parse_error():
    """malformed SQL raises E_SQL_PARSE."""
    with pytest.raises(CsvGraphUserError) as ex:
        parse_sql("CREATE TABLE a (id INT")
    assert getattr(ex.value, "code", None) == "E_SQL_PARSE"


def test_missing_schema_file(tmp_path):
    """a missing schema file raises E_SCHEMA_READ."""
    with pytest.raises(CsvGraphUserError) as ex:
        parse_sql_file(tmp_path / "nope.sql")
    assert getattr(ex.value, "code", None) == "E_SCHEMA_READ"
