import pytest
from click.testing import CliRunner

from sparqled.cli import cli
from sparqled.sparql.client import SourceResult


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "sparqled.yaml"
    path.write_text(
        "endpoints:\n"
        "  - id: test\n"
        "    label: Test endpoint\n"
        "    sparql_url: http://localhost/sparql\n"
        "    graph: http://graph\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def query_file(tmp_path):
    path = tmp_path / "query.rq"
    path.write_text("PREFIX : <http://ex.org/>\nSELECT * WHERE { ?s a :Person; ?p ?o . ?o a < }\n", encoding="utf-8")
    return path


def result(bindings, variables=("POF", "count")):
    rows = [{k: v["value"] for k, v in b.items()} for b in bindings]
    return SourceResult(
        rows=rows,
        variables=list(variables),
        row_count=len(rows),
        elapsed_ms=3.0,
        endpoint_url="http://localhost/sparql",
        status="ok",
        bindings=bindings,
    )


def binding(value, count):
    return {"POF": {"type": "uri", "value": value}, "count": {"type": "literal", "value": str(count)}}


def fake_endpoint(monkeypatch, *results):
    queries = []
    pending = list(results)

    def fake_execute(endpoint_url, query, timeout_s=30.0, method_preference="POST"):
        queries.append(query)
        return pending.pop(0)

    monkeypatch.setattr("sparqled.sparql.client.execute_sparql", fake_execute)
    return queries


def test_complete(runner, config_path, query_file):
    res = runner.invoke(cli, ["--config", str(config_path), "complete", str(query_file), "--check"])
    assert res.exit_code == 0, res.output
    lines = res.output.splitlines()
    assert lines[0] == "# recommendation: class"
    assert "  ?o a ?POF ." in lines
    assert "  ?s a <http://ex.org/Person> ." in lines
    assert "LIMIT 10" in lines


def test_complete_from_stdin_with_limit(runner, config_path):
    res = runner.invoke(
        cli,
        ["--config", str(config_path), "complete", "-", "--limit", "3"],
        input="SELECT * { ?s ?p ?o . ?o < }",
    )
    assert res.exit_code == 0, res.output
    assert res.output.startswith("# recommendation: predicate\n")
    assert "LIMIT 3" in res.output
    assert "LIMIT 10" not in res.output


def test_complete_with_template(runner, config_path, query_file, tmp_path):
    template = tmp_path / "subject.j2"
    template.write_text("{{ pof_subject }} {{ tps | length }}\n", encoding="utf-8")
    res = runner.invoke(cli, ["--config", str(config_path), "complete", str(query_file), "--template", str(template)])
    assert res.exit_code == 0, res.output
    assert res.output.splitlines()[1] == "?o 3"


def test_complete_parse_error(runner, config_path, tmp_path):
    bad = tmp_path / "bad.rq"
    bad.write_text("SELECT * WHERE { ?s <aaa>; < ", encoding="utf-8")
    res = runner.invoke(cli, ["--config", str(config_path), "complete", str(bad)])
    assert res.exit_code == 1
    assert "Error" in res.output


def test_complete_missing_file(runner, config_path, tmp_path):
    res = runner.invoke(cli, ["--config", str(config_path), "complete", str(tmp_path / "missing.rq")])
    assert res.exit_code == 2
    assert "does not exist" in res.output


def test_complete_execute(runner, config_path, query_file, monkeypatch):
    queries = fake_endpoint(monkeypatch, result([{"POF": {"type": "uri", "value": "http://ex.org/City"}}], ["POF"]))
    res = runner.invoke(cli, ["--config", str(config_path), "complete", str(query_file), "--execute"])
    assert res.exit_code == 0, res.output
    assert "# 1 result(s) from Test endpoint in 3.0 ms" in res.output
    assert res.output.rstrip().endswith("http://ex.org/City")
    assert len(queries) == 1


def test_measure(runner, config_path, query_file, monkeypatch):
    queries = fake_endpoint(
        monkeypatch,
        result([binding("http://ex/A", 3), binding("http://ex/B", 7), binding("http://ex/A", 5)]),
        result([binding("http://ex/A", 100), binding("http://ex/B", 50)]),
    )
    res = runner.invoke(cli, ["--config", str(config_path), "measure", str(query_file), "--top-k", "2"])
    assert res.exit_code == 0, res.output
    assert "8\thttp://ex/A\n7\thttp://ex/B\nmin=50 max=100 mean=75.00 elapsed=3.0ms\n" in res.output
    assert "FROM <http://graph>" in queries[0]


def test_measure_no_recommendations(runner, config_path, query_file, monkeypatch):
    fake_endpoint(monkeypatch, result([]))
    res = runner.invoke(cli, ["--config", str(config_path), "measure", str(query_file)])
    assert res.exit_code == 0, res.output
    assert "No recommendations" in res.output


def test_measure_endpoint_failure(runner, config_path, query_file, monkeypatch):
    failed = SourceResult(
        rows=[],
        variables=[],
        row_count=0,
        elapsed_ms=0.0,
        endpoint_url="http://localhost/sparql",
        status="error",
        error="HTTP 500: boom",
        status_code=500,
    )
    fake_endpoint(monkeypatch, failed)
    res = runner.invoke(cli, ["--config", str(config_path), "measure", str(query_file)])
    assert res.exit_code == 1
    assert "boom" in res.output


def test_bad_config(runner, tmp_path, query_file):
    path = tmp_path / "broken.yaml"
    path.write_text("client:\n  method: PUT\n", encoding="utf-8")
    res = runner.invoke(cli, ["--config", str(path), "complete", str(query_file)])
    assert res.exit_code == 1
    assert "GET or POST" in res.output
