import json

import pytest
from click.testing import CliRunner

from tracefuse import __version__
from tracefuse import cli as cli_module
from tracefuse.cli import cli
from tracefuse.pipeline import trace_run


@pytest.fixture
def runner():
    return CliRunner()


def _stub_orchestrator(monkeypatch, group):
    class StubOrchestrator:
        def __init__(self, working_dir=None):
            self.working_dir = working_dir

        async def run(self, file_path, environment=None):
            return group

    monkeypatch.setattr(cli_module, "RunOrchestrator", StubOrchestrator)


def test_parse_passing_run(runner, cars_files):
    http_path, log_path, report_path = cars_files

    result = runner.invoke(cli, ["parse", str(http_path), "--log", str(log_path), "--report", str(report_path)])

    assert result.exit_code == 0
    assert "ListCars" in result.output
    assert "3 passed, 0 failed" in result.output


def test_parse_writes_json(runner, cars_files, tmp_path):
    http_path, log_path, report_path = cars_files
    output = tmp_path / "results.json"

    result = runner.invoke(cli, ["parse", str(http_path), "-l", str(log_path), "-r", str(report_path),
                                 "-o", str(output)])

    assert result.exit_code == 0
    assert [r["name"] for r in json.loads(output.read_text(encoding="utf-8"))["results"]][:2] == [
        "ListCars", "AddCar"
    ]


def test_parse_writes_csv_by_suffix(runner, cars_files, tmp_path):
    http_path, log_path, _ = cars_files
    output = tmp_path / "results.csv"

    result = runner.invoke(cli, ["parse", str(http_path), "-l", str(log_path), "-o", str(output)])

    assert result.exit_code == 0
    assert output.read_text(encoding="utf-8").startswith("# Request file:")


def test_parse_failed_request_exits_nonzero(runner, tmp_path, cars_http):
    http_path = tmp_path / "cars.http"
    log_path = tmp_path / "run.log"
    http_path.write_text(cars_http, encoding="utf-8")
    log_path.write_text(
        "[14:22:01 INF] Start processing HTTP request GET http://localhost:3001/cars\n"
        "[14:22:01 INF] End processing HTTP request after 5ms - 500\n",
        encoding="utf-8",
    )

    result = runner.invoke(cli, ["parse", str(http_path), "-l", str(log_path)])

    assert result.exit_code == 1
    assert "HTTP 500 Internal Server Error" in result.output


def test_parse_missing_log(runner, cars_files, tmp_path):
    http_path, _, _ = cars_files

    result = runner.invoke(cli, ["parse", str(http_path), "-l", str(tmp_path / "missing.log")])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_run_missing_file(runner, tmp_path):
    result = runner.invoke(cli, ["run", str(tmp_path / "missing.http")])

    assert result.exit_code == 2


def test_run_rejects_non_request_file(runner, tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("GET http://localhost/\n", encoding="utf-8")

    result = runner.invoke(cli, ["run", str(path)])

    assert result.exit_code == 1
    assert "Not an .http request file" in result.output


def test_run_renders_results(runner, monkeypatch, cars_files):
    http_path, log_path, report_path = cars_files
    group = trace_run(
        http_path.read_text(encoding="utf-8"),
        log_path.read_text(encoding="utf-8"),
        report_path.read_text(encoding="utf-8"),
        http_path,
    )
    _stub_orchestrator(monkeypatch, group)

    result = runner.invoke(cli, ["run", str(http_path)])

    assert result.exit_code == 0
    assert "AddCar" in result.output


def test_run_superseded(runner, monkeypatch, cars_files):
    http_path, _, _ = cars_files
    _stub_orchestrator(monkeypatch, None)

    result = runner.invoke(cli, ["run", str(http_path)])

    assert result.exit_code == 1
    assert "superseded" in result.output


def test_version(runner):
    result = runner.invoke(cli, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_info(runner):
    result = runner.invoke(cli, ["info"])

    assert result.exit_code == 0
    assert "Report Path" in result.output
