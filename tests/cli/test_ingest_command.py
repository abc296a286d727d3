from __future__ import annotations

import json
from pathlib import Path

import duckdb
import pytest
from typer.testing import CliRunner

from ufcdata.cli import ingest as ingest_module
from ufcdata.cli.main import create_app
from ufcdata.core.data.ingestion.service import DataIngestionService
from ufcdata.core.exceptions.base import IngestionError


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def fighters_file(tmp_path: Path) -> Path:
    path = tmp_path / "fighters.jsonl"
    path.write_text(
        '{"fighterId": "f1", "name": "jon jones"}\n{"fighterId": "f2", "name": "stipe miocic"}\n',
        encoding="utf-8",
    )
    return path


@pytest.fixture()
def normalization_file(tmp_path: Path) -> Path:
    path = tmp_path / "normalization.json"
    path.write_text(
        json.dumps(
            {
                "transformations": [
                    {"sourceField": "fighterId", "targetField": "fighterId"},
                    {"sourceField": "name", "targetField": "fighterName", "transform": "title"},
                ],
                "conflictResolution": {"strategy": "merge"},
            }
        ),
        encoding="utf-8",
    )
    return path


def _rows(output: str) -> list[dict[str, object]]:
    return [json.loads(line) for line in output.splitlines() if line.strip()]


def test_ingest_outputs_jsonl(runner: CliRunner, fighters_file: Path, normalization_file: Path) -> None:
    result = runner.invoke(
        create_app(),
        ["--format", "jsonl", "ingest", str(fighters_file), "--source", "espn", "--normalization", str(normalization_file)],
    )

    assert result.exit_code == 0, result.output
    rows = _rows(result.stdout)
    assert [row["id"] for row in rows] == ["fighter:f1", "fighter:f2"]
    assert rows[0]["normalized_data"] == {"fighterId": "f1", "fighterName": "Jon Jones"}
    assert rows[0]["source_id"] == "espn"
    assert rows[0]["error_count"] == 0
    assert rows[0]["conflict_count"] == 0


def test_ingest_table_output(runner: CliRunner, fighters_file: Path) -> None:
    result = runner.invoke(create_app(), ["--no-color", "ingest", str(fighters_file), "-s", "espn"])

    assert result.exit_code == 0, result.output
    assert "espn" in result.stdout
    assert "{" in result.stdout


def test_ingest_persists_to_database(runner: CliRunner, fighters_file: Path, tmp_path: Path) -> None:
    database = tmp_path / "ufc.duckdb"

    result = runner.invoke(
        create_app(),
        ["--format", "jsonl", "ingest", str(fighters_file), "--source", "espn", "--database", str(database)],
    )

    assert result.exit_code == 0, result.output
    with duckdb.connect(str(database)) as conn:
        assert conn.execute("SELECT COUNT(*) FROM processed_records").fetchone()[0] == 2


def test_ingest_writes_output_file(runner: CliRunner, fighters_file: Path, tmp_path: Path) -> None:
    output = tmp_path / "out.jsonl"

    result = runner.invoke(
        create_app(), ["--format", "jsonl", "--output", str(output), "ingest", str(fighters_file), "-s", "espn"]
    )

    assert result.exit_code == 0, result.output
    assert len(_rows(output.read_text(encoding="utf-8"))) == 2


def test_ingest_missing_input(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(create_app(), ["ingest", str(tmp_path / "absent.json"), "--source", "espn"])

    assert result.exit_code == 20
    assert "INPUT_READ_ERROR" in result.stderr


def test_ingest_rejects_unknown_strategy(runner: CliRunner, fighters_file: Path, tmp_path: Path) -> None:
    config = tmp_path / "bad.json"
    config.write_text(json.dumps({"conflictResolution": {"strategy": "coin_flip"}}), encoding="utf-8")

    result = runner.invoke(create_app(), ["ingest", str(fighters_file), "-s", "espn", "-n", str(config)])

    assert result.exit_code == 10
    assert "CONFIGURATION_ERROR" in result.stderr


def test_ingest_reports_pipeline_errors(
    runner: CliRunner, fighters_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    class FailingService(DataIngestionService):
        async def process_data(self, source_id, records):
            raise IngestionError("storage unavailable", source_id)

    monkeypatch.setattr(ingest_module, "get_ingestion_service", lambda config, repository=None: FailingService())

    result = runner.invoke(create_app(), ["ingest", str(fighters_file), "-s", "espn"])

    assert result.exit_code == 10
    payload = json.loads(result.stderr.strip().splitlines()[-1])
    assert payload["code"] == "INGESTION_ERROR"
    assert payload["details"] == {"source_id": "espn"}


def test_unknown_format_is_rejected(runner: CliRunner, fighters_file: Path) -> None:
    result = runner.invoke(create_app(), ["--format", "xml", "ingest", str(fighters_file), "-s", "espn"])

    assert result.exit_code == 2


@pytest.mark.parametrize(
    ("variable", "value"),
    [
        ("UFCDATA_LATEST_RESOLUTION_MODE", "newest"),
        ("UFCDATA_DEFAULT_STRATEGY", "coin_flip"),
        ("UFCDATA_SYNC_ERROR_BACKOFF_MS", "soon"),
    ],
)
def test_bad_environment_settings_exit_with_configuration_error(
    runner: CliRunner, fighters_file: Path, monkeypatch: pytest.MonkeyPatch, variable: str, value: str
) -> None:
    monkeypatch.setenv(variable, value)

    result = runner.invoke(create_app(), ["ingest", str(fighters_file), "-s", "espn"])

    assert result.exit_code == 10
    payload = json.loads(result.stderr.strip().splitlines()[-1])
    assert payload["code"] == "CONFIGURATION_ERROR"
