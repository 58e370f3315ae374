from __future__ import annotations

import json
import shutil
from pathlib import Path

from typer.testing import CliRunner

from tcorpus.cli.main import app

FIXTURE = Path(__file__).resolve().parent / "fixtures" / "kotlin_tutorial"
CONFIG = FIXTURE / "corpus.yaml"
runner = CliRunner()


def _broken_copy(tmp_path: Path) -> Path:
    corpus = tmp_path / "kotlin_tutorial"
    shutil.copytree(FIXTURE, corpus)
    lists = corpus / "collections" / "lists.md"
    lists.write_text(
        lists.read_text(encoding="utf-8").replace("../advanced/coroutines.md", "../nope/missing.md"),
        encoding="utf-8",
    )
    return corpus


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.startswith("tcorpus ")


def test_validate_cli_succeeds_on_fixture() -> None:
    result = runner.invoke(app, ["validate", "--config", str(CONFIG)])
    assert result.exit_code == 0
    assert "Corpus looks good" in result.stdout


def test_validate_cli_reads_config_from_environment() -> None:
    result = runner.invoke(app, ["validate"], env={"TCORPUS_CONFIG": str(CONFIG)})
    assert result.exit_code == 0
    assert "Corpus looks good" in result.stdout


def test_validate_cli_warnings_and_fail_on_warning() -> None:
    # Without the config the README is loaded as a lesson nothing links to.
    result = runner.invoke(app, ["validate", str(FIXTURE)])
    assert result.exit_code == 0
    assert "1 warning(s), no errors." in result.stdout

    result = runner.invoke(app, ["validate", str(FIXTURE), "--fail-on-warning"])
    assert result.exit_code == 1


def test_validate_cli_broken_link_fails(tmp_path: Path) -> None:
    corpus = _broken_copy(tmp_path)
    result = runner.invoke(app, ["validate", "--config", str(corpus / "corpus.yaml"), "--format", "jsonl"])

    assert result.exit_code == 1
    records = [json.loads(line) for line in result.stdout.splitlines() if line.strip()]
    broken = [record for record in records if record["kind"] == "broken-link"]
    assert len(broken) == 1
    assert broken[0]["lesson_id"] == "collections/lists"
    assert broken[0]["details"]["reference"] == "../nope/missing.md"
    assert {record["severity"] for record in records} <= {"error", "warning"}


def test_validate_cli_writes_report_file(tmp_path: Path) -> None:
    corpus = _broken_copy(tmp_path)
    report_path = tmp_path / "reports" / "validation.jsonl"

    result = runner.invoke(
        app,
        ["validate", "--config", str(corpus / "corpus.yaml"), "--output", str(report_path)],
    )

    assert result.exit_code == 1
    lines = report_path.read_text(encoding="utf-8").splitlines()
    assert any(json.loads(line)["kind"] == "broken-link" for line in lines)

    rerun = runner.invoke(
        app,
        ["validate", "--config", str(corpus / "corpus.yaml"), "--output", str(report_path)],
    )
    assert rerun.exit_code == 1
    assert len(report_path.read_text(encoding="utf-8").splitlines()) == len(lines)


def test_validate_cli_rejects_bad_format() -> None:
    result = runner.invoke(app, ["validate", "--config", str(CONFIG), "--format", "xml"])
    assert result.exit_code == 2


def test_validate_cli_rejects_missing_config(tmp_path: Path) -> None:
    result = runner.invoke(app, ["validate", "--config", str(tmp_path / "nope.yaml")])
    assert result.exit_code == 2


def test_validate_cli_reports_load_failure(tmp_path: Path) -> None:
    result = runner.invoke(app, ["validate", str(tmp_path)])
    assert result.exit_code == 1
    assert "Corpus load failed" in result.stdout


def test_path_cli_json() -> None:
    result = runner.invoke(app, ["path", "advanced/coroutines", "--config", str(CONFIG), "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["complete"] is True
    assert payload["path"] == [
        "basics/introduction",
        "basics/variables",
        "basics/strings",
        "collections/lists",
        "advanced/coroutines",
    ]


def test_path_cli_reports_cycle(tmp_path: Path) -> None:
    (tmp_path / "intro.md").write_text("# Intro\n\n## What's next\n\n- [A](a.md)\n", encoding="utf-8")
    (tmp_path / "a.md").write_text("# A\n\n## Prerequisites\n\n- [B](b.md)\n", encoding="utf-8")
    (tmp_path / "b.md").write_text("# B\n\n## Prerequisites\n\n- [A](a.md)\n", encoding="utf-8")

    result = runner.invoke(app, ["path", "intro", str(tmp_path), "--json"])

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["complete"] is False
    assert payload["path"] == ["intro"]
    assert payload["remainder"] == ["a", "b"]


def test_path_cli_unknown_lesson() -> None:
    result = runner.invoke(app, ["path", "basics/missing", "--config", str(CONFIG)])
    assert result.exit_code == 2


def test_render_cli_emits_view_json() -> None:
    result = runner.invoke(app, ["render", "basics/variables", "--config", str(CONFIG)])

    assert result.exit_code == 0
    view = json.loads(result.stdout)
    assert view["title"] == "Variables"
    assert [block["role"] for block in view["code_blocks"]] == [
        "example",
        "exercise-prompt",
        "exercise-solution",
    ]
    assert view["code_blocks"][1]["raw_text"] == "// TODO: Add your solution here"
    assert [link["lesson_id"] for link in view["next_lessons"]] == ["basics/strings", "collections/lists"]


def test_lessons_cli_json() -> None:
    result = runner.invoke(app, ["lessons", "--config", str(CONFIG), "--json"])

    assert result.exit_code == 0
    rows = {row["id"]: row for row in json.loads(result.stdout)}
    assert set(rows) == {
        "advanced/coroutines",
        "basics/introduction",
        "basics/strings",
        "basics/variables",
        "collections/lists",
    }
    assert rows["advanced/coroutines"]["prerequisites"] == ["basics/strings", "collections/lists"]
    assert rows["basics/variables"]["code_blocks"] == 3
