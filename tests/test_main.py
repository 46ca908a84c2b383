"""CLI tests with stubbed model calls and a temporary SQLite store."""
from __future__ import annotations

import functools
import re

import pytest

from feedback_lens import config
from feedback_lens import main as cli
from feedback_lens.pipeline.run import AnalysisController
from feedback_lens.reporting.models import KeyInsights


async def _classify(items):
    return [
        {"id": item.id, "sentiment": "negative" if "slow" in item.feedback_text else "positive", "topics": ["Performance"]}
        for item in items
    ]


async def _summarize(payload):
    return KeyInsights("Slow pages", "Mostly positive")


@pytest.fixture()
def env(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "USER_ID_PATH", tmp_path / "user_id")
    monkeypatch.setattr(
        cli,
        "AnalysisController",
        functools.partial(AnalysisController, classifier=_classify, summarizer=_summarize),
    )
    csv_path = tmp_path / "survey.csv"
    csv_path.write_text(
        "Comment,Date\nLove it,2024-04-01\nPages are slow,2024-04-02\nGreat,2024-04-02\n",
        encoding="utf-8",
    )
    return ["--database-url", f"sqlite:///{tmp_path / 'db.sqlite'}"], csv_path


def _saved_id(output: str) -> str:
    return re.search(r"Report saved! \(ID: (\w+)\)", output).group(1)


def test_analyze_save_list_show(env, capsys):
    db, csv_path = env

    assert cli.main(db + ["analyze", str(csv_path), "--text-column", "Comment", "--timestamp-column", "Date", "--save", "April"]) == 0
    out = capsys.readouterr().out
    assert "3 of 3 items analyzed" in out
    assert "Slow pages" in out
    assert "2024-04-02" in out
    storage_id = _saved_id(out)

    assert cli.main(db + ["list"]) == 0
    listing = capsys.readouterr().out
    assert storage_id in listing and "April" in listing

    assert cli.main(db + ["show", storage_id]) == 0
    assert "April" in capsys.readouterr().out


def test_compare_two_saved_reports(env, capsys):
    db, csv_path = env
    cli.main(db + ["analyze", str(csv_path), "--text-column", "Comment", "--save", "one"])
    first = _saved_id(capsys.readouterr().out)
    cli.main(db + ["analyze", str(csv_path), "--text-column", "Comment", "--save", "two"])
    second = _saved_id(capsys.readouterr().out)

    assert cli.main(db + ["compare", second, first]) == 0
    out = capsys.readouterr().out
    assert "Comparing 'two' vs 'one'" in out
    assert "Positive share" in out


def test_missing_text_column_lists_headers(env, capsys):
    db, csv_path = env
    assert cli.main(db + ["analyze", str(csv_path)]) == 1
    out = capsys.readouterr().out
    assert "- Comment" in out and "- Date" in out


def test_unknown_column_is_an_error(env, capsys):
    db, csv_path = env
    assert cli.main(db + ["analyze", str(csv_path), "--text-column", "Body"]) == 1
    assert "Error:" in capsys.readouterr().err


def test_show_unknown_report(env, capsys):
    db, _ = env
    assert cli.main(db + ["show", "nope"]) == 1
    assert "not found" in capsys.readouterr().err


@pytest.mark.parametrize("option, value", [("--batch-size", "-1"), ("--batch-size", "0"), ("--concurrency", "-1"), ("--concurrency", "x")])
def test_non_positive_numbers_are_usage_errors(env, capsys, option, value):
    db, csv_path = env
    with pytest.raises(SystemExit) as info:
        cli.main(db + ["analyze", str(csv_path), "--text-column", "Comment", option, value])
    assert info.value.code == 2
    assert option in capsys.readouterr().err
