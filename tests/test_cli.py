from __future__ import annotations

import logging

import pytest
import yaml
from typer.testing import CliRunner

from membroker.main import app


runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_chain_prints_dispatch_order() -> None:
    result = runner.invoke(app, ["chain", "bool"])
    assert result.exit_code == 0, result.output
    assert result.output.split() == ["builtins.object", "builtins.int", "builtins.bool"]


def test_chain_dotted_path() -> None:
    result = runner.invoke(app, ["chain", "collections.OrderedDict"])
    assert result.exit_code == 0, result.output
    assert result.output.split()[-1] == "collections.OrderedDict"


def test_chain_unknown_target_fails() -> None:
    result = runner.invoke(app, ["chain", "nowhere.Missing"])
    assert result.exit_code == 1
    assert "cannot import nowhere.Missing" in result.output


def test_chain_non_class_fails() -> None:
    result = runner.invoke(app, ["chain", "os.sep"])
    assert result.exit_code == 1
    assert "is not a class" in result.output


def test_bench_drops_half_the_subscribers(tmp_path) -> None:
    cfg_path = tmp_path / "cfg.yaml"
    cfg_path.write_text(
        yaml.safe_dump({"log": {"level": "WARNING", "json": False}, "broker": {"cleanup_interval_seconds": 60}}),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["bench", "-c", str(cfg_path), "-n", "100", "-s", "4", "-t", "2"])

    assert result.exit_code == 0, result.output
    assert "sent=100 delivered=300" in result.output
    assert "removed=2 subscriptions=2" in result.output


def test_bench_rejects_zero_threads() -> None:
    result = runner.invoke(app, ["bench", "-t", "0"])
    assert result.exit_code == 1
