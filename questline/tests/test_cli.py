"""
Tests for the questline command line.
"""

import argparse
import json
from unittest.mock import patch

import pytest

from questline import cli
from questline.schemas import StatName


@pytest.fixture
def run(services):
    """Run the CLI against the test services and return (exit code, JSON output)"""

    def invoke(capsys, *argv):
        with patch.object(cli, "build_services", return_value=services), patch.object(
            cli, "setup_logging"
        ):
            code = cli.main(list(argv))
        out = capsys.readouterr().out
        return code, json.loads(out) if out.strip() else None

    return invoke


class TestParseStats:
    def test_valid(self):
        assert cli._parse_stats(["str=12", "CHA=8"]) == {
            StatName.STR: 12,
            StatName.CHA: 8,
        }

    @pytest.mark.parametrize("pair", ["LUCK=3", "STR=high", "STR"])
    def test_invalid(self, pair):
        with pytest.raises(argparse.ArgumentTypeError):
            cli._parse_stats([pair])


class TestCommands:
    def test_character_then_generate(self, run, capsys, services):
        code, saved = run(
            capsys, "character", "hero-9", "--name", "Cai", "--stat", "STR=4"
        )
        assert code == 0
        assert saved["stats"]["STR"] == 4

        code, result = run(capsys, "generate", "hero-9")
        assert code == 0
        assert result["status"] == "created"
        assert result["content"]["is_fallback"] is True

        code, listing = run(capsys, "list", "hero-9")
        assert [c["id"] for c in listing] == [result["content"]["id"]]

    def test_errors_exit_nonzero(self, run, capsys):
        code, _ = run(capsys, "start", "missing-content")
        assert code == 1

    def test_bad_stat_is_a_usage_error(self, run, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run(capsys, "character", "hero-9", "--stat", "LUCK=3")
        assert exc_info.value.code == 2

    def test_metrics(self, run, capsys):
        code, payload = run(capsys, "metrics")
        assert code == 0
        assert payload["cache"]["size"] == 0
        assert payload["generation"]["total_calls"] == 0

    def test_templates(self, run, capsys, weak_character):
        code, listing = run(capsys, "templates", "--stat", "WIS")
        assert code == 0
        assert [t["template_name"] for t in listing] == [
            "tutorial_first_steps",
            "wis_sage_riddle",
        ]

        code, result = run(capsys, "template", weak_character.id, "wis_sage_riddle")
        assert code == 0
        assert result["status"] == "created"
        assert result["content"]["template"] == "wis_sage_riddle"

        code, _ = run(capsys, "template", weak_character.id, "dragon_slayer")
        assert code == 1
