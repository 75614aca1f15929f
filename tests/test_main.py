"""Tests for the synchronous run() boundary and the CLI."""

import io
import json
from unittest.mock import patch

from promptloop import main as entry
from promptloop.config import Settings
from tests.conftest import make_config


class TestRun:
    def test_config_error_returned_as_string(self):
        raw = make_config()
        del raw["model"]
        result = entry.run("hi", json.dumps(raw), Settings(_env_file=None))
        assert result.startswith("Failed: invalid configuration")

    def test_empty_input_answered_without_endpoint(self):
        # The default tooling answers empty input before any completion request
        result = entry.run("", json.dumps(make_config()), Settings(_env_file=None))
        assert result == "Nothing to do."


class TestCli:
    def test_prints_answer(self, tmp_path, capsys):
        config = tmp_path / "agent.json"
        config.write_text(json.dumps(make_config()))
        with patch.object(entry, "run", return_value="42") as run:
            code = entry.main(["--config", str(config), "question"])
        assert code == 0
        assert capsys.readouterr().out == "42\n"
        assert run.call_args.args[:2] == ("question", config.read_text())

    def test_failure_exit_code(self, tmp_path, capsys):
        config = tmp_path / "agent.json"
        config.write_text("{}")
        code = entry.main(["--config", str(config), "question"])
        assert code == 1
        assert capsys.readouterr().out.startswith("Failed: invalid configuration")

    def test_missing_config_file(self, tmp_path):
        assert entry.main(["--config", str(tmp_path / "nope.json"), "q"]) == 2

    def test_reads_stdin(self, tmp_path, monkeypatch):
        config = tmp_path / "agent.json"
        config.write_text(json.dumps(make_config()))
        monkeypatch.setattr("sys.stdin", io.StringIO("from stdin"))
        with patch.object(entry, "run", return_value="ok") as run:
            entry.main(["--config", str(config)])
        assert run.call_args.args[0] == "from stdin"
