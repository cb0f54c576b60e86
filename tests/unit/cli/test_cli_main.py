"""
Unit Tests for the bundle-repair CLI
"""
import io
import json
import logging

import pytest

from bundle_repair.core.logging_config import logger
from cli.main import create_parser, main


@pytest.fixture(autouse=True)
def restore_log_handlers(capsys):
    """main() points console handlers at the captured stderr; put them back before capture closes"""
    saved = [(handler, handler.stream, handler.level) for handler in logger.handlers
             if type(handler) is logging.StreamHandler]
    level = logger.level
    yield
    for handler, stream, handler_level in saved:
        handler.stream = stream  # the captured stream is already closed here; setStream would flush it
        handler.setLevel(handler_level)
    logger.setLevel(level)


@pytest.fixture
def response_file(tmp_path, well_formed_response):
    path = tmp_path / "response.txt"
    path.write_text(well_formed_response, encoding="utf-8")
    return path


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestParser:
    """Tests for argument parsing"""

    def test_defaults(self):
        """Test default options"""
        args = create_parser().parse_args([])

        assert args.input is None
        assert args.prompt == ""
        assert args.format == "text"
        assert args.output_dir is None

    def test_invalid_format(self):
        """Test unknown formats are rejected"""
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--format", "xml"])


class TestMain:
    """Tests for the main entry point"""

    def test_json_output(self, response_file, capsys):
        """Test the transport JSON is printed to stdout"""
        code = _run([str(response_file), "--format", "json"])

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["strategy"] == "structural"
        assert output["usedModel"] == "model-from-text"
        assert set(output["files"]) == {"index.html", "styles.css", "script.js"}

    def test_model_option(self, response_file, capsys):
        """Test --model overrides the model named in the response"""
        _run([str(response_file), "--format", "json", "-m", "cli-model"])

        assert json.loads(capsys.readouterr().out)["usedModel"] == "cli-model"

    def test_text_output(self, response_file, capsys):
        """Test the summary mentions the strategy"""
        code = _run([str(response_file), "--show-files"])

        out = capsys.readouterr().out
        assert code == 0
        assert "structural" in out
        assert "Click counter" in out

    def test_output_dir(self, response_file, tmp_path, complete_files):
        """Test the bundle files are written"""
        out_dir = tmp_path / "site"

        code = _run([str(response_file), "-o", str(out_dir)])

        assert code == 0
        assert (out_dir / "script.js").read_text(encoding="utf-8") == complete_files["script.js"]
        assert (out_dir / "styles.css").read_text(encoding="utf-8") == complete_files["styles.css"]
        assert "<!DOCTYPE html>" in (out_dir / "index.html").read_text(encoding="utf-8")

    def test_stdin_fallback(self, monkeypatch, capsys):
        """Test stdin input and the prompt-driven fallback"""
        monkeypatch.setattr("sys.stdin", io.StringIO("Sorry, I cannot do that."))

        code = _run(["--format", "json", "-p", "todo list"])

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["strategy"] == "fallback"
        assert output["warnings"]
        assert "todoInput" in output["files"]["index.html"]

    def test_missing_input(self, tmp_path):
        """Test an unreadable input file exits with an error"""
        assert _run([str(tmp_path / "missing.txt")]) == 1

    def test_bracketed_description(self, tmp_path, complete_files, capsys):
        """Test markup-like text in the response does not break the summary"""
        path = tmp_path / "response.txt"
        path.write_text(json.dumps({
            "files": complete_files,
            "description": "Handles [/dim] and [link] tags",
        }), encoding="utf-8")

        code = _run([str(path)])

        assert code == 0
        assert "Handles [/dim] and [link] tags" in capsys.readouterr().out

    def test_logs_go_to_stderr(self, monkeypatch, capsys):
        """Test log lines never mix into the JSON on stdout"""
        monkeypatch.setattr("sys.stdin", io.StringIO("Sorry, I cannot do that."))

        _run(["--format", "json"])

        captured = capsys.readouterr()
        json.loads(captured.out)
        assert "fallback template" in captured.err
