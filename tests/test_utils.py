"""Tests for the subprocess helpers."""

import subprocess

import pytest

from course_ops._utils import (
    ensure,
    format_command,
    missing_commands,
    process_output,
    redact,
    run_logged,
)


class TestRedact:
    def test_masks_secret_values(self):
        cmd = ["aws", "s3", "ls", "--endpoint-url", "https://KEY123@s3.example.org"]

        assert redact(cmd, ["KEY123", None, ""]) == [
            "aws",
            "s3",
            "ls",
            "--endpoint-url",
            "https://***@s3.example.org",
        ]

    def test_format_command_quotes(self):
        assert format_command(["Rscript", "-e", "1 + 1"]) == "Rscript -e '1 + 1'"


class TestRunLogged:
    def test_captures_output(self, capsys):
        result = run_logged(["sh", "-c", "echo rendered"], capture_output=True, echo="never")

        assert result.stdout == "rendered\n"
        assert capsys.readouterr().out == ""

    def test_echoes_on_error(self, capsys):
        with pytest.raises(subprocess.CalledProcessError) as excinfo:
            run_logged(
                ["sh", "-c", "echo 'Execution halted' >&2; exit 3"],
                capture_output=True,
                echo="on_error",
            )

        assert excinfo.value.returncode == 3
        assert "Execution halted" in capsys.readouterr().err
        assert process_output(excinfo.value) == "Execution halted\n"

    def test_unchecked_failure_returns_result(self):
        result = run_logged(["sh", "-c", "exit 1"], check=False)

        assert result.returncode == 1

    def test_passes_working_directory(self, tmp_path):
        result = run_logged(["pwd"], capture_output=True, echo="never", cwd=str(tmp_path))

        assert result.stdout.strip() == str(tmp_path.resolve())


class TestEnsure:
    def test_missing_commands(self):
        assert missing_commands(["sh", "definitely-not-a-real-tool"]) == [
            "definitely-not-a-real-tool"
        ]

    def test_exits_when_tool_missing(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            ensure(["definitely-not-a-real-tool"])

        assert excinfo.value.code == 1
        assert "missing dependency: definitely-not-a-real-tool" in capsys.readouterr().err
