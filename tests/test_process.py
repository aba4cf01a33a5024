"""Tests for the child process supervisor."""

import os
import signal
import sys
import time
from pathlib import Path
from unittest import mock

import pytest

from mutex_run.models import StdioMode
from mutex_run.services.process import (
    ChildLaunchError,
    ChildProcess,
    NoCommandError,
    build_args,
    normalize_exit_code,
    spawn,
    validate_command,
)


class TestValidateCommand:
    """Tests for validate_command function."""

    @pytest.mark.parametrize("command", [[], "", "   ", ()])
    def test_empty_command_rejected(self, command: object) -> None:
        """Empty commands are a usage error."""
        with pytest.raises(NoCommandError, match="No command specified"):
            validate_command(command)  # type: ignore[arg-type]

    def test_non_empty_accepted(self) -> None:
        """Non-empty commands pass."""
        validate_command(["echo"])
        validate_command("echo hi")


class TestBuildArgs:
    """Tests for build_args function."""

    def test_string_with_shell_is_verbatim(self) -> None:
        """Shell string commands are passed through."""
        assert build_args("echo $HOME && true", shell=True) == "echo $HOME && true"

    def test_string_without_shell_is_split(self) -> None:
        """Without the shell, strings are split with shell quoting rules."""
        assert build_args("echo 'hello world'", shell=False) == ["echo", "hello world"]

    def test_sequence_without_shell(self) -> None:
        """Sequences are executed directly."""
        assert build_args(("ls", "-la"), shell=False) == ["ls", "-la"]

    def test_sequence_with_shell_is_quoted(self) -> None:
        """Sequences routed through the shell are quoted safely."""
        assert build_args(["echo", "a b", "$x"], shell=True) == "echo 'a b' '$x'"

    def test_sequence_with_shell_on_windows(self) -> None:
        """Windows command lines use its own quoting."""
        with mock.patch("mutex_run.services.process.sys.platform", "win32"):
            assert build_args(["echo", "a b"], shell=True) == 'echo "a b"'

    def test_invalid_syntax(self) -> None:
        """Unbalanced quotes cannot be launched."""
        with pytest.raises(ChildLaunchError, match="Invalid command syntax"):
            build_args("echo 'oops", shell=False)


class TestNormalizeExitCode:
    """Tests for normalize_exit_code function."""

    @pytest.mark.parametrize(
        ("returncode", "expected"),
        [(0, 0), (42, 42), (255, 255), (-15, 1), (-9, 1), (None, 1)],
    )
    def test_mapping(self, returncode: int | None, expected: int) -> None:
        """Normal exits keep their code, everything else is 1."""
        assert normalize_exit_code(returncode) == expected


class TestSpawn:
    """Tests for spawn and ChildProcess."""

    def test_captures_output_when_piped(self) -> None:
        """Pipe mode returns stdout and stderr."""
        child = spawn(["sh", "-c", "echo out; echo err >&2"], stdio=StdioMode.PIPE)
        exit_code, stdout, stderr = child.wait()
        assert exit_code == 0
        assert stdout == "out\n"
        assert stderr == "err\n"

    def test_inherit_returns_no_output(self) -> None:
        """Inherited streams are not captured."""
        exit_code, stdout, stderr = spawn(["true"]).wait()
        assert exit_code == 0
        assert stdout is None
        assert stderr is None

    def test_ignore_discards_output(self) -> None:
        """Ignore mode sends output nowhere."""
        exit_code, stdout, _ = spawn(["echo", "x"], stdio=StdioMode.IGNORE).wait()
        assert exit_code == 0
        assert stdout is None

    def test_exit_code_forwarded(self) -> None:
        """Child exit codes are returned verbatim."""
        exit_code, _, _ = spawn(["sh", "-c", "exit 42"]).wait()
        assert exit_code == 42

    def test_shell_string(self) -> None:
        """String commands run through the shell."""
        child = spawn("echo $((1 + 2))", shell=True, stdio=StdioMode.PIPE)
        assert child.wait()[1] == "3\n"

    def test_env_overrides_are_layered(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Overrides are added to the parent environment."""
        monkeypatch.setenv("PARENT_VAR", "parent")
        child = spawn(
            ["sh", "-c", "echo $TEST_VAR $PARENT_VAR"],
            env={"TEST_VAR": "test-value"},
            stdio=StdioMode.PIPE,
        )
        assert child.wait()[1] == "test-value parent\n"

    def test_cwd(self, tmp_path: Path) -> None:
        """Commands run in the requested directory."""
        child = spawn(
            [sys.executable, "-c", "import os; print(os.getcwd())"],
            cwd=tmp_path,
            stdio=StdioMode.PIPE,
        )
        stdout = child.wait()[1]
        assert stdout is not None
        assert os.path.realpath(stdout.strip()) == os.path.realpath(tmp_path)

    def test_missing_executable(self) -> None:
        """Unknown executables fail to launch."""
        with pytest.raises(ChildLaunchError, match="Failed to start"):
            spawn(["definitely-not-a-real-command-xyz"])

    def test_empty_command(self) -> None:
        """spawn rejects empty commands."""
        with pytest.raises(NoCommandError):
            spawn([])


class TestForwardSignal:
    """Tests for ChildProcess.forward_signal."""

    def test_forwarded_signal_terminates_child(self) -> None:
        """SIGTERM reaches the child and maps to exit code 1."""
        child = spawn(["sleep", "30"])
        start = time.monotonic()
        child.forward_signal(signal.SIGTERM)
        exit_code, _, _ = child.wait()
        assert exit_code == 1
        assert time.monotonic() - start < 5

    def test_forward_after_exit_is_harmless(self) -> None:
        """Forwarding to a finished child does not raise."""
        child = spawn(["true"])
        child.wait()
        child.forward_signal(signal.SIGTERM)

    def test_forward_failure_is_swallowed(self) -> None:
        """OS errors while forwarding are logged, not raised."""
        child = spawn(["sleep", "30"])
        assert child.process is not None
        try:
            with mock.patch.object(
                child.process, "send_signal", side_effect=ProcessLookupError("gone")
            ):
                child.forward_signal(signal.SIGINT)
        finally:
            child.process.kill()
            child.wait()

    def test_forward_before_start_is_noop(self) -> None:
        """Nothing to forward to before the child exists."""
        child = ChildProcess(["true"], shell=False)
        child.forward_signal(signal.SIGTERM)
        assert child.pid is None
