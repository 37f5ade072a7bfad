import json
import sys
import types
import typing

import pytest

import archsetup.core.command as command
import archsetup.core.error as errors
import archsetup.core.output as output


def test_prg_pty_true_uses_pty_run_and_check(monkeypatch: pytest.MonkeyPatch):
    calls: dict[str, typing.Any] = {}

    def fake_pty_run(cmd, user=None, env_overrides=None, mimic_login=False, cwd=None):
        calls["pty_run"] = (cmd, user, env_overrides, mimic_login, cwd)
        return 0, "ok"

    def fake_check_run_result(cmd, result):
        calls["check_run_result"] = (cmd, result)
        return result

    def fake_print_warning(msg: str):
        raise AssertionError("print_warning must not be called when code == 0")

    monkeypatch.setattr(command.sys, "stdin", types.SimpleNamespace(isatty=lambda: True))
    monkeypatch.setattr(command, "pty_run", fake_pty_run)
    monkeypatch.setattr(command, "check_run_result", fake_check_run_result)
    monkeypatch.setattr(output, "print_warning", fake_print_warning)

    out = command.prg(
        ["echo", "hi"],
        user="alice",
        env_overrides={"FOO": "bar"},
        mimic_login=True,
        cwd="/tmp",
        pty=True,
        check=True,
    )

    assert out == "ok"
    assert calls["pty_run"] == (["echo", "hi"], "alice", {"FOO": "bar"}, True, "/tmp")
    assert calls["check_run_result"] == (["echo", "hi"], (0, "ok"))


def test_prg_pty_without_tty_falls_back_to_run(monkeypatch: pytest.MonkeyPatch):
    calls: dict[str, typing.Any] = {}

    def fake_run(cmd, user=None, env_overrides=None, mimic_login=False, cwd=None):
        calls["run"] = cmd
        return 0, "captured"

    def fake_pty_run(*args, **kwargs):
        raise AssertionError("pty_run must not be called without a TTY")

    monkeypatch.setattr(command.sys, "stdin", types.SimpleNamespace(isatty=lambda: False))
    monkeypatch.setattr(command, "run", fake_run)
    monkeypatch.setattr(command, "pty_run", fake_pty_run)

    assert command.prg(["true"], pty=True) == "captured"
    assert calls["run"] == ["true"]


def test_prg_pty_false_uses_run(monkeypatch: pytest.MonkeyPatch):
    calls: dict[str, typing.Any] = {}

    def fake_run(cmd, user=None, env_overrides=None, mimic_login=False, cwd=None):
        calls["run"] = (cmd, user, env_overrides, mimic_login, cwd)
        return 0, "no-pty"

    def fake_check_run_result(cmd, result):
        return result

    monkeypatch.setattr(command, "run", fake_run)
    monkeypatch.setattr(command, "check_run_result", fake_check_run_result)

    out = command.prg(["true"], pty=False, check=True)

    assert out == "no-pty"
    assert calls["run"] == (["true"], None, None, False, None)


def test_prg_check_false_warns_on_nonzero(monkeypatch: pytest.MonkeyPatch):
    calls: dict[str, typing.Any] = {}

    def fake_run(cmd, user=None, env_overrides=None, mimic_login=False, cwd=None):
        return 3, "bad"

    def fake_check_run_result(cmd, result):
        raise AssertionError("check_run_result must not be called when check=False")

    def fake_print_warning(msg: str):
        calls["warning"] = msg

    monkeypatch.setattr(command, "run", fake_run)
    monkeypatch.setattr(command, "check_run_result", fake_check_run_result)
    monkeypatch.setattr(output, "print_warning", fake_print_warning)

    out = command.prg(["cmd", "arg"], pty=False, check=False)

    assert out == "bad"
    assert "cmd arg" in calls["warning"]
    assert "exit code 3" in calls["warning"]


def test_prg_check_true_raises_command_failed_error(monkeypatch: pytest.MonkeyPatch):
    def fake_run(cmd, user=None, env_overrides=None, mimic_login=False, cwd=None):
        return 42, "boom"

    monkeypatch.setattr(command, "run", fake_run)

    with pytest.raises(errors.CommandFailedError) as exc_info:
        command.prg(["boom"], pty=False, check=True)

    assert exc_info.value.command == ["boom"]
    assert exc_info.value.output == "boom"


def test_prg_writes_output_to_log(monkeypatch: pytest.MonkeyPatch, tmp_path):
    def fake_run(cmd, user=None, env_overrides=None, mimic_login=False, cwd=None):
        return 0, "resolving dependencies...\n"

    monkeypatch.setattr(command, "run", fake_run)
    log = tmp_path / "log"
    output.open_log(str(log))

    command.prg(["pacman", "-S", "git"], pty=False)

    output.close_log()
    assert "resolving dependencies..." in log.read_text()


def test_check_run_result_passes_through_success():
    assert command.check_run_result(["true"], (0, "fine")) == (0, "fine")


def test_get_user_info_unknown_user_raises():
    with pytest.raises(errors.UserNotFoundError):
        command.get_user_info("no-such-user-archsetup-test")


def test_run_simple():
    code, out = command.run([sys.executable, "-c", "print('ok')"])
    assert code == 0
    assert out.strip() == "ok"


def test_run_exec_failure():
    code, out = command.run(["/does/not/exist"])
    assert code != 0
    assert "not" in out.lower()


def test_run_empty_command():
    assert command.run([]) == (0, "")


def test_run_does_not_modify_command():
    cmd = [sys.executable.rsplit("/", 1)[-1], "-c", "pass"]
    original = cmd.copy()
    command.run(cmd)
    assert cmd == original


def test_run_env_overrides_visible_in_child():
    code, out = command.run(
        [
            sys.executable,
            "-c",
            ("import os, json; print(json.dumps({'FOO': os.environ['FOO'], }))"),
        ],
        env_overrides={"FOO": "BAR"},
    )

    assert code == 0

    data = json.loads(out.strip())
    assert data["FOO"] == "BAR"


def test_run_in_working_directory(tmp_path):
    code, out = command.run([sys.executable, "-c", "import os; print(os.getcwd())"], cwd=tmp_path)

    assert code == 0
    assert out.strip() == str(tmp_path.resolve())


@pytest.mark.skipif(not sys.stdin.isatty(), reason="requires TTY")
def test_pty_run_simple():
    code, out = command.pty_run([sys.executable, "-c", "print('ok')"])
    assert code == 0
    assert "ok" in out
    assert "\r\n" not in out
