import dataclasses
import errno

import pytest
from conftest import make_passwd

import archsetup.core.error as errors
from archsetup.core.invocation import Context
from archsetup.core.sequencer import run_step
from archsetup.steps import user_env as user_env_mod


@pytest.fixture
def finalizer():
    return user_env_mod.FinalizeUserEnvironment()


@pytest.fixture
def passwd(monkeypatch):
    entries = {"alice": make_passwd("alice", shell="/bin/bash")}

    def fake_get_passwd(user):
        try:
            return entries[user]
        except KeyError as error:
            raise errors.UserNotFoundError(user) from error

    monkeypatch.setattr(user_env_mod.command, "get_passwd", fake_get_passwd)
    return entries


def test_read_shells_ignores_comments_and_blank_lines(tmp_path):
    shells = tmp_path / "shells"
    shells.write_text("# comment\n\n/bin/bash\n  /usr/bin/fish  \n")

    assert user_env_mod.read_shells(str(shells)) == {"/bin/bash", "/usr/bin/fish"}


def test_full_run(finalizer, settings, runner, passwd):
    result = finalizer.run(settings, runner)

    assert not result.is_fatal and not result.is_soft
    assert runner.in_context(Context.ROOT) == [
        "chsh -s /usr/bin/fish alice",
        "systemctl enable NetworkManager.service",
        "systemctl enable ly.service",
    ]
    assert runner.in_context(Context.USER) == ["xdg-user-dirs-update --force"]


def test_missing_user_skips_everything(finalizer, settings, runner, passwd, capsys):
    passwd.clear()

    result = finalizer.run(settings, runner)

    assert result.is_soft
    assert runner.calls == []
    assert "does not exist" in capsys.readouterr().out


def test_shell_already_set_is_skipped(finalizer, settings, runner, passwd):
    passwd["alice"] = make_passwd("alice", shell="/usr/bin/fish")

    result = finalizer.run(settings, runner)

    assert not result.is_soft
    assert "chsh" not in runner.programs()


def test_unregistered_shell_is_not_set(finalizer, settings, runner, passwd, capsys):
    other = dataclasses.replace(settings, login_shell="/usr/bin/nu")

    result = finalizer.run(other, runner)

    assert not result.is_soft
    assert "chsh" not in runner.programs()
    assert "not listed" in capsys.readouterr().out


def test_unreadable_shells_file_is_soft(finalizer, settings, runner, passwd, tmp_path):
    other = dataclasses.replace(settings, shells_file=str(tmp_path / "missing"))

    result = finalizer.run(other, runner)

    assert result.is_soft
    assert "login shell" in result.message
    assert "systemctl" in runner.programs()


def test_shell_change_failure_is_soft_and_rest_continues(finalizer, settings, runner, passwd):
    runner.failures["chsh"] = "chsh: PAM: Authentication failure"

    result = finalizer.run(settings, runner)

    assert result.is_soft
    assert result.message == "failed to configure: login shell"
    assert "xdg-user-dirs-update" in runner.programs()


def test_display_manager_failure_is_soft(finalizer, settings, runner, passwd, capsys):
    runner.failures["systemctl enable ly.service"] = "Unit ly.service does not exist."

    result = finalizer.run(settings, runner)

    assert result.is_soft
    assert "WARNING: Failed to enable ly.service" in capsys.readouterr().out
    assert "xdg-user-dirs-update" in runner.programs()


def test_network_service_failure_is_reported_as_error(
    finalizer, settings, runner, passwd, capsys
):
    runner.failures["systemctl enable NetworkManager.service"] = "Unit not found."

    result = finalizer.run(settings, runner)

    assert result.is_soft
    assert not result.is_fatal
    assert "ERROR: Failed to enable NetworkManager.service" in capsys.readouterr().out
    # the display manager is still enabled
    assert "systemctl enable ly.service" in runner.lines()


def test_user_dirs_failure_is_soft(finalizer, settings, runner, passwd):
    runner.failures["xdg-user-dirs-update"] = "xdg-user-dirs-update: not found"

    result = finalizer.run(settings, runner)

    assert result.is_soft
    assert result.message == "failed to configure: user directories"


def test_read_shells_survives_invalid_utf8(tmp_path):
    shells = tmp_path / "shells"
    shells.write_bytes(b"/bin/bash\n/usr/bin/f\xffsh\n/usr/bin/fish\n")

    registered = user_env_mod.read_shells(str(shells))

    assert "/bin/bash" in registered
    assert "/usr/bin/fish" in registered
    assert "/usr/bin/f\xffsh" not in registered


def test_invalid_utf8_in_shells_file_is_not_fatal(finalizer, settings, runner, passwd, tmp_path):
    shells = tmp_path / "shells"
    shells.write_bytes(b"/bin/bash\n/usr/bin/f\xffsh\n/usr/bin/fish\n")

    result = run_step(finalizer, settings, runner)

    assert not result.is_fatal
    assert "chsh -s /usr/bin/fish alice" in runner.lines()
    assert "xdg-user-dirs-update" in runner.programs()


def test_os_error_while_enabling_units_is_soft(finalizer, settings, runner, passwd):
    def no_fork(invocation):
        raise OSError(errno.EAGAIN, "Resource temporarily unavailable")

    runner.hooks["systemctl"] = no_fork

    result = run_step(finalizer, settings, runner)

    assert result.is_soft
    assert result.message == "failed to configure: services"
    assert "xdg-user-dirs-update" in runner.programs()


def test_os_error_in_shell_and_user_dirs_is_soft(finalizer, settings, runner, passwd):
    def no_fork(invocation):
        raise OSError(errno.EAGAIN, "Resource temporarily unavailable")

    runner.hooks["chsh"] = no_fork
    runner.hooks["xdg-user-dirs-update"] = no_fork

    result = run_step(finalizer, settings, runner)

    assert result.is_soft
    assert result.message == "failed to configure: login shell, user directories"
