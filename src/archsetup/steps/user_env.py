import pwd

import archsetup.core.command as command
import archsetup.core.error as errors
import archsetup.core.output as output
from archsetup.core.invocation import Invocation, Runner
from archsetup.core.sequencer import Step, StepResult
from archsetup.core.settings import Settings

_RECOVERABLE = (
    errors.CommandFailedError,
    errors.UserNotFoundError,
    errors.WrongContextError,
    OSError,
)


class SystemdCommands:
    def enable_units(self, units: list[str]) -> list[str]:
        """
        Running this command enables the given systemd units.
        """
        return ["systemctl", "enable"] + units


class UserCommands:
    def change_shell(self, user: str, shell: str) -> list[str]:
        """
        Running this command changes the login shell of the given user.
        """
        return ["chsh", "-s", shell, user]

    def update_user_dirs(self) -> list[str]:
        """
        Running this command creates the XDG user directories and overwrites their configuration.
        """
        return ["xdg-user-dirs-update", "--force"]


def read_shells(path: str) -> set[str]:
    """
    Returns the login shells listed in the given shells file.

    Bytes that aren't valid UTF-8 are replaced, so such lines never match a shell path.

    Raises:
        OSError
            If reading the file fails.
    """
    shells = set()
    with open(path, "rt", encoding="utf-8", errors="replace") as file:
        for line in file:
            line = line.strip()
            if line and not line.startswith("#"):
                shells.add(line)
    return shells


class FinalizeUserEnvironment(Step):
    """
    Sets the login shell, enables services and initializes the XDG user directories.

    Each part is independent of the others. A failing part is reported and the rest still run.
    If the target user doesn't exist, nothing is done.
    """

    NAME = "user-environment"

    def __init__(self) -> None:
        self.systemd_commands = SystemdCommands()
        self.user_commands = UserCommands()

    def run(self, settings: Settings, runner: Runner) -> StepResult:
        user = settings.target_user
        output.print_summary(f"Finalizing user setup for {user}.")

        try:
            pw = command.get_passwd(user)
        except errors.UserNotFoundError:
            output.print_error(
                f"User '{user}' does not exist. Cannot configure shell or XDG directories."
            )
            return StepResult.soft(f"user '{user}' doesn't exist")

        failed = []
        if not self.set_login_shell(settings, runner, pw):
            failed.append("login shell")
        if not self.enable_services(settings, runner):
            failed.append("services")
        if not self.update_user_dirs(settings, runner):
            failed.append("user directories")

        if failed:
            return StepResult.soft(f"failed to configure: {', '.join(failed)}")

        output.print_success(
            f"Enabled {settings.network_unit} and configured user directories."
        )
        return StepResult.success()

    def set_login_shell(
        self, settings: Settings, runner: Runner, pw: pwd.struct_passwd
    ) -> bool:
        """
        Changes the user's login shell if the shell is registered and differs from the current
        one. Returns False if changing the shell failed.
        """
        shell = settings.login_shell

        try:
            registered = shell in read_shells(settings.shells_file)
        except OSError as error:
            output.print_warning(
                f"Failed to read {settings.shells_file}: {error.strerror or str(error)}."
            )
            return False

        if not registered:
            output.print_warning(
                f"{shell} is not listed in {settings.shells_file}. Not changing the login shell."
            )
            return True

        if pw.pw_shell == shell:
            output.print_info(f"Shell is already {shell} for {pw.pw_name}. Skipping.")
            return True

        try:
            runner.run(
                Invocation.root(*self.user_commands.change_shell(pw.pw_name, shell)), pty=False
            )
        except _RECOVERABLE as error:
            output.print_warning(f"Failed to change shell for {pw.pw_name}.")
            output.print_debug(str(error))
            output.print_traceback()
            return False

        output.print_info(f"Login shell of {pw.pw_name} changed to {shell}.")
        return True

    def enable_services(self, settings: Settings, runner: Runner) -> bool:
        """
        Enables the network and the display manager units. Returns False if either failed.
        """
        ok = True

        try:
            runner.run(
                Invocation.root(*self.systemd_commands.enable_units([settings.network_unit])),
                pty=False,
            )
        except _RECOVERABLE as error:
            output.print_error(
                f"Failed to enable {settings.network_unit}. The network may not come up after "
                "a reboot!"
            )
            output.print_error(str(error))
            output.print_traceback()
            ok = False

        try:
            runner.run(
                Invocation.root(
                    *self.systemd_commands.enable_units([settings.display_manager_unit])
                ),
                pty=False,
            )
        except _RECOVERABLE as error:
            output.print_warning(f"Failed to enable {settings.display_manager_unit}.")
            output.print_debug(str(error))
            output.print_traceback()
            ok = False

        return ok

    def update_user_dirs(self, settings: Settings, runner: Runner) -> bool:
        """
        Runs the XDG user directory initializer as the target user. Returns False on failure.
        """
        try:
            runner.run(Invocation.user(*self.user_commands.update_user_dirs()), pty=False)
        except _RECOVERABLE as error:
            output.print_warning(
                f"Failed to initialize XDG user directories for {settings.target_user}."
            )
            output.print_debug(str(error))
            output.print_traceback()
            return False
        return True
