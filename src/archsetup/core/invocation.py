import enum
import os
import shlex
import typing
from dataclasses import dataclass

import archsetup.core.command as command
import archsetup.core.error as errors
import archsetup.core.output as output
from archsetup.core.settings import Settings


class Context(enum.Enum):
    """
    Identity a command runs as.

    ROOT:
        The privileged identity running archsetup. Used for system-wide changes.

    USER:
        The target user. Used for anything that touches the user's home or must not run as root.
    """

    ROOT = "root"
    USER = "user"


@dataclass(frozen=True)
class Invocation:
    """
    A command together with the context it must run in.
    """

    context: Context
    argv: tuple[str, ...]
    cwd: typing.Optional[str] = None

    @classmethod
    def root(cls, *argv: str, cwd: typing.Optional[str] = None) -> "Invocation":
        return cls(Context.ROOT, argv, cwd)

    @classmethod
    def user(cls, *argv: str, cwd: typing.Optional[str] = None) -> "Invocation":
        return cls(Context.USER, argv, cwd)

    def __str__(self) -> str:
        text = f"[{self.context.value}] {shlex.join(self.argv)}"
        if self.cwd:
            text += f" (in {self.cwd})"
        return text


class Runner:
    """
    Executes invocations in their declared context.

    ROOT invocations require that archsetup itself runs as root. USER invocations drop privileges
    to the target user with a login-like environment and are refused if the target user is root.
    Both cases raise ``WrongContextError`` when violated.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings

    def run(self, invocation: Invocation, pty: bool = True) -> str:
        """
        Runs the invocation and returns its output.

        Raises:
            ``CommandFailedError``
                If the command exits with a non-zero code.

            ``UserNotFoundError``
                If the target user doesn't exist.

            ``WrongContextError``
                If the command can't run in its declared context.
        """
        user = self._user_for(invocation)

        if self._settings.dry_run:
            output.print_info(f"Would run {invocation}")
            return ""

        output.print_debug(f"Running {invocation}")
        return command.prg(
            list(invocation.argv),
            user=user,
            mimic_login=user is not None,
            cwd=invocation.cwd,
            pty=pty,
            check=True,
        )

    def query(self, invocation: Invocation) -> tuple[int, str]:
        """
        Runs a read-only invocation without a pseudo terminal and returns its exit code and
        output. Queries also run during dry runs.

        Raises:
            ``UserNotFoundError``
                If the target user doesn't exist.

            ``WrongContextError``
                If the command can't run in its declared context.
        """
        user = self._user_for(invocation)
        output.print_debug(f"Querying {invocation}")
        code, text = command.run(
            list(invocation.argv), user=user, mimic_login=user is not None, cwd=invocation.cwd
        )
        output.write_log(text)
        return code, text

    def _user_for(self, invocation: Invocation) -> typing.Optional[str]:
        if invocation.context is Context.ROOT:
            if not self._settings.dry_run and os.geteuid() != 0:
                raise errors.WrongContextError(list(invocation.argv), Context.ROOT.value)
            return None

        uid, _ = command.get_user_info(self._settings.target_user)
        if uid == 0:
            raise errors.WrongContextError(list(invocation.argv), Context.USER.value)
        return self._settings.target_user
