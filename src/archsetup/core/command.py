import errno
import fcntl
import os
import pty
import pwd
import select
import shlex
import shutil
import signal
import struct
import subprocess
import sys
import termios
import tty
import typing

import archsetup.config as config
import archsetup.core.error as errors
import archsetup.core.output as output


def get_user_info(user: str) -> tuple[int, int]:
    """
    Returns UID and GID of the given user.

    If the user doesn't exist, raises UserNotFoundError.
    """
    info = get_passwd(user)
    return info.pw_uid, info.pw_gid


def get_passwd(user: str) -> pwd.struct_passwd:
    """
    Returns the passwd database entry of the given user.

    If the user doesn't exist, raises UserNotFoundError.
    """
    try:
        return pwd.getpwnam(user)
    except KeyError as error:
        raise errors.UserNotFoundError(user) from error


def prg(
    command: list[str],
    user: None | str = None,
    env_overrides: None | dict[str, str] = None,
    mimic_login: bool = False,
    cwd: None | str = None,
    pty: bool = True,
    check: bool = True,
) -> str:
    """
    Runs a program and returns its output. The output is always written to the log file.

    If ``pty`` is True and stdin is a TTY, the program runs inside a pseudo terminal and its
    output is shown to the user while it runs. Otherwise output is captured and shown only when
    debug output is enabled.

    If ``check`` is True, raises CommandFailedError when the program exits with a non-zero code.
    Otherwise prints a warning.

    If the user doesn't exist, raises UserNotFoundError.
    """
    if pty and sys.stdin.isatty():
        result = pty_run(
            command, user=user, env_overrides=env_overrides, mimic_login=mimic_login, cwd=cwd
        )
        output.write_log(result[1])
    else:
        result = run(
            command, user=user, env_overrides=env_overrides, mimic_login=mimic_login, cwd=cwd
        )
        if result[1] and config.debug_output:
            output.print_command_output(result[1])
        else:
            output.write_log(result[1])

    if check:
        check_run_result(command, result)
    elif result[0] != 0:
        output.print_warning(f"Command '{shlex.join(command)}' exited with exit code {result[0]}.")

    return result[1]


def pty_run(
    command: list[str],
    user: None | str = None,
    env_overrides: None | dict[str, str] = None,
    mimic_login: bool = False,
    pass_environment: bool = True,
    cwd: None | str = None,
) -> tuple[int, str]:
    """
    Runs a given command with the given arguments in a pseudo TTY. The command can be ran as
    the given user and environment variables can be overridden manually.

    By default this will copy the current environment and pass it to the process. To prevent this
    set ``pass_environment`` to ``False``.

    If ``mimic_login`` is True, will set the following environment variables according to the given
    user's passwd file details. This only happens when user is set.
        - HOME
        - USER
        - LOGNAME
        - SHELL

    The child changes to ``cwd`` after dropping privileges.

    If the given command is empty, returns (0, "").

    Returns the return code of the command and the output as a string.

    If the user doesn't exist, raises UserNotFoundError.
    If forking the process fails or stdin is not a TTY, raises OSError.
    """
    if not command:
        return 0, ""

    if not sys.stdin.isatty():
        raise OSError(errno.ENOTTY, "Stdin is not a TTY.")

    command = command.copy()
    command[0] = shutil.which(command[0]) or command[0]

    output.print_debug(f"Running command '{shlex.join(command)}'")

    env = _build_env(user, env_overrides, mimic_login, pass_environment)
    ids = get_user_info(user) if user else None

    pid, master_fd = pty.fork()
    if pid == 0:
        _exec_in_child(command, env, ids, cwd)

    return _run_parent(master_fd, pid)


def run(
    command: list[str],
    user: None | str = None,
    env_overrides: None | dict[str, str] = None,
    mimic_login: bool = False,
    pass_environment: bool = True,
    cwd: None | str = None,
) -> tuple[int, str]:
    """
    Runs a given command with the given arguments. The command can be ran as the given user and
    environment variables can be overridden manually.

    By default this will copy the current environment and pass it to the process. To prevent this
    set ``pass_environment`` to ``False``.

    If mimic_login is True, will set the following environment variables according to the given
    user's passwd file details. This only happens when user is set.
        - HOME
        - USER
        - LOGNAME
        - SHELL

    If the given command is empty, returns (0, "").

    Returns the return code of the command and the output as a string.

    If the user doesn't exist, raises UserNotFoundError.
    """
    if not command:
        return 0, ""

    command = command.copy()
    command[0] = shutil.which(command[0]) or command[0]

    output.print_debug(f"Running command '{shlex.join(command)}'")

    env = _build_env(user, env_overrides, mimic_login, pass_environment)
    uid, gid = None, None

    if user:
        uid, gid = get_user_info(user)

    try:
        process = subprocess.Popen(
            command,
            env=env,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            user=uid,
            group=gid,
            extra_groups=[] if user else None,
        )
        stdout, _ = process.communicate()
    except OSError as error:
        # Mirror PTY behavior: "<cmd>: <error>\n" and errno-based exit code
        msg = error.strerror or str(error)
        text_output = f"{command[0]}: {msg}\n"
        code = error.errno if error.errno and error.errno < 128 else 127
        return code, text_output

    return process.returncode, stdout.decode("utf-8", errors="replace")


def check_run_result(command: list[str], result: tuple[int, str]) -> tuple[int, str]:
    """
    Validates the result of a command execution.

    If the command exited with a non-zero return code, raises CommandFailedError
    containing the original command and its captured output.

    Otherwise, returns the result unchanged.
    """
    code, output = result
    if code != 0:
        raise errors.CommandFailedError(command, output)
    return code, output


def _build_env(
    user: None | str,
    env_overrides: None | dict[str, str],
    mimic_login: bool,
    pass_environment: bool,
) -> dict[str, str]:
    env = {}
    output.print_debug(
        f"Command environment is: user={user}, env_overrides={env_overrides},"
        f"mimic_login={mimic_login}, pass_environment={pass_environment}"
    )

    if pass_environment:
        env = os.environ.copy()

    if mimic_login and user:
        pw = get_passwd(user)
        env.update(
            {
                "HOME": pw.pw_dir,
                "USER": pw.pw_name,
                "LOGNAME": pw.pw_name,
                "SHELL": pw.pw_shell,
            }
        )

    if env_overrides:
        env.update(env_overrides)

    return env


def _exec_in_child(
    command: list[str],
    env: dict[str, str],
    ids: None | tuple[int, int],
    cwd: None | str,
) -> typing.NoReturn:
    try:
        if ids:
            uid, gid = ids
            os.setgroups([])
            os.setgid(gid)
            os.setuid(uid)

        if cwd:
            os.chdir(cwd)

        os.execve(command[0], command, env)
    except OSError as error:
        try:
            os.write(2, f"{command[0]}: {error.strerror}\n".encode())
        except OSError:
            # Not much can be done, if outputting the failure state fails
            pass
        code = error.errno if (error.errno and error.errno < 128) else 127
        os._exit(code)


def _run_parent(master_fd: int, pid: int) -> tuple[int, str]:
    stdin_fd = sys.stdin.fileno()
    stdout_fd = sys.stdout.fileno()

    # Put stdin into raw mode and save previous termios attributes.
    old_tattr = termios.tcgetattr(stdin_fd)
    tty.setraw(stdin_fd)

    # Helper function to set PTY window size to the current terminal size
    def resize_pty(*args):
        try:
            rows, cols = shutil.get_terminal_size()
            winsz = struct.pack("HHHH", rows, cols, 0, 0)
            fcntl.ioctl(master_fd, termios.TIOCSWINSZ, winsz)
        except OSError:
            # In case the child has exited before the signal handled was de-registered
            pass

    resize_pty()

    old_winch = signal.getsignal(signal.SIGWINCH)
    signal.signal(signal.SIGWINCH, resize_pty)

    try:
        output_bytes = _relay_pty(master_fd, stdin_fd, stdout_fd)
    finally:
        termios.tcsetattr(stdin_fd, termios.TCSADRAIN, old_tattr)
        signal.signal(signal.SIGWINCH, old_winch)
        os.close(master_fd)

    _, status = os.waitpid(pid, 0)
    exitcode = os.waitstatus_to_exitcode(status)
    output = output_bytes.decode("utf-8", errors="replace").replace("\r\n", "\n")
    return exitcode, output


def _relay_pty(master_fd: int, stdin_fd: int, stdout_fd: int) -> bytes:
    """
    Drive interactive I/O between stdin/stdout and the PTY, capturing output.
    """
    output_chunks: list[bytes] = []

    while True:
        rlist, _, _ = select.select([master_fd, stdin_fd], [], [])

        if master_fd in rlist:
            try:
                data = os.read(master_fd, 1024)
            except OSError:
                # Child process probably exited, EOF
                break

            output_chunks.append(data)
            try:
                os.write(stdout_fd, data)
            except OSError:
                # stdout closed, ignore
                pass

        if stdin_fd in rlist:
            try:
                data = os.read(stdin_fd, 1024)
                os.write(master_fd, data)
            except OSError:
                # Either stdin EOF -> no data to pass
                # or child died -> wait for master_fd to handle
                pass

    return b"".join(output_chunks)
