import os
import re
import shutil
import sys
import traceback
import typing

import archsetup.config as config

# ─────────────────────────────
# Visible (non-ANSI) constants
# ─────────────────────────────

_TAG_TEXT = "[ARCHSETUP]"
_SPACING = "    "
_CONTINUATION_PREFIX_TEXT = f"{_TAG_TEXT}{_SPACING} "

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")

INFO = 1
SUMMARY = 2

_log: typing.Optional[typing.TextIO] = None


# ─────────────────────────────
# Log file
# ─────────────────────────────


def open_log(path: str):
    """
    Starts duplicating all output to the given file. The file is appended to. Its directory must
    already exist.

    Raises:
        OSError
            If the file can't be opened.
    """
    global _log
    close_log()
    _log = open(path, "at", encoding="utf-8")


def close_log():
    """
    Stops duplicating output to the log file.
    """
    global _log
    if _log is not None:
        _log.close()
        _log = None


def write_log(text: str):
    """
    Writes text to the log file only. ANSI escapes and carriage returns are removed.
    """
    if _log is None or not text:
        return
    text = _ANSI_RE.sub("", text).replace("\r", "")
    _log.write(text if text.endswith("\n") else text + "\n")
    _log.flush()


def _emit(line: str):
    print(line)
    write_log(line)


# ─────────────────────────────
# Color / formatting helpers
# ─────────────────────────────


def has_ansi_support() -> bool:
    """
    Returns True if the running terminal supports ANSI colors or if colors should be enabled.
    """
    if os.environ.get("NO_COLOR") is not None:
        return False
    if os.environ.get("FORCE_COLOR") is not None:
        return True

    if not sys.stdout.isatty():
        return False

    term = os.environ.get("TERM", "")
    return term not in ("", "dumb")


def _apply_color(code: str, text: str) -> str:
    if not config.color_output:
        return text
    return f"{code}{text}\033[m"


def _tag() -> str:
    if not config.color_output:
        return _TAG_TEXT
    return "[\033[1;34mARCHSETUP\033[m]"


def _continuation_prefix() -> str:
    return f"{_tag()}{_SPACING} "


def _red(text: str) -> str:
    return _apply_color("\033[91m", text)


def _yellow(text: str) -> str:
    return _apply_color("\033[93m", text)


def _cyan(text: str) -> str:
    return _apply_color("\033[96m", text)


def _green(text: str) -> str:
    return _apply_color("\033[92m", text)


def _gray(text: str) -> str:
    return _apply_color("\033[90m", text)


# ─────────────────────────────
# Printing helpers
# ─────────────────────────────


def print_continuation(msg: str, level: int = SUMMARY):
    """
    Prints a message without a prefix.
    """
    if level == SUMMARY or config.debug_output or not config.quiet_output:
        _emit(f"{_continuation_prefix()}{msg}")


def print_error(error_msg: str):
    """
    Prints an error message to the user.
    """
    _emit(f"{_tag()} {_red('ERROR')}: {error_msg}")


def print_warning(msg: str):
    """
    Prints a warning to the user.
    """
    _emit(f"{_tag()} {_yellow('WARNING')}: {msg}")


def print_summary(msg: str):
    """
    Prints a summary message to the user.
    """
    _emit(f"{_tag()} {_cyan('SUMMARY')}: {msg}")


def print_success(msg: str):
    """
    Prints a message about a completed operation.
    """
    _emit(f"{_tag()} {_green('OK')}: {msg}")


def print_info(msg: str):
    """
    Prints a detailed message to the user if verbose output is not disabled.
    """
    if config.debug_output or not config.quiet_output:
        _emit(f"{_tag()} INFO: {msg}")


def print_debug(msg: str):
    """
    Prints a detailed message to the user if debug messages are enabled.
    """
    if config.debug_output:
        _emit(f"{_tag()} {_gray('DEBUG')}: {msg}")


def print_command_output(command_output: str):
    """
    Prints captured output of a command, line by line.
    """
    for line in command_output.rstrip("\n").split("\n"):
        print_continuation(line)


def print_traceback():
    """
    Prints the traceback of the exception currently being handled if debug messages are enabled.
    The traceback is always written to the log file.
    """
    tb = traceback.format_exc()
    write_log(tb)
    if config.debug_output:
        print(tb, end="")


# ─────────────────────────────
# List printing
# ─────────────────────────────


def print_list(
    msg: str,
    list_to_print: list[str],
    elements_per_line: typing.Optional[int] = None,
    max_line_width: typing.Optional[int] = None,
    limit_to_term_size: bool = True,
    level: int = SUMMARY,
):
    """
    Prints a summary message to the user along with a list of elements.

    If the list is empty, prints nothing.
    """
    if len(list_to_print) == 0:
        return

    list_to_print = list_to_print.copy()

    if level == SUMMARY:
        print_summary(msg)
    elif level == INFO:
        print_info(msg)

    print_continuation("", level=level)

    if elements_per_line is None:
        elements_per_line = len(list_to_print)

    if max_line_width is None:
        max_line_width = 2**32

    if limit_to_term_size:
        visible_prefix_len = len(_CONTINUATION_PREFIX_TEXT)
        max_line_width = shutil.get_terminal_size().columns - visible_prefix_len

    lines = [list_to_print.pop(0)]
    index = 0
    elements_in_current_line = 1

    while list_to_print:
        next_element = list_to_print.pop(0)

        can_fit_elements = elements_in_current_line + 1 <= elements_per_line
        can_fit_text = len(lines[index]) + len(next_element) <= max_line_width

        if can_fit_text and can_fit_elements:
            lines[index] += f" {next_element}"
            elements_in_current_line += 1
        else:
            lines.append(next_element)
            index += 1
            elements_in_current_line = 1

    for line in lines:
        print_continuation(line, level=level)

    print_continuation("", level=level)


# ─────────────────────────────
# Prompts
# ─────────────────────────────


def _read(prompt: str) -> str:
    try:
        answer = input(prompt)
    except EOFError:
        answer = ""
    write_log(f"{prompt}{answer}")
    return answer.strip()


def prompt_affirmative(msg: str) -> bool:
    """
    Prompts the user for confirmation once.

    Returns True only for an explicit yes. Anything else, including an empty answer or the end
    of input, counts as no.
    """
    i = _read(f"{_tag()} {_green('PROMPT')} (y/N): {msg} ")
    return i.lower() in ("y", "yes")
