"""
Module for archsetup errors.
"""


class UserNotFoundError(Exception):
    """
    Raised when a specified user cannot be found in the system.

    Attributes:
        user (str): The user that caused the exception.
    """

    def __init__(self, user: str) -> None:
        self.user = user
        super().__init__(f"The user '{user}' doesn't exist.")


class CommandFailedError(Exception):
    """
    Raised when running a command failed.

    Attributes:
        command (list[str]): The command that caused the exception.
        output (str): Captured output of the command.
    """

    def __init__(self, command: list[str], output: str) -> None:
        self.command = command
        self.output = output
        super().__init__(f"Running a command '{' '.join(command)}' failed. Output: '{output}'.")


class WrongContextError(Exception):
    """
    Raised when a command is about to run with an execution context it doesn't allow.

    Attributes:
        command (list[str]): The command that was refused.
        context (str): The context the command was about to run in.
    """

    def __init__(self, command: list[str], context: str) -> None:
        self.command = command
        self.context = context
        super().__init__(f"Refusing to run '{' '.join(command)}' in the {context} context.")
