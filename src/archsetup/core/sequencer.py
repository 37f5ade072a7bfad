import enum
import typing
from dataclasses import dataclass, field

import archsetup.core.error as errors
import archsetup.core.output as output
from archsetup.core.invocation import Invocation, Runner
from archsetup.core.settings import Settings


class Outcome(enum.Enum):
    SUCCESS = "success"
    FATAL = "fatal"
    SOFT = "soft"


@dataclass(frozen=True)
class StepResult:
    """
    Outcome of a single step.

    FATAL stops the sequence. SOFT is reported and the sequence continues.
    """

    outcome: Outcome
    message: str = ""

    @classmethod
    def success(cls, message: str = "") -> "StepResult":
        return cls(Outcome.SUCCESS, message)

    @classmethod
    def fatal(cls, message: str) -> "StepResult":
        return cls(Outcome.FATAL, message)

    @classmethod
    def soft(cls, message: str) -> "StepResult":
        return cls(Outcome.SOFT, message)

    @property
    def is_fatal(self) -> bool:
        return self.outcome is Outcome.FATAL

    @property
    def is_soft(self) -> bool:
        return self.outcome is Outcome.SOFT


class Step:
    """
    A Step performs one part of the provisioning sequence.

    NAME:
        Canonical step name.

    DESCRIPTION:
        Short text shown to the user when the step starts.
    """

    NAME: str = ""
    DESCRIPTION: str = ""

    def run(self, settings: Settings, runner: Runner) -> StepResult:
        """
        Performs this step.

        Expected failures should be handled here and returned as a fatal or a soft result with a
        message for the user. Errors that escape are treated as fatal by the sequencer.
        """
        return StepResult.success()


@dataclass
class SequenceReport:
    results: list[tuple[str, StepResult]] = field(default_factory=list)
    completed: bool = False

    @property
    def exit_code(self) -> int:
        return 0 if self.completed else 1

    @property
    def soft_failures(self) -> list[tuple[str, StepResult]]:
        return [(name, result) for name, result in self.results if result.is_soft]

    def ran(self, name: str) -> bool:
        return any(step_name == name for step_name, _ in self.results)


def run_step(step: Step, settings: Settings, runner: Runner) -> StepResult:
    """
    Runs a step and turns errors escaping it into a fatal result.
    """
    try:
        return step.run(settings, runner)
    except errors.CommandFailedError as error:
        output.print_error(f"Step '{step.NAME}' failed while running a command.")
        output.print_error(str(error))
        output.print_traceback()
        return StepResult.fatal(f"command '{' '.join(error.command)}' failed")
    except errors.UserNotFoundError as error:
        output.print_error(str(error))
        output.print_traceback()
        return StepResult.fatal(str(error))
    except errors.WrongContextError as error:
        output.print_error(str(error))
        output.print_traceback()
        return StepResult.fatal(str(error))
    except OSError as error:
        output.print_error(f"Step '{step.NAME}' failed: {error.strerror or str(error)}.")
        output.print_traceback()
        return StepResult.fatal(error.strerror or str(error))


class Sequencer:
    """
    Runs steps strictly in order. The first fatal result stops the sequence.
    """

    def __init__(self, steps: typing.Sequence[Step], settings: Settings, runner: Runner) -> None:
        self.steps = list(steps)
        self.settings = settings
        self.runner = runner

    def run(self, offer_reboot: bool = True) -> SequenceReport:
        report = SequenceReport()
        output.print_summary("Starting Arch Linux setup.")

        for step in self.steps:
            if step.DESCRIPTION:
                output.print_summary(step.DESCRIPTION)
            output.print_debug(f"Running step '{step.NAME}'.")

            result = run_step(step, self.settings, self.runner)
            report.results.append((step.NAME, result))

            if result.is_fatal:
                output.print_error(f"Setup stopped at step '{step.NAME}': {result.message}")
                output.print_error(f"Check {self.settings.log_file} for details.")
                return report

            if result.is_soft:
                output.print_warning(f"Step '{step.NAME}' did not fully succeed: {result.message}")

        report.completed = True
        self._print_completion(report)

        if offer_reboot:
            self.offer_reboot()

        return report

    def _print_completion(self, report: SequenceReport):
        output.print_summary("Setup complete!")

        soft = report.soft_failures
        if soft:
            output.print_list(
                "Steps that need attention:",
                [f"{name}: {result.message}" for name, result in soft],
                elements_per_line=1,
            )

        output.print_info(
            "You may need to reboot for the display manager and the new shell to take effect."
        )
        output.print_info(f"Logs saved to {self.settings.log_file}.")

    def offer_reboot(self):
        """
        Asks whether to reboot. Only an explicit yes reboots.
        """
        if not output.prompt_affirmative("Reboot now?"):
            output.print_summary("Have fun with your newly functional environment!")
            return

        try:
            self.runner.run(Invocation.root("reboot"), pty=False)
        except (errors.CommandFailedError, errors.WrongContextError) as error:
            output.print_warning(f"Failed to reboot: {error}")
            output.print_traceback()
