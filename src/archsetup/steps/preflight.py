import os

import archsetup.core.output as output
from archsetup.core.invocation import Runner
from archsetup.core.sequencer import Step, StepResult
from archsetup.core.settings import Settings


class PreflightGuard(Step):
    """
    Refuses to continue unless running as root and the user accepts the consequences.
    Nothing is changed on the system by this step.
    """

    NAME = "preflight"

    def run(self, settings: Settings, runner: Runner) -> StepResult:
        if os.geteuid() != 0:
            output.print_error(
                "Not running as root. Please run archsetup as root (e.g. sudo archsetup) "
                "for pacman and systemctl commands."
            )
            return StepResult.fatal("not running as root")

        output.print_warning("SAFETY WARNING")
        output.print_warning(
            "This will make permanent changes to your system, including installing packages "
            "and configuring services."
        )
        output.print_warning("It assumes you are running a FRESH Arch Linux base install.")
        if settings.dry_run:
            output.print_info("Dry run: commands will be printed but not executed.")

        if not output.prompt_affirmative(
            "Have you read the README.md and understand the risks?"
        ):
            output.print_error("Exiting. Please read the documentation before proceeding.")
            return StepResult.fatal("cancelled by the user")

        output.print_success("Proceeding with setup.")
        return StepResult.success()
