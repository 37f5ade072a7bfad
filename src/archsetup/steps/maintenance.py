import archsetup.core.error as errors
import archsetup.core.output as output
from archsetup.core.invocation import Invocation, Runner
from archsetup.core.sequencer import Step, StepResult
from archsetup.core.settings import Settings
from archsetup.steps.aur import AurCommands, helper_available

_RECOVERABLE = (
    errors.CommandFailedError,
    errors.UserNotFoundError,
    errors.WrongContextError,
    OSError,
)


class SweepSystem(Step):
    """
    Removes orphaned packages and cleans package caches. Best effort, never fatal.
    """

    NAME = "maintenance"
    DESCRIPTION = "Running post-installation system maintenance."

    def __init__(self) -> None:
        self.commands = AurCommands()

    def run(self, settings: Settings, runner: Runner) -> StepResult:
        failed = []

        if not self.remove_orphans(runner):
            failed.append("orphan removal")
        if not self.clean_pacman_cache(runner):
            failed.append("pacman cache")
        if helper_available(settings) and not self.clean_helper_cache(settings, runner):
            failed.append(f"{settings.aur_helper} cache")

        if failed:
            return StepResult.soft(f"failed: {', '.join(failed)}")

        output.print_success("System maintenance complete.")
        return StepResult.success()

    def find_orphans(self, runner: Runner) -> list[str]:
        """
        Returns orphaned packages.

        Raises:
            ``CommandFailedError``
                If the query fails for another reason than having no orphans.
        """
        cmd = self.commands.list_orphans()
        code, text = runner.query(Invocation.root(*cmd))
        if code != 0:
            # pacman exits with 1 and prints nothing if there are no orphans
            if text.strip():
                raise errors.CommandFailedError(cmd, text)
            return []
        return text.split()

    def remove_orphans(self, runner: Runner) -> bool:
        output.print_info("Removing orphaned packages.")
        try:
            orphans = self.find_orphans(runner)
            if not orphans:
                output.print_info("No orphaned packages to remove.")
                return True

            output.print_list("Removing orphaned packages:", orphans, level=output.INFO)
            runner.run(Invocation.root(*self.commands.remove(orphans)))
        except _RECOVERABLE as error:
            output.print_warning("Failed to remove orphaned packages.")
            output.print_debug(str(error))
            output.print_traceback()
            return False
        return True

    def clean_pacman_cache(self, runner: Runner) -> bool:
        output.print_info("Cleaning pacman cache (keeping only installed packages).")
        try:
            runner.run(Invocation.root(*self.commands.clean_cache()))
        except _RECOVERABLE as error:
            output.print_warning("Failed to clean the pacman cache.")
            output.print_debug(str(error))
            output.print_traceback()
            return False
        return True

    def clean_helper_cache(self, settings: Settings, runner: Runner) -> bool:
        output.print_info(f"Cleaning AUR build cache with {settings.aur_helper}.")
        try:
            runner.run(
                Invocation.user(*self.commands.helper_clean_cache(settings.aur_helper))
            )
        except _RECOVERABLE as error:
            output.print_warning(f"Failed to clean the {settings.aur_helper} build cache.")
            output.print_debug(str(error))
            output.print_traceback()
            return False
        return True
