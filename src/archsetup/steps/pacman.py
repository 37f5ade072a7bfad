import archsetup.core.error as errors
import archsetup.core.output as output
from archsetup.core.invocation import Invocation, Runner
from archsetup.core.sequencer import Step, StepResult
from archsetup.core.settings import Settings


class PacmanCommands:
    """
    Default pacman commands. All of them are non-interactive.
    """

    def sync_install(self, pkgs: list[str]) -> list[str]:
        """
        Running this command refreshes the package databases, upgrades the system and installs
        the given packages if they are missing.
        """
        return ["pacman", "-Syu", "--needed", "--noconfirm"] + pkgs

    def install(self, pkgs: list[str]) -> list[str]:
        """
        Running this command installs the given packages if they are missing.
        """
        return ["pacman", "-S", "--needed", "--noconfirm"] + pkgs

    def list_orphans(self) -> list[str]:
        """
        Running this command outputs a newline seperated list of orphaned packages.
        Exits with code 1 and prints nothing when there are none.
        """
        return ["pacman", "-Qtdq", "--color=never"]

    def remove(self, pkgs: list[str]) -> list[str]:
        """
        Running this command removes the given packages, their configuration files and their
        dependencies that aren't required by other packages.
        """
        return ["pacman", "-Rns", "--noconfirm"] + pkgs

    def clean_cache(self) -> list[str]:
        """
        Running this command removes cached packages that are no longer installed.
        """
        return ["pacman", "-Sc", "--noconfirm"]


class InstallCorePackages(Step):
    """
    Installs the core package set with a single pacman transaction.
    """

    NAME = "core-packages"
    DESCRIPTION = "Installing core packages."

    def __init__(self) -> None:
        self.commands = PacmanCommands()

    def run(self, settings: Settings, runner: Runner) -> StepResult:
        packages = list(settings.core_packages)
        if not packages:
            output.print_info("No core packages configured.")
            return StepResult.success()

        output.print_list("Installing pacman packages:", packages, level=output.INFO)

        try:
            runner.run(Invocation.root(*self.commands.sync_install(packages)))
        except errors.CommandFailedError as error:
            output.print_error("Failed to install core packages. Check pacman logs.")
            output.print_error(
                "Packages installed before the failure are kept. Re-run archsetup after fixing "
                "the problem."
            )
            output.print_debug(str(error))
            output.print_traceback()
            return StepResult.fatal("core package installation failed")

        output.print_success("Core packages installed successfully.")
        return StepResult.success()
