import os
import shutil

import archsetup.core.error as errors
import archsetup.core.output as output
from archsetup.core.invocation import Invocation, Runner
from archsetup.core.sequencer import Step, StepResult
from archsetup.core.settings import Settings
from archsetup.steps.pacman import PacmanCommands


class AurCommands(PacmanCommands):
    def make_directory(self, path: str) -> list[str]:
        """
        Running this command creates the given directory and its parents.
        """
        return ["mkdir", "-p", path]

    def git_clone(self, repo: str, dest: str) -> list[str]:
        """
        Running this command clones a git repository to the the given destination.
        """
        return ["git", "clone", repo, dest]

    def make_and_install(self) -> list[str]:
        """
        Running this command builds the package in the current working directory and installs it
        together with its dependencies.
        """
        return ["makepkg", "-si", "--noconfirm"]

    def helper_install(self, helper: str, pkgs: list[str]) -> list[str]:
        """
        Running this command installs the given packages with the AUR helper.
        """
        return [helper, "-S", "--needed", "--noconfirm"] + pkgs

    def helper_clean_cache(self, helper: str) -> list[str]:
        """
        Running this command removes the AUR helper's build cache.
        """
        return [helper, "-Sc", "--aur", "--noconfirm"]


def helper_available(settings: Settings) -> bool:
    """
    Returns True if the AUR helper can be found in PATH.
    """
    return shutil.which(settings.aur_helper) is not None


class BootstrapHelper(Step):
    """
    Builds and installs the AUR helper from the AUR.

    Build prerequisites are installed as root. Everything else runs as the target user because
    makepkg refuses to run as root. The build directory is removed afterwards whether the build
    succeeded or not.
    """

    NAME = "aur-helper"
    DESCRIPTION = "Installing the AUR helper."

    def __init__(self) -> None:
        self.commands = AurCommands()

    def run(self, settings: Settings, runner: Runner) -> StepResult:
        helper = settings.aur_helper
        user = settings.target_user
        build_root = settings.build_root
        build_dir = settings.helper_build_dir

        if build_root is None or build_dir is None:
            output.print_error(f"User '{user}' doesn't exist. Can't build {helper}.")
            return StepResult.fatal(f"user '{user}' doesn't exist")

        output.print_info(f"Installing AUR helper ({helper}) as non-root user {user}.")

        try:
            runner.run(
                Invocation.root(*self.commands.install(list(settings.helper_prerequisites)))
            )
        except errors.CommandFailedError as error:
            output.print_error(f"Failed to install build prerequisites for {helper}.")
            output.print_debug(str(error))
            output.print_traceback()
            return StepResult.fatal("installing build prerequisites failed")

        if os.path.exists(build_dir):
            output.print_info("Removing previous build directory.")
            self.remove_build_dir(settings, build_dir)

        try:
            runner.run(Invocation.user(*self.commands.make_directory(build_root)))
            runner.run(Invocation.user(*self.commands.git_clone(settings.helper_repo, build_dir)))
            runner.run(Invocation.user(*self.commands.make_and_install(), cwd=build_dir))
        except (
            errors.CommandFailedError,
            errors.UserNotFoundError,
            errors.WrongContextError,
        ) as error:
            output.print_error(
                f"AUR helper build or installation failed (ran as {user}). Check the output."
            )
            output.print_error(str(error))
            output.print_traceback()
            return StepResult.fatal(f"building {helper} failed")
        finally:
            self.remove_build_dir(settings, build_dir)

        output.print_success(f"{helper} installed and build files cleaned up.")
        return StepResult.success()

    def remove_build_dir(self, settings: Settings, build_dir: str):
        """
        Deletes the build directory if it exists.
        """
        if settings.dry_run:
            output.print_info(f"Would remove {build_dir}")
            return

        if not os.path.exists(build_dir):
            return

        try:
            shutil.rmtree(build_dir)
        except OSError as error:
            output.print_warning(
                f"Failed to remove build directory {build_dir}: {error.strerror or str(error)}."
            )
            output.print_traceback()


class InstallAurPackages(Step):
    """
    Installs the AUR package set with the helper as the target user. Never fatal.
    """

    NAME = "aur-packages"
    DESCRIPTION = "Installing AUR packages."

    def __init__(self) -> None:
        self.commands = AurCommands()

    def run(self, settings: Settings, runner: Runner) -> StepResult:
        packages = list(settings.aur_packages)
        if not packages:
            output.print_info("No AUR packages configured.")
            return StepResult.success()

        if not helper_available(settings):
            output.print_warning("AUR helper not available. Skipping AUR packages.")
            return StepResult.soft(f"{settings.aur_helper} not found")

        output.print_list("Installing AUR packages:", packages, level=output.INFO)

        try:
            runner.run(
                Invocation.user(*self.commands.helper_install(settings.aur_helper, packages))
            )
        except (
            errors.CommandFailedError,
            errors.UserNotFoundError,
            errors.WrongContextError,
            OSError,
        ) as error:
            output.print_warning("Failed to install some AUR packages.")
            output.print_debug(str(error))
            output.print_traceback()
            return StepResult.soft("some AUR packages failed to install")

        output.print_success("AUR packages installed.")
        return StepResult.success()
