import argparse
import sys

import archsetup.config as conf
import archsetup.core.output as output
import archsetup.steps as steps
from archsetup.core.invocation import Runner
from archsetup.core.sequencer import Sequencer
from archsetup.core.settings import Settings


def main():
    """
    Main entry for the CLI app
    """

    parser = argparse.ArgumentParser(
        prog="archsetup",
        description="Post-install setup for a fresh Arch Linux machine",
        epilog="Run as root, e.g. 'sudo archsetup'. Logs are appended to the log file.",
    )

    parser.add_argument(
        "--dry-run",
        "--print",
        action="store_true",
        default=False,
        help="print the commands that would be run without running them",
    )
    parser.add_argument("--debug", action="store_true", default=False, help="show debug output")
    parser.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="don't print messages with color",
    )
    parser.add_argument(
        "--log-file",
        action="store",
        default=None,
        help=f"file all output is appended to (default: {conf.log_file})",
    )

    args = parser.parse_args()

    conf.debug_output = args.debug

    if args.no_color:
        conf.color_output = False
    else:
        conf.color_output = output.has_ansi_support()

    if args.log_file:
        conf.log_file = args.log_file

    sys.exit(run_archsetup(args))


def run_archsetup(args: argparse.Namespace) -> int:
    """
    Runs the provisioning sequence. Returns the exit code of the run.
    """
    try:
        output.open_log(conf.log_file)
    except OSError as error:
        output.print_warning(
            f"Failed to open log file '{conf.log_file}': {error.strerror or str(error)}."
        )
        output.print_warning("Output is shown on the terminal only.")

    try:
        settings = Settings.from_environment(dry_run=args.dry_run)
        output.print_debug(f"Settings are: {settings}")
        runner = Runner(settings)
        sequencer = Sequencer(steps.default_steps(), settings, runner)
        report = sequencer.run()
        return report.exit_code
    except KeyboardInterrupt:
        output.print_error("Interrupted. The system may be partially configured.")
        return 1
    finally:
        output.close_log()
