import requests  # type: ignore

import archsetup.core.output as output
from archsetup.core.invocation import Runner
from archsetup.core.sequencer import Step, StepResult
from archsetup.core.settings import Settings


class ConnectivityProbe(Step):
    """
    Checks that the internet can be reached before anything gets downloaded.
    Any HTTP response counts as reachable.
    """

    NAME = "connectivity"
    DESCRIPTION = "Checking internet connection."

    def run(self, settings: Settings, runner: Runner) -> StepResult:
        url = settings.connectivity_url
        try:
            response = requests.head(
                url, timeout=settings.connectivity_timeout, allow_redirects=True
            )
        except requests.RequestException as error:
            output.print_error(
                f"Internet connection failed ({url} is unreachable). "
                "Please check your network setup."
            )
            output.print_debug(str(error))
            output.print_traceback()
            return StepResult.fatal("network unreachable")

        output.print_debug(f"'{url}' answered with status {response.status_code}.")
        output.print_success("Internet connection is active.")
        return StepResult.success()
