from archsetup.core.sequencer import Step
from archsetup.steps.aur import BootstrapHelper, InstallAurPackages
from archsetup.steps.maintenance import SweepSystem
from archsetup.steps.network import ConnectivityProbe
from archsetup.steps.pacman import InstallCorePackages
from archsetup.steps.preflight import PreflightGuard
from archsetup.steps.user_env import FinalizeUserEnvironment


def default_steps() -> list[Step]:
    """
    Returns the provisioning steps in the order they must run.
    """
    return [
        PreflightGuard(),
        ConnectivityProbe(),
        InstallCorePackages(),
        BootstrapHelper(),
        InstallAurPackages(),
        FinalizeUserEnvironment(),
        SweepSystem(),
    ]
