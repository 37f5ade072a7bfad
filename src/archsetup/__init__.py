# Re-exports
from archsetup.core.command import prg
from archsetup.core.invocation import Context, Invocation, Runner
from archsetup.core.sequencer import Outcome, Sequencer, Step, StepResult
from archsetup.core.settings import PackageSet, Settings

__all__ = [
    "Context",
    "Invocation",
    "Outcome",
    "PackageSet",
    "Runner",
    "Sequencer",
    "Settings",
    "Step",
    "StepResult",
    "prg",
]
