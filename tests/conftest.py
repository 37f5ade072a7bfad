import pwd
import shlex
import typing

import pytest

import archsetup.config as config
import archsetup.core.error as errors
import archsetup.core.output as output
from archsetup.core.invocation import Context, Invocation
from archsetup.core.settings import PackageSet, Settings


class FakeRunner:
    """
    Records invocations instead of running them.

    ``failures`` maps command prefixes to the output of a failing run.
    ``hooks`` maps program names to callables run before the invocation "finishes".
    ``query_results`` maps program names to (exit code, output) returned by ``query``.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.calls: list[Invocation] = []
        self.failures: dict[str, str] = {}
        self.hooks: dict[str, typing.Callable[[Invocation], None]] = {}
        self.query_results: dict[str, tuple[int, str]] = {}

    def run(self, invocation: Invocation, pty: bool = True) -> str:
        self.calls.append(invocation)

        hook = self.hooks.get(invocation.argv[0])
        if hook:
            hook(invocation)

        line = shlex.join(invocation.argv)
        for prefix, text in self.failures.items():
            if line.startswith(prefix):
                raise errors.CommandFailedError(list(invocation.argv), text)
        return ""

    def query(self, invocation: Invocation) -> tuple[int, str]:
        self.calls.append(invocation)
        return self.query_results.get(invocation.argv[0], (1, ""))

    def lines(self) -> list[str]:
        return [shlex.join(call.argv) for call in self.calls]

    def programs(self) -> list[str]:
        return [call.argv[0] for call in self.calls]

    def in_context(self, context: Context) -> list[str]:
        return [shlex.join(call.argv) for call in self.calls if call.context is context]


def make_passwd(name="alice", home="/home/alice", shell="/bin/bash", uid=1000):
    return pwd.struct_passwd((name, "x", uid, uid, "", home, shell))


@pytest.fixture(autouse=True)
def reset_output():
    orig = (config.debug_output, config.quiet_output, config.color_output)
    config.color_output = False
    yield
    output.close_log()
    config.debug_output, config.quiet_output, config.color_output = orig


@pytest.fixture
def settings(tmp_path) -> Settings:
    home = tmp_path / "home" / "alice"
    home.mkdir(parents=True)
    shells = tmp_path / "shells"
    shells.write_text("# Pathnames of valid login shells.\n/bin/sh\n/bin/bash\n/usr/bin/fish\n")
    return Settings(
        target_user="alice",
        target_home=str(home),
        core_packages=PackageSet.of("core", ["git", "fish", "networkmanager"]),
        aur_packages=PackageSet.of("aur", ["spotify", "discord"]),
        helper_prerequisites=PackageSet.of("prerequisites", ["git", "base-devel"]),
        aur_helper=config.aur_helper,
        aur_url=config.aur_url,
        build_dir_name=config.build_dir_name,
        login_shell=config.login_shell,
        shells_file=str(shells),
        network_unit=config.network_unit,
        display_manager_unit=config.display_manager_unit,
        connectivity_url=config.connectivity_url,
        connectivity_timeout=config.connectivity_timeout,
        log_file=str(tmp_path / "arch_setup.log"),
    )


@pytest.fixture
def runner(settings) -> FakeRunner:
    return FakeRunner(settings)
