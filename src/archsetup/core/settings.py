import os
import pwd
import typing
from dataclasses import dataclass

import archsetup.config as config
import archsetup.core.output as output


@dataclass(frozen=True)
class PackageSet:
    """
    Named set of package names. Duplicates are dropped, keeping the first occurrence.
    """

    name: str
    packages: tuple[str, ...] = ()

    @classmethod
    def of(cls, name: str, packages: typing.Iterable[str]) -> "PackageSet":
        return cls(name, tuple(dict.fromkeys(packages)))

    def __iter__(self) -> typing.Iterator[str]:
        return iter(self.packages)

    def __len__(self) -> int:
        return len(self.packages)

    def __bool__(self) -> bool:
        return bool(self.packages)


@dataclass(frozen=True)
class Settings:
    """
    Everything a provisioning run needs to know. Built once at start-up and passed to every step.

    ``target_home`` is None when the target user doesn't exist in the passwd database. Use
    ``from_environment`` to build one from ``archsetup.config``.
    """

    target_user: str
    target_home: typing.Optional[str]
    core_packages: PackageSet
    aur_packages: PackageSet
    helper_prerequisites: PackageSet
    aur_helper: str
    aur_url: str
    build_dir_name: str
    login_shell: str
    shells_file: str
    network_unit: str
    display_manager_unit: str
    connectivity_url: str
    connectivity_timeout: float
    log_file: str
    dry_run: bool = False

    @property
    def build_root(self) -> typing.Optional[str]:
        """
        Directory under the target user's home that holds helper builds.
        """
        if self.target_home is None:
            return None
        return os.path.join(self.target_home, self.build_dir_name)

    @property
    def helper_build_dir(self) -> typing.Optional[str]:
        """
        Scratch directory the helper is cloned to and built in.
        """
        if self.build_root is None:
            return None
        return os.path.join(self.build_root, self.aur_helper)

    @property
    def helper_repo(self) -> str:
        return f"{self.aur_url}/{self.aur_helper}.git"

    @classmethod
    def from_environment(
        cls, environ: typing.Optional[typing.Mapping[str, str]] = None, dry_run: bool = False
    ) -> "Settings":
        """
        Freezes the current values of ``archsetup.config`` together with the target user.
        """
        user = resolve_target_user(environ)
        return cls(
            target_user=user,
            target_home=resolve_home(user),
            core_packages=PackageSet.of("core", config.core_packages),
            aur_packages=PackageSet.of("aur", config.aur_packages),
            helper_prerequisites=PackageSet.of("prerequisites", config.helper_prerequisites),
            aur_helper=config.aur_helper,
            aur_url=config.aur_url,
            build_dir_name=config.build_dir_name,
            login_shell=config.login_shell,
            shells_file=config.shells_file,
            network_unit=config.network_unit,
            display_manager_unit=config.display_manager_unit,
            connectivity_url=config.connectivity_url,
            connectivity_timeout=config.connectivity_timeout,
            log_file=config.log_file,
            dry_run=dry_run,
        )


def resolve_target_user(environ: typing.Optional[typing.Mapping[str, str]] = None) -> str:
    """
    Returns the name of the user the machine is being set up for.

    Uses ``SUDO_USER`` when set. Otherwise falls back to the login name of the controlling
    terminal and finally to the effective user.
    """
    if environ is None:
        environ = os.environ

    sudo_user = environ.get("SUDO_USER")
    if sudo_user:
        output.print_debug(f"Target user '{sudo_user}' taken from SUDO_USER.")
        return sudo_user

    try:
        login = os.getlogin()
        output.print_debug(f"Target user '{login}' taken from the login name.")
        return login
    except OSError:
        pass

    name = pwd.getpwuid(os.geteuid()).pw_name
    output.print_debug(f"Target user '{name}' taken from the effective user.")
    return name


def resolve_home(user: str) -> typing.Optional[str]:
    """
    Returns the home directory of the given user or None if the user doesn't exist.
    """
    try:
        return pwd.getpwnam(user).pw_dir
    except KeyError:
        return None
