"""
Module for archsetup configuration options.

NOTE: Do NOT use from imports as global variables might not work as you expect.

Only use:

import archsetup.config

or

import archsetup.config as whatever

-- Configuring a run --

The values below are defaults. They are read once at start-up by
``archsetup.core.settings.Settings.from_environment`` and frozen into an immutable value
that is passed to every step. Changing them after that has no effect on a running sequence.
"""

debug_output: bool = False
quiet_output: bool = False
color_output: bool = True

log_file: str = "/tmp/arch_setup.log"

core_packages: list[str] = [
    "git",
    "vim",
    "btop",
    "neovim",
    "fish",
    "curl",
    "wget",
    "man-db",
    "firefox",
    "xfce4",
    "xfce4-goodies",
    "ly",
    "networkmanager",
    "alsa-utils",
    "pulseaudio",
    "pulseaudio-alsa",
    "xdg-user-dirs",
    "ttf-dejavu",
]
aur_packages: list[str] = [
    "discord",
    "spotify",
]

helper_prerequisites: list[str] = ["git", "base-devel"]
aur_helper: str = "yay"
aur_url: str = "https://aur.archlinux.org"
build_dir_name: str = "builds"

login_shell: str = "/usr/bin/fish"
shells_file: str = "/etc/shells"

network_unit: str = "NetworkManager.service"
display_manager_unit: str = "ly.service"

connectivity_url: str = "https://archlinux.org"
connectivity_timeout: float = 5.0
