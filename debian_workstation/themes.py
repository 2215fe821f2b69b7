"""
GTK & GRUB Theme Deployment
---------------------------

Installs the adw-gtk3 theme system-wide, copies it into every home directory
and /etc/skel, switches each user's GNOME settings to it, and installs a
GRUB theme.
"""

import logging
import pwd
import shutil
import subprocess
import tarfile
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from debian_workstation.errors import WorkstationError
from debian_workstation.utils import download_file, run_command

logger = logging.getLogger("debian_workstation")


@dataclass
class ThemeReport:
    """Users the theme was applied to, and the ones that failed."""

    applied: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def install_system_theme(url: str, themes_dir: Union[str, Path]) -> None:
    """
    Download a theme tarball and unpack it into the system themes directory.

    Raises:
        WorkstationError: If the download or extraction fails
    """
    themes_dir = Path(themes_dir)
    themes_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix="debian_workstation_") as tmp:
        archive = Path(tmp) / Path(url).name
        download_file(url, archive)
        try:
            with tarfile.open(archive) as tar:
                tar.extractall(themes_dir, filter="data")
        except (tarfile.TarError, OSError) as e:
            raise WorkstationError(f"Could not extract {archive.name}: {e}")
    logger.info(f"Installed {Path(url).name} into {themes_dir}")


def install_flatpak_themes(refs: Sequence[str]) -> None:
    if not refs:
        return
    run_command(["flatpak", "install", "-y", "--noninteractive", "flathub", *refs])
    logger.info(f"Installed Flatpak themes: {', '.join(refs)}")


def copy_theme(theme_dir: Path, dest_root: Path) -> Path:
    """Copy a theme directory into dest_root/.themes, replacing old copies."""
    themes = dest_root / ".themes"
    themes.mkdir(parents=True, exist_ok=True)
    target = themes / theme_dir.name
    shutil.copytree(theme_dir, target, dirs_exist_ok=True)
    return target


def chown_tree(path: Path, uid: int, gid: int) -> None:
    shutil.chown(path, uid, gid)
    for child in path.rglob("*"):
        shutil.chown(child, uid, gid)


def home_owners(
    home_root: Union[str, Path],
) -> List[Tuple[Path, pwd.struct_passwd]]:
    """
    Home directories directly under home_root paired with their owner.

    Directories owned by root or by a uid without a passwd entry are skipped.
    """
    owners = []
    for entry in sorted(Path(home_root).iterdir()):
        if not entry.is_dir():
            continue
        uid = entry.stat().st_uid
        if uid == 0:
            continue
        try:
            owners.append((entry, pwd.getpwuid(uid)))
        except KeyError:
            logger.warning(f"Skipping {entry}: owner has no account")
    return owners


def set_gnome_theme(user: str, gtk_theme: str, icon_theme: str) -> None:
    for key, value in (("gtk-theme", gtk_theme), ("icon-theme", icon_theme)):
        run_command(
            [
                "sudo",
                "-u",
                user,
                "dbus-launch",
                "gsettings",
                "set",
                "org.gnome.desktop.interface",
                key,
                value,
            ]
        )


def apply_theme_to_users(
    theme_dir: Union[str, Path],
    home_root: Union[str, Path],
    gtk_theme: str,
    icon_theme: str,
    homes: Optional[Sequence[Tuple[Path, pwd.struct_passwd]]] = None,
) -> ThemeReport:
    """
    Copy the theme into each user's home and select it in their settings.

    A failure for one user is logged and the remaining users still get the
    theme.
    """
    theme_dir = Path(theme_dir)
    report = ThemeReport()
    if homes is None:
        homes = home_owners(home_root)

    for home, account in homes:
        try:
            copy_theme(theme_dir, home)
            chown_tree(home / ".themes", account.pw_uid, account.pw_gid)
            set_gnome_theme(account.pw_name, gtk_theme, icon_theme)
            report.applied.append(account.pw_name)
            logger.info(f"Applied {gtk_theme} theme for {account.pw_name}")
        except (OSError, subprocess.SubprocessError) as e:
            report.failed.append(account.pw_name)
            logger.warning(f"Could not apply theme for {account.pw_name}: {e}")
    return report


def seed_skeleton(theme_dir: Union[str, Path], skel_dir: Union[str, Path]) -> Path:
    """Make new accounts start with the theme in ~/.themes."""
    target = copy_theme(Path(theme_dir), Path(skel_dir))
    logger.info(f"Seeded {target} for new users")
    return target


def install_grub_theme(repo_url: str, install_args: Sequence[str]) -> None:
    """Clone a GRUB theme repository, run its installer and remove the checkout."""
    with tempfile.TemporaryDirectory(prefix="debian_workstation_") as tmp:
        checkout = Path(tmp) / "grub2-themes"
        run_command(["git", "clone", "--depth", "1", repo_url, str(checkout)])
        run_command(["./install.sh", *install_args], cwd=str(checkout))
    logger.info(f"Installed GRUB theme ({' '.join(install_args)})")
