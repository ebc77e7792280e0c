from __future__ import annotations

import logging
from typing import Sequence

from ..errors import PackageInstallFailed
from .command import CommandRunner, privileged, run_cmd

logger = logging.getLogger(__name__)


APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def apt_update(*, runner: CommandRunner = run_cmd, dry_run: bool = False) -> None:
    r = runner(privileged(["apt-get", "update"]), check=False, env=APT_ENV, dry_run=dry_run)
    if r.returncode != 0:
        raise PackageInstallFailed(f"apt-get update failed ({r.returncode})")


def apt_install(
    packages: Sequence[str],
    *,
    with_recommends: bool = False,
    runner: CommandRunner = run_cmd,
    dry_run: bool = False,
) -> None:
    if not packages:
        return
    argv = [
        "apt-get",
        "install",
        "-y",
    ]
    if not with_recommends:
        argv.append("--no-install-recommends")
    r = runner(privileged([*argv, *packages]), check=False, env=APT_ENV, dry_run=dry_run)
    if r.returncode != 0:
        raise PackageInstallFailed(f"apt-get install failed ({r.returncode}) for: {' '.join(packages)}")
    logger.info("Installed %d host packages", len(packages))


def install_host_packages(
    packages: Sequence[str],
    *,
    runner: CommandRunner = run_cmd,
    dry_run: bool = False,
) -> None:
    """Refresh apt indexes and install the profile's package list on the host."""

    if not packages:
        logger.info("No host packages requested")
        return
    apt_update(runner=runner, dry_run=dry_run)
    apt_install(packages, runner=runner, dry_run=dry_run)
