from __future__ import annotations

import contextlib
import logging
import shutil
from pathlib import Path
from typing import Iterator

from .command import CommandRunner, privileged, run_cmd

logger = logging.getLogger(__name__)


def remove_tree(path: Path, *, runner: CommandRunner = run_cmd, dry_run: bool = False) -> None:
    """Remove path; retry with a privileged rm when installs left root-owned files behind."""

    if dry_run:
        logger.info("Would remove %s", str(path))
        return
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except PermissionError:
        logger.warning("Permission denied removing %s; retrying with privileges", str(path))
        runner(privileged(["rm", "-rf", str(path)]))


@contextlib.contextmanager
def scratch_dir(
    path: Path,
    *,
    runner: CommandRunner = run_cmd,
    dry_run: bool = False,
) -> Iterator[Path]:
    """Acquire a fresh scratch directory and remove it on every exit path."""

    path = Path(path).absolute()
    remove_tree(path, runner=runner, dry_run=dry_run)
    if not dry_run:
        path.mkdir(parents=True, exist_ok=True)
    logger.info("Scratch directory: %s", str(path))
    try:
        yield path
    finally:
        logger.info("Cleaning up scratch directory %s", str(path))
        remove_tree(path, runner=runner, dry_run=dry_run)
