from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, List, Optional

from .build_config import load_build_config
from .errors import ConfigError, PackageInstallFailed, PrerequisiteMissing
from .lib.command import CommandRunner, is_root, run_cmd
from .lib.manifests import available_profiles
from .lib.pkg import install_host_packages
from .lib.prereq import require_tools
from .logging_utils import configure_logging, timestamped_log_path
from .pipeline import RunResult, required_tools, run_steps
from .report import save_report

logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PREREQ = 2
EXIT_INTERRUPTED = 130


def base_tools() -> List[str]:
    tools = ["git", "apt-get"]
    if not is_root():
        tools.append("sudo")
    return tools


def run(
    *,
    profile: Optional[str] = None,
    config_path: Optional[str] = None,
    work_dir: Optional[str] = None,
    log_dir: Optional[str] = None,
    prefix: Optional[str] = None,
    jobs: Optional[int] = None,
    report_path: Optional[str] = None,
    skip_packages: bool = False,
    dry_run: bool = False,
    verbose: bool = False,
    runner: CommandRunner = run_cmd,
) -> RunResult:
    """Install host packages, then fetch/configure/build/install every step in order."""

    cfg = load_build_config(
        profile=profile,
        config_path=config_path,
        overrides={"work_dir": work_dir, "log_dir": log_dir, "prefix": prefix, "jobs": jobs},
    )

    actual_log_path = configure_logging(
        log_path=timestamped_log_path(cfg.log_dir),
        level=logging.DEBUG if verbose else logging.INFO,
    )

    report: Dict[str, Any] = {
        "profile": cfg.profile,
        "work_dir": cfg.work_dir,
        "prefix": cfg.prefix,
        "dry_run": dry_run,
        "log_path": actual_log_path,
    }

    try:
        steps = cfg.steps()
        logger.info(
            "Profile %s: %d packages, %d steps (%s)",
            cfg.profile,
            len(cfg.packages),
            len(steps),
            ", ".join(s.name for s in steps) or "none",
        )

        if not dry_run:
            require_tools(base_tools())

        if skip_packages:
            logger.info("Skipping host package installation")
        else:
            install_host_packages(cfg.packages, runner=runner, dry_run=dry_run)

        if not dry_run:
            require_tools(required_tools(steps, work_dir=cfg.work_dir, prefix=cfg.prefix, jobs=cfg.jobs))

        result = run_steps(
            steps,
            work_dir=cfg.work_dir,
            prefix=cfg.prefix,
            jobs=cfg.jobs,
            runner=runner,
            dry_run=dry_run,
        )
        report.update(result.to_dict())
        return result
    except KeyboardInterrupt:
        report.update({"status": "interrupted"})
        raise
    except Exception as e:
        logger.exception("Build run aborted")
        report.update({"status": "failed", "error": str(e)})
        raise
    finally:
        if report_path:
            save_report(report_path, report)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="source-builder",
        description="Install host packages and build a fixed list of source repositories in order.",
    )
    p.add_argument("--profile", default=None, help=f"Built-in profile ({', '.join(available_profiles())})")
    p.add_argument("--config", default=None, help="YAML file merged over the profile")
    p.add_argument("--work-dir", default=None, help="Scratch directory (removed after the run)")
    p.add_argument("--log-dir", default=None, help="Directory for the timestamped run log")
    p.add_argument("--prefix", default=None, help="Install prefix (default: /usr/local)")
    p.add_argument("--jobs", type=int, default=None, help="Parallel build jobs (default: CPU count)")
    p.add_argument("--report", default=None, help="Write a JSON run report to this path")
    p.add_argument("--skip-packages", action="store_true", help="Do not run apt-get")
    p.add_argument("--dry-run", action="store_true", help="Log commands without running them")
    p.add_argument("-v", "--verbose", action="store_true", help="Show child process output on the console")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        result = run(
            profile=args.profile,
            config_path=args.config,
            work_dir=args.work_dir,
            log_dir=args.log_dir,
            prefix=args.prefix,
            jobs=args.jobs,
            report_path=args.report,
            skip_packages=bool(args.skip_packages),
            dry_run=bool(args.dry_run),
            verbose=bool(args.verbose),
        )
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_PREREQ
    except PrerequisiteMissing:
        return EXIT_PREREQ
    except PackageInstallFailed:
        return EXIT_FAILED
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return EXIT_INTERRUPTED

    if not result.ok:
        logger.error("FAILED: step %s (%s): %s", result.failed_step, result.failed_stage.value, result.message)
        return EXIT_FAILED
    logger.info("SUCCESS: %d steps built and installed", len(result.completed_steps))
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
