from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import STAGE_ERRORS, StageFailed
from .lib.command import CommandRunner, fmt_argv, is_root, privileged, run_cmd
from .lib.scratch import scratch_dir
from .recipes import plan_step
from .stages import STAGE_ORDER, Invocation, Stage, Step, StepCtx, WriteFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageResult:
    step: str
    stage: Stage
    ok: bool
    returncode: Optional[int] = 0
    argv: Tuple[str, ...] = ()
    message: str = ""


@dataclass(frozen=True)
class RunResult:
    status: str
    completed_steps: List[str] = field(default_factory=list)
    failed_step: Optional[str] = None
    failed_stage: Optional[Stage] = None
    message: str = ""
    cleaned_up: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "completed_steps": list(self.completed_steps),
            "failed_step": self.failed_step,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "message": self.message,
            "cleaned_up": self.cleaned_up,
        }


def _last_line(text: str) -> str:
    lines = [ln for ln in (text or "").splitlines() if ln.strip()]
    return lines[-1].strip() if lines else ""


def run_stage(
    ctx: StepCtx,
    stage: Stage,
    *,
    runner: CommandRunner = run_cmd,
    dry_run: bool = False,
) -> StageResult:
    """Run every action of one stage recipe, stopping at the first failure."""

    for action in ctx.step.recipe(stage)(ctx):
        if isinstance(action, WriteFile):
            if dry_run:
                logger.info("Would write %s", str(action.path))
                continue
            try:
                action.path.parent.mkdir(parents=True, exist_ok=True)
                action.path.write_text(action.content, encoding="utf-8")
            except OSError as e:
                return StageResult(
                    step=ctx.step.name,
                    stage=stage,
                    ok=False,
                    returncode=None,
                    message=f"cannot write {action.path}: {e}",
                )
            logger.debug("Wrote %s", str(action.path))
            continue

        argv = privileged(action.argv) if action.privileged else list(action.argv)
        r = runner(
            argv,
            check=False,
            cwd=str(action.cwd or ctx.root),
            env=dict(action.env) or None,
            dry_run=dry_run,
        )
        if r.returncode not in action.ok_codes:
            message = f"exit {r.returncode}: {fmt_argv(argv)}"
            detail = _last_line(r.stderr)
            if detail:
                message += f" ({detail})"
            return StageResult(
                step=ctx.step.name,
                stage=stage,
                ok=False,
                returncode=r.returncode,
                argv=tuple(argv),
                message=message,
            )

    return StageResult(step=ctx.step.name, stage=stage, ok=True)


def run_step(ctx: StepCtx, *, runner: CommandRunner = run_cmd, dry_run: bool = False) -> None:
    """Run fetch, configure, build and install, each gated on the previous one."""

    for stage in STAGE_ORDER:
        logger.info("[%s] %s", ctx.step.name, stage.value)
        result = run_stage(ctx, stage, runner=runner, dry_run=dry_run)
        if not result.ok:
            raise STAGE_ERRORS[stage](ctx.step.name, result.message, returncode=result.returncode)


def run_steps(
    steps: Sequence[Step],
    *,
    work_dir: str | Path,
    prefix: str = "/usr/local",
    jobs: int = 1,
    runner: CommandRunner = run_cmd,
    dry_run: bool = False,
) -> RunResult:
    """Run steps in order; stop at the first failed stage; always remove work_dir."""

    completed: List[str] = []
    failure: Optional[StageFailed] = None

    with scratch_dir(Path(work_dir), runner=runner, dry_run=dry_run) as root:
        total = len(steps)
        for i, step in enumerate(steps, start=1):
            ctx = StepCtx(root=root, step=step, prefix=prefix, jobs=jobs)
            logger.info("=== Step %d/%d: %s ===", i, total, step.name)
            try:
                run_step(ctx, runner=runner, dry_run=dry_run)
            except StageFailed as e:
                logger.error("Step %s failed at %s: %s", e.step, e.stage.value, e.message)
                failure = e
                break
            completed.append(step.name)

    if failure is not None:
        skipped = [s.name for s in steps[len(completed) + 1 :]]
        if skipped:
            logger.info("Not started: %s", ", ".join(skipped))
        return RunResult(
            status="failed",
            completed_steps=completed,
            failed_step=failure.step,
            failed_stage=failure.stage,
            message=failure.message,
            cleaned_up=True,
        )

    logger.info("All %d steps completed", len(completed))
    return RunResult(status="success", completed_steps=completed, cleaned_up=True)


def required_tools(
    steps: Sequence[Step],
    *,
    work_dir: str | Path,
    prefix: str = "/usr/local",
    jobs: int = 1,
) -> List[str]:
    """Executables the planned recipes invoke, in first-use order.

    Scripts shipped inside a source tree (./configure) are not included, nor are
    privileged commands when sudo runs them: sudo resolves those through its
    secure_path (ldconfig lives in /sbin).
    """

    tools: List[str] = []
    needs_privilege = False
    via_sudo = not is_root()
    root = Path(work_dir).absolute()
    for step in steps:
        plan = plan_step(StepCtx(root=root, step=step, prefix=prefix, jobs=jobs))
        for actions in plan.values():
            for action in actions:
                if not isinstance(action, Invocation):
                    continue
                needs_privilege = needs_privilege or action.privileged
                exe = action.argv[0]
                if action.privileged and via_sudo:
                    continue
                if "/" not in exe and exe not in tools:
                    tools.append(exe)
    if needs_privilege and via_sudo:
        tools.append("sudo")
    return tools
