#!/usr/bin/env python3
"""Unit tests for the step runner (source_builder/pipeline.py).

Every external command goes through a fake runner; nothing is cloned or built.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from source_builder.errors import BuildFailed, FetchFailed
from source_builder.pipeline import RunResult, run_stage, run_step, run_steps
from source_builder.recipes import CMAKE, make_step
from source_builder.stages import Stage, StepCtx


def _steps(*names, overrides=None):
    return [make_step(n, f"https://example.invalid/{n}.git", overrides=overrides or {}) for n in names]


def test_all_stages_succeed_reports_success_and_removes_work_dir(tmp_path, fake_runner) -> None:
    work = tmp_path / "work"

    result = run_steps(_steps("A", "B"), work_dir=work, runner=fake_runner)

    assert result.ok
    assert result.completed_steps == ["A", "B"]
    assert result.failed_step is None
    assert result.cleaned_up
    assert not work.exists()


def test_stages_run_in_order_with_install_privileged(tmp_path, fake_runner) -> None:
    run_steps(_steps("A"), work_dir=tmp_path / "work", prefix="/opt/x", jobs=3, runner=fake_runner)

    argvs = fake_runner.argvs
    assert argvs[0][:2] == ["git", "clone"]
    assert argvs[0][-2:] == ["https://example.invalid/A.git", "A"]
    assert argvs[1][:3] == ["meson", "setup", "build"]
    assert "--prefix=/opt/x" in argvs[1]
    assert argvs[2] == ["ninja", "-C", "build", "-j", "3"]
    assert argvs[3] == ["sudo", "ninja", "-C", "build", "install"]
    assert argvs[4] == ["sudo", "ldconfig"]

    # Only install-stage commands are privileged.
    assert all(a[0] != "sudo" for a in argvs[:3])


def test_commands_run_with_explicit_cwd_under_work_dir(tmp_path, fake_runner) -> None:
    work = (tmp_path / "work").absolute()

    run_steps(_steps("A", "B"), work_dir=work, runner=fake_runner)

    for _, cwd in fake_runner.calls:
        assert cwd is not None
        assert Path(cwd) == work or work in Path(cwd).parents
    # fetch runs from the run root, the rest inside the step's checkout
    assert fake_runner.calls[0][1] == str(work)
    assert fake_runner.cwds_under("A")


def test_failing_build_stops_run_and_still_cleans_up(tmp_path, failing_runner) -> None:
    work = tmp_path / "work"
    runner = failing_runner(lambda argv, cwd: "--build" in argv and cwd.endswith("/B"))

    result = run_steps(
        _steps("A", "B", "C", overrides={"B": CMAKE}),
        work_dir=work,
        runner=runner,
    )

    assert not result.ok
    assert result.failed_step == "B"
    assert result.failed_stage is Stage.BUILD
    assert result.completed_steps == ["A"]
    assert "boom" in result.message
    assert result.cleaned_up
    assert not work.exists()

    # C never starts and B never installs.
    assert not any("C.git" in a for argv in runner.argvs for a in argv)
    assert not any(argv[:2] == ["sudo", "cmake"] for argv in runner.argvs)


def test_failing_fetch_reports_fetch_stage(tmp_path, failing_runner) -> None:
    runner = failing_runner(lambda argv, cwd: argv[0] == "git", returncode=128)

    result = run_steps(_steps("A", "B"), work_dir=tmp_path / "work", runner=runner)

    assert result.failed_step == "A"
    assert result.failed_stage is Stage.FETCH
    assert result.completed_steps == []
    assert len(runner.calls) == 1
    assert result.message.startswith("exit 128: git clone")


def test_empty_step_list_succeeds_without_invocations(tmp_path, fake_runner) -> None:
    work = tmp_path / "work"

    result = run_steps([], work_dir=work, runner=fake_runner)

    assert result == RunResult(status="success", completed_steps=[], cleaned_up=True)
    assert fake_runner.calls == []
    assert not work.exists()


def test_running_twice_yields_same_terminal_state(tmp_path, failing_runner) -> None:
    steps = _steps("A", "B", "C", overrides={"B": CMAKE})
    fail = lambda argv, cwd: "--build" in argv  # noqa: E731

    first = run_steps(steps, work_dir=tmp_path / "work", runner=failing_runner(fail))
    second = run_steps(steps, work_dir=tmp_path / "work", runner=failing_runner(fail))

    assert first == second


def test_existing_work_dir_is_wiped_before_run(tmp_path, fake_runner) -> None:
    work = tmp_path / "work"
    (work / "stale").mkdir(parents=True)
    seen = []

    def runner(argv, **kw):
        seen.append(sorted(p.name for p in work.iterdir()))
        return fake_runner(argv, **kw)

    run_steps(_steps("A"), work_dir=work, runner=runner)

    assert seen[0] == []


def test_unexpected_exception_still_removes_work_dir(tmp_path) -> None:
    work = tmp_path / "work"

    def runner(argv, **kw):
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        run_steps(_steps("A"), work_dir=work, runner=runner)
    assert not work.exists()


def test_run_step_raises_typed_error(tmp_path, failing_runner) -> None:
    (step,) = _steps("A")
    ctx = StepCtx(root=tmp_path, step=step)

    with pytest.raises(FetchFailed) as exc:
        run_step(ctx, runner=failing_runner(lambda argv, cwd: True))
    assert exc.value.step == "A"
    assert exc.value.returncode == 1

    with pytest.raises(BuildFailed):
        run_step(ctx, runner=failing_runner(lambda argv, cwd: argv[0] == "ninja" and "install" not in argv))


def test_run_stage_returns_result_value(tmp_path, fake_runner) -> None:
    (step,) = _steps("A")
    ctx = StepCtx(root=tmp_path, step=step)

    r = run_stage(ctx, Stage.CONFIGURE, runner=fake_runner)

    assert r.ok
    assert r.step == "A"
    assert r.stage is Stage.CONFIGURE


def test_virtual_package_install_writes_control_file(tmp_path, fake_runner) -> None:
    step = make_step(
        "libliftoff",
        "https://example.invalid/libliftoff.git",
        options={"package": "libliftoff-local", "version": "1.0-local1", "provides": ["libliftoff-dev"]},
    )
    controls = []

    def runner(argv, **kw):
        if argv[0] == "equivs-build":
            controls.append((Path(kw["cwd"]) / argv[1]).read_text(encoding="utf-8"))
        return fake_runner(argv, **kw)

    result = run_steps([step], work_dir=tmp_path / "work", runner=runner)

    assert result.ok
    assert len(controls) == 1
    assert "Package: libliftoff-local" in controls[0]
    assert "Provides: libliftoff-dev" in controls[0]
    assert ["sudo", "dpkg", "-i", "libliftoff-local_1.0-local1_all.deb"] in fake_runner.argvs


def test_dry_run_touches_nothing(tmp_path, fake_runner) -> None:
    work = tmp_path / "work"
    step = make_step("libliftoff", "https://example.invalid/libliftoff.git")

    result = run_steps([step], work_dir=work, runner=fake_runner, dry_run=True)

    assert result.ok
    assert not work.exists()
    assert fake_runner.calls
