from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple

import pytest

from source_builder.lib.command import CmdResult


class FakeRunner:
    """Stands in for run_cmd: records every call and scripts exit codes."""

    def __init__(
        self,
        fail_when: Optional[Callable[[List[str], Optional[str]], bool]] = None,
        returncode: int = 1,
    ) -> None:
        self.calls: List[Tuple[List[str], Optional[str]]] = []
        self.fail_when = fail_when
        self.returncode = returncode

    def __call__(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        env=None,
        cwd: Optional[str] = None,
        input_text: Optional[str] = None,
        dry_run: bool = False,
    ) -> CmdResult:
        argv_list = list(argv)
        self.calls.append((argv_list, cwd))
        failed = self.fail_when is not None and self.fail_when(argv_list, cwd)
        rc = self.returncode if failed else 0
        if check and rc != 0:
            raise RuntimeError(f"Command failed ({rc})")
        return CmdResult(argv=argv_list, returncode=rc, stdout="", stderr="boom\n" if failed else "")

    @property
    def argvs(self) -> List[List[str]]:
        return [a for a, _ in self.calls]

    def cwds_under(self, name: str) -> List[str]:
        return [c for _, c in self.calls if c and c.rstrip("/").split("/")[-1] == name]


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def failing_runner():
    return FakeRunner


@pytest.fixture(autouse=True)
def not_root(monkeypatch):
    # Keep sudo prefixes deterministic regardless of who runs the suite.
    monkeypatch.setattr("source_builder.lib.command.is_root", lambda: False)
    monkeypatch.setattr("source_builder.pipeline.is_root", lambda: False)
    monkeypatch.setattr("source_builder.main.is_root", lambda: False)


@pytest.fixture(autouse=True)
def reset_logging():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in before:
            root.removeHandler(h)
            h.close()
    for attr in ("_source_builder_configured", "_source_builder_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)
    root.setLevel(level)
