from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence, Tuple, Union


class Stage(str, Enum):
    FETCH = "fetch"
    CONFIGURE = "configure"
    BUILD = "build"
    INSTALL = "install"


STAGE_ORDER: Tuple[Stage, ...] = (Stage.FETCH, Stage.CONFIGURE, Stage.BUILD, Stage.INSTALL)


@dataclass(frozen=True)
class Invocation:
    """One external command of a recipe.

    cwd is an absolute path taken from the step context; None means the run root.
    """

    argv: Tuple[str, ...]
    cwd: Optional[Path] = None
    privileged: bool = False
    ok_codes: Tuple[int, ...] = (0,)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class WriteFile:
    path: Path
    content: str


Action = Union[Invocation, WriteFile]


@dataclass(frozen=True)
class StepCtx:
    root: Path
    step: "Step"
    prefix: str = "/usr/local"
    jobs: int = 1

    @property
    def source_dir(self) -> Path:
        return self.root / self.step.name

    @property
    def build_dir(self) -> Path:
        return self.source_dir / "build"


Recipe = Callable[[StepCtx], Sequence[Action]]


@dataclass(frozen=True)
class Step:
    name: str
    url: str
    fetch: Recipe
    configure: Recipe
    build: Recipe
    install: Recipe
    ref: Optional[str] = None
    options: Mapping[str, object] = field(default_factory=dict)

    def recipe(self, stage: Stage) -> Recipe:
        return getattr(self, stage.value)
