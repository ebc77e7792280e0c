from __future__ import annotations

from typing import Dict, Optional, Type

from .stages import Stage


class SourceBuildError(RuntimeError):
    """Base class for every fatal error of a build run."""


class ConfigError(SourceBuildError, ValueError):
    pass


class PrerequisiteMissing(SourceBuildError):
    def __init__(self, tools: list[str]) -> None:
        self.tools = list(tools)
        super().__init__(f"Required tools not found on PATH: {', '.join(self.tools)}")


class PackageInstallFailed(SourceBuildError):
    pass


class StageFailed(SourceBuildError):
    """Base for the per-stage failures; subclasses fix `stage`, the base takes it as an argument."""

    stage: Stage

    def __init__(
        self,
        step: str,
        message: str,
        *,
        returncode: Optional[int] = None,
        stage: Optional[Stage] = None,
    ) -> None:
        if stage is not None:
            self.stage = stage
        elif not hasattr(self, "stage"):
            raise TypeError(f"{type(self).__name__} needs a stage")
        self.step = step
        self.message = message
        self.returncode = returncode
        super().__init__(f"{self.stage.value} failed for {step}: {message}")


class FetchFailed(StageFailed):
    stage = Stage.FETCH


class ConfigureFailed(StageFailed):
    stage = Stage.CONFIGURE


class BuildFailed(StageFailed):
    stage = Stage.BUILD


class InstallFailed(StageFailed):
    stage = Stage.INSTALL


STAGE_ERRORS: Dict[Stage, Type[StageFailed]] = {
    Stage.FETCH: FetchFailed,
    Stage.CONFIGURE: ConfigureFailed,
    Stage.BUILD: BuildFailed,
    Stage.INSTALL: InstallFailed,
}
