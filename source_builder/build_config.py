from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigError
from .lib.manifests import load_profile, load_yaml
from .recipes import make_step
from .stages import Step

DEFAULT_PROFILE = "default"
DEFAULT_WORK_DIR = "/tmp/source-builder"
DEFAULT_LOG_DIR = "logs"
DEFAULT_PREFIX = "/usr/local"

_STEP_KEYS = {"name", "url", "ref"}


@dataclass(frozen=True)
class BuildConfig:
    raw: Dict[str, Any]

    @property
    def profile(self) -> str:
        return str(self.raw.get("profile") or DEFAULT_PROFILE)

    @property
    def packages(self) -> List[str]:
        return [str(p) for p in (self.raw.get("packages") or [])]

    @property
    def work_dir(self) -> str:
        return str(self.raw.get("work_dir") or DEFAULT_WORK_DIR)

    @property
    def log_dir(self) -> str:
        return str(self.raw.get("log_dir") or DEFAULT_LOG_DIR)

    @property
    def prefix(self) -> str:
        return str(self.raw.get("prefix") or DEFAULT_PREFIX)

    @property
    def jobs(self) -> int:
        jobs = self.raw.get("jobs")
        if jobs is None:
            jobs = os.cpu_count() or 1
        try:
            jobs = int(jobs)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"jobs must be an integer, got {jobs!r}") from e
        if jobs < 1:
            raise ConfigError(f"jobs must be >= 1, got {jobs}")
        return jobs

    def step_entries(self) -> List[Dict[str, Any]]:
        entries = self.raw.get("steps") or []
        if not isinstance(entries, list):
            raise ConfigError("steps must be a list")
        out: List[Dict[str, Any]] = []
        seen: set[str] = set()
        for i, e in enumerate(entries):
            if not isinstance(e, dict) or not e.get("name") or not e.get("url"):
                raise ConfigError(f"steps[{i}] needs at least 'name' and 'url'")
            name = str(e["name"])
            if name in seen:
                raise ConfigError(f"Duplicate step name: {name}")
            seen.add(name)
            out.append(e)
        return out

    def steps(self) -> List[Step]:
        return [
            make_step(
                str(e["name"]),
                str(e["url"]),
                ref=str(e["ref"]) if e.get("ref") else None,
                options={k: v for k, v in e.items() if k not in _STEP_KEYS},
            )
            for e in self.step_entries()
        ]


def load_build_config(
    *,
    profile: Optional[str] = None,
    config_path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> BuildConfig:
    """Resolve a profile, then merge a YAML override file and CLI overrides on top.

    Precedence (lowest first): built-in profile, config file, explicit overrides.
    """

    extra: Dict[str, Any] = {}
    if config_path:
        p = Path(config_path)
        if not p.exists():
            raise ConfigError(f"config file not found: {config_path}")
        if p.suffix.lower() not in {".yaml", ".yml"}:
            raise ConfigError("config override must be YAML")
        extra = load_yaml(p)

    cli = {k: v for k, v in (overrides or {}).items() if v is not None}

    profile_id = str(profile or cli.get("profile") or extra.get("profile") or DEFAULT_PROFILE)
    raw: Dict[str, Any] = dict(load_profile(profile_id))
    raw.update(extra)
    raw.update(cli)
    raw["profile"] = profile_id
    return BuildConfig(raw=raw)
