from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from ..errors import ConfigError


def _manifests_root() -> Path:
    # source_builder/lib/manifests.py -> source_builder/manifests
    return Path(__file__).resolve().parents[1] / "manifests"


def load_yaml(path: Path) -> Dict[str, Any]:
    try:
        import yaml  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError("PyYAML required to load manifests") from e

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Manifest must be a mapping/dict: {path}")
    return data


def available_profiles() -> List[str]:
    return sorted(p.stem for p in (_manifests_root() / "profiles").glob("*.yaml"))


def load_profile(profile_id: str) -> Dict[str, Any]:
    p = _manifests_root() / "profiles" / f"{profile_id}.yaml"
    if not p.exists():
        raise ConfigError(
            f"Unknown profile {profile_id!r} (available: {', '.join(available_profiles())})"
        )
    return load_yaml(p)
