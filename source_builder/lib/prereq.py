from __future__ import annotations

import logging
import shutil
from typing import Iterable, List

from ..errors import PrerequisiteMissing

logger = logging.getLogger(__name__)


def missing_tools(tools: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for t in tools:
        if t not in seen:
            seen.append(t)
    return [t for t in seen if shutil.which(t) is None]


def require_tools(tools: Iterable[str]) -> None:
    missing = missing_tools(tools)
    if missing:
        raise PrerequisiteMissing(missing)
    logger.info("Prerequisites present")
