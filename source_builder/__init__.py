"""Source builder: install host packages, then build a curated list of upstream projects.

Core design goals:
- Strictly sequential steps in a fixed, curated order
- Fail fast on the first failing stage
- Scratch directory removed on every exit path
- Full transcript in a timestamped log
"""

__all__ = []
