"""Project settings for tier-gate, read from ``tier-gate.yaml``.

The file tells the CLI and ``TierGate.from_config()`` where the tier
catalog and the entitlement tests live, and which usage percentage counts
as near the limit::

    catalog: ./tiers.yaml
    tests: ./entitlement-tests
    near_limit_threshold: 80

Paths are relative to the directory holding ``tier-gate.yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from tiergate.evaluator.engine import NEAR_LIMIT_THRESHOLD

CONFIG_FILENAME = "tier-gate.yaml"


@dataclass(frozen=True)
class TierGateConfig:
    """Where the catalog and tests are, plus the near-limit threshold.

    ``catalog`` and ``tests`` are absolute paths, or None when unset.
    """

    config_path: Path | None = None
    catalog: str | None = None
    tests: str | None = None
    near_limit_threshold: float = NEAR_LIMIT_THRESHOLD


def find_config(start: Path | None = None) -> Path | None:
    """Locate the project's ``tier-gate.yaml``.

    Looks in *start* (the working directory by default), then each of
    its ancestors, so commands run from a subdirectory still pick up the
    project settings.
    """
    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> TierGateConfig:
    """Read the project settings.

    An explicit *path* must exist. Without one, ``find_config()`` is used
    unless *auto_discover* is off. No file at all means default settings:
    no catalog, no tests, an 80% near-limit threshold.

    Raises:
        FileNotFoundError: If an explicit *path* does not exist.
        ValueError: If the file is not a mapping or the threshold is not
            a number.
    """
    if path is not None:
        config_path: Path | None = Path(path).resolve()
        if not config_path.is_file():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        config_path = find_config() if auto_discover else None

    if config_path is None:
        return TierGateConfig()
    return _parse_config(config_path)


def _parse_config(config_path: Path) -> TierGateConfig:
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        )

    base = config_path.parent

    def _project_path(key: str) -> str | None:
        val = data.get(key)
        return None if val is None else str((base / val).resolve())

    threshold = data.get("near_limit_threshold", NEAR_LIMIT_THRESHOLD)
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise ValueError(
            f"near_limit_threshold must be a number in {config_path}, "
            f"got {threshold!r}"
        )

    return TierGateConfig(
        config_path=config_path,
        catalog=_project_path("catalog"),
        tests=_project_path("tests"),
        near_limit_threshold=float(threshold),
    )
