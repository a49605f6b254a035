"""Version lookup for goldfishsync.

An installed distribution reports its own metadata; a source checkout reads
``[project].version`` from the pyproject.toml next to the package.
"""

import tomllib
from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version as metadata_version
from pathlib import Path

DISTRIBUTION = "goldfishsync"
UNKNOWN_VERSION = "0.0.0"


def _source_version(pyproject: Path) -> str | None:
    try:
        with pyproject.open("rb") as file:
            project = tomllib.load(file).get("project", {})
    except (OSError, tomllib.TOMLDecodeError):
        return None
    return project.get("version") if project.get("name") == DISTRIBUTION else None


@lru_cache(maxsize=1)
def get_version() -> str:
    """Return the running version, preferring the checkout's pyproject.toml."""
    source = _source_version(Path(__file__).resolve().parents[1] / "pyproject.toml")
    if source:
        return source
    try:
        return metadata_version(DISTRIBUTION)
    except PackageNotFoundError:
        return UNKNOWN_VERSION
