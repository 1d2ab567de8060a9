"""Version of the rna distribution."""

import tomllib
from importlib import metadata
from pathlib import Path

DISTRIBUTION = "rna-cli"

# Present when running from a source checkout
CHECKOUT_PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


def _checkout_version() -> str | None:
    if not CHECKOUT_PYPROJECT.is_file():
        return None
    with CHECKOUT_PYPROJECT.open("rb") as f:
        project = tomllib.load(f).get("project", {})
    if project.get("name") != DISTRIBUTION:
        return None
    return project.get("version")


def get_version() -> str:
    """The checkout's declared version, else the installed one, else ``0.0.0``."""
    version = _checkout_version()
    if version is not None:
        return version
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return "0.0.0"
