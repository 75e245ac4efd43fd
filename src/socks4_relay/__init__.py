"""SOCKS4 CONNECT relay server."""

import pathlib
import tomllib
from importlib import metadata


def get_version() -> str:
    """Read version from pyproject.toml."""
    # Start from the current file's directory
    current_dir = pathlib.Path(__file__).parent
    # Look for pyproject.toml in parent directories
    for parent in [current_dir, *current_dir.parents]:
        pyproject_path = parent / "pyproject.toml"
        if pyproject_path.exists():
            with pyproject_path.open("rb") as f:
                pyproject_data = tomllib.load(f)
            if pyproject_data.get("project", {}).get("name") == "socks4-relay":
                return pyproject_data["project"]["version"]

    # Installed without the source tree
    try:
        return metadata.version("socks4-relay")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__version__ = get_version()
