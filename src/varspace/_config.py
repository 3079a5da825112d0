"""Configuration loading from pyproject.toml."""

import tomllib
from dataclasses import dataclass
from pathlib import Path

from ._errors import ConfigError


@dataclass(slots=True, frozen=True)
class VarSpaceConfig:
    """Configuration loaded from the ``[tool.varspace]`` table of pyproject.toml.

    Attributes:
        strict: Default validation mode of new spaces.
        sigil: Prefix that every space key and alias must start with.
        project_root: Directory containing the pyproject.toml the config was read from.

    """

    strict: bool = True
    sigil: str = "$"
    project_root: Path | None = None


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Find pyproject.toml by walking up from start_dir.

    Args:
        start_dir: Starting directory. Defaults to current working directory.

    Returns:
        Path to pyproject.toml if found, None otherwise.

    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()

    while True:
        candidate = current / "pyproject.toml"
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            # Reached filesystem root
            return None
        current = parent


def load_config(pyproject_path: Path) -> VarSpaceConfig:
    """Load and validate [tool.varspace] config from pyproject.toml.

    Args:
        pyproject_path: Path to pyproject.toml

    Returns:
        Parsed VarSpaceConfig

    Raises:
        ConfigError: If the configuration is invalid

    """
    project_root = pyproject_path.parent

    with pyproject_path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {pyproject_path}: {e}"
            raise ConfigError(msg) from e

    section = data.get("tool", {}).get("varspace", {})
    if not section:
        return VarSpaceConfig(project_root=project_root)

    unknown = set(section) - {"strict", "sigil"}
    if unknown:
        msg = f"Unknown [tool.varspace] key(s): {', '.join(sorted(unknown))}"
        raise ConfigError(msg)

    strict = section.get("strict", True)
    if not isinstance(strict, bool):
        msg = "Invalid [tool.varspace].strict: expected boolean"
        raise ConfigError(msg)

    sigil = section.get("sigil", "$")
    if not isinstance(sigil, str) or not sigil or "." in sigil:
        msg = "Invalid [tool.varspace].sigil: expected a non-empty string without '.'"
        raise ConfigError(msg)

    return VarSpaceConfig(strict=strict, sigil=sigil, project_root=project_root)


def get_config() -> VarSpaceConfig:
    """Get config from pyproject.toml in current directory or parents.

    Returns:
        VarSpaceConfig (defaults if no pyproject.toml or no [tool.varspace] section)

    """
    pyproject_path = find_pyproject_toml()
    if pyproject_path is None:
        return VarSpaceConfig()
    return load_config(pyproject_path)
