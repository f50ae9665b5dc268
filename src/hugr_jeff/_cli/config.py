"""Configuration loading from pyproject.toml."""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

from hugr_jeff._convert import OutputMode
from hugr_jeff._mermaid import DIRECTIONS

TOOL_NAME = "hugr-jeff"


class ConfigError(Exception):
    """Error in hugr-jeff configuration."""


@dataclass(slots=True, frozen=True)
class MermaidConfig:
    """Diagram settings from the ``[tool.hugr-jeff.mermaid]`` table."""

    direction: str | None = None
    edge_labels: bool | None = None


@dataclass(slots=True, frozen=True)
class HugrJeffConfig:
    """Configuration loaded from pyproject.toml.

    All relative paths are resolved from the project root (directory containing pyproject.toml).
    Unset fields are None, so CLI flags can tell "not configured" from an explicit value.
    """

    mode: OutputMode | None = None
    output: Path | None = None
    wrapper_name: str | None = None
    mermaid: MermaidConfig = field(default_factory=MermaidConfig)
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


def _string(section: dict[str, object], key: str, where: str) -> str | None:
    if key not in section:
        return None
    value = section[key]
    if not isinstance(value, str) or not value:
        msg = f"Invalid [tool.{TOOL_NAME}]{where}.{key}: expected non-empty string"
        raise ConfigError(msg)
    return value


def _parse_mermaid(value: object) -> MermaidConfig:
    if not isinstance(value, dict):
        msg = f"Invalid [tool.{TOOL_NAME}].mermaid: expected table"
        raise ConfigError(msg)
    section = cast("dict[str, object]", value)

    direction = _string(section, "direction", ".mermaid")
    if direction is not None and direction not in DIRECTIONS:
        msg = f"Invalid [tool.{TOOL_NAME}].mermaid.direction '{direction}'. Expected one of: {', '.join(DIRECTIONS)}"
        raise ConfigError(msg)

    edge_labels = section.get("edge_labels")
    if edge_labels is not None and not isinstance(edge_labels, bool):
        msg = f"Invalid [tool.{TOOL_NAME}].mermaid.edge_labels: expected boolean"
        raise ConfigError(msg)

    return MermaidConfig(direction=direction, edge_labels=edge_labels)


def load_config(pyproject_path: Path) -> HugrJeffConfig:
    """Load and validate [tool.hugr-jeff] config from pyproject.toml.

    Args:
        pyproject_path: Path to pyproject.toml

    Returns:
        Parsed HugrJeffConfig

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

    tool_section = data.get("tool", {})
    section = tool_section.get(TOOL_NAME, {})

    if not section:
        # No [tool.hugr-jeff] section - return empty config
        return HugrJeffConfig(project_root=project_root)

    mode: OutputMode | None = None
    mode_value = _string(section, "mode", "")
    if mode_value is not None:
        try:
            mode = OutputMode(mode_value)
        except ValueError as e:
            expected = ", ".join(f"'{m.value}'" for m in OutputMode)
            msg = f"Invalid [tool.{TOOL_NAME}].mode '{mode_value}'. Expected one of: {expected}"
            raise ConfigError(msg) from e

    output_path: Path | None = None
    output_value = _string(section, "output", "")
    if output_value is not None:
        output_path = Path(output_value)
        if not output_path.is_absolute():
            output_path = project_root / output_path

    mermaid = _parse_mermaid(section["mermaid"]) if "mermaid" in section else MermaidConfig()

    return HugrJeffConfig(
        mode=mode,
        output=output_path,
        wrapper_name=_string(section, "wrapper_name", ""),
        mermaid=mermaid,
        project_root=project_root,
    )


def get_config() -> HugrJeffConfig:
    """Get config from pyproject.toml in current directory or parents.

    Returns:
        HugrJeffConfig (may be empty if no pyproject.toml or no [tool.hugr-jeff] section)

    """
    pyproject_path = find_pyproject_toml()
    if pyproject_path is None:
        return HugrJeffConfig()
    return load_config(pyproject_path)
