from __future__ import annotations

"""Path resolution so CLI runs do not depend on the working directory."""

from pathlib import Path


def resolve_base_dir_from_config(config_path: Path) -> Path:
    """
    Resolve the base directory for relative data and output paths.

    The nearest parent holding ``pyproject.toml`` wins; otherwise the
    config file's own directory is used.
    """
    resolved = config_path.expanduser().resolve()
    for root in [resolved.parent, *resolved.parents]:
        if (root / "pyproject.toml").is_file():
            return root
    return resolved.parent


def resolve_path(base_dir: Path, raw_path: str | Path) -> Path:
    path = Path(raw_path).expanduser()
    return path if path.is_absolute() else base_dir / path


def resolve_output_path(base_dir: Path, raw_path: str | Path | None, default: str) -> Path:
    return resolve_path(base_dir, default if raw_path is None else raw_path)
