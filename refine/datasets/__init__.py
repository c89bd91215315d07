"""
Dataset mappings shipped with the package.
"""

from pathlib import Path

from refine.core.mapping import DatasetMapping, load_mapping

MAPPINGS_DIR = Path(__file__).parent


def list_builtin_mappings() -> list[str]:
    """Names of the bundled mappings (file stems)."""
    return sorted(path.stem for path in MAPPINGS_DIR.glob("*.yaml"))


def resolve_mapping_path(name_or_path: str | Path) -> Path:
    """
    Resolve a bundled mapping name or a filesystem path.

    Raises:
        FileNotFoundError: If neither a file nor a bundled mapping matches
    """
    path = Path(name_or_path)
    if path.exists():
        return path
    bundled = MAPPINGS_DIR / f"{name_or_path}.yaml"
    if bundled.exists():
        return bundled
    raise FileNotFoundError(
        f"No mapping file or bundled mapping named {name_or_path!r} "
        f"(bundled: {', '.join(list_builtin_mappings())})"
    )


def load_builtin_mapping(name: str) -> DatasetMapping:
    return load_mapping(resolve_mapping_path(name))
