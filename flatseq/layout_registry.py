"""
Built-in layout registry for flatseq.

Loads the mapping YAML files shipped in flatseq/layouts/ and exposes their
streams by name, so well-known formats can be used without writing a
mapping file::

    stream = get_layout("nacha")
    tree = build_tree(stream)

Why YAML instead of hardcoded trees:
- New formats can be added by dropping a YAML file, no code changes.
- Built-in layouts use exactly the same schema as user mapping files.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flatseq.config import StreamConfig, load_config
from flatseq.exceptions import ConfigValidationError

logger = logging.getLogger(__name__)

# Directory containing layout YAML files (sibling package)
_LAYOUTS_DIR = Path(__file__).parent / "layouts"


def load_all_layouts(layouts_dir: Path | None = None) -> dict[str, StreamConfig]:
    """Load every stream declared in the layout YAML files.

    Args:
        layouts_dir: Directory to scan for .yaml files. Defaults to
            the built-in layouts/ directory.

    Returns:
        Dict mapping stream name -> StreamConfig, in file name order.

    Raises:
        ConfigValidationError: If two files declare the same stream name.
    """
    layouts_dir = layouts_dir or _LAYOUTS_DIR
    layouts: dict[str, StreamConfig] = {}
    for yaml_path in sorted(layouts_dir.glob("*.yaml")):
        mapping = load_config(yaml_path)
        for stream in mapping.streams:
            if stream.name in layouts:
                raise ConfigValidationError(
                    f"Layout '{stream.name}' in {yaml_path.name} is already defined"
                )
            layouts[stream.name] = stream
            logger.debug("Loaded layout: %s from %s", stream.name, yaml_path)
    logger.info("Loaded %d layouts", len(layouts))
    return layouts


def get_layout(name: str, layouts_dir: Path | None = None) -> StreamConfig:
    """Return the built-in stream layout called *name*.

    Raises:
        ConfigValidationError: If no layout has that name.
    """
    layouts = load_all_layouts(layouts_dir)
    if name not in layouts:
        raise ConfigValidationError(
            f"Unknown layout '{name}'. Available layouts: {sorted(layouts)}"
        )
    return layouts[name]
