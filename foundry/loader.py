"""
Alignment files.

An Alignment can be kept as YAML (.yaml/.yml) or JSON (.json) in its dict
form. load_alignment() only parses; structural checks against a Foundry
happen when the interpreter runs the Alignment.
"""

import json
import logging
from dataclasses import replace
from pathlib import Path

import yaml

from foundry.errors import FoundryError
from foundry.schemas import Alignment

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


class AlignmentLoadError(Exception):
    """Raised when an alignment file cannot be read or parsed."""
    pass


def load_alignment(path: Path | str) -> Alignment:
    """
    Read an Alignment from a YAML or JSON file.

    When the file carries no `alignment_id`, the file stem is used.

    Raises:
        AlignmentLoadError: If the file is missing, unparseable or malformed
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in YAML_SUFFIXES and suffix != ".json":
        raise AlignmentLoadError(f"Unsupported alignment file format: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f) if suffix in YAML_SUFFIXES else json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise AlignmentLoadError(f"Failed to load {path}: {e}") from e

    try:
        alignment = Alignment.from_dict(data)
    except FoundryError as e:
        raise AlignmentLoadError(f"Invalid Alignment in {path}: {e}") from e

    if alignment.alignment_id is None:
        alignment = replace(alignment, alignment_id=path.stem)
    logger.debug(f"Loaded alignment {alignment.alignment_id} ({len(alignment.operations)} operations)")
    return alignment


def save_alignment(alignment: Alignment, path: Path | str) -> Path:
    """Write an Alignment in its dict form; the suffix picks YAML or JSON."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in YAML_SUFFIXES and suffix != ".json":
        raise AlignmentLoadError(f"Unsupported alignment file format: {path}")

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        if suffix in YAML_SUFFIXES:
            yaml.safe_dump(alignment.to_dict(), f, sort_keys=False)
        else:
            json.dump(alignment.to_dict(), f, indent=2)
    return path
