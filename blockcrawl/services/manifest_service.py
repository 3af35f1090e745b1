"""
Manifest loading.

The manifest (collect.json) lists every page link found by the collection
phase. A run cannot start without it; the progress rebuilder only uses it
opportunistically.
"""

import json
from pathlib import Path
from typing import List, Union

import structlog
from pydantic import ValidationError

from blockcrawl.models.manifest import Manifest
from blockcrawl.utils.exceptions import ManifestError

logger = structlog.get_logger()


def load_manifest(path: Union[str, Path]) -> Manifest:
    """
    Load and validate the manifest.

    Args:
        path: Path to collect.json

    Returns:
        Validated manifest

    Raises:
        ManifestError: If the file is missing, unreadable or invalid
    """
    manifest_file = Path(path)

    if not manifest_file.exists():
        raise ManifestError(f"Manifest not found: {manifest_file}")

    try:
        with open(manifest_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ManifestError(f"Failed to read manifest {manifest_file}: {e}") from e

    try:
        manifest = Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"Invalid manifest {manifest_file}: {e}") from e

    logger.info(
        "manifest_loaded",
        path=str(manifest_file),
        links=len(manifest.collections),
        total_blocks=manifest.total_blocks,
    )
    return manifest


def try_load_page_paths(path: Union[str, Path]) -> List[str]:
    """
    Normalized page paths from the manifest, or [] if it can't be used.

    Never raises; problems are logged.
    """
    try:
        return load_manifest(path).page_paths()
    except ManifestError as e:
        logger.warning("manifest_unavailable", path=str(path), error=str(e))
        return []
