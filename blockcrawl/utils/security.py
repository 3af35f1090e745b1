from pathlib import Path
from typing import List

import structlog

logger = structlog.get_logger()


class SecurityError(Exception):
    """Base class for security-related errors."""

    pass


class PathSanitizer:
    """Keeps manifest-supplied page paths inside the output root"""

    def __init__(self, allowed_bases: List[Path]):
        """Initialize with allowed base directories"""
        self.allowed_bases = [p.resolve() for p in allowed_bases]

    def safe_path(
        self, base_dir: Path, user_input: str, must_exist: bool = False
    ) -> Path:
        """Get safe path within base directory

        Prevents:
        - Directory traversal (../)
        - Absolute path injection
        - Symlinks pointing outside the base

        Raises:
            SecurityError: If path is outside base_dir
            FileNotFoundError: If must_exist=True and path doesn't exist
        """
        base_dir = base_dir.resolve()

        if not any(
            base_dir == allowed or base_dir.is_relative_to(allowed)
            for allowed in self.allowed_bases
        ):
            raise SecurityError(f"Base directory not in allowed list: {base_dir}")

        # Null bytes and leading separators (manifest links start with "/")
        safe_input = user_input.replace("\0", "").lstrip("/\\")

        # resolve() follows symlinks, so a link escaping the base fails here too
        requested = (base_dir / safe_input).resolve()

        try:
            requested.relative_to(base_dir)
        except ValueError:
            logger.warning(
                "path_traversal_blocked",
                base_dir=str(base_dir),
                user_input=user_input,
                resolved=str(requested),
            )
            raise SecurityError(f"Path traversal attempt detected: {user_input}")

        if must_exist and not requested.exists():
            raise FileNotFoundError(f"Path does not exist: {requested}")

        return requested
