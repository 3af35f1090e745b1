"""Pluggable predicates, resolved once into strategy objects.

Two families:

- Block completion checks, used by the progress rebuilder to decide whether
  a block found on disk counts as done.
- Free detectors, used by the link runner to decide whether a page (or
  block) handle shows a "free" marker and can be skipped.

Configuration may name a built-in strategy or hand over a coroutine
function; ``resolve_*`` turns either into an object exposing a single
async method so call sites never branch on the config shape.
"""

import os
import re
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, Union

from blockcrawl.models.checkpoint import DEFAULT_BLOCK_EXTENSIONS, BlockType
from blockcrawl.utils.exceptions import FreeDetectionError

CompletionFunc = Callable[[str, Path], Awaitable[bool]]
FreeFunc = Callable[[Any], Awaitable[bool]]

DEFAULT_FREE_PATTERN = re.compile(r"free", re.IGNORECASE)


def is_qualifying_file(name: str, extensions: Iterable[str]) -> bool:
    return name.endswith(tuple(extensions))


def has_qualifying_file(directory: Path, extensions: Iterable[str]) -> bool:
    """True if ``directory`` contains a qualifying file at any depth.

    Unreadable directories count as empty.
    """
    suffixes = tuple(extensions)
    for _root, _dirs, files in os.walk(directory):
        if any(name.endswith(suffixes) for name in files):
            return True
    return False


# =============================================================================
# Block completion
# =============================================================================


class BlockCompletionCheck(Protocol):
    async def is_complete(self, block_path: str, output_root: Path) -> bool: ...


class FileExistsCheck:
    """File-mode default: the block file exists."""

    async def is_complete(self, block_path: str, output_root: Path) -> bool:
        return (output_root / block_path).is_file()


class DirectoryContentCheck:
    """Directory-mode default: the block directory holds a qualifying file."""

    def __init__(self, extensions: Iterable[str] = DEFAULT_BLOCK_EXTENSIONS):
        self.extensions = tuple(extensions)

    async def is_complete(self, block_path: str, output_root: Path) -> bool:
        block_dir = output_root / block_path
        if not block_dir.is_dir():
            return False
        return has_qualifying_file(block_dir, self.extensions)


class CallableCompletionCheck:
    """Wraps a user coroutine ``(block_path, output_root) -> bool``."""

    def __init__(self, func: CompletionFunc):
        self.func = func

    async def is_complete(self, block_path: str, output_root: Path) -> bool:
        return bool(await self.func(block_path, output_root))


def resolve_completion_check(
    block_type: BlockType,
    extensions: Iterable[str] = DEFAULT_BLOCK_EXTENSIONS,
    override: Optional[CompletionFunc] = None,
) -> BlockCompletionCheck:
    if override is not None:
        return CallableCompletionCheck(override)
    if block_type == BlockType.FILE:
        return FileExistsCheck()
    return DirectoryContentCheck(extensions)


# =============================================================================
# Free detection
# =============================================================================


class FreeDetector(Protocol):
    async def detect(self, handle: Any) -> bool: ...


class NeverFree:
    """Free skipping disabled."""

    async def detect(self, handle: Any) -> bool:
        return False


class TextMarkerFreeDetector:
    """Exact marker text; must match at most one element.

    ``handle`` is a page or locator exposing ``get_by_text(...).count()``.
    """

    def __init__(self, text: str):
        self.text = text

    async def detect(self, handle: Any) -> bool:
        count = await handle.get_by_text(self.text, exact=True).count()

        if count == 0:
            return False
        if count != 1:
            raise FreeDetectionError(self.text, count)
        return True


class PatternFreeDetector:
    """Any element matching the pattern marks the handle as free."""

    def __init__(self, pattern: re.Pattern = DEFAULT_FREE_PATTERN):
        self.pattern = pattern

    async def detect(self, handle: Any) -> bool:
        return await handle.get_by_text(self.pattern).count() > 0


class CallableFreeDetector:
    """Wraps a user coroutine ``(handle) -> bool``."""

    def __init__(self, func: FreeFunc):
        self.func = func

    async def detect(self, handle: Any) -> bool:
        return bool(await self.func(handle))


def resolve_free_detector(setting: Union[None, str, FreeFunc]) -> FreeDetector:
    """Map a ``skip_free`` setting to a detector.

    - None or "": disabled
    - "default": case-insensitive "free" anywhere in the handle
    - other string: exact marker text
    - coroutine function: custom predicate
    """
    if setting is None or setting == "":
        return NeverFree()
    if callable(setting):
        return CallableFreeDetector(setting)
    if setting == "default":
        return PatternFreeDetector()
    return TextMarkerFreeDetector(setting)
