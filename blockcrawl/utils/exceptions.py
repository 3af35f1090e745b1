"""Custom exceptions for the crawl checkpoint engine

This module defines the exception hierarchy:
- Base exception for all crawler errors, tagged with the failing stage
- Fatal setup errors (manifest, initialization)
- Persistence errors raised once write retries are exhausted
- Free-detection errors raised by ambiguous marker matches

Per-item processing errors are never wrapped: the executor catches
whatever the page routine raises and counts it.
"""


class CrawlerError(Exception):
    """Base exception for all crawler errors

    Use this to catch any error surfaced by a run:
    ```python
    try:
        summary = await orchestrator.run(items)
    except CrawlerError as e:
        logger.error("run_failed", stage=e.stage, error=str(e))
    ```
    """

    default_stage = "run"

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage or self.default_stage


class SetupError(CrawlerError):
    """The run could not reach its initial state

    Raised when:
    - Progress or free-record initialization fails
    - A required input cannot be read

    Aborts the run before any item is dispatched.
    """

    default_stage = "initialize"


class ManifestError(SetupError):
    """Manifest missing or invalid

    Raised when:
    - collect.json does not exist
    - File is not valid JSON
    - Document does not match the manifest shape
    """

    default_stage = "manifest"


class PersistenceError(CrawlerError):
    """Atomic state write failed after all retries

    Raised when:
    - Temp file write, rename or verification keeps failing
    - All write retries failed

    Surfaces to the caller: an unpersisted checkpoint means redoing work
    on the next run.
    """

    default_stage = "persistence"

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class FreeDetectionError(CrawlerError):
    """Free marker text matched more than once on a page or block

    The marker is expected to be unique; several matches mean the marker
    text is too generic for the site.
    """

    default_stage = "free_detection"

    def __init__(self, text: str, count: int) -> None:
        super().__init__(f"Free marker {text!r} matched {count} elements, expected 1")
        self.text = text
        self.count = count
