"""Unit tests for completion checks and free detectors"""

import pytest

from blockcrawl.models.checkpoint import BlockType
from blockcrawl.utils.exceptions import FreeDetectionError
from blockcrawl.utils.predicates import (
    CallableCompletionCheck,
    CallableFreeDetector,
    DirectoryContentCheck,
    FileExistsCheck,
    NeverFree,
    PatternFreeDetector,
    TextMarkerFreeDetector,
    resolve_completion_check,
    resolve_free_detector,
)


class FakeLocator:
    def __init__(self, count):
        self._count = count

    async def count(self):
        return self._count


class FakeHandle:
    """Stands in for a browser page: counts elements per text query"""

    def __init__(self, matches):
        self.matches = matches
        self.queries = []

    def get_by_text(self, text, exact=False):
        self.queries.append((text, exact))
        return FakeLocator(self.matches)


def test_resolve_completion_check():
    assert isinstance(resolve_completion_check(BlockType.FILE), FileExistsCheck)
    assert isinstance(resolve_completion_check(BlockType.DIRECTORY), DirectoryContentCheck)

    async def custom(block_path, output_root):
        return True

    assert isinstance(
        resolve_completion_check(BlockType.FILE, override=custom),
        CallableCompletionCheck,
    )


@pytest.mark.asyncio
async def test_file_exists_check(tmp_path):
    (tmp_path / "page").mkdir()
    (tmp_path / "page" / "Hero.tsx").write_text("x")
    check = FileExistsCheck()

    assert await check.is_complete("page/Hero.tsx", tmp_path) is True
    assert await check.is_complete("page/Missing.tsx", tmp_path) is False
    assert await check.is_complete("page", tmp_path) is False


@pytest.mark.asyncio
async def test_directory_content_check(tmp_path):
    (tmp_path / "page" / "Full" / "src").mkdir(parents=True)
    (tmp_path / "page" / "Full" / "src" / "index.jsx").write_text("x")
    (tmp_path / "page" / "Readme").mkdir()
    (tmp_path / "page" / "Readme" / "notes.txt").write_text("x")
    check = DirectoryContentCheck()

    assert await check.is_complete("page/Full", tmp_path) is True
    assert await check.is_complete("page/Readme", tmp_path) is False
    assert await check.is_complete("page/Absent", tmp_path) is False


@pytest.mark.parametrize("setting", [None, ""])
def test_resolve_free_detector_disabled(setting):
    assert isinstance(resolve_free_detector(setting), NeverFree)


def test_resolve_free_detector_variants():
    assert isinstance(resolve_free_detector("default"), PatternFreeDetector)

    marker = resolve_free_detector("Free download")
    assert isinstance(marker, TextMarkerFreeDetector)
    assert marker.text == "Free download"

    async def custom(handle):
        return True

    assert isinstance(resolve_free_detector(custom), CallableFreeDetector)


@pytest.mark.asyncio
async def test_never_free():
    assert await NeverFree().detect(FakeHandle(5)) is False


@pytest.mark.asyncio
@pytest.mark.parametrize("matches,expected", [(0, False), (1, True)])
async def test_text_marker(matches, expected):
    handle = FakeHandle(matches)

    assert await TextMarkerFreeDetector("FREE").detect(handle) is expected
    assert handle.queries == [("FREE", True)]


@pytest.mark.asyncio
async def test_text_marker_ambiguous_match():
    with pytest.raises(FreeDetectionError) as exc_info:
        await TextMarkerFreeDetector("FREE").detect(FakeHandle(3))

    assert exc_info.value.count == 3
    assert exc_info.value.stage == "free_detection"


@pytest.mark.asyncio
async def test_pattern_detector_any_match():
    assert await PatternFreeDetector().detect(FakeHandle(2)) is True
    assert await PatternFreeDetector().detect(FakeHandle(0)) is False


@pytest.mark.asyncio
async def test_callable_detector_coerces_to_bool():
    async def returns_truthy(handle):
        return "yes"

    assert await CallableFreeDetector(returns_truthy).detect(object()) is True
