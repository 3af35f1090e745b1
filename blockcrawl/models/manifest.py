"""Models for the collected-link manifest and the work derived from it.

The manifest (``collect.json``) is produced by an upstream collection phase
and is read-only here. Each collection link becomes one page-level
``WorkItem``.
"""

from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from blockcrawl.utils.paths import normalize_page_path


class CollectionLink(BaseModel):
    """One collected page link"""

    model_config = ConfigDict(populate_by_name=True)

    link: str = Field(..., min_length=1)
    name: Optional[str] = None
    count: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("count", "blockCount"),
    )


class WorkItem(BaseModel):
    """A page-level unit of crawl work. Immutable for the run."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1)
    kind: Literal["page"] = "page"
    name: Optional[str] = None
    expected_child_count: Optional[int] = Field(default=None, ge=0)

    @property
    def page_key(self) -> str:
        """Normalized path used for every checkpoint lookup"""
        return normalize_page_path(self.path)


class Manifest(BaseModel):
    """On-disk shape of collect.json"""

    model_config = ConfigDict(populate_by_name=True)

    collections: List[CollectionLink] = Field(default_factory=list)
    total_links: int = Field(default=0, alias="totalLinks")
    total_blocks: int = Field(default=0, alias="totalBlocks")
    last_update: Optional[str] = Field(default=None, alias="lastUpdate")

    def page_paths(self) -> List[str]:
        """Normalized page paths in manifest order"""
        return [normalize_page_path(c.link) for c in self.collections]

    def to_work_items(self) -> List[WorkItem]:
        return [
            WorkItem(path=c.link, name=c.name, expected_child_count=c.count)
            for c in self.collections
        ]


class PageResult(BaseModel):
    """What a page routine reports back after finishing a page.

    A routine may also return ``None``, which means plain success with
    nothing extra to record.
    """

    free: bool = False
    completed_blocks: List[str] = Field(default_factory=list)
    free_blocks: List[str] = Field(default_factory=list)
    actual_child_count: Optional[int] = Field(default=None, ge=0)
