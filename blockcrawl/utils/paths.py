"""Page and block identifier helpers."""


def normalize_page_path(link: str) -> str:
    """Strip leading separators so ``/docs/a`` and ``docs/a`` compare equal."""
    return link.replace("\\", "/").lstrip("/")


def block_id(page_path: str, block_name: str) -> str:
    """Build the ``pagePath/blockName`` identifier used in the checkpoint.

    Raises:
        ValueError: If block_name is empty
    """
    name = block_name.replace("\\", "/").strip("/")
    if not name:
        raise ValueError("block name must not be empty")

    page = normalize_page_path(page_path).rstrip("/")
    return f"{page}/{name}" if page else name


def normalize_block_id(block: str) -> str:
    """Normalize a ``pagePath/blockName`` identifier the way ``block_id`` builds it."""
    return block.replace("\\", "/").strip("/")
