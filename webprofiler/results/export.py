"""Writing retained response bodies to disk."""

import logging
from pathlib import Path
from typing import Union

import aiofiles

logger = logging.getLogger(__name__)


async def save_body(body: bytes, path: Union[str, Path]) -> Path:
    """
    Write a raw response body to a file, creating parent directories.

    Returns:
        The path written to
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, "wb") as f:
        await f.write(body)
    logger.info(f"Saved {len(body)} B response body to {path}")
    return path
