"""Local Object Storage: filesystem-backed résumé storage behind the ObjectStorage protocol.

Invariants:
    - Keys are relative POSIX paths (`<applicant_id>/<application_id>.<ext>`)
    - Keys never escape the base directory
    - upload never overwrites an existing object
    - remove ignores keys that do not exist
"""

import logging
from pathlib import Path

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


class LocalObjectStorage:
    """Stores objects under a base directory and serves them from a public base URL."""

    def __init__(self, base_path: str, public_base_url: str):
        self.base_path = Path(base_path).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def _path_for(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if self.base_path not in path.parents:
            raise ValueError(f"Object key escapes storage root: {key}")
        return path

    async def upload(self, key: str, content: bytes, content_type: str | None = None) -> None:
        path = self._path_for(key)
        if await aiofiles.os.path.exists(path):
            raise FileExistsError(f"Object already exists: {key}")
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(content)
        logger.info(f"Stored object {key} ({len(content)} bytes)")

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    async def remove(self, keys: list[str]) -> None:
        for key in keys:
            path = self._path_for(key)
            if await aiofiles.os.path.exists(path):
                await aiofiles.os.remove(path)
                logger.info(f"Removed object {key}")
