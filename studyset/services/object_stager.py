"""
Ephemeral object staging for vision-model inputs.

Images are uploaded under a fixed temporary prefix so the vision model can
fetch them by public URL, then deleted after the single read. Staging and
deletion are best-effort: failures are logged, never raised. Deletions are
queued on a ``CleanupQueue`` and drained after the response has been sent.
"""

import asyncio
import logging
import time
import uuid
from pathlib import PurePosixPath
from typing import Dict, List, Optional
from urllib.parse import unquote, urlparse

from supabase import Client

from studyset.errors import StagingFailedError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"


class ObjectStager:
    """Stage bytes in Supabase Storage and remove them again."""

    def __init__(
        self,
        client: Client,
        bucket: str = "study-materials",
        prefix: str = "temp-images",
        cache_control: str = "3600",
    ):
        self.client = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.cache_control = cache_control

    def temp_path(self, filename_hint: str) -> str:
        """Collision-resistant path under the temporary prefix."""
        suffix = PurePosixPath(filename_hint or "").suffix.lstrip(".").lower()
        extension = suffix or DEFAULT_EXTENSION
        millis = int(time.time() * 1000)
        return f"{self.prefix}/temp_{millis}_{uuid.uuid4().hex[:8]}.{extension}"

    def path_from_url(self, url: str) -> str:
        """Rebuild the storage path of a staged object from its public URL."""
        filename = PurePosixPath(unquote(urlparse(url).path)).name
        return f"{self.prefix}/{filename}"

    async def stage(
        self,
        content: bytes,
        filename_hint: str,
        mime_type: Optional[str] = None,
    ) -> Optional[str]:
        """Upload bytes and return a publicly fetchable URL.

        Args:
            content: Bytes to stage (typically an image)
            filename_hint: Original filename, used only for its extension
            mime_type: Content type stored with the object

        Returns:
            Public URL, or None on any storage error
        """
        path = self.temp_path(filename_hint)
        file_options = {
            "cache-control": self.cache_control,
            "upsert": "false",
        }
        if mime_type:
            file_options["content-type"] = mime_type

        try:
            storage = self.client.storage.from_(self.bucket)
            await asyncio.to_thread(storage.upload, path, content, file_options)
            url = await asyncio.to_thread(storage.get_public_url, path)
            if not url:
                raise StagingFailedError(f"Storage returned no public URL for {path}")
        except Exception as e:
            logger.error("Error staging %s in bucket %s: %s", path, self.bucket, e)
            return None

        logger.info("Staged %s (%d bytes)", path, len(content))
        return url

    async def unstage(self, url: str) -> bool:
        """Delete a staged object. Never raises.

        Returns:
            True when the delete call succeeded
        """
        try:
            path = self.path_from_url(url)
            storage = self.client.storage.from_(self.bucket)
            await asyncio.to_thread(storage.remove, [path])
        except Exception as e:
            logger.warning("Could not delete staged object %s: %s", url, e)
            return False

        logger.info("Deleted staged object %s", path)
        return True


class CleanupStats:
    """Process-wide counters for deferred deletions (reported by /health)."""

    def __init__(self) -> None:
        self.scheduled = 0
        self.succeeded = 0
        self.failed = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "scheduled": self.scheduled,
            "succeeded": self.succeeded,
            "failed": self.failed,
        }


class CleanupQueue:
    """Deletions deferred until after the caller has its result.

    One queue per request. Routers hand ``drain`` to FastAPI's
    BackgroundTasks so it runs after the response is sent.
    """

    def __init__(self, stager: ObjectStager, stats: Optional[CleanupStats] = None):
        self.stager = stager
        self.stats = stats or CleanupStats()
        self._pending: List[str] = []

    @property
    def pending(self) -> List[str]:
        return list(self._pending)

    def schedule(self, url: str) -> None:
        self._pending.append(url)
        self.stats.scheduled += 1

    async def drain(self) -> None:
        """Attempt each scheduled deletion exactly once."""
        pending, self._pending = self._pending, []
        for url in pending:
            if await self.stager.unstage(url):
                self.stats.succeeded += 1
            else:
                self.stats.failed += 1
