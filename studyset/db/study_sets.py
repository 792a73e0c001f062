"""Read-only access to study set file metadata and source bytes.

The pipeline never writes study set state. It reads ``file_path``,
``file_name`` and ``file_type`` to fetch an upload again for re-extraction.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from supabase import Client

from studyset.models.upload import UploadedFile

logger = logging.getLogger(__name__)

STUDY_SETS_TABLE = "study_sets"


class StudySetNotFoundError(LookupError):
    """Study set does not exist or has no file attached."""


async def get_study_set_file(client: Client, study_set_id: int | str) -> Optional[Dict[str, Any]]:
    """Fetch file metadata for a study set.

    Args:
        client: Supabase client instance
        study_set_id: Study set primary key

    Returns:
        Dict with id, name, file_path, file_name, file_type, or None if not found
    """
    response = await asyncio.to_thread(
        client.table(STUDY_SETS_TABLE)
        .select("id, name, file_path, file_name, file_type")
        .eq("id", study_set_id)
        .limit(1)
        .execute
    )
    rows = response.data or []
    return rows[0] if rows else None


async def load_study_set_upload(
    client: Client,
    study_set_id: int | str,
    bucket: str = "files",
) -> UploadedFile:
    """Download the file attached to a study set.

    Args:
        client: Supabase client instance
        study_set_id: Study set primary key
        bucket: Storage bucket holding study set files

    Returns:
        UploadedFile rebuilt from storage bytes and stored metadata

    Raises:
        StudySetNotFoundError: Unknown study set, or no file associated with it
        Exception: Storage download errors are propagated
    """
    record = await get_study_set_file(client, study_set_id)
    if not record:
        raise StudySetNotFoundError(f"Study set {study_set_id} not found")

    file_path = record.get("file_path")
    if not file_path:
        raise StudySetNotFoundError(f"No file associated with study set {study_set_id}")

    content = await asyncio.to_thread(client.storage.from_(bucket).download, file_path)
    logger.info("Downloaded %s for study set %s (%d bytes)", file_path, study_set_id, len(content))

    return UploadedFile(
        content=content,
        filename=record.get("file_name") or "unknown",
        mime_type=record.get("file_type") or "text/plain",
    )
