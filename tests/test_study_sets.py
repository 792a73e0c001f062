"""Tests for study set file lookups."""

from unittest.mock import MagicMock

import pytest

from studyset.db.study_sets import (
    StudySetNotFoundError,
    get_study_set_file,
    load_study_set_upload,
)


def _with_rows(supabase_client, rows):
    query = supabase_client.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute.return_value = MagicMock(data=rows)
    return query


@pytest.mark.asyncio
async def test_get_study_set_file(supabase_client):
    row = {"id": 7, "name": "Bio", "file_path": "u1/notes.pdf", "file_name": "notes.pdf", "file_type": "application/pdf"}
    _with_rows(supabase_client, [row])

    result = await get_study_set_file(supabase_client, 7)

    assert result == row
    supabase_client.table.assert_called_once_with("study_sets")
    supabase_client.table.return_value.select.assert_called_once_with(
        "id, name, file_path, file_name, file_type"
    )
    supabase_client.table.return_value.select.return_value.eq.assert_called_once_with("id", 7)


@pytest.mark.asyncio
async def test_get_study_set_file_not_found(supabase_client):
    _with_rows(supabase_client, [])

    assert await get_study_set_file(supabase_client, 7) is None


@pytest.mark.asyncio
async def test_load_study_set_upload(supabase_client):
    _with_rows(supabase_client, [{"id": 7, "file_path": "u1/notes.pdf", "file_name": "notes.pdf", "file_type": "application/pdf"}])
    supabase_client.storage.from_.return_value.download.return_value = b"%PDF-1.4"

    upload = await load_study_set_upload(supabase_client, 7)

    assert upload.content == b"%PDF-1.4"
    assert upload.filename == "notes.pdf"
    assert upload.mime_type == "application/pdf"
    supabase_client.storage.from_.assert_called_with("files")
    supabase_client.storage.from_.return_value.download.assert_called_once_with("u1/notes.pdf")


@pytest.mark.asyncio
async def test_load_study_set_upload_defaults_metadata(supabase_client):
    _with_rows(supabase_client, [{"id": 7, "file_path": "u1/raw", "file_name": None, "file_type": None}])
    supabase_client.storage.from_.return_value.download.return_value = b"text"

    upload = await load_study_set_upload(supabase_client, 7)

    assert upload.filename == "unknown"
    assert upload.mime_type == "text/plain"


@pytest.mark.asyncio
async def test_load_study_set_without_file(supabase_client):
    _with_rows(supabase_client, [{"id": 7, "file_path": None}])

    with pytest.raises(StudySetNotFoundError, match="No file"):
        await load_study_set_upload(supabase_client, 7)


@pytest.mark.asyncio
async def test_download_errors_propagate(supabase_client):
    _with_rows(supabase_client, [{"id": 7, "file_path": "u1/notes.pdf"}])
    supabase_client.storage.from_.return_value.download.side_effect = Exception("object not found")

    with pytest.raises(Exception, match="object not found"):
        await load_study_set_upload(supabase_client, 7)
