"""
Tests for LibreOffice conversion.

Covers:
- Availability probe interpretation (missing binary, timeout, non-zero exit)
- Converter short-circuits (pass-through, unsupported input, engine unavailable)
- Conversion failure mapping
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from studyset.errors import (
    ConversionFailedError,
    EngineUnavailableError,
    UnsupportedFormatError,
)
from studyset.services.office_converter import (
    LibreOfficeProbe,
    run_soffice,
)

PDF_BYTES = b"%PDF-1.4\nconverted\n%%EOF"


def _writes_pdf(return_code=0, output=""):
    """run_soffice stand-in that drops a PDF next to the input."""
    async def _run(binary, input_path, output_dir, timeout, target_format="pdf"):
        Path(output_dir, f"{Path(input_path).stem}.{target_format}").write_bytes(PDF_BYTES)
        return return_code, output
    return _run


class TestRunSoffice:

    @pytest.mark.asyncio
    async def test_builds_headless_command(self, tmp_path):
        process = MagicMock()
        process.communicate = AsyncMock(return_value=(b"", b""))
        process.returncode = 0

        with patch(
            "studyset.services.office_converter.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ) as mock_exec:
            code, output = await run_soffice("soffice", tmp_path / "in.docx", tmp_path, 5)

        assert code == 0
        assert output == ""
        args = mock_exec.call_args.args
        assert args[0] == "soffice"
        assert args[1].startswith("-env:UserInstallation=file://")
        assert args[2:7] == ("--headless", "--convert-to", "pdf", "--outdir", str(tmp_path))
        assert args[7] == str(tmp_path / "in.docx")

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path):
        process = MagicMock()
        process.communicate = AsyncMock(side_effect=asyncio.TimeoutError())
        process.wait = AsyncMock(return_value=-9)

        with patch(
            "studyset.services.office_converter.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ):
            with pytest.raises(asyncio.TimeoutError):
                await run_soffice("soffice", tmp_path / "in.docx", tmp_path, 1)

        process.kill.assert_called_once()

    @pytest.mark.asyncio
    async def test_stderr_is_reported(self, tmp_path):
        process = MagicMock()
        process.communicate = AsyncMock(return_value=(b"", b"Error: source file could not be loaded\n"))
        process.returncode = 1

        with patch(
            "studyset.services.office_converter.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ):
            code, output = await run_soffice("soffice", tmp_path / "in.docx", tmp_path, 5)

        assert code == 1
        assert output == "Error: source file could not be loaded"


class TestLibreOfficeProbe:

    @pytest.mark.asyncio
    async def test_missing_binary_is_unavailable(self):
        with patch(
            "studyset.services.office_converter.run_soffice",
            new=AsyncMock(side_effect=FileNotFoundError("soffice")),
        ):
            assert await LibreOfficeProbe().probe() is False

    @pytest.mark.asyncio
    async def test_spawn_error_is_unavailable(self):
        with patch(
            "studyset.services.office_converter.run_soffice",
            new=AsyncMock(side_effect=OSError("exec format error")),
        ):
            assert await LibreOfficeProbe().probe() is False

    @pytest.mark.asyncio
    async def test_timeout_counts_as_present(self):
        with patch(
            "studyset.services.office_converter.run_soffice",
            new=AsyncMock(side_effect=asyncio.TimeoutError()),
        ):
            assert await LibreOfficeProbe(timeout=0.1).probe() is True

    @pytest.mark.asyncio
    async def test_nonzero_exit_counts_as_present(self):
        with patch(
            "studyset.services.office_converter.run_soffice",
            new=AsyncMock(return_value=(1, "no export filter")),
        ):
            assert await LibreOfficeProbe().probe() is True

    @pytest.mark.asyncio
    async def test_probe_is_not_cached(self):
        mock_run = AsyncMock(return_value=(0, ""))
        with patch("studyset.services.office_converter.run_soffice", new=mock_run):
            probe = LibreOfficeProbe()
            await probe.probe()
            await probe.probe()

        assert mock_run.await_count == 2


class TestLibreOfficeConverter:

    @pytest.mark.asyncio
    async def test_converts_docx(self, converter):
        with patch("studyset.services.office_converter.run_soffice", new=_writes_pdf()):
            result = await converter.convert(b"PK\x03\x04docx", "Lecture 1.docx")

        assert result.content == PDF_BYTES
        assert result.filename == "Lecture 1.pdf"
        assert result.passthrough is False

    @pytest.mark.asyncio
    async def test_extensionless_presentation_uses_default_extension(self, converter):
        seen = {}

        async def _run(binary, input_path, output_dir, timeout, target_format="pdf"):
            seen["input"] = Path(input_path).name
            Path(output_dir, "source.pdf").write_bytes(PDF_BYTES)
            return 0, ""

        with patch("studyset.services.office_converter.run_soffice", new=_run):
            result = await converter.convert(
                b"PK", "slides", mime_type="application/vnd.ms-powerpoint"
            )

        assert seen["input"] == "source.pptx"
        assert result.filename == "slides.pdf"

    @pytest.mark.asyncio
    async def test_pdf_passes_through_without_engine(self, converter, probe):
        mock_run = AsyncMock()
        with patch("studyset.services.office_converter.run_soffice", new=mock_run):
            result = await converter.convert(PDF_BYTES, "notes.PDF")

        assert result.content == PDF_BYTES
        assert result.filename == "notes.PDF"
        assert result.passthrough is True
        probe.probe.assert_not_awaited()
        mock_run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unavailable_engine_is_never_invoked(self, converter, probe):
        probe.probe.return_value = False
        mock_run = AsyncMock()

        with patch("studyset.services.office_converter.run_soffice", new=mock_run):
            with pytest.raises(EngineUnavailableError) as exc_info:
                await converter.convert(b"PK", "notes.docx")

        mock_run.assert_not_awaited()
        payload = exc_info.value.to_payload()
        assert payload["notInstalled"] is True
        assert set(payload["installInstructions"]) == {"ubuntu", "mac", "windows"}

    @pytest.mark.asyncio
    async def test_missing_binary_during_conversion_is_unavailable(self, converter):
        with patch(
            "studyset.services.office_converter.run_soffice",
            new=AsyncMock(side_effect=FileNotFoundError("soffice")),
        ):
            with pytest.raises(EngineUnavailableError):
                await converter.convert(b"PK", "notes.docx")

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_conversion_failure(self, converter):
        with patch(
            "studyset.services.office_converter.run_soffice",
            new=AsyncMock(return_value=(77, "general error")),
        ):
            with pytest.raises(ConversionFailedError) as exc_info:
                await converter.convert(b"PK", "notes.docx")

        assert "77" in exc_info.value.engine_message
        assert exc_info.value.to_payload()["details"] == exc_info.value.engine_message

    @pytest.mark.asyncio
    async def test_missing_output_is_conversion_failure(self, converter):
        with patch(
            "studyset.services.office_converter.run_soffice",
            new=AsyncMock(return_value=(0, "")),
        ):
            with pytest.raises(ConversionFailedError):
                await converter.convert(b"PK", "notes.pptx")

    @pytest.mark.asyncio
    async def test_timeout_is_conversion_failure(self, converter):
        with patch(
            "studyset.services.office_converter.run_soffice",
            new=AsyncMock(side_effect=asyncio.TimeoutError()),
        ):
            with pytest.raises(ConversionFailedError) as exc_info:
                await converter.convert(b"PK", "notes.doc")

        assert "timed out" in exc_info.value.engine_message

    @pytest.mark.asyncio
    async def test_non_office_input_is_rejected(self, converter, probe):
        with pytest.raises(UnsupportedFormatError):
            await converter.convert(b"hello", "notes.txt", mime_type="text/plain")

        probe.probe.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_pdf_target_is_rejected(self, converter):
        with pytest.raises(UnsupportedFormatError):
            await converter.convert(b"PK", "notes.docx", target_format="odt")

    @pytest.mark.asyncio
    async def test_is_available_delegates_to_probe(self, converter, probe):
        probe.probe.return_value = False

        assert await converter.is_available() is False
        probe.probe.assert_awaited_once()
