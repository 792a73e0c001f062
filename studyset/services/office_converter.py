"""
LibreOffice-backed office document conversion.

Word and PowerPoint uploads are rendered to PDF by spawning
``soffice --headless --convert-to pdf``. Availability is checked through a
``ConversionEngineProbe`` so the process-spawning heuristic in
``LibreOfficeProbe`` can be replaced by an explicit health check without
touching the converter or its callers.
"""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Optional, Protocol, Tuple

from studyset.errors import (
    ConversionFailedError,
    EngineUnavailableError,
    UnsupportedFormatError,
)
from studyset.models.conversion import ConvertedDocument
from studyset.models.upload import ClassifiedFormat
from studyset.services.format_classifier import classify

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 30.0
SUPPORTED_TARGET_FORMATS = ("pdf",)

# Fallback input extension when the upload name carries none
_DEFAULT_EXTENSIONS = {
    ClassifiedFormat.OFFICE_WORD: "docx",
    ClassifiedFormat.OFFICE_PRESENTATION: "pptx",
}


class ConversionEngineProbe(Protocol):
    """Capability check for the external conversion engine."""

    async def probe(self) -> bool:
        ...


async def run_soffice(
    binary: str,
    input_path: Path,
    output_dir: Path,
    timeout: float,
    target_format: str = "pdf",
) -> Tuple[int, str]:
    """Run one headless LibreOffice conversion job.

    A private user profile inside ``output_dir`` keeps concurrent jobs from
    contending for the default profile lock.

    Args:
        binary: LibreOffice executable (``soffice`` or ``libreoffice``)
        input_path: Document to convert
        output_dir: Directory receiving the converted file
        timeout: Seconds before the process is killed
        target_format: LibreOffice ``--convert-to`` target

    Returns:
        Tuple of (return_code, combined stderr/stdout text)

    Raises:
        FileNotFoundError: If the binary cannot be located
        OSError: If the process cannot be spawned
        asyncio.TimeoutError: If the job exceeds ``timeout`` (process is killed)
    """
    profile_uri = (output_dir / "lo_profile").resolve().as_uri()
    process = await asyncio.create_subprocess_exec(
        binary,
        f"-env:UserInstallation={profile_uri}",
        "--headless",
        "--convert-to",
        target_format,
        "--outdir",
        str(output_dir),
        str(input_path),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise

    output = (stderr or b"").decode("utf-8", errors="replace").strip()
    if not output:
        output = (stdout or b"").decode("utf-8", errors="replace").strip()
    return process.returncode if process.returncode is not None else -1, output


class LibreOfficeProbe:
    """Availability check that attempts a throwaway conversion job.

    Interpretation: if the process ran at all (success, non-zero exit or
    timeout) the engine is present. Only a failure to locate or spawn the
    binary means unavailable. Nothing is cached; every call spawns a process.
    """

    def __init__(self, binary: str = "soffice", timeout: float = PROBE_TIMEOUT_SECONDS):
        self.binary = binary
        self.timeout = timeout

    async def probe(self) -> bool:
        with tempfile.TemporaryDirectory(prefix="studyset_probe_") as temp_dir:
            work_dir = Path(temp_dir)
            input_path = work_dir / "probe.txt"
            input_path.write_bytes(b"test")

            try:
                return_code, output = await run_soffice(
                    self.binary, input_path, work_dir, self.timeout
                )
            except (FileNotFoundError, PermissionError) as e:
                logger.warning("LibreOffice not found (%s): %s", self.binary, e)
                return False
            except asyncio.TimeoutError:
                logger.warning(
                    "LibreOffice probe timed out after %.0fs; treating engine as present",
                    self.timeout,
                )
                return True
            except OSError as e:
                logger.warning("LibreOffice could not be spawned (%s): %s", self.binary, e)
                return False

            if return_code != 0:
                # The binary exists and executed; the job rejecting throwaway input
                # still counts as evidence of presence.
                logger.info(
                    "LibreOffice probe job exited with %s (engine present): %s",
                    return_code,
                    output[:200],
                )
            return True


class LibreOfficeConverter:
    """Convert Word/PowerPoint bytes to PDF bytes.

    Single attempt, no retries. The probe runs before every conversion;
    when it reports unavailable the engine is never invoked.
    """

    def __init__(
        self,
        probe: ConversionEngineProbe,
        binary: str = "soffice",
        timeout: float = 120.0,
    ):
        self.probe = probe
        self.binary = binary
        self.timeout = timeout

    async def is_available(self) -> bool:
        return await self.probe.probe()

    async def convert(
        self,
        content: bytes,
        filename: str,
        target_format: str = "pdf",
        mime_type: str = "",
    ) -> ConvertedDocument:
        """Convert an office document to PDF, passing PDFs through unchanged.

        Args:
            content: Raw document bytes
            filename: Original filename (used for the input extension and output name)
            target_format: Only ``pdf`` is supported
            mime_type: Declared MIME type, used when the filename has no extension

        Returns:
            ConvertedDocument with PDF bytes and a suggested ``<stem>.pdf`` filename

        Raises:
            UnsupportedFormatError: Target format is not pdf or input is not an office document
            EngineUnavailableError: Probe reports LibreOffice is missing
            ConversionFailedError: LibreOffice ran but produced no PDF
        """
        target = (target_format or "pdf").lower().lstrip(".")
        if target not in SUPPORTED_TARGET_FORMATS:
            raise UnsupportedFormatError(
                f"Unsupported target format '{target_format}'. Supported: {', '.join(SUPPORTED_TARGET_FORMATS)}"
            )

        stem = Path(filename or "document").stem or "document"
        fmt = classify(filename, mime_type)

        if fmt == ClassifiedFormat.PDF:
            return ConvertedDocument(
                content=content,
                filename=Path(filename).name or f"{stem}.pdf",
                passthrough=True,
            )

        if not fmt.is_office:
            raise UnsupportedFormatError(
                "Unsupported file type. Please upload a .doc, .docx, .ppt, .pptx, or .pdf file"
            )

        if not await self.probe.probe():
            raise EngineUnavailableError()

        extension = Path(filename).suffix.lstrip(".").lower() or _DEFAULT_EXTENSIONS[fmt]
        pdf_bytes = await self._run_conversion(content, extension, target)

        logger.info(
            "Converted %s to PDF (%d -> %d bytes)", filename, len(content), len(pdf_bytes)
        )
        return ConvertedDocument(content=pdf_bytes, filename=f"{stem}.{target}")

    async def _run_conversion(self, content: bytes, extension: str, target: str) -> bytes:
        with tempfile.TemporaryDirectory(prefix="studyset_convert_") as temp_dir:
            work_dir = Path(temp_dir)
            input_path = work_dir / f"source.{extension}"
            output_path = work_dir / f"source.{target}"
            input_path.write_bytes(content)

            error_output: Optional[str] = None
            try:
                return_code, error_output = await run_soffice(
                    self.binary, input_path, work_dir, self.timeout, target
                )
            except (FileNotFoundError, PermissionError) as e:
                raise EngineUnavailableError(
                    f"LibreOffice is not installed on the server ({e})"
                ) from e
            except asyncio.TimeoutError as e:
                logger.error("LibreOffice conversion timed out after %.0fs", self.timeout)
                raise ConversionFailedError(
                    f"LibreOffice timed out after {self.timeout:.0f} seconds"
                ) from e
            except OSError as e:
                logger.error("LibreOffice conversion could not start: %s", e)
                raise ConversionFailedError(str(e)) from e

            if return_code != 0:
                logger.error("LibreOffice conversion failed (exit %s): %s", return_code, error_output)
                raise ConversionFailedError(
                    f"Command failed with exit code {return_code}: {error_output}"
                )

            if not output_path.exists():
                logger.error("LibreOffice conversion completed but no PDF was produced")
                raise ConversionFailedError(
                    f"LibreOffice produced no output file: {error_output or 'no diagnostics'}"
                )

            return output_path.read_bytes()
