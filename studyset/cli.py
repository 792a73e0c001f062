"""
Command-line interface for the study set pipeline.

Usage:
    python -m studyset probe
    python -m studyset classify FILE [--mime-type TYPE]
    python -m studyset extract FILE [--mime-type TYPE]
    python -m studyset convert FILE [-o OUT]
    python -m studyset name FILE [--mime-type TYPE]

``probe``, ``classify``, ``extract`` and ``convert`` run without API keys;
``name`` needs the same environment as the HTTP service.
"""

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from studyset.errors import PipelineError
from studyset.models.upload import UploadedFile
from studyset.services.format_classifier import classify_upload
from studyset.services.ingestion import DocumentIngestor
from studyset.services.office_converter import LibreOfficeConverter, LibreOfficeProbe


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="studyset",
        description="Study set CLI - convert, extract and name study materials locally"
    )
    parser.add_argument(
        "--soffice",
        type=str,
        default="soffice",
        help="LibreOffice binary (default: soffice)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=120.0,
        help="Conversion timeout in seconds (default: 120)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("probe", help="Report whether LibreOffice is available")

    for command, help_text in (
        ("classify", "Print the classified format of a file"),
        ("extract", "Print the text extracted from a file"),
        ("name", "Print a generated study set title for a file"),
    ):
        command_parser = subparsers.add_parser(command, help=help_text)
        command_parser.add_argument("file", type=str, help="Path to the file")
        command_parser.add_argument(
            "--mime-type",
            "-m",
            type=str,
            default=None,
            help="MIME type (default: guessed from the extension)"
        )

    convert_parser = subparsers.add_parser("convert", help="Convert an office document to PDF")
    convert_parser.add_argument("file", type=str, help="Path to the .doc/.docx/.ppt/.pptx file")
    convert_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Output path (default: <stem>.pdf next to the input)"
    )

    return parser


def load_upload(path: Path, mime_type: Optional[str] = None) -> UploadedFile:
    """Read a local file as an ``UploadedFile``."""
    guessed, _ = mimetypes.guess_type(path.name)
    return UploadedFile(
        content=path.read_bytes(),
        filename=path.name,
        mime_type=(mime_type or guessed or "").lower(),
    )


def build_converter(args: argparse.Namespace) -> LibreOfficeConverter:
    return LibreOfficeConverter(
        LibreOfficeProbe(binary=args.soffice),
        binary=args.soffice,
        timeout=args.timeout,
    )


async def probe_command(args: argparse.Namespace) -> int:
    available = await build_converter(args).is_available()
    print("LibreOffice: available" if available else "LibreOffice: not installed")
    return 0 if available else 1


async def classify_command(args: argparse.Namespace) -> int:
    upload = load_upload(Path(args.file), args.mime_type)
    print(classify_upload(upload).value)
    return 0


async def extract_command(args: argparse.Namespace) -> int:
    upload = load_upload(Path(args.file), args.mime_type)
    text = await DocumentIngestor(build_converter(args)).extract(upload)
    print(text)
    return 0


async def convert_command(args: argparse.Namespace) -> int:
    source = Path(args.file)
    upload = load_upload(source)
    converted = await build_converter(args).convert(
        upload.content, upload.filename, mime_type=upload.mime_type
    )

    output = Path(args.output) if args.output else source.with_name(converted.filename)
    output.write_bytes(converted.content)
    print(f"Wrote {output} ({len(converted.content)} bytes)")
    return 0


async def name_command(args: argparse.Namespace) -> int:
    from studyset.config import get_settings
    from studyset.dependencies import build_pipeline

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"Configuration error: {e}")
        print("\nMake sure you have a .env file with:")
        print("  GEMINI_API_KEY=your_api_key")
        print("  SUPABASE_URL=https://your-project.supabase.co")
        print("  SUPABASE_KEY=your_anon_key")
        return 1

    pipeline = build_pipeline(settings)
    upload = load_upload(Path(args.file), args.mime_type)
    cleanup = pipeline.cleanup_queue()
    try:
        title = await pipeline.title_generator.generate(upload, cleanup)
    finally:
        await cleanup.drain()

    print(title.name)
    return 0


COMMANDS = {
    "probe": probe_command,
    "classify": classify_command,
    "extract": extract_command,
    "convert": convert_command,
    "name": name_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    handler = COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}")
        return 1

    try:
        return asyncio.run(handler(args))
    except FileNotFoundError as e:
        print(f"Error: File not found: {e.filename}")
        return 1
    except PipelineError as e:
        print(f"Error ({e.kind}): {e}")
        return 1
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
