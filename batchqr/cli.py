"""
Command Line Interface
======================

batchqr export    Render every row of a spreadsheet into a ZIP archive
batchqr preview   Render a single row to a PNG file
batchqr serve     Run the HTTP API
"""

from typing import List, Optional
from pathlib import Path
import argparse
import asyncio
import sys

from batchqr import __version__
from batchqr.config.logging import get_logger
from batchqr.config.settings import get_settings
from batchqr.core.dataset.importer import load_dataset
from batchqr.core.errors import BatchQRError
from batchqr.core.session import EditingSession
from batchqr.core.template.parser import load_template
from batchqr.models.schemas import RenderOptions

logger = get_logger(__name__)


def _print_progress(value: int) -> None:
    sys.stderr.write(f"\rExporting... {value:3d}%")
    if value >= 100:
        sys.stderr.write("\n")
    sys.stderr.flush()


async def run_export(args: argparse.Namespace) -> int:
    document = await load_template(Path(args.template))
    dataset = load_dataset(Path(args.data))

    session = EditingSession(document=document)
    session.set_dataset(dataset)
    try:
        result = await session.export_all(
            filename_column=args.filename_column,
            progress=None if args.quiet else _print_progress,
            options=RenderOptions(scale=args.scale),
        )
    finally:
        await session.close()

    output = Path(args.output) if args.output else Path(result.archive_name)
    output.write_bytes(result.archive_data)
    print(f"Wrote {len(result.entries)} images to {output} ({result.file_size} bytes)")
    return 0


async def run_preview(args: argparse.Namespace) -> int:
    document = await load_template(Path(args.template))

    session = EditingSession(document=document)
    if args.data:
        session.set_dataset(load_dataset(Path(args.data)))
    try:
        result = await session.render_preview(args.row, RenderOptions(scale=args.scale))
    finally:
        await session.close()

    output = Path(args.output)
    output.write_bytes(result.png_data)
    print(f"Wrote {result.width}x{result.height} preview of row {args.row} to {output}")
    return 0


def run_serve(args: argparse.Namespace) -> int:
    from batchqr.api.main import run_development_server

    run_development_server(host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="batchqr", description="Render data-bound QR code layouts in batches"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export = subparsers.add_parser("export", help="Export every data row into a ZIP archive")
    export.add_argument("template", help="Template document (JSON or YAML)")
    export.add_argument("data", help="Spreadsheet (.xlsx, .xlsm or .csv)")
    export.add_argument("-o", "--output", help=f"Archive path (default: {settings.archive_name})")
    export.add_argument("--filename-column", help="Column whose values name the images")
    export.add_argument(
        "--scale", type=int, default=1, choices=range(1, settings.max_render_scale + 1),
        help="Output pixel ratio",
    )
    export.add_argument("-q", "--quiet", action="store_true", help="Do not print progress")

    preview = subparsers.add_parser("preview", help="Render one row to a PNG file")
    preview.add_argument("template", help="Template document (JSON or YAML)")
    preview.add_argument("data", nargs="?", help="Optional spreadsheet")
    preview.add_argument("--row", type=int, default=0, help="Zero-based data row")
    preview.add_argument("-o", "--output", default="preview.png", help="PNG path")
    preview.add_argument(
        "--scale", type=int, default=1, choices=range(1, settings.max_render_scale + 1),
        help="Output pixel ratio",
    )

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help=f"Bind address (default: {settings.host})")
    serve.add_argument("--port", type=int, default=None, help=f"Port (default: {settings.port})")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        return run_serve(args)

    if args.command == "preview" and args.row < 0:
        parser.error("--row must not be negative")

    runner = run_export if args.command == "export" else run_preview
    try:
        return asyncio.run(runner(args))
    except BatchQRError as e:
        logger.error("Command failed", command=args.command, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
