"""CLI interface for archive curation tools.

Two subcommands are provided:
- render: rasterize one page-document into page_NNN.png thumbnails
- descriptor: print the default bundle descriptor of a persisted batch
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from .core.batch import Batch
from .core.export import build_bundle_descriptor
from .errors import RasterizationError
from .preprocessing.renderer import PageRasterizer
from .schemas.config import INTERACTIVE_MAX_PAGES, CuratorConfig
from .utils.naming import sanitize_file_stem

LOG_FORMAT = "%(asctime)s | %(name)s | %(message)s"
LOG_DATEFMT = "%H:%M:%S"

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def setup_logging(log_level: str, log_file: Optional[Path] = None) -> None:
    """Setup logging: console + optional file handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Path to log file (UTF-8). If None, console only.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    # Console handler; stdout is reserved for command output
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=sys.stderr,
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        logging.getLogger().addHandler(fh)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="archive-curator",
        description="Archive curation tools: page rasterization and export descriptors",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  archive-curator render report.pdf
  archive-curator render report.pdf --max-pages 10 --out ./thumbs
  archive-curator descriptor ./state/batches/batch_1/batch.json --out bundle.yaml
        """,
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=LOG_LEVELS,
        help="Logging level (default: ARCHIVE_CURATOR_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write the log to this file (UTF-8)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser("render", help="Rasterize one page-document")
    render.add_argument("pdf_path", type=Path, help="Path to the page-document")
    render.add_argument(
        "--max-pages",
        type=int,
        default=INTERACTIVE_MAX_PAGES,
        help=f"Maximum pages to render (default: {INTERACTIVE_MAX_PAGES})",
    )
    render.add_argument(
        "--out", "-o",
        type=Path,
        default=None,
        help="Output directory (default: ./<document stem>_pages)",
    )

    descriptor = subparsers.add_parser(
        "descriptor", help="Print the bundle descriptor of a persisted batch"
    )
    descriptor.add_argument("batch_json", type=Path, help="Path to batch.json")
    descriptor.add_argument(
        "--out", "-o",
        type=Path,
        default=None,
        help="Write YAML to this file instead of stdout",
    )

    return parser


def run_render(args: argparse.Namespace, config: CuratorConfig) -> int:
    logger = logging.getLogger(__name__)

    raster_config = config.scheduler.raster.interactive(max_pages=args.max_pages)
    out_dir = args.out or Path.cwd() / f"{sanitize_file_stem(args.pdf_path.name)}_pages"

    logger.info(f"Rendering {args.pdf_path} (max {raster_config.max_pages} pages)")
    rasterizer = PageRasterizer(raster_config)

    try:
        images = rasterizer.rasterize(str(args.pdf_path))
    except RasterizationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    out_dir.mkdir(parents=True, exist_ok=True)
    for page_num, image in enumerate(images, start=1):
        (out_dir / f"page_{page_num:03d}.png").write_bytes(image)

    print(f"Rendered {len(images)} pages to {out_dir}")
    return 0


def run_descriptor(args: argparse.Namespace) -> int:
    logger = logging.getLogger(__name__)

    if not args.batch_json.is_file():
        print(f"Error: batch file not found: {args.batch_json}", file=sys.stderr)
        return 1

    with args.batch_json.open("r", encoding="utf-8") as f:
        batch = Batch.from_dict(json.load(f))
    logger.info(f"Loaded batch {batch.batch_id} with {len(batch)} archives")

    text = yaml.safe_dump(
        build_bundle_descriptor(batch).to_dict(),
        allow_unicode=True,
        default_flow_style=False,
        sort_keys=False,
    )

    if args.out is None:
        sys.stdout.write(text)
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(text, encoding="utf-8")
        print(f"Descriptor written to {args.out}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        0 on success, 1 on error
    """
    args = build_parser().parse_args(argv)

    try:
        config = CuratorConfig.from_env()
        setup_logging(args.log_level or config.log_level, args.log_file)

        if args.command == "render":
            return run_render(args, config)
        return run_descriptor(args)

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 1

    except Exception as e:
        logging.getLogger(__name__).exception(f"Error during {args.command}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
