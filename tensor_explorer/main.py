"""Tensor Explorer - Main Entry Point.

Browse the tensors inside SafeTensors and GGUF checkpoints.

Usage:
    tensor-explorer model.safetensors              # One file
    tensor-explorer ./checkpoint -r                # Directory, recursive
    tensor-explorer "shards/*.safetensors"         # Glob pattern
    tensor-explorer model.safetensors.index.json   # Sharded checkpoint
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from tensor_explorer.catalog.builder import load_catalog
from tensor_explorer.core.config import Config
from tensor_explorer.core.exceptions import TensorExplorerError
from tensor_explorer.discovery.resolver import SourceResolver
from tensor_explorer.observability.logging import get_logger, setup_logging
from tensor_explorer.ui.format import format_parameters, format_size
from tensor_explorer.ui.session import run_session

__version__ = "0.1.0"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="tensor-explorer",
        description="Tensor Explorer - Interactive browser for SafeTensors and GGUF checkpoints",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tensor-explorer model.safetensors
  tensor-explorer ./checkpoint --recursive
  tensor-explorer "shards/*.safetensors" other.gguf
        """,
    )
    parser.add_argument(
        "paths",
        nargs="*",
        help="Files, directories or glob patterns to explore",
    )
    parser.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        default=None,
        help="Search directories recursively",
    )
    parser.add_argument(
        "--skip-errors",
        action="store_true",
        help="Skip files that fail to parse instead of aborting",
    )
    parser.add_argument(
        "--no-metadata",
        action="store_true",
        help="Hide the GGUF metadata group",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        default=None,
        help="Override log level from config",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write JSON logs to this file",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML config file",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Command line flags win over config file values."""
    if args.recursive is not None:
        config.recursive = args.recursive
    if args.skip_errors:
        config.on_format_error = "skip"
    if args.no_metadata:
        config.show_metadata = False
    if args.log_level:
        config.log_level = args.log_level
    if args.log_file:
        config.log_file = args.log_file
    return config


def main(argv: list[str] | None = None) -> int:
    """Resolve sources, build the catalog and run the browser."""
    args = parse_args(argv)

    config = apply_overrides(Config.load(args.config), args)

    setup_logging(level=config.log_level, log_file=config.log_file)
    log = get_logger("main")

    for warning in config.validate():
        log.warning(f"Config: {warning}")

    resolver = SourceResolver(recursive=config.recursive, index_filename=config.index_filename)
    sources = resolver.resolve(args.paths)

    catalog = load_catalog(
        sources,
        skip_errors=config.skip_bad_sources,
        with_metadata=config.show_metadata,
        weight_map=resolver.weight_map,
    )
    log.info(
        f"Loaded {catalog.tensor_count} tensors "
        f"({format_parameters(catalog.total_parameters)} parameters, "
        f"{format_size(catalog.total_bytes)})"
    )

    run_session(catalog, config)
    return EXIT_OK


def run() -> None:
    """Console entry point."""
    try:
        code = main()
    except TensorExplorerError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(EXIT_ERROR)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)
    sys.exit(code)


if __name__ == "__main__":
    run()
