"""
Command-line interface for dataset refinement.

Usage:
    python -m refine.cli.refine_cli run --mapping <yaml|bundled name> --input <file> [--output <dir>]
    python -m refine.cli.refine_cli list-mappings
    python -m refine.cli.refine_cli list-derivations
"""

import argparse
import sys
from pathlib import Path

from refine.batch.pipeline import RefinePipeline
from refine.clients.gbif import GbifNameMatchingClient
from refine.config.settings import Settings
from refine.core.errors import MappingConfigError
from refine.core.mapping import DERIVATION_REGISTRY, load_mapping
from refine.datasets import list_builtin_mappings, resolve_mapping_path
from refine.observability.logger import get_logger
from refine.observability.metrics import generate_metrics

logger = get_logger(__name__)


def run_command(args) -> int:
    """
    Execute a refinement run.

    Returns:
        Process exit code
    """
    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input file not found: {args.input}")
        return 1

    try:
        mapping = load_mapping(resolve_mapping_path(args.mapping))
    except (FileNotFoundError, MappingConfigError) as e:
        logger.error(f"Cannot load dataset mapping: {e}")
        return 1

    settings = Settings.from_env(args.env_file)
    with GbifNameMatchingClient(settings=settings) as client:
        pipeline = RefinePipeline(mapping, client)
        if args.output:
            summary = pipeline.run(input_path, args.output)
        else:
            summary = pipeline.run_to_temp_dir(input_path)

    logger.info("=" * 60)
    logger.info(f"REFINEMENT {summary.state.value}: {mapping.dataset_id}")
    logger.info("=" * 60)
    logger.info(f"Rows iterated: {summary.rows_iterated}")
    logger.info(f"Rows skipped: {summary.rows_skipped}")
    logger.info(f"Occurrences written: {summary.occurrences_written} -> {summary.occurrences_path}")
    if summary.events_path:
        logger.info(f"Unique events: {summary.unique_events} -> {summary.events_path}")
    logger.info(f"Non-matching names: {len(summary.non_matching_names)}")
    if summary.error:
        logger.error(f"Run aborted: {summary.error}")
    logger.info("=" * 60)

    if args.metrics:
        sys.stdout.write(generate_metrics().decode("utf-8"))

    return 0 if summary.succeeded else 1


def list_mappings_command(args) -> int:
    for name in list_builtin_mappings():
        print(name)
    return 0


def list_derivations_command(args) -> int:
    for name, derivation in sorted(DERIVATION_REGISTRY.items()):
        summary = (derivation.fn.__doc__ or "").strip().splitlines()
        print(f"{name:<20} {summary[0] if summary else ''}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Refine biodiversity datasets into sample-event star format",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Refine with a bundled mapping into a temporary directory
  python -m refine.cli.refine_cli run --mapping taibif_fish_assemblages --input 1987-1990_UTF8.txt

  # Refine with a custom mapping into a chosen directory
  python -m refine.cli.refine_cli run --mapping mappings/reef.yaml --input M1_DATA.csv --output out/
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Refine a source file")
    run_parser.add_argument(
        "--mapping",
        required=True,
        help="Dataset mapping YAML file or bundled mapping name"
    )
    run_parser.add_argument(
        "--input",
        required=True,
        help="Path to the raw source file"
    )
    run_parser.add_argument(
        "--output",
        help="Output directory (default: new temporary directory)"
    )
    run_parser.add_argument(
        "--env-file",
        default=".env",
        help="Environment file with REFINE_* settings (default: .env)"
    )
    run_parser.add_argument(
        "--metrics",
        action="store_true",
        help="Print Prometheus metrics after the run"
    )
    run_parser.set_defaults(handler=run_command)

    mappings_parser = subparsers.add_parser("list-mappings", help="List bundled dataset mappings")
    mappings_parser.set_defaults(handler=list_mappings_command)

    derivations_parser = subparsers.add_parser("list-derivations", help="List derivation types")
    derivations_parser.set_defaults(handler=list_derivations_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
