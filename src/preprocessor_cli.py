#!/usr/bin/env python3
"""
WRF-CMAQ Preprocessor CLI

Command-line interface for inspecting the quantities the preprocessor
derives from WRF-CMAQ output.

Usage examples:
    # List the quantities that can be produced
    python preprocessor_cli.py list-quantities

    # Pull temperature over two days and log per-record statistics
    python preprocessor_cli.py summarize t \\
        --path-template "./DATA/wrfcmaq_[DATE].nc" --start 20050101 --end 20050103

    # Same, with settings from a configuration file
    python preprocessor_cli.py summarize total_pm25 --config wrfcmaq.yaml
"""

import argparse
import logging
import sys
from itertools import islice

import numpy as np
from tqdm import tqdm

from cmaq_variables import describe_quantity, get_quantity_names
from config_manager import PreprocessorConfig
from logging_utils import PreprocessorError, setup_preprocessor_logging
from wrfcmaq_preprocessor import WRFCmaqPreprocessor


def create_parser():
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="WRF-CMAQ output preprocessor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s list-quantities
  %(prog)s list-quantities --config wrfcmaq.yaml
  %(prog)s summarize t --path-template "./DATA/wrfcmaq_[DATE].nc" --start 20050101 --end 20050103
  %(prog)s summarize total_pm25 --config wrfcmaq.yaml --max-records 24
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    list_parser = subparsers.add_parser('list-quantities',
                                        help='List quantities, their units and source variables')
    list_parser.add_argument('--config', help='YAML or JSON configuration file with species group overrides')

    summarize_parser = subparsers.add_parser(
        'summarize',
        help='Pull one quantity over the time window and log per-record statistics'
    )
    summarize_parser.add_argument('quantity', help='Quantity name (see list-quantities)')
    summarize_parser.add_argument('--config', help='YAML or JSON configuration file')
    summarize_parser.add_argument('--path-template', help='Output file path with [DATE] placeholder')
    summarize_parser.add_argument('--start', help='Start date, YYYYMMDD')
    summarize_parser.add_argument('--end', help='End date, YYYYMMDD (exclusive)')
    summarize_parser.add_argument('--record-interval', help='Time between records (default: 1h)')
    summarize_parser.add_argument('--file-interval', help='Time spanned by one file (default: 24h)')
    summarize_parser.add_argument('--max-records', type=int, help='Stop after this many records')
    summarize_parser.add_argument('--log-level', default=None, help='Logging level (default: INFO)')
    summarize_parser.add_argument('--log-file', help='Optional log file')

    return parser


def _cli_overrides(args) -> dict:
    """Turn CLI arguments into a configuration override dictionary."""
    input_overrides = {
        'path_template': args.path_template,
        'start_date': args.start,
        'end_date': args.end,
        'record_interval': args.record_interval,
        'file_interval': args.file_interval,
    }
    processing_overrides = {
        'log_level': args.log_level,
        'log_file': args.log_file,
    }
    overrides = {}
    input_overrides = {k: v for k, v in input_overrides.items() if v is not None}
    processing_overrides = {k: v for k, v in processing_overrides.items() if v is not None}
    if input_overrides:
        overrides['input'] = input_overrides
    if processing_overrides:
        overrides['processing'] = processing_overrides
    return overrides


def list_quantities(config_file=None):
    """Print every quantity with its units and source variables."""
    try:
        species_groups = PreprocessorConfig(config_file=config_file).get_species_groups()
    except PreprocessorError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    print("WRF-CMAQ Preprocessor Quantities:")
    print("=" * 50)
    for name in get_quantity_names(species_groups):
        info = describe_quantity(name, species_groups)
        sources = ", ".join(info['sources'])
        print(f"  {name:<20} [{info['units']}]  <- {sources}")
        print(f"  {'':<20} {info['description']}")
    return 0


def summarize_quantity(args):
    """Pull a quantity over the configured window and log statistics."""
    try:
        config = PreprocessorConfig(config_file=args.config, cli_args=_cli_overrides(args))
    except PreprocessorError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    processing = config.get_processing_config()
    logger = setup_preprocessor_logging(log_level=processing['log_level'],
                                        log_file=processing.get('log_file'))

    try:
        preprocessor = WRFCmaqPreprocessor.from_config(config)
        total = preprocessor.num_records()
        if args.max_records is not None:
            total = min(total, args.max_records)

        with preprocessor.producer(args.quantity) as producer:
            records = islice(producer, args.max_records)
            for grid in tqdm(records, total=total, desc=args.quantity, unit='record'):
                logger.info(f"{args.quantity} {producer.timestamp:%Y-%m-%d %H:%M}: shape {grid.shape}, "
                            f"min {np.nanmin(grid):.4g}, max {np.nanmax(grid):.4g}, "
                            f"mean {np.nanmean(grid):.4g}")

        logger.info(f"Summarized {args.quantity} successfully")
        return 0

    except KeyError as e:
        logger.error(str(e))
        return 1
    except PreprocessorError as e:
        logger.error(f"Summarizing {args.quantity} failed: {e}")
        for key, value in e.context.items():
            logger.error(f"  {key}: {value}")
        return 1


def main():
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    if args.command == 'list-quantities':
        return list_quantities(args.config)
    elif args.command == 'summarize':
        return summarize_quantity(args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    logging.captureWarnings(True)
    sys.exit(main())
