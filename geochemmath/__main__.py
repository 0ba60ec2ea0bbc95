"""
Main entry point for geochemmath.

This module provides the command line for running the analyses on a
CSV or JSON table and printing the results as JSON.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import pandas as pd
import yaml

from geochemmath.analysis import GeochemAnalysis
from geochemmath.components.config import ConfigManager, load_config_file
from geochemmath.utils.general import to_jsonable

logger = logging.getLogger(__name__)

COMMANDS = ('describe', 'correlate', 'scan', 'pca', 'suggest')


def setup_logging(level: str = 'INFO') -> None:
    """
    Set up logging.

    Args:
        level: Logging level
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler()
        ]
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description='Geochemical statistics engine')

    parser.add_argument(
        'command',
        choices=COMMANDS,
        help='Analysis to run'
    )

    parser.add_argument(
        'data',
        help='CSV or JSON (records) file with one sample per row'
    )

    parser.add_argument(
        '--columns',
        nargs='+',
        help='Numeric columns to use (default: columns read as numeric)'
    )

    parser.add_argument(
        '--config',
        help='Path to configuration file'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (default: logging.level from the configuration)'
    )

    parser.add_argument(
        '--seed',
        type=int,
        help='Random seed for clustering'
    )

    parser.add_argument(
        '--threshold',
        type=float,
        help='Minimum |r| for the scan'
    )

    parser.add_argument(
        '--p-threshold',
        type=float,
        help='Maximum p-value for the scan'
    )

    parser.add_argument(
        '--methods',
        nargs='+',
        help='Correlation methods for the scan'
    )

    parser.add_argument(
        '--n-components',
        type=int,
        help='Principal components to retain'
    )

    return parser.parse_args(argv)


def load_table(filepath: str) -> pd.DataFrame:
    """
    Read a data table.

    Args:
        filepath: Path to a .csv or .json file

    Returns:
        DataFrame
    """
    if filepath.endswith('.json'):
        return pd.read_json(filepath, orient='records')
    elif filepath.endswith('.csv'):
        return pd.read_csv(filepath)
    else:
        raise ValueError(f"Unsupported data file format: {filepath}")


def numeric_columns(frame: pd.DataFrame) -> List[str]:
    """Columns pandas parsed as numbers."""
    return [str(col) for col in frame.select_dtypes(include='number').columns]


def run_command(args: argparse.Namespace, analysis: GeochemAnalysis) -> object:
    """
    Dispatch a command to the analysis.

    Returns:
        Result object (anything to_jsonable accepts)
    """
    columns = analysis.numeric_columns

    if args.command == 'describe':
        return analysis.describe_all()

    if args.command == 'correlate':
        if len(columns) != 2:
            raise ValueError("correlate needs exactly two --columns")
        return analysis.correlate(columns[0], columns[1])

    if args.command == 'scan':
        return analysis.scan(threshold=args.threshold,
                             p_threshold=args.p_threshold,
                             methods=args.methods)

    if args.command == 'pca':
        return analysis.run_pca(columns, n_components=args.n_components)

    return analysis.suggest_pca()


def resolve_log_level(cli_level: Optional[str], config) -> str:
    """
    Logging level from the command line, else from the configuration.

    Args:
        cli_level: Value of --log-level, or None
        config: Configuration

    Returns:
        Upper-case level name known to the logging module
    """
    level = str(cli_level or config.get('logging.level') or 'WARNING').upper()
    if not isinstance(logging.getLevelName(level), int):
        logger.warning(f"Unknown log level {level}, using WARNING")
        return 'WARNING'
    return level


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.
    """
    args = parse_args(argv)

    overrides = {}

    try:
        if args.config:
            file_config = load_config_file(args.config)
            overrides.update(file_config)

        if args.seed is not None:
            overrides.setdefault('clustering', {})['random-seed'] = args.seed

        config = ConfigManager.get_config(overrides)
        setup_logging(resolve_log_level(args.log_level, config))

        frame = load_table(args.data)
        columns = args.columns or numeric_columns(frame)
        logger.info(f"Loaded {len(frame)} rows from {args.data}, {len(columns)} numeric columns")

        analysis = GeochemAnalysis(frame, columns, config)
        result = run_command(args, analysis)
    except (KeyError, ValueError, OSError, yaml.YAMLError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(json.dumps({'error': str(e)}), file=sys.stderr)
        return 1

    json.dump(to_jsonable(result), sys.stdout, indent=2)
    sys.stdout.write('\n')
    return 0


if __name__ == '__main__':
    sys.exit(main())
