#!/usr/bin/env python
"""
Run the full envelope bounds analysis on a summary table.
- Health exposure hours by AQI category
- Cost effectiveness with tight/leaky bounds
- Physical tradeoffs (filter replacements, airflow and energy penalties)
- Composite efficacy scores and the uncertainty range table
- Active-mode dynamics (I/O ratios, cross-correlations, pollution events)
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Fix Python path
current_file = Path(__file__).resolve()
project_root = current_file.parent.parent if current_file.parent.name == 'scripts' else current_file.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from envelope_analysis.config import (
    SUMMARY_TABLE_FILE,
    TABLES_DIR,
    RESULTS_DIR,
    ensure_dirs,
    get_analysis_params,
    print_config,
    save_analysis_params,
    setup_logging
)
from envelope_analysis.exceptions import AnalysisError
from envelope_analysis.pipeline import run_pipeline, save_tables
from envelope_analysis.utils import load_summary_table

logger = logging.getLogger('run_analysis')


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Envelope bounds air-quality analysis")
    parser.add_argument('summary', nargs='?', default=str(SUMMARY_TABLE_FILE),
                        help="Summary table (.pkl or .parquet)")
    parser.add_argument('--out', default=str(TABLES_DIR),
                        help="Directory for CSV tables")
    parser.add_argument('--params-dir', default=str(RESULTS_DIR),
                        help="Directory holding analysis_params.json")
    parser.add_argument('--overrides', default=None,
                        help="JSON string of nested parameter overrides")
    parser.add_argument('--metrics', nargs='+', default=None,
                        help="Scalar columns for the range table")
    parser.add_argument('--no-validate', action='store_true',
                        help="Skip the fail-fast completeness checks")
    parser.add_argument('--show-config', action='store_true',
                        help="Print configured paths and exit")
    parser.add_argument('--log-level', default='INFO')
    parser.add_argument('--log-file', default=None)
    return parser.parse_args(argv)


def main(argv=None):
    """Main analysis function."""
    args = parse_args(argv)
    if args.show_config:
        print_config()
        return 0

    setup_logging(log_file=args.log_file, level=args.log_level)
    ensure_dirs()

    logger.info("=" * 60)
    logger.info("ENVELOPE BOUNDS ANALYSIS")
    logger.info("=" * 60)

    overrides = json.loads(args.overrides) if args.overrides else None
    params = get_analysis_params(args.params_dir, overrides)

    summary = load_summary_table(args.summary)
    if summary.empty:
        logger.error(f"No data loaded from {args.summary}")
        return 1
    logger.info(f"Loaded {len(summary)} scenario runs from {args.summary}")

    try:
        results = run_pipeline(summary, params=params, range_metrics=args.metrics,
                               validate=not args.no_validate)
    except AnalysisError as e:
        logger.error(f"Analysis stopped: {e}")
        return 1

    written = save_tables(results, args.out)
    param_file = save_analysis_params(params, args.out)

    logger.info("ANALYSIS COMPLETE")
    logger.info(f"{len(written)} tables saved to: {args.out}")
    logger.info(f"Parameters saved to: {param_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
