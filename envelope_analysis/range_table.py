"""
Long-format tight/leaky range table for uncertainty reporting.
"""

import logging
import warnings
from typing import Sequence

import numpy as np
import pandas as pd

from .bounds import NAN_BOUNDS, bound_pair
from .exceptions import MissingColumnError, MissingEnvelopePairWarning
from .utils import get_envelope_pair, unique_configurations

logger = logging.getLogger(__name__)

RANGE_COLUMNS = [
    'location', 'filterType', 'mode', 'metric',
    'tight_value', 'leaky_value',
    'lower_bound', 'upper_bound', 'mean',
    'range_width', 'range_percent', 'range_factor'
]


def _range_statistics(bounds):
    if bounds.is_nan():
        return np.nan, np.nan, np.nan
    width = bounds.upper - bounds.lower
    if bounds.mean == 0:
        return width, 0.0, 1.0
    return width, 100.0 * width / abs(bounds.mean), bounds.upper / bounds.mean


def build_range_table(summary: pd.DataFrame, metric_names: Sequence[str]) -> pd.DataFrame:
    """
    One row per (configuration, metric) with tight/leaky range statistics.

    Parameters:
    -----------
    summary : pd.DataFrame
        Summary table; every name in METRIC_NAMES must be a scalar column
    metric_names : sequence of str
        Scalar columns to tabulate

    Returns:
    --------
    pd.DataFrame
        Exactly n_configurations * len(metric_names) rows (baseline included).
        Configurations missing a tight or leaky run give NaN rows and a
        MissingEnvelopePairWarning. range_percent is 0 and range_factor 1
        when the mean is 0. Sorted by range_percent, descending, NaN last.
    """
    metric_names = list(metric_names)
    missing = [m for m in metric_names if m not in summary.columns]
    if missing:
        raise MissingColumnError(f"Metric column(s) {', '.join(missing)} not in summary table",
                                 columns=missing)

    rows = []
    for config in unique_configurations(summary, include_baseline=True):
        tight, leaky = get_envelope_pair(summary, config)
        pair_missing = tight is None or leaky is None
        if pair_missing:
            warnings.warn(f"Missing tight or leaky results for {config.label()}",
                          MissingEnvelopePairWarning)

        for metric in metric_names:
            if pair_missing:
                t_val = l_val = np.nan
                bounds = NAN_BOUNDS
            else:
                t_val, l_val = float(tight[metric]), float(leaky[metric])
                bounds = bound_pair(t_val, l_val)
            width, percent, factor = _range_statistics(bounds)
            rows.append({
                'location': config.location,
                'filterType': config.filterType,
                'mode': config.mode,
                'metric': metric,
                'tight_value': t_val,
                'leaky_value': l_val,
                'lower_bound': bounds.lower,
                'upper_bound': bounds.upper,
                'mean': bounds.mean,
                'range_width': width,
                'range_percent': percent,
                'range_factor': factor,
            })

    table = pd.DataFrame(rows, columns=RANGE_COLUMNS)
    if table.empty:
        return table
    order = np.argsort(-table['range_percent'].to_numpy(dtype=float), kind='stable')
    logger.info(f"Range table: {len(table)} rows for {len(metric_names)} metrics")
    return table.iloc[order].reset_index(drop=True)
