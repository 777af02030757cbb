"""
Input and output validation.

validate_summary_table and verify_envelope_completeness are fail-fast:
every non-baseline configuration needs a tight and a leaky run and every
location a tight and leaky baseline.
"""

import logging
import warnings
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

from .config import KEY_COLUMNS, LEAKAGE_LEVELS, SCALAR_COLUMNS, SERIES_COLUMNS
from .exceptions import (AnalysisError, IncompleteEnvelopeError, MissingBaselineError,
                         MissingColumnError)
from .utils import as_array, canonical_mode, get_envelope_pair, unique_configurations

logger = logging.getLogger(__name__)

COMPLETENESS_METRICS = ['avg_indoor_PM25', 'avg_indoor_PM10', 'total_cost', 'filter_replaced']
OUTDOOR_TOLERANCE = 1e-6


def normalize_mode(filter_type: str, raw_mode) -> str:
    """
    Map a raw mode label onto baseline, active or always_on.

    Baseline filters are always in baseline mode. Other labels are split on
    '_' and scanned for 'active'/'triggered' or 'always_on'/'alwayson'/
    'always' 'on'. Anything else falls back to the first token, lowercased.
    """
    if str(filter_type).lower() == 'baseline':
        return 'baseline'
    if raw_mode is None or (isinstance(raw_mode, float) and np.isnan(raw_mode)):
        return ''
    parts = [p for p in str(raw_mode).lower().split('_') if p]
    if not parts:
        return ''
    for k, token in enumerate(parts):
        if token in ('active', 'triggered'):
            return 'active'
        if token in ('always_on', 'alwayson'):
            return 'always_on'
        if token == 'always' and k + 1 < len(parts) and parts[k + 1] == 'on':
            return 'always_on'
    return canonical_mode(parts[0])


def validate_summary_table(summary: pd.DataFrame) -> None:
    """
    Check required columns and tight/leaky completeness.

    Raises:
    -------
    MissingColumnError
        A key, series or scalar column is missing
    MissingBaselineError
        A location lacks a tight or leaky baseline run
    IncompleteEnvelopeError
        A (location, filter, mode) lacks a tight or leaky run
    """
    required = KEY_COLUMNS + SERIES_COLUMNS + SCALAR_COLUMNS
    missing = [c for c in required if c not in summary.columns]
    if missing:
        raise MissingColumnError(f"Summary table is missing column(s): {', '.join(missing)}",
                                 columns=missing)

    for column in SERIES_COLUMNS:
        empty = summary[column].map(lambda v: as_array(v).size == 0)
        if empty.any():
            first = summary[empty].iloc[0]
            raise IncompleteEnvelopeError(
                f"Empty {column} series", location=first['location'], leakage=first['leakage'],
                filter_type=first['filterType'], scenario=first['mode']
            )

    modes = [normalize_mode(f, m) for f, m in zip(summary['filterType'], summary['mode'])]
    table = summary.assign(_mode=modes)
    locations = sorted(table['location'].unique())

    for location in locations:
        for leakage in LEAKAGE_LEVELS:
            mask = ((table['location'] == location) & (table['leakage'] == leakage) &
                    (table['filterType'] == 'baseline'))
            if not mask.any():
                raise MissingBaselineError(f"Missing baseline simulation for {location} / {leakage}",
                                           location=location, leakage=leakage)

    filters = sorted(set(table['filterType']) - {'baseline'})
    intervention_modes = sorted(set(table['_mode']) - {'baseline'})
    for location in locations:
        for filter_type in filters:
            for mode in intervention_modes:
                for leakage in LEAKAGE_LEVELS:
                    mask = ((table['location'] == location) & (table['leakage'] == leakage) &
                            (table['filterType'] == filter_type) & (table['_mode'] == mode))
                    if not mask.any():
                        raise IncompleteEnvelopeError(
                            f"Missing simulation for {filter_type} filter ({mode}) in {location} / {leakage}",
                            location=location, leakage=leakage, filter_type=filter_type, scenario=mode
                        )

    logger.info("Summary table validated (completeness enforced)")


def verify_envelope_completeness(summary: pd.DataFrame) -> None:
    """
    Check that every configuration's tight and leaky runs are comparable.

    Indoor series of different lengths raise IncompleteEnvelopeError;
    differing outdoor series only warn, since both runs should share the
    same weather file. Summary metrics of duplicate rows must lie inside
    the tight/leaky bounds.
    """
    for config in unique_configurations(summary, include_baseline=True):
        tight, leaky = get_envelope_pair(summary, config)
        ids = dict(location=config.location, filter_type=config.filterType, scenario=config.mode)
        if tight is None or leaky is None:
            raise IncompleteEnvelopeError(f"Missing tight or leaky results for {config.label()}", **ids)

        if as_array(tight['indoor_PM25']).size != as_array(leaky['indoor_PM25']).size:
            raise IncompleteEnvelopeError(f"Indoor time series length mismatch for {config.label()}", **ids)

        for column in ('outdoor_PM25', 'outdoor_PM10'):
            t, l = as_array(tight[column]), as_array(leaky[column])
            if t.size != l.size or np.any(np.abs(t - l) > OUTDOOR_TOLERANCE):
                warnings.warn(f"Outdoor time series differ for {config.label()}")
                break

        rows = summary[(summary['location'] == config.location) &
                       (summary['filterType'] == config.filterType) &
                       (summary['mode'].map(canonical_mode) == config.mode)]
        for metric in COMPLETENESS_METRICS:
            if metric not in summary.columns:
                continue
            pair = np.array([tight[metric], leaky[metric]], dtype=float)
            if np.isnan(pair).all():
                continue
            low, high = np.nanmin(pair), np.nanmax(pair)
            values = rows[metric].to_numpy(dtype=float)
            with np.errstate(invalid='ignore'):
                outside = (values < low - 1e-6) | (values > high + 1e-6)
            if outside.any():
                raise AnalysisError(f"Value for {config.label()} metric {metric} outside tight/leaky bounds", **ids)

    logger.info("Envelope completeness verified")


def bounded_metric_names(table: pd.DataFrame) -> List[str]:
    """Columns that have both _lower and _upper companions."""
    return [c for c in table.columns
            if f'{c}_lower' in table.columns and f'{c}_upper' in table.columns]


def validate_bound_columns(table: pd.DataFrame, metrics: Optional[Iterable[str]] = None) -> bool:
    """
    Check the <metric>, <metric>_lower, <metric>_upper convention.

    Every metric must have both companions and satisfy
    lower <= mean <= upper, or be NaN in all three columns.

    Returns:
    --------
    bool
        True if the table passes; otherwise an error is raised
    """
    metrics = bounded_metric_names(table) if metrics is None else list(metrics)
    for metric in metrics:
        needed = [metric, f'{metric}_lower', f'{metric}_upper']
        missing = [c for c in needed if c not in table.columns]
        if missing:
            raise MissingColumnError(f"Bounded metric {metric} is missing {', '.join(missing)}",
                                     columns=missing)

        mean = table[metric].to_numpy(dtype=float)
        lower = table[f'{metric}_lower'].to_numpy(dtype=float)
        upper = table[f'{metric}_upper'].to_numpy(dtype=float)

        nan_mask = np.isnan(mean) | np.isnan(lower) | np.isnan(upper)
        all_nan = np.isnan(mean) & np.isnan(lower) & np.isnan(upper)
        if np.any(nan_mask & ~all_nan):
            raise AnalysisError(f"Bounded metric {metric} has partially missing bounds")

        ok = ~nan_mask
        if np.any((lower[ok] > mean[ok]) | (mean[ok] > upper[ok])):
            raise AnalysisError(f"Bounded metric {metric} violates lower <= mean <= upper")
    return True
