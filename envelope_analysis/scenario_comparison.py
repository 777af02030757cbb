"""
Head-to-head scenario comparisons from the summary table scalars.

HEPA is compared against MERV within each location and mode, and every
intervention is compared against the baseline of its location.
"""

import logging
import warnings

import numpy as np
import pandas as pd

from .bounds import (bound_difference, bound_overlap_percent, bound_pair, bounded_columns,
                     percent_reduction)
from .config import DEFAULT_PARAMS
from .exceptions import MissingEnvelopePairWarning
from .utils import canonical_mode, config_frame, get_baseline_pair, get_envelope_pair, unique_configurations

logger = logging.getLogger(__name__)

FILTER_ALIASES = {
    'hepa': ('hepa', 'hepa 13'),
    'merv': ('merv', 'merv 15'),
}

FILTER_QUANTITIES = {
    'PM25': 'avg_indoor_PM25',
    'PM10': 'avg_indoor_PM10',
    'cost': 'total_cost',
    'filter_hours': 'filter_replaced',
}

EFFICACY_METRICS = ['PM25_reduction', 'PM25_percent_reduction', 'PM10_reduction', 'PM10_percent_reduction']


def filter_family(filter_type: str):
    """'hepa' or 'merv' for a recognised filter label, None otherwise."""
    name = str(filter_type).strip().lower()
    for family, aliases in FILTER_ALIASES.items():
        if name in aliases:
            return family
    return None


def _row_bounds(tight, leaky, column):
    return bound_pair(float(tight[column]), float(leaky[column]))


def analyze_filter_performance(summary: pd.DataFrame) -> pd.DataFrame:
    """
    HEPA against MERV for each location and mode.

    Parameters:
    -----------
    summary : pd.DataFrame
        Summary table

    Returns:
    --------
    pd.DataFrame
        location, mode and bounded hepa_<q>, merv_<q> and delta_<q> for q in
        PM25, PM10, cost and filter_hours, plus pm25/pm10/cost bounds overlap
        percentages. Concentration deltas are MERV minus HEPA (positive when
        HEPA is cleaner); cost and filter-hour deltas are HEPA minus MERV.
        Location/mode groups lacking either filter's tight and leaky runs are
        skipped with a MissingEnvelopePairWarning.
    """
    groups = {}
    for config in unique_configurations(summary):
        family = filter_family(config.filterType)
        if family is not None:
            groups.setdefault((config.location, config.mode), {})[family] = config

    rows = []
    for (location, mode), configs in groups.items():
        pairs = {family: get_envelope_pair(summary, config) for family, config in configs.items()}
        complete = all(
            family in pairs and None not in pairs[family]
            for family in FILTER_ALIASES
        )
        if not complete:
            warnings.warn(
                f"Skipping filter comparison for {location} / {mode}: missing HEPA or MERV tight/leaky run",
                MissingEnvelopePairWarning
            )
            continue

        row = {'location': location, 'mode': canonical_mode(mode)}
        bounds = {}
        for quantity, column in FILTER_QUANTITIES.items():
            hepa = _row_bounds(*pairs['hepa'], column)
            merv = _row_bounds(*pairs['merv'], column)
            if quantity in ('PM25', 'PM10'):
                delta = bound_difference(merv, hepa)
            else:
                delta = bound_difference(hepa, merv)
            bounds[quantity] = (hepa, merv)
            row.update(bounded_columns(f'hepa_{quantity}', hepa))
            row.update(bounded_columns(f'merv_{quantity}', merv))
            row.update(bounded_columns(f'delta_{quantity}', delta))

        row['pm25_bounds_overlap'] = bound_overlap_percent(*bounds['PM25'])
        row['pm10_bounds_overlap'] = bound_overlap_percent(*bounds['PM10'])
        row['cost_bounds_overlap'] = bound_overlap_percent(*bounds['cost'])
        rows.append(row)

    columns = ['location', 'mode']
    for quantity in FILTER_QUANTITIES:
        for prefix in ('hepa', 'merv', 'delta'):
            name = f'{prefix}_{quantity}'
            columns += [name, f'{name}_lower', f'{name}_upper']
    columns += ['pm25_bounds_overlap', 'pm10_bounds_overlap', 'cost_bounds_overlap']
    logger.info(f"Filter comparison: {len(rows)} location/mode groups")
    return pd.DataFrame(rows, columns=columns)


def _reductions(intervention, baseline, policy):
    result = {}
    for pollutant in ('PM25', 'PM10'):
        column = f'avg_indoor_{pollutant}'
        base = float(baseline[column])
        value = float(intervention[column])
        result[f'{pollutant}_reduction'] = base - value
        result[f'{pollutant}_percent_reduction'] = percent_reduction(base, value, policy)
    return result


def analyze_efficacy_vs_baseline(summary: pd.DataFrame, params=None) -> pd.DataFrame:
    """
    Bounded reductions of every intervention against its location baseline.

    Reductions are computed within each envelope (tight intervention against
    tight baseline, leaky against leaky) before bounding. Rows are sorted by
    PM25_percent_reduction, largest first, with ties kept in input order and
    NaN last.
    """
    params = params or DEFAULT_PARAMS
    policy = params['costs']['zero_baseline_policy']

    rows = []
    for config in unique_configurations(summary):
        int_tight, int_leaky = get_envelope_pair(summary, config)
        base_tight, base_leaky = get_baseline_pair(summary, config.location)
        if any(row is None for row in (int_tight, int_leaky, base_tight, base_leaky)):
            warnings.warn(
                f"Skipping baseline comparison for {config.label(' / ')}: missing tight/leaky intervention or baseline run",
                MissingEnvelopePairWarning
            )
            continue

        tight = _reductions(int_tight, base_tight, policy)
        leaky = _reductions(int_leaky, base_leaky, policy)
        row = config_frame(config)
        for metric in EFFICACY_METRICS:
            row.update(bounded_columns(metric, bound_pair(tight[metric], leaky[metric])))
        rows.append(row)

    columns = ['location', 'filterType', 'mode']
    for metric in EFFICACY_METRICS:
        columns += [metric, f'{metric}_lower', f'{metric}_upper']
    table = pd.DataFrame(rows, columns=columns)
    if table.empty:
        return table

    key = table['PM25_percent_reduction'].to_numpy(dtype=float)
    key = np.where(np.isnan(key), -np.inf, key)
    order = np.argsort(-key, kind='stable')
    return table.iloc[order].reset_index(drop=True)
