"""
Hours-in-AQI-category tables.

analyze_health_exposure is fail-fast: every missing column, baseline,
scenario or PM series raises a named AnalysisError, since exposure counts
built from partial data would bias every downstream metric.
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd

from .aqi import classify_aqi, count_categories
from .config import AQI_BREAKPOINTS, AQI_CATEGORIES
from .exceptions import (MissingBaselineError, MissingColumnError,
                         MissingDataError, MissingScenarioError)
from .utils import as_array, canonical_mode

logger = logging.getLogger(__name__)

SCENARIOS = ['baseline', 'active', 'always_on']

HEALTH_REQUIRED_COLUMNS = ['location', 'leakage', 'filterType', 'mode',
                           'indoor_PM25', 'indoor_PM10']
AVOIDED_REQUIRED_COLUMNS = HEALTH_REQUIRED_COLUMNS + ['outdoor_PM25', 'outdoor_PM10']


def _check_columns(summary: pd.DataFrame, required):
    missing = [c for c in required if c not in summary.columns]
    if missing:
        raise MissingColumnError(
            f"Required column(s) {', '.join(missing)} missing from summary table",
            columns=missing
        )


def _series_for(row, location, leakage, filter_type, scenario, side='indoor'):
    pm25 = as_array(row[f'{side}_PM25'])
    pm10 = as_array(row[f'{side}_PM10'])
    ids = dict(location=location, leakage=leakage, filter_type=filter_type, scenario=scenario)
    if pm25.size == 0 or pm10.size == 0:
        raise MissingDataError(
            f"Empty {side} PM2.5 or PM10 data for {location} / {leakage} / {filter_type} scenario {scenario}",
            **ids
        )
    if np.isnan(pm25).any() or np.isnan(pm10).any():
        raise MissingDataError(
            f"NaN values in {side} PM2.5 or PM10 data for {location} / {leakage} / {filter_type} "
            f"scenario {scenario}",
            **ids
        )
    return pm25, pm10


def analyze_health_exposure(summary: pd.DataFrame, breakpoints: Optional[dict] = None) -> pd.DataFrame:
    """
    Count indoor hours per AQI category for each scenario.

    Parameters:
    -----------
    summary : pd.DataFrame
        Summary table with key columns and indoor PM series
    breakpoints : dict, optional
        AQI breakpoint tables; defaults to config.AQI_BREAKPOINTS

    Returns:
    --------
    pd.DataFrame
        Columns location, leakage, filterType, scenario and one count column
        per AQI category. Baseline filter types contribute only the baseline
        scenario; HEPA/MERV contribute baseline, active and always_on rows.

    Raises:
    -------
    MissingColumnError, MissingBaselineError, MissingScenarioError, MissingDataError
    """
    _check_columns(summary, HEALTH_REQUIRED_COLUMNS)
    breakpoints = breakpoints or AQI_BREAKPOINTS

    modes = summary['mode'].map(canonical_mode)
    combos = summary[['location', 'leakage', 'filterType']].drop_duplicates()
    combos = combos.sort_values(['location', 'leakage', 'filterType'], kind='stable')

    rows = []
    for location, leakage, filter_type in combos.itertuples(index=False, name=None):
        same_envelope = (summary['location'] == location) & (summary['leakage'] == leakage)
        base_rows = summary[same_envelope & (modes == 'baseline')]
        if base_rows.empty:
            raise MissingBaselineError(
                f"No baseline entry for {location} / {leakage} / {filter_type}",
                location=location, leakage=leakage, filter_type=filter_type
            )

        scenarios = ['baseline'] if filter_type == 'baseline' else SCENARIOS
        for scenario in scenarios:
            if scenario == 'baseline':
                data = base_rows
            else:
                mask = same_envelope & (summary['filterType'] == filter_type) & (modes == scenario)
                data = summary[mask]
            if data.empty:
                raise MissingScenarioError(
                    f"No {scenario} scenario data for {location} / {leakage} / {filter_type}",
                    location=location, leakage=leakage, filter_type=filter_type, scenario=scenario
                )

            pm25, pm10 = _series_for(data.iloc[0], location, leakage, filter_type, scenario)
            counts = count_categories(classify_aqi(pm25, pm10, breakpoints))

            row = {'location': location, 'leakage': leakage,
                   'filterType': filter_type, 'scenario': scenario}
            row.update(dict(zip(AQI_CATEGORIES, counts.tolist())))
            rows.append(row)

    logger.info(f"Health exposure table: {len(rows)} rows")
    return pd.DataFrame(rows, columns=['location', 'leakage', 'filterType', 'scenario'] + AQI_CATEGORIES)


def analyze_avoided_exposure(summary: pd.DataFrame, breakpoints: Optional[dict] = None) -> pd.DataFrame:
    """
    Hours kept below each AQI category.

    For category c (Moderate and worse) the count is the number of hours where
    outdoor air was at category c or worse while indoor air stayed below c.
    The Good column is always zero.

    Raises:
    -------
    MissingColumnError, MissingDataError
        MissingDataError for empty or NaN-containing series on either side,
        or indoor and outdoor series of different lengths
    """
    _check_columns(summary, AVOIDED_REQUIRED_COLUMNS)
    breakpoints = breakpoints or AQI_BREAKPOINTS

    rows = []
    for _, run in summary.iterrows():
        ids = (run['location'], run['leakage'], run['filterType'], run['mode'])
        in25, in10 = _series_for(run, *ids)
        out25, out10 = _series_for(run, *ids, side='outdoor')
        if in25.shape != out25.shape or in10.shape != out10.shape:
            raise MissingDataError(
                "Indoor and outdoor series lengths differ",
                location=run['location'], leakage=run['leakage'],
                filter_type=run['filterType'], scenario=run['mode']
            )
        cat_in = classify_aqi(in25, in10, breakpoints)
        cat_out = classify_aqi(out25, out10, breakpoints)
        counts = [0] + [int(np.sum((cat_out >= c) & (cat_in < c))) for c in range(1, len(AQI_CATEGORIES))]
        row = {'location': run['location'], 'leakage': run['leakage'],
               'filterType': run['filterType'], 'mode': canonical_mode(run['mode'])}
        row.update(dict(zip(AQI_CATEGORIES, counts)))
        rows.append(row)

    return pd.DataFrame(rows, columns=['location', 'leakage', 'filterType', 'mode'] + AQI_CATEGORIES)
