"""
Cost-effectiveness with tight/leaky bounds.

Reductions are always computed within one envelope (tight intervention
against tight baseline, leaky against leaky) and only then combined into
bounds, so the two realizations stay paired.
"""

import logging
import warnings
from typing import Optional

import numpy as np
import pandas as pd

from .aqi import hourly_aqi
from .bounds import bound_pair, bounded_columns, cost_per_unit, format_bounds, percent_reduction
from .config import AQI_BREAKPOINTS, DEFAULT_PARAMS
from .exceptions import MissingEnvelopePairWarning
from .utils import (as_array, config_frame, get_baseline_pair, get_envelope_pair,
                    unique_configurations)

logger = logging.getLogger(__name__)

# Reference daily exposure for the health proxy: 15 µg/m³ over 24 h
REFERENCE_DAILY_EXPOSURE = 15 * 24
HEALTH_PROXY_SCALE = 10.0
PERFECT_HOUR = 100.0
SEVERITY_EXPONENT = 1.5

COST_METRICS = [
    'total_cost',
    'pm25_reduction', 'percent_PM25_reduction',
    'pm10_reduction', 'percent_PM10_reduction',
    'AQI_hours_avoided',
    'cost_per_ug_pm25_removed', 'cost_per_ug_pm10_removed',
    'cost_per_AQI_hour_avoided'
]


def calculate_improved_aqi_metric(baseline_pm25, baseline_pm10,
                                  intervention_pm25, intervention_pm10,
                                  breakpoints: Optional[dict] = None) -> float:
    """
    Continuous AQI-hours-avoided estimate.

    Three estimators are combined and the largest is returned:

    1. traditional: hours with baseline AQI above 50 and intervention AQI at
       or below 50
    2. weighted severity: sum of hourly AQI reductions weighted by
       1 + (baseline AQI / 50) ** 1.5, divided by 100 (one hour from AQI 100
       to 0)
    3. health proxy: reduction of sum(PM2.5) + 0.5 * sum(PM10) expressed in
       days of 15 µg/m³ exposure times 24, divided by 10

    The result is never negative. If it is exactly zero while some hour still
    improved, 0.1 + 0.01 * (improved hours) is returned instead.

    Parameters:
    -----------
    baseline_pm25, baseline_pm10 : array-like
        Hourly indoor concentrations without the intervention
    intervention_pm25, intervention_pm10 : array-like
        Hourly indoor concentrations with the intervention
    breakpoints : dict, optional
        AQI breakpoint tables

    Returns:
    --------
    float
        Equivalent AQI hours avoided
    """
    breakpoints = breakpoints or AQI_BREAKPOINTS
    b25, b10 = as_array(baseline_pm25), as_array(baseline_pm10)
    i25, i10 = as_array(intervention_pm25), as_array(intervention_pm10)

    baseline_aqi = hourly_aqi(b25, b10, breakpoints)
    intervention_aqi = hourly_aqi(i25, i10, breakpoints)

    traditional = float(np.sum((baseline_aqi > 50) & (intervention_aqi <= 50)))

    aqi_reduction = baseline_aqi - intervention_aqi
    weights = 1 + (np.maximum(baseline_aqi, 0) / 50) ** SEVERITY_EXPONENT
    weighted = float(np.sum(aqi_reduction * weights) / PERFECT_HOUR)

    exposure_reduction = (np.sum(b25) + 0.5 * np.sum(b10)) - (np.sum(i25) + 0.5 * np.sum(i10))
    health_hours = exposure_reduction / REFERENCE_DAILY_EXPOSURE * 24
    health_proxy = float(health_hours / HEALTH_PROXY_SCALE)

    result = max(0.0, max(traditional, weighted, health_proxy))

    improved_hours = int(np.sum(aqi_reduction > 0))
    if result == 0 and improved_hours > 0:
        result = 0.1 + 0.01 * improved_hours
    return result


def _has_exposure_rows(health_exposure, location, leakage, filter_type, scenario) -> bool:
    if health_exposure is None:
        return True
    mask = ((health_exposure['location'] == location) &
            (health_exposure['leakage'] == leakage) &
            (health_exposure['filterType'] == filter_type) &
            (health_exposure['scenario'] == scenario))
    return bool(mask.any())


def _envelope_metrics(intervention, baseline, costs_params, breakpoints):
    """All per-envelope realizations for one configuration."""
    policy = costs_params['zero_baseline_policy']
    min_effect = costs_params['min_effect_for_cost']
    total_cost = float(intervention['total_cost'])

    base25 = float(baseline['avg_indoor_PM25'])
    base10 = float(baseline['avg_indoor_PM10'])
    pm25_red = base25 - float(intervention['avg_indoor_PM25'])
    pm10_red = base10 - float(intervention['avg_indoor_PM10'])

    aqi_hours = calculate_improved_aqi_metric(
        baseline['indoor_PM25'], baseline['indoor_PM10'],
        intervention['indoor_PM25'], intervention['indoor_PM10'],
        breakpoints
    )

    return {
        'total_cost': total_cost,
        'pm25_reduction': pm25_red,
        'percent_PM25_reduction': percent_reduction(base25, float(intervention['avg_indoor_PM25']), policy),
        'pm10_reduction': pm10_red,
        'percent_PM10_reduction': percent_reduction(base10, float(intervention['avg_indoor_PM10']), policy),
        'AQI_hours_avoided': aqi_hours,
        'cost_per_ug_pm25_removed': cost_per_unit(total_cost, pm25_red, min_effect),
        'cost_per_ug_pm10_removed': cost_per_unit(total_cost, pm10_red, min_effect),
        'cost_per_AQI_hour_avoided': cost_per_unit(total_cost, aqi_hours, min_effect),
    }


def analyze_costs(summary: pd.DataFrame, health_exposure: Optional[pd.DataFrame] = None,
                  params=None) -> pd.DataFrame:
    """
    Bounded cost-effectiveness per configuration.

    Parameters:
    -----------
    summary : pd.DataFrame
        Summary table
    health_exposure : pd.DataFrame, optional
        Output of analyze_health_exposure; configurations without matching
        tight/leaky baseline and scenario rows are skipped
    params : dict, optional
        Parameter registry ('costs' and 'aqi' sections)

    Returns:
    --------
    pd.DataFrame
        location, filterType, mode and a <metric>/<metric>_lower/<metric>_upper
        triple for each of COST_METRICS. Configurations missing any of the
        four source rows are skipped with a MissingEnvelopePairWarning.
    """
    params = params or DEFAULT_PARAMS
    costs_params = params['costs']
    breakpoints = params['aqi']['breakpoints']

    rows = []
    for config in unique_configurations(summary):
        int_tight, int_leaky = get_envelope_pair(summary, config)
        base_tight, base_leaky = get_baseline_pair(summary, config.location)
        if any(row is None for row in (int_tight, int_leaky, base_tight, base_leaky)):
            warnings.warn(
                f"Skipping cost analysis for {config.label(' / ')}: missing tight/leaky intervention or baseline run",
                MissingEnvelopePairWarning
            )
            continue

        exposure_ok = all(
            _has_exposure_rows(health_exposure, config.location, leakage, config.filterType, scenario)
            for leakage in ('tight', 'leaky')
            for scenario in ('baseline', config.mode)
        )
        if not exposure_ok:
            warnings.warn(
                f"Skipping cost analysis for {config.label(' / ')}: missing health exposure rows",
                MissingEnvelopePairWarning
            )
            continue

        tight = _envelope_metrics(int_tight, base_tight, costs_params, breakpoints)
        leaky = _envelope_metrics(int_leaky, base_leaky, costs_params, breakpoints)

        row = config_frame(config)
        for metric in COST_METRICS:
            row.update(bounded_columns(metric, bound_pair(tight[metric], leaky[metric])))
        rows.append(row)

    columns = ['location', 'filterType', 'mode']
    for metric in COST_METRICS:
        columns += [metric, f'{metric}_lower', f'{metric}_upper']
    cost_table = pd.DataFrame(rows, columns=columns)

    if not cost_table.empty:
        logger.info("AQI hours avoided (mean over configurations): " + format_bounds(
            np.nanmean(cost_table['AQI_hours_avoided']),
            np.nanmin(cost_table['AQI_hours_avoided_lower']),
            np.nanmax(cost_table['AQI_hours_avoided_upper']),
            mean_format='{:.1f}', bound_format='{:.1f}', style='both', unit=' h'
        ))
        logger.info(f"Configurations with zero AQI lower bound: "
                    f"{int((cost_table['AQI_hours_avoided_lower'] == 0).sum())} of {len(cost_table)}")
    return cost_table
