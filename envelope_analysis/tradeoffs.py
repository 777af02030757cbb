"""
Filter replacement frequency and fan-law airflow/energy penalties.
"""

import logging
import warnings
from typing import Optional

import numpy as np
import pandas as pd

from .bounds import bound_pair, bounded_columns
from .config import DEFAULT_PARAMS
from .exceptions import MissingEnvelopePairWarning
from .utils import config_frame, get_envelope_pair, unique_configurations

logger = logging.getLogger(__name__)

TRADEOFF_METRICS = ['estimated_replacements_per_year', 'airflow_penalty_percent', 'energy_penalty_percent']


def replacements_per_year(filter_hours: float, hours_per_year: float) -> float:
    """Annual replacement count; NaN when the filter life is NaN or not positive."""
    if np.isnan(filter_hours) or filter_hours <= 0:
        return np.nan
    return hours_per_year / filter_hours


def fan_law_penalty(pressure_drop: float, static_budget: float) -> float:
    """
    Percent airflow lost to a filter pressure drop.

    Flow scales as sqrt(1 - dP / budget). The pressure ratio is clipped to
    [0, 1] so a drop larger than the budget means total flow loss.
    """
    ratio = min(max(pressure_drop / static_budget, 0.0), 1.0)
    return 100.0 * (1.0 - np.sqrt(1.0 - ratio))


def airflow_penalty_pair(filter_type: str, mode: str, tradeoff_params):
    """
    Tight and leaky airflow penalty (%) for a filter type and mode.

    The average penalty interpolates between the clean and loaded filter by
    the mode loading factor, then is widened per envelope (tight houses work
    the fan harder) and clipped to [0, airflow_cap].
    """
    drops = tradeoff_params['pressure_drop']
    initial_drop, loaded_drop = drops.get(str(filter_type).lower(), drops['merv'])
    budget = tradeoff_params['system_static_budget']

    initial = fan_law_penalty(initial_drop, budget)
    loaded = fan_law_penalty(loaded_drop, budget)

    key = 'always_on' if mode == 'always_on' else 'default'
    loading = tradeoff_params['loading_factor'][key]
    spread = tradeoff_params['envelope_spread'][key]
    average = initial + loading * (loaded - initial)

    cap = tradeoff_params['airflow_cap']
    tight = float(np.clip(average * (1 + spread), 0.0, cap))
    leaky = float(np.clip(average * (1 - spread), 0.0, cap))
    return tight, leaky


def analyze_physical_tradeoffs(summary: pd.DataFrame, hours_per_year: Optional[float] = None,
                               params=None) -> pd.DataFrame:
    """
    Bounded replacement rate and airflow/energy penalties per configuration.

    Parameters:
    -----------
    summary : pd.DataFrame
        Summary table (filter_replaced holds hours between replacements)
    hours_per_year : float, optional
        Annualisation constant; defaults to params['tradeoffs']['hours_per_year']
    params : dict, optional
        Parameter registry

    Returns:
    --------
    pd.DataFrame
        location, filterType, mode and bounded estimated_replacements_per_year,
        airflow_penalty_percent and energy_penalty_percent. Configurations
        without both envelopes are skipped with a MissingEnvelopePairWarning.

    Notes:
    ------
    Under the default pressure drops the loaded filter exceeds the 0.5 in.
    w.c. static budget for both filter types and the clean HEPA drop already
    equals it, so every configuration sits at airflow_cap (and energy at
    twice that) with zero tight/leaky width. A larger system_static_budget
    is needed for the airflow bound to separate.
    """
    params = params or DEFAULT_PARAMS
    tradeoff_params = params['tradeoffs']
    if hours_per_year is None:
        hours_per_year = tradeoff_params['hours_per_year']

    rows = []
    for config in unique_configurations(summary):
        tight, leaky = get_envelope_pair(summary, config)
        if tight is None or leaky is None:
            warnings.warn(
                f"Skipping tradeoff analysis for {config.label(' / ')}: missing tight or leaky run",
                MissingEnvelopePairWarning
            )
            continue

        replacements = bound_pair(
            replacements_per_year(float(tight['filter_replaced']), hours_per_year),
            replacements_per_year(float(leaky['filter_replaced']), hours_per_year),
            ignore_nan=True
        )

        airflow_tight, airflow_leaky = airflow_penalty_pair(config.filterType, config.mode, tradeoff_params)
        energy_cap = tradeoff_params['energy_cap']
        factor = tradeoff_params['energy_factor']

        row = config_frame(config)
        row.update(bounded_columns('estimated_replacements_per_year', replacements))
        row.update(bounded_columns('airflow_penalty_percent', bound_pair(airflow_tight, airflow_leaky)))
        row.update(bounded_columns('energy_penalty_percent', bound_pair(
            min(factor * airflow_tight, energy_cap),
            min(factor * airflow_leaky, energy_cap)
        )))
        rows.append(row)

    columns = ['location', 'filterType', 'mode']
    for metric in TRADEOFF_METRICS:
        columns += [metric, f'{metric}_lower', f'{metric}_upper']
    logger.info(f"Tradeoff table: {len(rows)} configurations")
    return pd.DataFrame(rows, columns=columns)
