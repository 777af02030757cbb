"""
Composite efficacy scores.

Four metrics are normalised to 0-100 against the range observed across the
whole cost table, weighted and summed. Normalisation ranges depend on every
configuration, so scoring runs in two phases: collect the ranges from the
complete table, then score each configuration.
"""

import logging
from typing import Dict, NamedTuple, Optional

import numpy as np
import pandas as pd

from .config import DEFAULT_PARAMS, EFFICACY_WEIGHTS
from .exceptions import AnalysisError, InvalidWeightsError, MissingColumnError

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-6

REQUIRED_COST_COLUMNS = [
    'location', 'filterType', 'mode',
    'percent_PM25_reduction', 'percent_PM10_reduction',
    'cost_per_AQI_hour_avoided', 'AQI_hours_avoided'
]

BOUND_COST_COLUMNS = [
    f'{name}{suffix}'
    for name in ('percent_PM25_reduction', 'percent_PM10_reduction',
                 'cost_per_AQI_hour_avoided', 'AQI_hours_avoided')
    for suffix in ('_lower', '_upper')
]

COMPONENT_COLUMNS = {
    'pm25_reduction': 'avg_pm25_component',
    'pm10_reduction': 'avg_pm10_component',
    'cost_effectiveness': 'avg_cost_component',
    'aqi_hours_avoided': 'avg_aqi_component'
}


class ScoreInputs(NamedTuple):
    """Raw metric values for one score evaluation."""
    pm25_reduction: float
    pm10_reduction: float
    cost_per_aqi_hour: float
    aqi_hours_avoided: float


class NormalizationRanges(NamedTuple):
    pm25: tuple
    pm10: tuple
    cost: tuple
    aqi: tuple


def normalize_metric(value: float, value_range, invert: bool = False) -> float:
    """
    Linear 0-100 normalisation.

    A degenerate (equal or non-finite) range gives 50. NaN values score 0.
    With INVERT, lower values score higher. Results are clipped to [0, 100].
    """
    low, high = value_range
    if not (np.isfinite(low) and np.isfinite(high)) or high == low:
        return 50.0
    if np.isnan(value):
        return 0.0
    normalized = 100.0 * (value - low) / (high - low)
    if invert:
        normalized = 100.0 - normalized
    return float(min(100.0, max(0.0, normalized)))


def _column_range(values: pd.Series):
    arr = values.to_numpy(dtype=float)
    arr = arr[~np.isnan(arr)]
    if arr.size == 0:
        return (np.nan, np.nan)
    return (float(arr.min()), float(arr.max()))


class EfficacyScorer:
    """
    Weighted composite scorer.

    Weights are validated when the scorer is created, before any data is
    looked at.

    Parameters:
    -----------
    weights : dict, optional
        Keys pm25_reduction, pm10_reduction, cost_effectiveness and
        aqi_hours_avoided summing to 1.0
    cost_penalty : float
        Stand-in for NaN or infinite cost per AQI hour
    default_cost_range : tuple
        Cost range used when no configuration has a finite positive cost
    """

    def __init__(self, weights: Optional[Dict[str, float]] = None,
                 cost_penalty: float = 1000.0, default_cost_range=(1.0, 1000.0)):
        weights = dict(EFFICACY_WEIGHTS if weights is None else weights)
        expected = set(EFFICACY_WEIGHTS)
        if set(weights) != expected:
            raise InvalidWeightsError(
                f"Efficacy weights must have keys {sorted(expected)}, got {sorted(weights)}"
            )
        total = float(sum(weights.values()))
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise InvalidWeightsError(f"Efficacy weights must sum to 1.0, current sum: {total:.6f}")
        self.weights = weights
        self.cost_penalty = cost_penalty
        self.default_cost_range = tuple(default_cost_range)

    @classmethod
    def from_params(cls, params=None):
        params = params or DEFAULT_PARAMS
        efficacy = params['efficacy']
        return cls(efficacy['weights'], efficacy['cost_penalty'], efficacy['default_cost_range'])

    # Phase 1
    def collect_ranges(self, interventions: pd.DataFrame) -> NormalizationRanges:
        """Normalisation ranges over every configuration's mean values."""
        costs = interventions['cost_per_AQI_hour_avoided'].to_numpy(dtype=float)
        valid = costs[np.isfinite(costs) & (costs > 0)]
        if valid.size:
            cost_range = (float(valid.min()), float(valid.max()))
        else:
            cost_range = self.default_cost_range
        return NormalizationRanges(
            pm25=_column_range(interventions['percent_PM25_reduction']),
            pm10=_column_range(interventions['percent_PM10_reduction']),
            cost=cost_range,
            aqi=_column_range(interventions['AQI_hours_avoided'])
        )

    def extract_inputs(self, row, reduction_suffix: str = '', cost_suffix: str = '') -> ScoreInputs:
        """Read one set of metric values, replacing unusable cost and AQI values."""
        def get(name, suffix):
            column = f'{name}{suffix}'
            return float(row[column] if column in row.index else row[name])

        cost = get('cost_per_AQI_hour_avoided', cost_suffix)
        if not np.isfinite(cost):
            cost = self.cost_penalty
        aqi = get('AQI_hours_avoided', reduction_suffix)
        if np.isnan(aqi) or aqi < 0:
            aqi = 0.0
        return ScoreInputs(
            pm25_reduction=get('percent_PM25_reduction', reduction_suffix),
            pm10_reduction=get('percent_PM10_reduction', reduction_suffix),
            cost_per_aqi_hour=cost,
            aqi_hours_avoided=aqi
        )

    def components(self, inputs: ScoreInputs, ranges: NormalizationRanges) -> Dict[str, float]:
        """Weighted normalised component scores."""
        w = self.weights
        return {
            'pm25_reduction': w['pm25_reduction'] * normalize_metric(inputs.pm25_reduction, ranges.pm25),
            'pm10_reduction': w['pm10_reduction'] * normalize_metric(inputs.pm10_reduction, ranges.pm10),
            'cost_effectiveness': w['cost_effectiveness'] * normalize_metric(
                inputs.cost_per_aqi_hour, ranges.cost, invert=True),
            'aqi_hours_avoided': w['aqi_hours_avoided'] * normalize_metric(inputs.aqi_hours_avoided, ranges.aqi),
        }

    def composite(self, inputs: ScoreInputs, ranges: NormalizationRanges) -> float:
        return float(sum(self.components(inputs, ranges).values()))

    # Phase 2
    def score(self, summary: Optional[pd.DataFrame], cost_table: pd.DataFrame,
              health_exposure: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """
        Score and rank every intervention configuration in COST_TABLE.

        Returns:
        --------
        pd.DataFrame
            One row per configuration sorted by mean_efficacy_score
            (descending, ties in input order) with rank 1..N.
            best_case_score uses the favourable bound of every metric and
            worst_case_score the unfavourable one; tight_efficacy_score and
            leaky_efficacy_score repeat them under their historical names.
        """
        missing = [c for c in REQUIRED_COST_COLUMNS if c not in cost_table.columns]
        if missing:
            raise MissingColumnError(
                f"Required columns missing from cost table: {', '.join(missing)}", columns=missing
            )

        interventions = cost_table[cost_table['mode'] != 'baseline'].reset_index(drop=True)
        if interventions.empty:
            raise AnalysisError("No intervention scenarios found in cost table")
        has_bounds = all(c in interventions.columns for c in BOUND_COST_COLUMNS)

        ranges = self.collect_ranges(interventions)
        logger.info(f"Calculating composite efficacy scores for {len(interventions)} configurations")

        rows = []
        for _, row in interventions.iterrows():
            mean_inputs = self.extract_inputs(row)
            if has_bounds:
                best_inputs = self.extract_inputs(row, '_upper', '_lower')
                worst_inputs = self.extract_inputs(row, '_lower', '_upper')
            else:
                best_inputs = worst_inputs = mean_inputs

            best_parts = self.components(best_inputs, ranges)
            worst_parts = self.components(worst_inputs, ranges)
            score_best = float(sum(best_parts.values()))
            score_worst = float(sum(worst_parts.values()))
            score_range = abs(score_best - score_worst)

            record = {
                'location': row['location'],
                'filterType': row['filterType'],
                'mode': row['mode'],
                'mean_efficacy_score': self.composite(mean_inputs, ranges),
                'best_case_score': score_best,
                'worst_case_score': score_worst,
                'tight_efficacy_score': score_best,
                'leaky_efficacy_score': score_worst,
                'best_score': max(score_best, score_worst),
                'best_scenario': 'best' if score_best > score_worst else 'worst',
                'worst_score': min(score_best, score_worst),
                'worst_scenario': 'worst' if score_best > score_worst else 'best',
                'score_range': score_range,
                'score_range_half': score_range / 2,
            }
            for key, column in COMPONENT_COLUMNS.items():
                record[column] = (best_parts[key] + worst_parts[key]) / 2
            rows.append(record)

        table = pd.DataFrame(rows)
        order = np.argsort(-table['mean_efficacy_score'].to_numpy(dtype=float), kind='stable')
        table = table.iloc[order].reset_index(drop=True)
        table['rank'] = np.arange(1, len(table) + 1)

        for _, top in table.head(3).iterrows():
            logger.info(f"{top['rank']}. {top['location']}-{top['filterType']}-{top['mode']}: "
                        f"mean {top['mean_efficacy_score']:.1f} "
                        f"(range {top['worst_score']:.1f}-{top['best_score']:.1f})")
        return table


def calculate_efficacy_scores(summary: Optional[pd.DataFrame], cost_table: pd.DataFrame,
                              health_exposure: Optional[pd.DataFrame] = None,
                              weights: Optional[Dict[str, float]] = None, params=None) -> pd.DataFrame:
    """Score COST_TABLE with the registry weights, or WEIGHTS if given."""
    params = params or DEFAULT_PARAMS
    efficacy = params['efficacy']
    scorer = EfficacyScorer(
        efficacy['weights'] if weights is None else weights,
        efficacy['cost_penalty'],
        efficacy['default_cost_range']
    )
    return scorer.score(summary, cost_table, health_exposure)
