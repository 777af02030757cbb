"""
Run the analysis modules in dependency order.

health exposure -> costs (and tradeoffs, independently) -> efficacy scores
-> range table, then the active-mode analyses on their own subset.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .active_mode import (analyze_cross_correlations, analyze_io_ratios, analyze_trigger_response,
                          compare_filters_dynamic, detect_analyze_pollution_events,
                          extract_active_mode_data, quantify_envelope_uncertainty,
                          trigger_response_table)
from .active_patterns import (analyze_penetration_efficiency, analyze_temporal_patterns,
                              penetration_table, temporal_table)
from .config import DEFAULT_PARAMS
from .costs import analyze_costs
from .efficacy import calculate_efficacy_scores
from .event_response import summarize_event_metrics, EVENT_TABLE_COLUMNS
from .health_exposure import analyze_avoided_exposure, analyze_health_exposure
from .range_table import build_range_table
from .scenario_comparison import analyze_efficacy_vs_baseline, analyze_filter_performance
from .tradeoffs import analyze_physical_tradeoffs
from .validation import validate_bound_columns, validate_summary_table, verify_envelope_completeness

logger = logging.getLogger(__name__)

DEFAULT_RANGE_METRICS = ['avg_indoor_PM25', 'avg_indoor_PM10', 'total_cost', 'filter_replaced']


def run_pipeline(summary: pd.DataFrame, params=None,
                 range_metrics: Optional[Sequence[str]] = None,
                 validate: bool = True) -> Dict[str, object]:
    """
    Run every analysis on a summary table.

    Parameters:
    -----------
    summary : pd.DataFrame
        Summary table, one row per scenario run
    params : dict, optional
        Parameter registry from config.get_analysis_params
    range_metrics : sequence of str, optional
        Scalar columns for the range table
    validate : bool
        Run the fail-fast completeness checks first

    Returns:
    --------
    dict
        Tables (health_exposure, avoided_exposure, costs, tradeoffs,
        efficacy_scores, range_table, filter_performance, efficacy_vs_baseline,
        io_ratios, filter_comparison, event_metrics, event_summary,
        trigger_summary, penetration_summary, temporal_summary) and the
        per-configuration active-mode results (active_data, uncertainty,
        correlations, events, trigger_response, penetration,
        temporal_patterns)
    """
    params = params or DEFAULT_PARAMS
    range_metrics = list(range_metrics or DEFAULT_RANGE_METRICS)

    if validate:
        validate_summary_table(summary)
        verify_envelope_completeness(summary)

    results = {'params': params}

    logger.info("1. Health exposure")
    results['health_exposure'] = analyze_health_exposure(summary, params['aqi']['breakpoints'])
    results['avoided_exposure'] = analyze_avoided_exposure(summary, params['aqi']['breakpoints'])

    logger.info("2. Cost effectiveness and physical tradeoffs")
    results['costs'] = analyze_costs(summary, results['health_exposure'], params)
    results['tradeoffs'] = analyze_physical_tradeoffs(summary, params=params)
    validate_bound_columns(results['costs'])
    validate_bound_columns(results['tradeoffs'])

    logger.info("3. Composite efficacy scores")
    if results['costs'].empty:
        logger.warning("No complete configurations in the cost table; skipping efficacy scores")
        results['efficacy_scores'] = pd.DataFrame()
    else:
        results['efficacy_scores'] = calculate_efficacy_scores(
            summary, results['costs'], results['health_exposure'], params=params
        )

    logger.info("4. Range table and scenario comparisons")
    results['range_table'] = build_range_table(summary, range_metrics)
    results['filter_performance'] = analyze_filter_performance(summary)
    results['efficacy_vs_baseline'] = analyze_efficacy_vs_baseline(summary, params)
    validate_bound_columns(results['filter_performance'])
    validate_bound_columns(results['efficacy_vs_baseline'])

    logger.info("5. Active mode analysis")
    active_data = extract_active_mode_data(summary)
    results['active_data'] = active_data
    results['io_ratios'] = analyze_io_ratios(active_data)
    results['filter_comparison'] = compare_filters_dynamic(active_data)
    results['uncertainty'] = quantify_envelope_uncertainty(active_data, summary, params)
    results['correlations'] = analyze_cross_correlations(active_data, params=params)
    results['events'] = detect_analyze_pollution_events(active_data, params)

    event_tables = [entry['event_table'] for entry in results['events'].values()
                    if not entry['event_table'].empty]
    if event_tables:
        results['event_metrics'] = pd.concat(event_tables, ignore_index=True)
    else:
        results['event_metrics'] = pd.DataFrame(columns=EVENT_TABLE_COLUMNS)
    results['event_summary'] = summarize_event_metrics(results['event_metrics'])

    logger.info("6. Trigger response, penetration and temporal patterns")
    results['trigger_response'] = analyze_trigger_response(active_data, params)
    results['trigger_summary'] = trigger_response_table(results['trigger_response'])
    results['penetration'] = analyze_penetration_efficiency(active_data, params)
    results['penetration_summary'] = penetration_table(results['penetration'])
    results['temporal_patterns'] = analyze_temporal_patterns(active_data, params)
    results['temporal_summary'] = temporal_table(results['temporal_patterns'])
    for name in ('trigger_summary', 'penetration_summary', 'temporal_summary'):
        if not results[name].empty:
            validate_bound_columns(results[name])

    logger.info("Analysis complete")
    return results


def save_tables(results: Dict[str, object], out_dir) -> List[Path]:
    """
    Write every DataFrame in RESULTS to OUT_DIR/<name>.csv.

    Returns:
    --------
    list of Path
        Files written
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, value in results.items():
        if isinstance(value, pd.DataFrame):
            path = out_dir / f'{name}.csv'
            value.to_csv(path, index=False)
            written.append(path)
            logger.debug(f"Saved {path}")
    logger.info(f"Saved {len(written)} tables to {out_dir}")
    return written
