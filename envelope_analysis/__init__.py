# envelope_analysis/__init__.py
"""
Envelope Bounds Analysis Package

Core modules for analysing air-quality intervention simulations where the
tight and leaky building envelopes bound the real building.
"""

from .bounds import (
    BoundedMetric,
    Configuration,
    bound_pair,
    bound_difference,
    bound_ratio,
    cost_per_unit,
    percent_reduction,
    bounded_columns,
    format_bounds
)

from .events import (
    PollutionEvent,
    detect_events,
    detect_outdoor_events,
    find_combined_events,
    rebaseline_events
)

from .event_response import (
    analyze_event_response,
    analyze_event_response_bounds,
    compute_return_to_baseline,
    compute_event_metrics_table,
    summarize_event_metrics
)

from .aqi import (
    classify_pollutant,
    classify_aqi,
    concentration_to_aqi,
    count_categories
)

from .health_exposure import analyze_health_exposure, analyze_avoided_exposure
from .costs import calculate_improved_aqi_metric, analyze_costs
from .tradeoffs import analyze_physical_tradeoffs
from .efficacy import EfficacyScorer, calculate_efficacy_scores
from .range_table import build_range_table

from .active_mode import (
    extract_active_mode_data,
    analyze_io_ratios,
    compare_filters_dynamic,
    quantify_envelope_uncertainty,
    analyze_cross_correlations,
    detect_analyze_pollution_events,
    average_response_time,
    calculate_trigger_metrics,
    analyze_trigger_response,
    trigger_response_table
)

from .active_patterns import (
    analyze_penetration_efficiency,
    penetration_table,
    analyze_temporal_patterns,
    temporal_table
)

from .scenario_comparison import analyze_filter_performance, analyze_efficacy_vs_baseline

from .validation import (
    normalize_mode,
    validate_summary_table,
    verify_envelope_completeness,
    validate_bound_columns
)

from .utils import load_summary_table

from .pipeline import run_pipeline, save_tables

from .exceptions import (
    AnalysisError,
    MissingColumnError,
    MissingBaselineError,
    MissingScenarioError,
    MissingDataError,
    IncompleteEnvelopeError,
    InvalidWeightsError,
    MissingEnvelopePairWarning
)

from .config import (
    PROJECT_ROOT,
    DATA_PATH,
    RESULTS_DIR,
    TABLES_DIR,
    REPORTS_DIR,
    AQI_CATEGORIES,
    AQI_BREAKPOINTS,
    EFFICACY_WEIGHTS,
    HOURS_PER_YEAR,
    get_analysis_params,
    save_analysis_params,
    setup_logging
)

__version__ = '1.0.0'
__author__ = 'Envelope Bounds Analysis Team'
