import copy
import json
import logging.config
import os
import warnings
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent

# Data path - can be set via environment variable or defaults to local data folder
DATA_PATH = Path(os.getenv('AIRQ_DATA_PATH', PROJECT_ROOT / 'data'))

# Summary table produced by the simulation loading stage
SUMMARY_TABLE_FILE = DATA_PATH / os.getenv('AIRQ_SUMMARY_FILE', 'summary_table.pkl')

# Results paths (keep in project directory)
RESULTS_DIR = Path(os.getenv('AIRQ_RESULTS_PATH', PROJECT_ROOT / 'results'))
TABLES_DIR = RESULTS_DIR / "tables"
REPORTS_DIR = RESULTS_DIR / "reports"

PARAMS_FILENAME = 'analysis_params.json'
PARAMS_VERSION = 4

# Building envelope assumptions bracketing the real building
LEAKAGE_LEVELS = ['tight', 'leaky']

# Raw mode labels mapped onto baseline, active and always_on
MODE_SYNONYMS = {
    'triggered': 'active',
    'alwayson': 'always_on',
}

# Required columns of the summary table
SERIES_COLUMNS = ['indoor_PM25', 'indoor_PM10', 'outdoor_PM25', 'outdoor_PM10']
SCALAR_COLUMNS = [
    'avg_indoor_PM25', 'avg_indoor_PM10',
    'avg_outdoor_PM25', 'avg_outdoor_PM10',
    'total_cost', 'filter_replaced'
]
KEY_COLUMNS = ['location', 'leakage', 'filterType', 'mode']

# AQI categories (ordinal, best to worst)
AQI_CATEGORIES = [
    'Good',
    'Moderate',
    'Unhealthy for Sensitive Groups',
    'Unhealthy',
    'Very Unhealthy',
    'Hazardous'
]

# AQI breakpoints (µg/m³ for concentrations, index units for AQI)
AQI_BREAKPOINTS = {
    'PM2.5': [0.0, 9.0, 35.4, 55.4, 125.4, 225.4, 325.4],
    'PM10': [0.0, 54.0, 154.0, 254.0, 354.0, 424.0, 604.0],
    'AQI': [0, 50, 100, 150, 200, 300, 500]
}

# Composite efficacy weights (must sum to 1.0)
EFFICACY_WEIGHTS = {
    'pm25_reduction': 0.40,       # Primary pollutant of concern
    'pm10_reduction': 0.20,       # Secondary pollutant
    'cost_effectiveness': 0.20,   # Economic consideration
    'aqi_hours_avoided': 0.20     # Health impact
}

HOURS_PER_YEAR = 8760

# Default parameter registry. Units in comments.
DEFAULT_PARAMS = {
    'detection': {
        'threshold_multiplier_pm25': 1.5,   # Ratio above baseline to flag PM2.5 events
        'threshold_multiplier_pm10': 1.5,   # Ratio above baseline to flag PM10 events
        'min_duration_hours': 2,            # Minimum duration for an event
        'min_separation_hours': 1,          # Runs closer than this are merged
        'combined_threshold_pm25': 9.1,     # µg/m³, fixed combined-event threshold
        'combined_threshold_pm10': 54.0     # µg/m³
    },
    'baseline': {
        'percentile': 50                    # Percentile used for the baseline (median)
    },
    'response': {
        'pre_window_hours': 6,              # Hours before event start for indoor baseline
        'lookahead_hours': 24,              # Hours to search for indoor response
        'recovery_factor': 1.1,             # Recovered once below baseline * factor
        'clamp_reductions': False,          # Clamp peak/integrated reductions at 0
        'diff_threshold': 5.0,              # µg/m³ hour-on-hour outdoor rise that starts a trigger
        'target_fraction': 0.5              # Responded once indoor falls below this fraction of its level
    },
    'active_mode': {
        'threshold_factor': 0.8             # Fraction of the median I/O ratio marking active filtering
    },
    'penetration': {
        'steady_window_hours': 6,           # Moving-variance window for steady outdoor conditions
        'steady_percentile': 25             # Hours below this variance percentile are steady
    },
    'temporal': {
        'min_hours_per_day': 12,            # Days with fewer hours are left out of the daily trend
        'acf_lags': 24,                     # Autocorrelation lags (hours)
        'min_samples': 48,                  # Valid I/O samples needed for an autocorrelation
        'decorrelation_threshold': 0.2      # |ACF| below this marks decorrelation
    },
    'rtb': {
        'tolerance_fraction': 0.10,         # Fractional band around pre-event baseline
        'hold_time_hours': 2,               # Hours concentration must stay within band
        'min_data_hours': 6,                # Require this much data after event
        'flag_no_return': True              # Flag events that never return to baseline
    },
    'first_response': {
        'baseline_window_hours': 3,         # Hours before event start for baseline
        'baseline_statistic': 'median',     # 'mean' or 'median'
        'variability_method': 'std',        # 'std' or 'mad'
        'departure_multiplier': 2,          # Multiples of variability
        'abs_threshold': 5                  # Minimum µg/m³ above baseline
    },
    'costs': {
        'min_effect_for_cost': 0.0,         # Effect at or below this gives infinite cost/unit
        'zero_baseline_policy': 'nan'       # Percent reduction vs a zero baseline: nan/zero/inf
    },
    'tradeoffs': {
        'hours_per_year': HOURS_PER_YEAR,
        'system_static_budget': 0.5,        # in. w.c.
        'pressure_drop': {                  # in. w.c. (initial, loaded)
            'hepa': (0.5, 1.0),
            'merv': (0.25, 0.75)
        },
        'loading_factor': {'always_on': 0.7, 'default': 0.4},
        'envelope_spread': {'always_on': 0.10, 'default': 0.05},
        'airflow_cap': 50.0,                # %
        'energy_factor': 2.0,               # 1% airflow loss -> 2% energy
        'energy_cap': 100.0                 # %
    },
    'efficacy': {
        'weights': EFFICACY_WEIGHTS,
        'cost_penalty': 1000.0,             # Stand-in for infinite/undefined cost per AQI-hour
        'default_cost_range': (1.0, 1000.0)
    },
    'aqi': {
        'breakpoints': AQI_BREAKPOINTS
    },
    'correlation': {
        'max_lag_hours': 24,
        'min_samples_for_spectrum': 48,
        'cutoff_fraction': 0.5
    }
}

# Logging configuration
LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        },
    },
    'handlers': {
        'default': {
            'level': 'INFO',
            'formatter': 'standard',
            'class': 'logging.StreamHandler',
        },
        'file': {
            'level': 'DEBUG',
            'formatter': 'standard',
            'class': 'logging.FileHandler',
            'filename': str(PROJECT_ROOT / 'envelope_analysis.log'),
            'delay': True
        }
    },
    'loggers': {
        '': {
            'handlers': ['default', 'file'],
            'level': 'INFO',
            'propagate': True
        }
    }
}


def setup_logging(log_file=None, level='INFO'):
    """
    Apply LOGGING_CONFIG.

    Parameters:
    -----------
    log_file : str or Path, optional
        Override for the file handler target
    level : str
        Root logger level
    """
    config = copy.deepcopy(LOGGING_CONFIG)
    if log_file is not None:
        config['handlers']['file']['filename'] = str(log_file)
    config['loggers']['']['level'] = level
    logging.config.dictConfig(config)


def ensure_dirs():
    """Create results directories if they don't exist."""
    for dir_path in [RESULTS_DIR, TABLES_DIR, REPORTS_DIR]:
        dir_path.mkdir(parents=True, exist_ok=True)


def _deep_update(base, updates):
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


def get_analysis_params(results_dir=None, overrides=None):
    """
    Build the parameter registry for the analysis pipeline.

    Defaults come from DEFAULT_PARAMS. If RESULTS_DIR contains a saved
    registry it is merged over the defaults, and OVERRIDES is merged last
    so single values can be changed for sensitivity runs.

    Parameters:
    -----------
    results_dir : str or Path, optional
        Directory that may hold analysis_params.json
    overrides : dict, optional
        Nested dict of parameter overrides

    Returns:
    --------
    dict
        Independent copy of the parameter registry
    """
    params = copy.deepcopy(DEFAULT_PARAMS)
    params['params_version'] = PARAMS_VERSION
    params['created_at'] = datetime.now().strftime('%Y-%m-%d %H:%M:%S')

    if results_dir is not None:
        param_file = Path(results_dir) / PARAMS_FILENAME
        if param_file.is_file():
            with open(param_file) as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                _deep_update(params, loaded)
            else:
                warnings.warn(f"Parameter file {param_file} is not a mapping. Using defaults.")

    if overrides:
        _deep_update(params, copy.deepcopy(overrides))

    return params


def save_analysis_params(params, results_dir):
    """
    Persist a parameter registry next to the results it produced.

    Returns:
    --------
    Path
        The written file
    """
    param_file = Path(results_dir) / PARAMS_FILENAME
    param_file.parent.mkdir(parents=True, exist_ok=True)
    with open(param_file, 'w') as f:
        json.dump(params, f, indent=2, default=str)
    return param_file


def get_data_path():
    """
    Get the configured data path.

    Returns:
    --------
    Path
        The configured data path
    """
    return DATA_PATH


def set_data_path(new_path):
    """
    Set a new data path programmatically.

    Parameters:
    -----------
    new_path : str or Path
        New path to data directory
    """
    global DATA_PATH, SUMMARY_TABLE_FILE
    DATA_PATH = Path(new_path)
    SUMMARY_TABLE_FILE = DATA_PATH / SUMMARY_TABLE_FILE.name

    if not DATA_PATH.exists():
        warnings.warn(f"Data path {DATA_PATH} does not exist.")

    return DATA_PATH


def print_config():
    """
    Print current configuration settings.
    """
    print("Envelope Bounds Analysis Configuration")
    print("=" * 40)
    print(f"Project Root: {PROJECT_ROOT}")
    print(f"Data Path: {DATA_PATH}")
    print(f"  - Summary Table: {SUMMARY_TABLE_FILE}")
    print(f"Results Directory: {RESULTS_DIR}")
    print(f"  - Tables: {TABLES_DIR}")
    print(f"  - Reports: {REPORTS_DIR}")
    print(f"\nData Path Exists: {DATA_PATH.exists()}")
    print(f"Summary Table Exists: {SUMMARY_TABLE_FILE.exists()}")
    print("=" * 40)
