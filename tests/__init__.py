"""
Test suite for the envelope bounds analysis.

Unit tests for the bounds arithmetic, event detection and the analysis
tables, built on a synthetic summary table.
"""

import sys
from pathlib import Path

# Add project root to path for testing
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import unittest
import numpy as np
import pandas as pd

from envelope_analysis.config import get_analysis_params

# Test configuration
TEST_LOCATIONS = ['Phoenix', 'Seattle']
TEST_HOURS = 240
EPISODE_STARTS = [30, 90, 150, 210]
EPISODE_SHAPE = np.array([10.0, 25.0, 40.0, 40.0, 25.0, 10.0])

# (tight, leaky) indoor/outdoor factors per (filterType, mode)
IO_FACTORS = {
    ('baseline', 'baseline'): (0.55, 0.75),
    ('hepa', 'active'): (0.20, 0.30),
    ('hepa', 'always_on'): (0.10, 0.18),
    ('merv', 'active'): (0.30, 0.42),
    ('merv', 'always_on'): (0.22, 0.33),
}

# (tight, leaky) annual cost
COSTS = {
    ('baseline', 'baseline'): (0.0, 0.0),
    ('hepa', 'active'): (150.0, 170.0),
    ('hepa', 'always_on'): (320.0, 350.0),
    ('merv', 'active'): (60.0, 75.0),
    ('merv', 'always_on'): (130.0, 150.0),
}

# (tight, leaky) hours between filter replacements
FILTER_HOURS = {
    'hepa': (2400.0, 2000.0),
    'merv': (1500.0, 1200.0),
}


def create_outdoor_series(n_hours=TEST_HOURS, seed=42):
    """
    Create hourly outdoor PM2.5 and PM10 with pollution episodes.

    Background PM2.5 stays below the combined-event threshold and PM10 below
    54 µg/m³; each episode in EPISODE_STARTS pushes both above it.

    Returns:
    --------
    tuple of np.ndarray
        (pm25, pm10)
    """
    np.random.seed(seed)
    t = np.arange(n_hours)
    pm25 = 6 + 2 * np.sin(2 * np.pi * t / 24) + np.abs(np.random.normal(0, 0.5, n_hours))
    for start in EPISODE_STARTS:
        stop = min(n_hours, start + EPISODE_SHAPE.size)
        pm25[start:stop] += EPISODE_SHAPE[:stop - start]
    pm10 = 2.2 * pm25 + np.abs(np.random.normal(0, 1.0, n_hours))
    return pm25, pm10


def indoor_response(outdoor, io_factor, smoothing=0.5):
    """First-order lagged indoor response to an outdoor series."""
    indoor = np.empty_like(outdoor)
    indoor[0] = io_factor * outdoor[0]
    for k in range(1, outdoor.size):
        indoor[k] = smoothing * indoor[k - 1] + (1 - smoothing) * io_factor * outdoor[k]
    return indoor


def make_summary_table(locations=None, n_hours=TEST_HOURS, seed=42, drop=None, mode_labels=None):
    """
    Create a summary table with similar structure to the simulation output.

    Parameters:
    -----------
    locations : list of str, optional
        Locations to simulate; defaults to TEST_LOCATIONS
    n_hours : int
        Series length
    seed : int
        Random seed for reproducibility
    drop : list of tuple, optional
        (location, leakage, filterType, mode) rows to leave out
    mode_labels : dict, optional
        Raw labels to write for canonical modes, e.g. {'active': 'triggered'}

    Returns:
    --------
    pd.DataFrame
        One row per scenario run
    """
    locations = locations or TEST_LOCATIONS
    drop = set(drop or [])
    mode_labels = mode_labels or {}

    rows = []
    for i, location in enumerate(locations):
        out25, out10 = create_outdoor_series(n_hours, seed + i)
        for (filter_type, mode), factors in IO_FACTORS.items():
            for k, leakage in enumerate(('tight', 'leaky')):
                if (location, leakage, filter_type, mode) in drop:
                    continue
                in25 = indoor_response(out25, factors[k])
                in10 = indoor_response(out10, 0.8 * factors[k])
                if filter_type == 'baseline':
                    filter_replaced = np.nan
                else:
                    filter_replaced = FILTER_HOURS[filter_type][k] * (0.6 if mode == 'always_on' else 1.0)
                rows.append({
                    'location': location,
                    'leakage': leakage,
                    'filterType': filter_type,
                    'mode': mode_labels.get(mode, mode),
                    'indoor_PM25': in25,
                    'indoor_PM10': in10,
                    'outdoor_PM25': out25.copy(),
                    'outdoor_PM10': out10.copy(),
                    'avg_indoor_PM25': float(np.mean(in25)),
                    'avg_indoor_PM10': float(np.mean(in10)),
                    'avg_outdoor_PM25': float(np.mean(out25)),
                    'avg_outdoor_PM10': float(np.mean(out10)),
                    'total_cost': COSTS[(filter_type, mode)][k],
                    'filter_replaced': filter_replaced
                })
    return pd.DataFrame(rows)


def set_series(summary, position, column, values):
    """Replace the series stored in one row of an object column."""
    column_values = list(summary[column])
    column_values[position] = np.asarray(values, dtype=float)
    summary[column] = pd.Series(column_values, index=summary.index, dtype=object)


# Base test class with common setup
class EnvelopeTestCase(unittest.TestCase):
    """Base class for envelope analysis tests."""

    @classmethod
    def setUpClass(cls):
        """Set up test fixtures."""
        cls.summary = make_summary_table()
        cls.params = get_analysis_params()

    def assertAlmostEqualRelative(self, first, second, rel_tol=1e-5, abs_tol=1e-8):
        """
        Assert two values are almost equal (relative tolerance).

        Parameters:
        -----------
        first, second : float
            Values to compare
        rel_tol : float
            Relative tolerance
        abs_tol : float
            Absolute tolerance
        """
        if abs(first - second) <= max(rel_tol * max(abs(first), abs(second)), abs_tol):
            return
        raise AssertionError(f"{first} != {second} within tolerance")

    def assertBoundOrdered(self, lower, mean, upper):
        """Assert lower <= mean <= upper, or all three NaN."""
        values = np.array([lower, mean, upper], dtype=float)
        if np.isnan(values).all():
            return
        self.assertFalse(np.isnan(values).any(), f"Partially NaN bound {values}")
        self.assertLessEqual(lower, mean)
        self.assertLessEqual(mean, upper)

    def assertBoundColumnsOrdered(self, table, metric):
        """Assert the ordering invariant on every row of a bounded metric."""
        for lower, mean, upper in zip(table[f'{metric}_lower'], table[metric], table[f'{metric}_upper']):
            self.assertBoundOrdered(lower, mean, upper)


__all__ = [
    'create_outdoor_series',
    'indoor_response',
    'make_summary_table',
    'set_series',
    'EnvelopeTestCase',
    'TEST_LOCATIONS',
    'TEST_HOURS',
    'EPISODE_STARTS'
]
