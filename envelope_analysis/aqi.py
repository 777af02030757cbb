"""
AQI category classification for PM2.5 and PM10.

Categories are ordinal indices 0..5 into config.AQI_CATEGORIES
(Good .. Hazardous). Bins are closed on the right: a concentration exactly
on an edge belongs to the lower category, so PM2.5 = 9.0 is Good and
9.01 is Moderate.
"""

from typing import Optional

import numpy as np
from scipy.interpolate import interp1d

from .config import AQI_BREAKPOINTS, AQI_CATEGORIES

N_CATEGORIES = len(AQI_CATEGORIES)


def classify_pollutant(concentrations, edges) -> np.ndarray:
    """
    Bucket concentrations into the six AQI categories.

    Parameters:
    -----------
    concentrations : array-like or float
        Concentrations in µg/m³
    edges : sequence of float
        Seven category edges, e.g. AQI_BREAKPOINTS['PM2.5']

    Returns:
    --------
    np.ndarray of int
        Category index per value. Values below the first edge are Good and
        values above the last edge are Hazardous.
    """
    values = np.asarray(concentrations, dtype=float)
    if np.isnan(values).any():
        raise ValueError("Cannot classify NaN concentrations")
    edges = np.asarray(edges, dtype=float)
    if edges.size != N_CATEGORIES + 1:
        raise ValueError(f"Expected {N_CATEGORIES + 1} edges, got {edges.size}")
    return np.searchsorted(edges[1:-1], values, side='left')


def classify_aqi(pm25, pm10, breakpoints: Optional[dict] = None) -> np.ndarray:
    """Hourly category as the worse of the PM2.5 and PM10 categories."""
    breakpoints = breakpoints or AQI_BREAKPOINTS
    cat25 = classify_pollutant(pm25, breakpoints['PM2.5'])
    cat10 = classify_pollutant(pm10, breakpoints['PM10'])
    if cat25.shape != cat10.shape:
        raise ValueError("PM2.5 and PM10 series must have the same length")
    return np.maximum(cat25, cat10)


def concentration_to_aqi(concentrations, edges, aqi_scale) -> np.ndarray:
    """
    Piecewise-linear concentration to AQI conversion.

    Values outside the breakpoint table are extrapolated linearly from the
    end segments.
    """
    to_aqi = interp1d(np.asarray(edges, dtype=float), np.asarray(aqi_scale, dtype=float),
                      kind='linear', fill_value='extrapolate')
    return to_aqi(np.asarray(concentrations, dtype=float))


def hourly_aqi(pm25, pm10, breakpoints: Optional[dict] = None) -> np.ndarray:
    """Continuous hourly AQI, worse pollutant per hour."""
    breakpoints = breakpoints or AQI_BREAKPOINTS
    aqi25 = concentration_to_aqi(pm25, breakpoints['PM2.5'], breakpoints['AQI'])
    aqi10 = concentration_to_aqi(pm10, breakpoints['PM10'], breakpoints['AQI'])
    return np.maximum(aqi25, aqi10)


def count_categories(categories) -> np.ndarray:
    """Hours per category as a six-element array."""
    cats = np.asarray(categories, dtype=int).ravel()
    return np.bincount(cats, minlength=N_CATEGORIES)[:N_CATEGORIES]
