"""
Utility functions for the envelope bounds analysis.
This module contains functions for loading the summary table, selecting
scenario rows and common array calculations.
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import warnings

from .config import SUMMARY_TABLE_FILE, MODE_SYNONYMS, SERIES_COLUMNS
from .bounds import Configuration


def load_summary_table(path: Optional[Union[str, Path]] = None) -> pd.DataFrame:
    """
    Load the summary table produced by the simulation loading stage.

    Parameters:
    -----------
    path : str or Path, optional
        Pickle (.pkl) or parquet (.parquet) file. If None, uses
        config.SUMMARY_TABLE_FILE

    Returns:
    --------
    pd.DataFrame
        One row per scenario run; empty if the file does not exist
    """
    filepath = Path(path) if path is not None else SUMMARY_TABLE_FILE

    if not filepath.exists():
        warnings.warn(f"File {filepath} not found")
        return pd.DataFrame()

    if filepath.suffix == '.parquet':
        df = pd.read_parquet(filepath)
    else:
        df = pd.read_pickle(filepath)

    # Series columns come back as lists from parquet
    for column in SERIES_COLUMNS:
        if column in df.columns:
            df[column] = df[column].apply(as_array)

    df.attrs['source'] = str(filepath)
    return df


def canonical_mode(mode: str) -> str:
    """Map mode synonyms ('triggered', 'alwayson') onto their canonical names."""
    mode = str(mode).strip().lower()
    return MODE_SYNONYMS.get(mode, mode)


def as_array(values) -> np.ndarray:
    """Return VALUES as a flat float array (None gives an empty array)."""
    if values is None:
        return np.array([], dtype=float)
    return np.asarray(values, dtype=float).ravel()


def nanmean_safe(values) -> float:
    """Mean ignoring NaN; NaN (without a RuntimeWarning) if nothing is finite."""
    arr = as_array(values)
    if arr.size == 0 or np.all(np.isnan(arr)):
        return np.nan
    return float(np.nanmean(arr))


def select_rows(summary: pd.DataFrame, location: Optional[str] = None,
                leakage: Optional[str] = None, filter_type: Optional[str] = None,
                mode: Optional[str] = None) -> pd.DataFrame:
    """
    Select summary rows matching the given key values.

    Modes are compared after synonym mapping, so mode='active' also selects
    rows labelled 'triggered'.
    """
    mask = pd.Series(True, index=summary.index)
    if location is not None:
        mask &= summary['location'] == location
    if leakage is not None:
        mask &= summary['leakage'] == leakage
    if filter_type is not None:
        mask &= summary['filterType'] == filter_type
    if mode is not None:
        mask &= summary['mode'].map(canonical_mode) == canonical_mode(mode)
    return summary[mask]


def _first_row(rows: pd.DataFrame) -> Optional[pd.Series]:
    if rows.empty:
        return None
    return rows.iloc[0]


def get_envelope_pair(summary: pd.DataFrame,
                      config: Configuration) -> Tuple[Optional[pd.Series], Optional[pd.Series]]:
    """
    Return the (tight, leaky) rows of a configuration.

    Either element is None when that run is missing.
    """
    tight = _first_row(select_rows(summary, config.location, 'tight', config.filterType, config.mode))
    leaky = _first_row(select_rows(summary, config.location, 'leaky', config.filterType, config.mode))
    return tight, leaky


def get_baseline_pair(summary: pd.DataFrame,
                      location: str) -> Tuple[Optional[pd.Series], Optional[pd.Series]]:
    """Return the (tight, leaky) baseline rows of a location."""
    return get_envelope_pair(summary, Configuration(location, 'baseline', 'baseline'))


def unique_configurations(summary: pd.DataFrame, include_baseline: bool = False) -> List[Configuration]:
    """
    Unique (location, filterType, mode) keys in first-appearance order.

    Modes are reported in canonical form.
    """
    seen = {}
    for location, filter_type, mode in zip(summary['location'], summary['filterType'], summary['mode']):
        config = Configuration(location, filter_type, canonical_mode(mode))
        if not include_baseline and config.mode == 'baseline':
            continue
        seen.setdefault(config, None)
    return list(seen)


def config_frame(config: Configuration) -> Dict[str, str]:
    """Key columns of a configuration for building table rows."""
    return {'location': config.location, 'filterType': config.filterType, 'mode': config.mode}
