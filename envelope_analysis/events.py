"""
Pollution event detection on hourly concentration series.

All indices are 0-based sample positions. Events are returned in
chronological order and never overlap.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .config import DEFAULT_PARAMS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollutionEvent:
    """A contiguous above-threshold run in one concentration series."""
    start: int
    end: int
    duration: int
    peak_time: int
    peak_value: float
    baseline: float
    peak_pm10: Optional[float] = None
    merged: bool = False
    nan_gap: bool = False

    @property
    def window(self) -> slice:
        return slice(self.start, self.end + 1)


def _find_runs(mask: np.ndarray) -> List[Tuple[int, int]]:
    """Return (start, end) inclusive index pairs of the True runs in MASK."""
    mask = np.asarray(mask, dtype=bool)
    if mask.size == 0:
        return []
    padded = np.concatenate(([False], mask, [False])).astype(np.int8)
    diff = np.diff(padded)
    starts = np.flatnonzero(diff == 1)
    ends = np.flatnonzero(diff == -1) - 1
    return list(zip(starts.tolist(), ends.tolist()))


def _peak_in_window(values: np.ndarray, start: int, end: int) -> int:
    window = values[start:end + 1]
    if np.all(np.isnan(window)):
        return start
    # nanargmax returns the first maximum
    return start + int(np.nanargmax(window))


def detect_events(series, threshold: float, min_duration: int,
                  multiplier: float = 1.5) -> List[PollutionEvent]:
    """
    Find maximal runs where SERIES exceeds THRESHOLD.

    Parameters:
    -----------
    series : array-like
        Hourly concentrations (NaN counts as below threshold)
    threshold : float
        Strict exceedance threshold
    min_duration : int
        Minimum run length in samples
    multiplier : float
        Ratio of threshold to the pre-event baseline

    Returns:
    --------
    list of PollutionEvent
        Empty if no run qualifies
    """
    values = np.asarray(series, dtype=float).ravel()
    with np.errstate(invalid='ignore'):
        above = values > threshold
    above &= ~np.isnan(values)

    baseline = threshold / multiplier
    events = []
    for start, end in _find_runs(above):
        duration = end - start + 1
        if duration < min_duration:
            continue
        peak = _peak_in_window(values, start, end)
        events.append(PollutionEvent(
            start=start,
            end=end,
            duration=duration,
            peak_time=peak,
            peak_value=float(values[peak]),
            baseline=baseline
        ))
    return events


def detect_outdoor_events(series, pollutant: str = 'PM2.5', params=None) -> List[PollutionEvent]:
    """
    Detect outdoor events against a percentile baseline.

    The threshold is the series percentile (params['baseline']['percentile'])
    times the pollutant's threshold multiplier. Runs whose gap to the next run
    is at most min_separation_hours are merged before the duration filter.
    """
    params = params or DEFAULT_PARAMS
    detection = params['detection']
    if pollutant in ('PM2.5', 'PM25'):
        mult = detection['threshold_multiplier_pm25']
    elif pollutant == 'PM10':
        mult = detection['threshold_multiplier_pm10']
    else:
        raise ValueError(f"Unknown pollutant: {pollutant}")

    min_dur = detection['min_duration_hours']
    min_sep = detection['min_separation_hours']

    values = np.asarray(series, dtype=float).ravel()
    if values.size == 0 or np.all(np.isnan(values)):
        return []

    baseline = float(np.nanpercentile(values, params['baseline']['percentile']))
    threshold = baseline * mult
    with np.errstate(invalid='ignore'):
        above = values > threshold
    above &= ~np.isnan(values)
    runs = _find_runs(above)

    events = []
    j = 0
    while j < len(runs):
        start, end = runs[j]
        merged = False
        k = j + 1
        while k < len(runs) and runs[k][0] - end <= min_sep:
            end = runs[k][1]
            merged = True
            k += 1
        j = k

        duration = end - start + 1
        if duration < min_dur:
            continue
        peak = _peak_in_window(values, start, end)
        events.append(PollutionEvent(
            start=start,
            end=end,
            duration=duration,
            peak_time=peak,
            peak_value=float(values[peak]),
            baseline=baseline,
            merged=merged,
            nan_gap=bool(np.any(np.isnan(values[start:end + 1])))
        ))

    logger.debug(f"{pollutant}: {len(events)} outdoor events above {threshold:.2f}")
    return events


def find_combined_events(pm25, pm10, thr_pm25: float, thr_pm10: float,
                         min_duration: int = 1) -> List[PollutionEvent]:
    """
    Find runs where PM2.5 and PM10 are both at or above their thresholds.

    The peak is the hour with the largest PM2.5 + PM10 sum. peak_value is the
    PM2.5 concentration there and peak_pm10 the PM10 concentration. The
    event baseline is the PM2.5 threshold.
    """
    a = np.asarray(pm25, dtype=float).ravel()
    b = np.asarray(pm10, dtype=float).ravel()
    if a.shape != b.shape:
        raise ValueError("PM2.5 and PM10 series must have the same length")

    with np.errstate(invalid='ignore'):
        above = (a >= thr_pm25) & (b >= thr_pm10)
    above &= ~(np.isnan(a) | np.isnan(b))
    combined = a + b

    events = []
    for start, end in _find_runs(above):
        duration = end - start + 1
        if duration < min_duration:
            continue
        peak = _peak_in_window(combined, start, end)
        events.append(PollutionEvent(
            start=start,
            end=end,
            duration=duration,
            peak_time=peak,
            peak_value=float(a[peak]),
            baseline=float(thr_pm25),
            peak_pm10=float(b[peak])
        ))
    return events


def rebaseline_events(events, baseline: float) -> List[PollutionEvent]:
    """Return copies of EVENTS with a new baseline."""
    return [dataclasses.replace(event, baseline=float(baseline)) for event in events]


def event_durations(events) -> np.ndarray:
    return np.array([event.duration for event in events], dtype=float)
