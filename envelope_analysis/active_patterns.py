"""
Penetration and temporal patterns of active-mode filtration.

Both analyses take the mapping returned by
active_mode.extract_active_mode_data and bound every summary quantity over
the tight and leaky envelopes.
"""

import logging
from typing import Dict

import numpy as np
import pandas as pd
from statsmodels.tsa.stattools import acf

from .active_mode import io_ratio, percentile_baseline
from .bounds import Configuration, bound_pair, bounded_columns
from .config import DEFAULT_PARAMS
from .events import detect_events, event_durations
from .utils import as_array, nanmean_safe

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24
WEEKDAYS = 5


def _finite_mean(values) -> float:
    values = as_array(values)
    return nanmean_safe(values[np.isfinite(values)])


def steady_periods(outdoor, window: int, percentile: float) -> np.ndarray:
    """
    Hours of steady outdoor conditions.

    Steady hours have a centred moving variance below the given percentile of
    all moving variances.
    """
    variance = pd.Series(as_array(outdoor)).rolling(window, center=True, min_periods=2).var()
    variance = variance.to_numpy(dtype=float)
    if np.all(np.isnan(variance)):
        return np.zeros(variance.size, dtype=bool)
    threshold = np.nanpercentile(variance, percentile)
    with np.errstate(invalid='ignore'):
        return variance < threshold


def _event_mask(events, n: int) -> np.ndarray:
    mask = np.zeros(n, dtype=bool)
    for event in events:
        mask[event.window] = True
    return mask


def analyze_penetration_efficiency(active_data: Dict[Configuration, dict], params=None) -> Dict[Configuration, dict]:
    """
    Particle penetration factors per configuration.

    Parameters:
    -----------
    active_data : dict
        Output of extract_active_mode_data
    params : dict, optional
        Parameter registry (penetration, detection and baseline sections)

    Returns:
    --------
    dict
        Configuration -> dict with
        - pm25/pm10_penetration: I/O ratio during steady outdoor hours,
          bounded over the envelopes
        - hourly_penetration_pm25/pm10: I/O ratio of the mean indoor series
        - size_selectivity: PM10 over PM2.5 penetration (midpoints)
        - outdoor_events_pm25/pm10: threshold events on the outdoor series
          (percentile baseline times the detection multiplier)
        - pm25_event_penetration: I/O ratio during the outdoor PM2.5 events
        - indoor_event_count, avg_indoor_event_duration: threshold events on
          each envelope's own indoor series, bounded
    """
    params = params or DEFAULT_PARAMS
    pen = params['penetration']
    detection = params['detection']
    percentile = params['baseline']['percentile']
    min_dur = detection['min_duration_hours']
    multipliers = {'PM25': detection['threshold_multiplier_pm25'],
                   'PM10': detection['threshold_multiplier_pm10']}

    result = {}
    for config, data in active_data.items():
        entry = {'location': config.location, 'filterType': config.filterType}
        for pollutant, key in (('PM25', 'pm25'), ('PM10', 'pm10')):
            outdoor = data[f'outdoor_{pollutant}']
            steady = steady_periods(outdoor, int(pen['steady_window_hours']), pen['steady_percentile'])
            per_envelope = []
            for envelope in ('tight', 'leaky'):
                ratio = io_ratio(data[f'indoor_{pollutant}_{envelope}'], outdoor)
                per_envelope.append(_finite_mean(ratio[steady]) if steady.any() else np.nan)
            entry[f'{key}_penetration'] = bound_pair(*per_envelope)
            entry[f'hourly_penetration_{key}'] = io_ratio(data[f'indoor_{pollutant}_mean'], outdoor)

            mult = multipliers[pollutant]
            threshold = percentile_baseline(outdoor, percentile) * mult
            entry[f'outdoor_events_{key}'] = detect_events(outdoor, threshold, min_dur, mult)

        pm25 = entry['pm25_penetration'].mean
        entry['size_selectivity'] = entry['pm10_penetration'].mean / pm25 if pm25 else np.nan

        outdoor = data['outdoor_PM25']
        during = _event_mask(entry['outdoor_events_pm25'], outdoor.size)
        entry['pm25_event_penetration'] = bound_pair(*(
            _finite_mean(io_ratio(data[f'indoor_PM25_{e}'], outdoor)[during]) if during.any() else np.nan
            for e in ('tight', 'leaky')
        ))

        counts = {}
        durations = {}
        for envelope in ('tight', 'leaky'):
            found = []
            for pollutant in ('PM25', 'PM10'):
                indoor = data[f'indoor_{pollutant}_{envelope}']
                mult = multipliers[pollutant]
                found.append(detect_events(indoor, percentile_baseline(indoor, percentile) * mult, min_dur, mult))
            counts[envelope] = len(found[0]) + len(found[1])
            durations[envelope] = nanmean_safe(event_durations(found[0]))
        entry['indoor_event_count'] = bound_pair(counts['tight'], counts['leaky'])
        entry['avg_indoor_event_duration'] = bound_pair(durations['tight'], durations['leaky'], ignore_nan=True)
        result[config] = entry
    return result


PENETRATION_METRICS = ['pm25_penetration', 'pm10_penetration', 'pm25_event_penetration',
                       'indoor_event_count', 'avg_indoor_event_duration']


def penetration_table(penetration: Dict[Configuration, dict]) -> pd.DataFrame:
    """Bounded penetration metrics, one row per configuration."""
    rows = []
    for config, entry in penetration.items():
        row = {'location': config.location, 'filterType': config.filterType, 'mode': config.mode}
        for metric in PENETRATION_METRICS:
            row.update(bounded_columns(metric, entry[metric]))
        row['size_selectivity'] = entry['size_selectivity']
        row['outdoor_events_pm25'] = len(entry['outdoor_events_pm25'])
        row['outdoor_events_pm10'] = len(entry['outdoor_events_pm10'])
        rows.append(row)
    return pd.DataFrame(rows)


def _diurnal_means(ratio: np.ndarray) -> np.ndarray:
    hours = np.arange(ratio.size) % HOURS_PER_DAY
    return pd.Series(ratio).groupby(hours).mean().reindex(range(HOURS_PER_DAY)).to_numpy(dtype=float)


def _daily_means(ratio: np.ndarray, min_hours: int) -> np.ndarray:
    days = np.arange(ratio.size) // HOURS_PER_DAY
    grouped = pd.Series(ratio).groupby(days)
    means = grouped.mean()[grouped.size() > min_hours]
    return means.to_numpy(dtype=float)


def _decorrelation_time(lags: np.ndarray, acf_values: np.ndarray, threshold: float) -> float:
    below = np.flatnonzero(np.abs(acf_values) < threshold)
    return float(lags[below[0]]) if below.size else np.nan


def analyze_temporal_patterns(active_data: Dict[Configuration, dict], params=None) -> Dict[Configuration, dict]:
    """
    Diurnal, weekly and day-to-day behaviour of the PM2.5 I/O ratio.

    Hour of day and day of week are counted from the first sample (days 1-5
    are weekdays). For each envelope the daily mean I/O ratio of days with
    more than min_hours_per_day samples gives a stability score of
    1 - std/mean. The autocorrelation is taken over the valid samples of
    each envelope when both have more than min_samples of them, and the
    decorrelation time is the first lag whose |ACF| drops below
    decorrelation_threshold.
    """
    params = params or DEFAULT_PARAMS
    temporal = params['temporal']
    n_lags = int(temporal['acf_lags'])

    result = {}
    for config, data in active_data.items():
        outdoor = data['outdoor_PM25']
        ratios = {e: io_ratio(data[f'indoor_PM25_{e}'], outdoor) for e in ('tight', 'leaky')}
        entry = {'location': config.location, 'filterType': config.filterType}

        diurnal = {e: _diurnal_means(ratios[e]) for e in ratios}
        entry['diurnal_io_ratio_tight'] = diurnal['tight']
        entry['diurnal_io_ratio_leaky'] = diurnal['leaky']
        entry['diurnal_io_ratio_lower'] = np.fmin(diurnal['tight'], diurnal['leaky'])
        entry['diurnal_io_ratio_upper'] = np.fmax(diurnal['tight'], diurnal['leaky'])
        entry['diurnal_io_ratio'] = (diurnal['tight'] + diurnal['leaky']) / 2
        hours = np.arange(ratios['tight'].size) % HOURS_PER_DAY
        entry['diurnal_counts'] = np.array([int(np.sum(~np.isnan(ratios['tight'][hours == h])))
                                            for h in range(HOURS_PER_DAY)])

        weekday = (np.arange(ratios['tight'].size) // HOURS_PER_DAY) % 7 < WEEKDAYS
        entry['weekday_io_ratio'] = bound_pair(nanmean_safe(ratios['tight'][weekday]),
                                               nanmean_safe(ratios['leaky'][weekday]))
        entry['weekend_io_ratio'] = bound_pair(nanmean_safe(ratios['tight'][~weekday]),
                                               nanmean_safe(ratios['leaky'][~weekday]))

        daily = {e: _daily_means(ratios[e], int(temporal['min_hours_per_day'])) for e in ratios}
        if daily['tight'].size > 1:
            stability = {e: 1.0 - np.std(daily[e], ddof=1) / np.mean(daily[e]) for e in daily}
            entry['stability_score'] = bound_pair(stability['tight'], stability['leaky'])
            entry['performance_trend_tight'] = daily['tight']
            entry['performance_trend_leaky'] = daily['leaky']
            entry['performance_trend'] = (daily['tight'] + daily['leaky']) / 2
        else:
            entry['stability_score'] = bound_pair(np.nan, np.nan)
            entry['performance_trend'] = np.array([])

        valid = {e: ratios[e][~np.isnan(ratios[e])] for e in ratios}
        if min(valid['tight'].size, valid['leaky'].size) > temporal['min_samples']:
            lags = np.arange(n_lags + 1)
            acf_tight = acf(valid['tight'], nlags=n_lags, fft=False)
            acf_leaky = acf(valid['leaky'], nlags=n_lags, fft=False)
            entry['acf_lags'] = lags
            entry['autocorrelation_tight'] = acf_tight
            entry['autocorrelation_leaky'] = acf_leaky
            entry['autocorrelation_lower'] = np.fmin(acf_tight, acf_leaky)
            entry['autocorrelation_upper'] = np.fmax(acf_tight, acf_leaky)
            entry['autocorrelation'] = (acf_tight + acf_leaky) / 2
            threshold = temporal['decorrelation_threshold']
            entry['decorrelation_time'] = bound_pair(_decorrelation_time(lags, acf_tight, threshold),
                                                     _decorrelation_time(lags, acf_leaky, threshold),
                                                     ignore_nan=True)
        else:
            entry['acf_lags'] = np.array([])
            entry['autocorrelation'] = np.array([])
            entry['decorrelation_time'] = bound_pair(np.nan, np.nan)
        result[config] = entry

    logger.info(f"Temporal patterns for {len(result)} configurations")
    return result


TEMPORAL_METRICS = ['weekday_io_ratio', 'weekend_io_ratio', 'stability_score', 'decorrelation_time']


def temporal_table(temporal: Dict[Configuration, dict]) -> pd.DataFrame:
    """Bounded temporal summary metrics, one row per configuration."""
    rows = []
    for config, entry in temporal.items():
        row = {'location': config.location, 'filterType': config.filterType, 'mode': config.mode}
        for metric in TEMPORAL_METRICS:
            row.update(bounded_columns(metric, entry[metric]))
        rows.append(row)
    return pd.DataFrame(rows)
