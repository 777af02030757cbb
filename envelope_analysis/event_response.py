"""
Indoor response to outdoor pollution events.

For every detected event the indoor series is compared against a naive
"indoor tracks outdoor one to one" expectation: lag to the indoor peak,
peak reduction, integrated (area above baseline) reduction and recovery
time. Configuration-level bounds are taken on the aggregates of the tight
and leaky runs, never on individual events.
"""

import logging
from typing import Dict, Optional

import numpy as np
import pandas as pd
from scipy import stats

from .bounds import Configuration, bound_pair, bounded_columns
from .config import DEFAULT_PARAMS
from .utils import as_array, nanmean_safe

logger = logging.getLogger(__name__)


RESPONSE_METRICS = ['lag_time', 'peak_reduction', 'integrated_reduction', 'recovery_time']

EVENT_TABLE_COLUMNS = [
    'config', 'pollutant', 'event_id', 'start_idx', 'start_time',
    'peak_out_idx', 'peak_out_time', 'peak_in_idx', 'peak_in_time',
    'first_resp_idx', 'first_resp_time', 'rtb_idx', 'rtb_time',
    'end_idx', 'end_time', 'duration', 'lag_peak', 'lag_first',
    'recovery_time', 'amp_out', 'amp_in', 'attenuation', 'auc_out',
    'auc_in', 'auc_reduction', 'half_life', 'fit_r2', 'flags'
]

SUMMARY_METRICS = {
    'lag_peak': 'lag_peak',
    'recovery_time': 'recovery',
    'attenuation': 'attenuation',
    'auc_reduction': 'auc_reduction'
}


def _event_window(event, n: int, lookahead: int) -> np.ndarray:
    return np.arange(event.start, min(n, event.end + lookahead + 1))


def _pre_window(event, samples: int) -> np.ndarray:
    return np.arange(max(0, event.start - samples), event.start)


def _positive_area(excess: np.ndarray) -> float:
    # NaN compares False and drops out
    with np.errstate(invalid='ignore'):
        return float(np.sum(excess[excess > 0]))


def _single_event_response(event, outdoor, indoor, pre_window, lookahead, recovery_factor, clamp):
    n = len(indoor)
    pre = _pre_window(event, pre_window)
    window = _event_window(event, min(len(outdoor), n), lookahead)

    base = nanmean_safe(indoor[pre])

    indoor_window = indoor[window]
    if window.size == 0 or np.all(np.isnan(indoor_window)):
        indoor_peak = np.nan
        lag = np.nan
    else:
        idx = int(np.nanargmax(indoor_window))
        indoor_peak = float(indoor_window[idx])
        lag = float(window[idx] - event.peak_time)

    expected = base + (event.peak_value - event.baseline)
    if np.isnan(expected) or np.isnan(indoor_peak) or expected == 0:
        peak_red = np.nan
    else:
        peak_red = 100.0 * (expected - indoor_peak) / expected

    if np.isnan(base):
        int_red = np.nan
    else:
        outdoor_area = _positive_area(outdoor[window] - event.baseline)
        indoor_area = _positive_area(indoor_window - base)
        int_red = np.nan if outdoor_area == 0 else 100.0 * (1 - indoor_area / outdoor_area)

    if clamp:
        if not np.isnan(peak_red):
            peak_red = max(0.0, peak_red)
        if not np.isnan(int_red):
            int_red = max(0.0, int_red)

    recovery = np.nan
    if not np.isnan(base):
        post = indoor[event.end:min(n, event.end + lookahead + 1)]
        with np.errstate(invalid='ignore'):
            hits = np.flatnonzero(post < base * recovery_factor)
        if hits.size:
            recovery = float(hits[0])

    return lag, peak_red, int_red, recovery


def analyze_event_response(events, outdoor, indoor, params=None) -> Dict:
    """
    Per-event response metrics for one indoor series.

    Parameters:
    -----------
    events : list of PollutionEvent
        Events detected on the outdoor series
    outdoor, indoor : array-like
        Aligned hourly concentrations
    params : dict, optional
        Parameter registry (uses the 'response' section)

    Returns:
    --------
    dict
        num_events, per-event arrays (lag_times, peak_reductions,
        integrated_reductions, recovery_times), negative_lag flags and the
        NaN-ignoring means avg_lag_time, avg_peak_reduction,
        avg_integrated_reduction, avg_recovery_time
    """
    params = params or DEFAULT_PARAMS
    response = params['response']
    pre_window = int(response['pre_window_hours'])
    lookahead = int(response['lookahead_hours'])
    recovery_factor = response['recovery_factor']
    clamp = bool(response.get('clamp_reductions', False))

    out = as_array(outdoor)
    ind = as_array(indoor)

    n_events = len(events)
    results = np.full((n_events, 4), np.nan)
    for j, event in enumerate(events):
        results[j] = _single_event_response(event, out, ind, pre_window, lookahead, recovery_factor, clamp)

    lag_times = results[:, 0]
    negative_lag = np.zeros(n_events, dtype=bool)
    with np.errstate(invalid='ignore'):
        negative_lag[:] = lag_times < 0
    if negative_lag.any():
        logger.debug(f"{int(negative_lag.sum())} events with indoor peak before outdoor peak")

    return {
        'num_events': n_events,
        'lag_times': lag_times,
        'peak_reductions': results[:, 1],
        'integrated_reductions': results[:, 2],
        'recovery_times': results[:, 3],
        'negative_lag': negative_lag,
        'avg_lag_time': nanmean_safe(lag_times),
        'avg_peak_reduction': nanmean_safe(results[:, 1]),
        'avg_integrated_reduction': nanmean_safe(results[:, 2]),
        'avg_recovery_time': nanmean_safe(results[:, 3]),
    }


def analyze_event_response_bounds(events, outdoor, indoor_tight, indoor_leaky, params=None) -> Dict:
    """
    Event response for both envelopes with bounds on the aggregates.

    The tight and leaky indoor series are analysed independently. For every
    aggregate the result carries avg_<metric> (midpoint), avg_<metric>_lower
    and avg_<metric>_upper. An envelope with no valid events does not erase
    the other envelope's aggregate.
    """
    tight = analyze_event_response(events, outdoor, indoor_tight, params)
    leaky = analyze_event_response(events, outdoor, indoor_leaky, params)

    result = {'num_events': len(events), 'tight': tight, 'leaky': leaky}
    for metric in RESPONSE_METRICS:
        name = f'avg_{metric}'
        result.update(bounded_columns(name, bound_pair(tight[name], leaky[name], ignore_nan=True)))

    for key in ('lag_times', 'peak_reductions', 'integrated_reductions', 'recovery_times'):
        result[f'{key}_tight'] = tight[key]
        result[f'{key}_leaky'] = leaky[key]
    return result


def _baseline_at(baseline, index: int) -> float:
    if np.ndim(baseline) == 0:
        return float(baseline)
    return float(np.asarray(baseline, dtype=float)[index])


def _first_hold_in_band(indoor, start, stop, low, high, hold):
    """First t in [start, stop] such that indoor[t:t+hold] stays in [low, high]."""
    with np.errstate(invalid='ignore'):
        inside = (indoor >= low) & (indoor <= high)
    for t in range(start, stop - hold + 2):
        if t + hold > len(indoor):
            break
        if inside[t:t + hold].all():
            return t
    return None


def compute_return_to_baseline(events, indoor, baseline, params=None) -> np.ndarray:
    """
    Samples after each event end until indoor re-enters the baseline band.

    The band is baseline * (1 +/- tolerance_fraction) and the series must stay
    inside it for hold_time_hours. BASELINE is a scalar or a series indexed
    at the event start. Events with fewer than min_data_hours samples after
    the end, or that never return, give NaN.
    """
    params = params or DEFAULT_PARAMS
    rtb = params['rtb']
    lookahead = int(params['response']['lookahead_hours'])
    hold = int(rtb['hold_time_hours'])
    tol = rtb['tolerance_fraction']

    ind = as_array(indoor)
    n = len(ind)
    times = np.full(len(events), np.nan)
    for k, event in enumerate(events):
        if n - 1 - event.end < rtb['min_data_hours']:
            continue
        base = _baseline_at(baseline, event.start)
        stop = min(n - 1, event.end + lookahead)
        t = _first_hold_in_band(ind, event.end, stop, base * (1 - tol), base * (1 + tol), hold)
        if t is not None:
            times[k] = t - event.end
    return times


def _pre_event_statistics(values, fr_params):
    if values.size == 0 or np.all(np.isnan(values)):
        return np.nan, np.nan
    if fr_params['baseline_statistic'] == 'median':
        base = float(np.nanmedian(values))
    else:
        base = float(np.nanmean(values))
    if fr_params['variability_method'] == 'mad':
        var = float(stats.median_abs_deviation(values, nan_policy='omit'))
    elif np.sum(~np.isnan(values)) > 1:
        var = float(np.nanstd(values, ddof=1))
    else:
        var = np.nan
    return base, var


def _fit_decay(indoor, peak_idx, tail_end, base):
    """Log-linear fit of the excess above BASE from the indoor peak onwards."""
    if np.isnan(base) or peak_idx is None:
        return np.nan, np.nan
    y = indoor[peak_idx:tail_end + 1] - base
    with np.errstate(invalid='ignore'):
        y = y[y > 0]
    if y.size < 3:
        return np.nan, np.nan
    t = np.arange(y.size)
    fit = stats.linregress(t, np.log(y))
    k = -fit.slope
    if not np.isfinite(k) or k <= 0:
        return np.nan, np.nan
    return float(np.log(2) / k), float(fit.rvalue ** 2)


def _time_at(time_index, idx):
    if time_index is None or idx is None or (isinstance(idx, float) and np.isnan(idx)):
        return np.nan
    return time_index[int(idx)]


def compute_event_metrics_table(config, pollutant: str, events, outdoor, indoor,
                                params=None, time_index=None) -> pd.DataFrame:
    """
    Tidy per-event metrics for one configuration and pollutant.

    Parameters:
    -----------
    config : Configuration or str
        Configuration the series belongs to
    pollutant : str
        'PM2.5' or 'PM10'
    events : list of PollutionEvent
        Events detected on OUTDOOR
    outdoor, indoor : array-like
        Aligned hourly concentrations
    params : dict, optional
        Parameter registry
    time_index : sequence, optional
        Timestamps aligned with the series; *_time columns are NaN without it

    Returns:
    --------
    pd.DataFrame
        One row per event. Indices are 0-based. ``flags`` is a ';'-joined
        string of merged, nan_gap, no_first_response, no_rtb and
        decay_fit_fail.
    """
    if pollutant not in ('PM2.5', 'PM10'):
        raise ValueError(f"pollutant must be 'PM2.5' or 'PM10', got {pollutant!r}")
    params = params or DEFAULT_PARAMS
    lookahead = int(params['response']['lookahead_hours'])
    fr = params['first_response']
    rtb = params['rtb']
    hold = int(rtb['hold_time_hours'])
    tol = rtb['tolerance_fraction']

    label = config.label() if isinstance(config, Configuration) else str(config)
    out = as_array(outdoor)
    ind = as_array(indoor)
    n = len(ind)

    rows = []
    for j, event in enumerate(events, start=1):
        window = _event_window(event, min(len(out), n), lookahead)
        pre = ind[_pre_window(event, int(fr['baseline_window_hours']))]
        base_in, var_in = _pre_event_statistics(pre, fr)

        in_window = ind[window]
        if window.size == 0 or np.all(np.isnan(in_window)):
            in_peak, in_peak_idx = np.nan, None
        else:
            rel = int(np.nanargmax(in_window))
            in_peak, in_peak_idx = float(in_window[rel]), int(window[rel])

        departure = fr['departure_multiplier'] * var_in
        threshold = base_in + (fr['abs_threshold'] if np.isnan(departure)
                               else max(fr['abs_threshold'], departure))
        look = ind[event.start:min(n, event.start + lookahead + 1)]
        with np.errstate(invalid='ignore'):
            hits = np.flatnonzero(look > threshold)
        first_idx = event.start + int(hits[0]) if hits.size else np.nan

        tail_end = min(n - 1, event.end + lookahead)
        rtb_idx = np.nan
        if n - 1 - event.end >= rtb['min_data_hours'] and not np.isnan(base_in):
            t = _first_hold_in_band(ind, event.end, tail_end,
                                    base_in * (1 - tol), base_in * (1 + tol), hold)
            if t is not None:
                rtb_idx = t

        amp_out = event.peak_value - event.baseline
        amp_in = in_peak - base_in
        attenuation = amp_in / amp_out if amp_out > 0 else np.nan

        auc_out = _positive_area(out[window] - event.baseline)
        auc_in = _positive_area(in_window - base_in)
        auc_red = 1 - auc_in / auc_out if auc_out > 0 else np.nan

        half_life, r2 = _fit_decay(ind, in_peak_idx, tail_end, base_in)

        flags = []
        if event.merged:
            flags.append('merged')
        if event.nan_gap:
            flags.append('nan_gap')
        if np.isnan(first_idx):
            flags.append('no_first_response')
        if np.isnan(rtb_idx) and rtb['flag_no_return']:
            flags.append('no_rtb')
        if np.isnan(half_life):
            flags.append('decay_fit_fail')

        rows.append({
            'config': label,
            'pollutant': pollutant,
            'event_id': j,
            'start_idx': event.start,
            'start_time': _time_at(time_index, event.start),
            'peak_out_idx': event.peak_time,
            'peak_out_time': _time_at(time_index, event.peak_time),
            'peak_in_idx': np.nan if in_peak_idx is None else in_peak_idx,
            'peak_in_time': _time_at(time_index, in_peak_idx),
            'first_resp_idx': first_idx,
            'first_resp_time': _time_at(time_index, first_idx),
            'rtb_idx': rtb_idx,
            'rtb_time': _time_at(time_index, rtb_idx),
            'end_idx': event.end,
            'end_time': _time_at(time_index, event.end),
            'duration': event.duration,
            'lag_peak': np.nan if in_peak_idx is None else in_peak_idx - event.peak_time,
            'lag_first': first_idx - event.start,
            'recovery_time': rtb_idx - event.end,
            'amp_out': amp_out,
            'amp_in': amp_in,
            'attenuation': attenuation,
            'auc_out': auc_out,
            'auc_in': auc_in,
            'auc_reduction': auc_red,
            'half_life': half_life,
            'fit_r2': r2,
            'flags': ';'.join(flags)
        })

    table = pd.DataFrame(rows, columns=EVENT_TABLE_COLUMNS)
    table.attrs['config'] = label
    table.attrs['pollutant'] = pollutant
    table.attrs['params_version'] = params.get('params_version')
    return table


def _median_iqr(values: np.ndarray):
    values = values[~np.isnan(values)]
    if values.size == 0:
        return np.nan, np.nan
    q25, q75 = np.percentile(values, [25, 75])
    return float(np.median(values)), float(q75 - q25)


def summarize_event_metrics(event_table: pd.DataFrame) -> pd.DataFrame:
    """
    Median and IQR of event metrics by configuration and pollutant.

    Flagged events are counted in n_flagged but excluded from the statistics,
    as are NaN values of each metric.
    """
    columns = ['config', 'pollutant', 'n_events', 'n_flagged']
    for short in SUMMARY_METRICS.values():
        columns += [f'median_{short}', f'iqr_{short}']

    if event_table.empty:
        return pd.DataFrame(columns=columns)

    rows = []
    for (config, pollutant), group in event_table.groupby(['config', 'pollutant'], sort=True):
        flagged = group['flags'].fillna('').str.len() > 0
        clean = group[~flagged]
        row = {
            'config': config,
            'pollutant': pollutant,
            'n_events': len(group),
            'n_flagged': int(flagged.sum())
        }
        for column, short in SUMMARY_METRICS.items():
            median, iqr = _median_iqr(clean[column].to_numpy(dtype=float))
            row[f'median_{short}'] = median
            row[f'iqr_{short}'] = iqr
        rows.append(row)

    return pd.DataFrame(rows, columns=columns)
