"""
Active (triggered) mode dynamics.

Only active-mode runs are analysed here, with the tight and leaky runs of a
configuration treated as the two ends of one envelope bound rather than as
separate scenarios. Every function takes the mapping returned by
extract_active_mode_data, keyed by Configuration.
"""

import logging
import warnings
from typing import Dict, Optional

import numpy as np
import pandas as pd
from scipy import signal

from .bounds import (Configuration, bound_difference, bound_pair, bound_ratio,
                     bounded_columns, percent_reduction)
from .config import DEFAULT_PARAMS
from .event_response import (analyze_event_response_bounds, compute_event_metrics_table,
                             compute_return_to_baseline)
from .events import detect_outdoor_events, event_durations, find_combined_events, rebaseline_events
from .exceptions import MissingEnvelopePairWarning
from .utils import as_array, get_baseline_pair, nanmean_safe, select_rows

logger = logging.getLogger(__name__)

RESPONSE_RISE_THRESHOLD = 5.0    # µg/m³ hour-on-hour outdoor rise
RESPONSE_WINDOW_HOURS = 12
STABILITY_WINDOW_HOURS = 24
HIGH_POLLUTION_PERCENTILE = 90

TRIGGER_RESPONSE_METRICS = ['avg_lag_time', 'avg_peak_reduction', 'avg_integrated_reduction',
                            'avg_recovery_time', 'avg_return_to_baseline']


def extract_active_mode_data(summary: pd.DataFrame) -> Dict[Configuration, dict]:
    """
    Collect tight, leaky and mean indoor series for every active configuration.

    Returns:
    --------
    dict
        Configuration -> dict with indoor_PM25/PM10 _tight, _leaky and _mean
        arrays, outdoor_PM25/PM10 (taken from the tight run) and the scalar
        avg_indoor_PM25/PM10 pairs. Configurations missing an envelope, or
        whose envelopes differ in length, are skipped with a warning.
    """
    active = select_rows(summary, mode='active')
    data = {}
    for location, filter_type in active[['location', 'filterType']].drop_duplicates().itertuples(index=False):
        config = Configuration(location, filter_type, 'active')
        tight = select_rows(active, location, 'tight', filter_type)
        leaky = select_rows(active, location, 'leaky', filter_type)
        if tight.empty or leaky.empty:
            warnings.warn(f"No tight/leaky active pair for {config.label()}", MissingEnvelopePairWarning)
            continue
        tight, leaky = tight.iloc[0], leaky.iloc[0]

        entry = {'location': location, 'filterType': filter_type}
        for pollutant in ('PM25', 'PM10'):
            t = as_array(tight[f'indoor_{pollutant}'])
            l = as_array(leaky[f'indoor_{pollutant}'])
            if t.shape != l.shape:
                warnings.warn(f"Tight and leaky {pollutant} series differ in length for {config.label()}",
                              MissingEnvelopePairWarning)
                entry = None
                break
            entry[f'indoor_{pollutant}_tight'] = t
            entry[f'indoor_{pollutant}_leaky'] = l
            entry[f'indoor_{pollutant}_mean'] = (t + l) / 2
            entry[f'outdoor_{pollutant}'] = as_array(tight[f'outdoor_{pollutant}'])
            entry[f'avg_indoor_{pollutant}'] = (float(tight[f'avg_indoor_{pollutant}']),
                                                 float(leaky[f'avg_indoor_{pollutant}']))
        if entry is not None:
            data[config] = entry

    logger.info(f"Active mode data for {len(data)} configurations")
    return data


def io_ratio(indoor, outdoor) -> np.ndarray:
    """Hourly indoor/outdoor ratio with non-finite values set to NaN."""
    with np.errstate(divide='ignore', invalid='ignore'):
        ratio = as_array(indoor) / as_array(outdoor)
    ratio[~np.isfinite(ratio)] = np.nan
    return ratio


def percentile_baseline(values, percentile: float) -> float:
    """NaN-ignoring percentile of a series; NaN when nothing is finite."""
    values = as_array(values)
    if not np.any(~np.isnan(values)):
        return np.nan
    return float(np.nanpercentile(values, percentile))


def analyze_io_ratios(active_data: Dict[Configuration, dict]) -> pd.DataFrame:
    """
    Bounded mean I/O ratios per configuration.

    The bounds come from the NaN-ignoring mean ratio of each envelope;
    std, median and variability (coefficient of variation) describe the
    mean-series ratio.
    """
    rows = []
    for config, data in active_data.items():
        row = {'location': config.location, 'filterType': config.filterType, 'mode': config.mode}
        for pollutant, key in (('PM25', 'pm25'), ('PM10', 'pm10')):
            outdoor = data[f'outdoor_{pollutant}']
            tight = io_ratio(data[f'indoor_{pollutant}_tight'], outdoor)
            leaky = io_ratio(data[f'indoor_{pollutant}_leaky'], outdoor)
            mean_series = io_ratio(data[f'indoor_{pollutant}_mean'], outdoor)

            row.update(bounded_columns(f'io_ratio_{key}', bound_pair(nanmean_safe(tight), nanmean_safe(leaky))))
            if np.all(np.isnan(mean_series)):
                std = median = variability = np.nan
            else:
                std = float(np.nanstd(mean_series, ddof=1)) if np.sum(~np.isnan(mean_series)) > 1 else np.nan
                median = float(np.nanmedian(mean_series))
                mean = float(np.nanmean(mean_series))
                variability = std / mean if mean != 0 else np.nan
            row[f'io_ratio_{key}_std'] = std
            row[f'io_ratio_{key}_median'] = median
            row[f'io_ratio_{key}_variability'] = variability
        rows.append(row)
    return pd.DataFrame(rows)


def _avg_response_time(indoor, outdoor) -> float:
    """
    Mean hours for the indoor rise to stay under half of an outdoor step.

    Steps are hour-on-hour outdoor rises above RESPONSE_RISE_THRESHOLD.
    """
    indoor = as_array(indoor)
    outdoor = as_array(outdoor)
    with np.errstate(invalid='ignore'):
        rises = np.flatnonzero(np.diff(outdoor) > RESPONSE_RISE_THRESHOLD) + 1
    times = []
    for i in rises:
        if i + RESPONSE_WINDOW_HOURS >= len(indoor):
            continue
        step = outdoor[i] - outdoor[i - 1]
        base = indoor[i - 1]
        for t in range(1, RESPONSE_WINDOW_HOURS + 1):
            if indoor[i + t] - base < 0.5 * step:
                times.append(t)
                break
    return float(np.mean(times)) if times else np.nan


def _peak_reduction_capability(indoor, outdoor) -> float:
    """Mean percent reduction versus outdoor during the top-decile outdoor hours."""
    indoor = as_array(indoor)
    outdoor = as_array(outdoor)
    if np.all(np.isnan(outdoor)):
        return np.nan
    threshold = np.nanpercentile(outdoor, HIGH_POLLUTION_PERCENTILE)
    with np.errstate(invalid='ignore'):
        high = outdoor > threshold
    if not high.any():
        return np.nan
    with np.errstate(divide='ignore', invalid='ignore'):
        reductions = 100 * (outdoor[high] - indoor[high]) / outdoor[high]
    reductions[~np.isfinite(reductions)] = np.nan
    return nanmean_safe(reductions)


def _stability_score(ratio) -> float:
    """1 / (1 + mean rolling coefficient of variation) of an I/O ratio series."""
    valid = ratio[~np.isnan(ratio)]
    if valid.size <= STABILITY_WINDOW_HOURS:
        return np.nan
    series = pd.Series(valid)
    rolling = series.rolling(STABILITY_WINDOW_HOURS, center=True, min_periods=1)
    with np.errstate(divide='ignore', invalid='ignore'):
        cv = (rolling.std(ddof=0) / rolling.mean()).to_numpy(dtype=float)
    cv = np.where(np.isfinite(cv), cv, np.nan)
    return 1.0 / (1.0 + nanmean_safe(cv))


def _filter_performance(data: dict) -> Dict[str, object]:
    """Per-envelope performance metrics of one filter, combined into bounds."""
    out25 = data['outdoor_PM25']
    out10 = data['outdoor_PM10']
    perf = {}
    ratios = {}
    for envelope in ('tight', 'leaky'):
        ratios[envelope] = io_ratio(data[f'indoor_PM25_{envelope}'], out25)

    perf['avg_io_ratio_pm25'] = bound_pair(*(nanmean_safe(ratios[e]) for e in ('tight', 'leaky')))
    perf['avg_io_ratio_pm10'] = bound_pair(*(
        nanmean_safe(io_ratio(data[f'indoor_PM10_{e}'], out10)) for e in ('tight', 'leaky')))
    perf['response_time'] = bound_pair(*(
        _avg_response_time(data[f'indoor_PM25_{e}'], out25) for e in ('tight', 'leaky')), ignore_nan=True)
    perf['peak_reduction'] = bound_pair(*(
        _peak_reduction_capability(data[f'indoor_PM25_{e}'], out25) for e in ('tight', 'leaky')))
    perf['stability_score'] = bound_pair(*(_stability_score(ratios[e]) for e in ('tight', 'leaky')))

    pm25 = perf['avg_io_ratio_pm25'].mean
    perf['size_selectivity'] = perf['avg_io_ratio_pm10'].mean / pm25 if pm25 else np.nan
    return perf


def compare_filters_dynamic(active_data: Dict[Configuration, dict]) -> pd.DataFrame:
    """
    HEPA versus MERV under active operation, one row per location.

    Each filter's metrics are bounded over the envelopes. The worst-case
    spread between the filters is reported as io_ratio_pm25_difference
    (HEPA minus MERV, interval difference) and merv_to_hepa_io_ratio (MERV
    over HEPA, interval ratio). Locations without both filters are omitted.
    """
    by_location = {}
    for config, data in active_data.items():
        by_location.setdefault(config.location, {})[config.filterType.lower()] = data

    rows = []
    for location, filters in by_location.items():
        if 'hepa' not in filters or 'merv' not in filters:
            continue
        hepa = _filter_performance(filters['hepa'])
        merv = _filter_performance(filters['merv'])

        row = {'location': location}
        for name, perf in (('hepa', hepa), ('merv', merv)):
            for metric, value in perf.items():
                if metric == 'size_selectivity':
                    row[f'{name}_{metric}'] = value
                else:
                    row.update(bounded_columns(f'{name}_{metric}', value))

        row.update(bounded_columns('io_ratio_pm25_difference',
                                   bound_difference(hepa['avg_io_ratio_pm25'], merv['avg_io_ratio_pm25'])))
        row.update(bounded_columns('io_ratio_pm10_difference',
                                   bound_difference(hepa['avg_io_ratio_pm10'], merv['avg_io_ratio_pm10'])))
        row.update(bounded_columns('merv_to_hepa_io_ratio',
                                   bound_ratio(merv['avg_io_ratio_pm25'], hepa['avg_io_ratio_pm25'])))
        rows.append(row)
    return pd.DataFrame(rows)


def quantify_envelope_uncertainty(active_data: Dict[Configuration, dict],
                                  summary: Optional[pd.DataFrame] = None, params=None) -> Dict[Configuration, dict]:
    """
    Envelope-driven uncertainty per configuration.

    Parameters:
    -----------
    active_data : dict
        Output of extract_active_mode_data
    summary : pd.DataFrame, optional
        If given, reductions against each envelope's own baseline are added
    params : dict, optional
        Parameter registry (zero-baseline policy)

    Returns:
    --------
    dict
        Configuration -> dict with pm25/pm10 concentration bounds, range
        percent, hourly lower/upper/mean series, the hourly envelope gap and
        a deterministic contribution split [envelope, outdoor, system,
        measurement] in percent.
    """
    params = params or DEFAULT_PARAMS
    policy = params['costs']['zero_baseline_policy']
    result = {}
    for config, data in active_data.items():
        entry = {}
        for pollutant, key in (('PM25', 'pm25'), ('PM10', 'pm10')):
            tight = data[f'indoor_{pollutant}_tight']
            leaky = data[f'indoor_{pollutant}_leaky']
            bounds = bound_pair(nanmean_safe(tight), nanmean_safe(leaky))
            entry[f'{key}_bounds'] = bounds
            entry[f'{key}_range_percent'] = (100 * bounds.width / bounds.mean
                                             if bounds.mean else np.nan)

            gap = np.abs(tight - leaky)
            entry[f'{key}_uncertainty_mean'] = nanmean_safe(gap)
            entry[f'{key}_range'] = (float(np.nanmax(gap) - np.nanmin(gap))
                                     if np.any(~np.isnan(gap)) else np.nan)
            entry[f'hourly_lower_{key}'] = np.fmin(tight, leaky)
            entry[f'hourly_upper_{key}'] = np.fmax(tight, leaky)
            entry[f'hourly_mean_{key}'] = (tight + leaky) / 2

            if summary is not None:
                base_tight, base_leaky = get_baseline_pair(summary, config.location)
                if base_tight is not None and base_leaky is not None:
                    entry[f'{key}_reduction_percent'] = bound_pair(
                        percent_reduction(float(base_tight[f'avg_indoor_{pollutant}']), nanmean_safe(tight), policy),
                        percent_reduction(float(base_leaky[f'avg_indoor_{pollutant}']), nanmean_safe(leaky), policy)
                    )

        pm25 = entry['pm25_bounds']
        envelope_delta = 100 * pm25.width / pm25.mean if pm25.mean else np.nan
        outdoor = data['outdoor_PM25']
        outdoor_mean = nanmean_safe(outdoor)
        if outdoor_mean and not np.isnan(outdoor_mean):
            outdoor_delta = 100 * (np.nanmax(outdoor) - np.nanmin(outdoor)) / outdoor_mean
        else:
            outdoor_delta = np.nan
        system_delta = max(0.0, 100 - envelope_delta - outdoor_delta)
        entry['uncertainty_contributions'] = {
            'envelope': envelope_delta,
            'outdoor': outdoor_delta,
            'system': system_delta,
            'measurement': 0.0
        }
        result[config] = entry
    return result


def normalized_xcorr(x, y, max_lag: int):
    """
    Cross-correlation of X and Y normalised by sqrt(sum(x^2) * sum(y^2)).

    Means are not removed. NaN samples contribute nothing. Returns
    (lags, correlation) for lags -max_lag..max_lag. A Y that trails X by d
    samples peaks at lag -d.
    """
    x = np.nan_to_num(as_array(x))
    y = np.nan_to_num(as_array(y))
    full = np.correlate(x, y, mode='full')
    lags = np.arange(full.size) - (y.size - 1)
    keep = np.abs(lags) <= max_lag
    scale = np.sqrt(np.sum(x ** 2) * np.sum(y ** 2))
    if scale == 0:
        return lags[keep], np.full(int(keep.sum()), np.nan)
    return lags[keep], full[keep] / scale


def _optimal_lag(lags, corr):
    if np.all(np.isnan(corr)):
        return np.nan, np.nan
    idx = int(np.nanargmax(corr))
    return float(lags[idx]), float(corr[idx])


def analyze_cross_correlations(active_data: Dict[Configuration, dict], max_lag: Optional[int] = None,
                               params=None) -> Dict[Configuration, dict]:
    """
    Outdoor/indoor cross-correlation and transfer function per configuration.

    The optimal lag and peak correlation of the mean series are reported
    with bounds from the tight and leaky series. When the series is longer
    than min_samples_for_spectrum the Welch PSD ratio indoor/outdoor gives a
    transfer function whose cutoff is the first frequency where the
    normalised response drops below cutoff_fraction.
    """
    params = params or DEFAULT_PARAMS
    corr_params = params['correlation']
    if max_lag is None:
        max_lag = int(corr_params['max_lag_hours'])

    result = {}
    for config, data in active_data.items():
        entry = {}
        for pollutant, key in (('PM25', 'pm25'), ('PM10', 'pm10')):
            outdoor = data[f'outdoor_{pollutant}']
            lags, corr = normalized_xcorr(outdoor, data[f'indoor_{pollutant}_mean'], max_lag)
            _, corr_tight = normalized_xcorr(outdoor, data[f'indoor_{pollutant}_tight'], max_lag)
            _, corr_leaky = normalized_xcorr(outdoor, data[f'indoor_{pollutant}_leaky'], max_lag)
            entry['lags'] = lags
            entry[f'{key}_correlation'] = corr
            entry[f'{key}_correlation_tight'] = corr_tight
            entry[f'{key}_correlation_leaky'] = corr_leaky

            lag, peak = _optimal_lag(lags, corr)
            lag_t, peak_t = _optimal_lag(lags, corr_tight)
            lag_l, peak_l = _optimal_lag(lags, corr_leaky)
            entry[f'optimal_lag_{key}'] = lag
            entry[f'max_correlation_{key}'] = peak
            entry[f'optimal_lag_{key}_bounds'] = bound_pair(lag_t, lag_l)
            entry[f'max_correlation_{key}_bounds'] = bound_pair(peak_t, peak_l)

        entry['transfer_function'] = np.array([])
        entry['frequencies'] = np.array([])
        entry['cutoff_frequency'] = np.nan
        indoor = data['indoor_PM25_mean']
        if indoor.size > corr_params['min_samples_for_spectrum']:
            freqs, psd_out = signal.welch(np.nan_to_num(data['outdoor_PM25']), fs=1.0, detrend=False)
            _, psd_in = signal.welch(np.nan_to_num(indoor), fs=1.0, detrend=False)
            with np.errstate(divide='ignore', invalid='ignore'):
                transfer = psd_in / psd_out
                normalized = transfer / transfer[0]
                below = np.flatnonzero(normalized < corr_params['cutoff_fraction'])
            entry['transfer_function'] = transfer
            entry['frequencies'] = freqs
            if below.size:
                entry['cutoff_frequency'] = float(freqs[below[0]])
        result[config] = entry
    return result


def _severities(events) -> np.ndarray:
    with np.errstate(divide='ignore', invalid='ignore'):
        return np.array([e.peak_value / e.baseline for e in events], dtype=float)


def detect_analyze_pollution_events(active_data: Dict[Configuration, dict], params=None) -> Dict[Configuration, dict]:
    """
    Combined PM2.5/PM10 event detection and indoor response per configuration.

    Events are detected on the outdoor series and on each envelope's indoor
    series with the fixed combined thresholds, then re-baselined to the
    series percentile for severity (peak / baseline). Event counts and mean
    durations are bounded over the indoor envelopes. The indoor response to
    the outdoor events is analysed on both envelopes, and a per-event
    metrics table is built from the mean indoor series.
    """
    params = params or DEFAULT_PARAMS
    detection = params['detection']
    percentile = params['baseline']['percentile']
    thr25 = detection['combined_threshold_pm25']
    thr10 = detection['combined_threshold_pm10']
    min_dur = detection['min_duration_hours']

    result = {}
    for config, data in active_data.items():
        outdoor_events = find_combined_events(data['outdoor_PM25'], data['outdoor_PM10'], thr25, thr10, min_dur)
        outdoor_events = rebaseline_events(outdoor_events, percentile_baseline(data['outdoor_PM25'], percentile))

        indoor_events = {}
        for envelope in ('tight', 'leaky'):
            found = find_combined_events(data[f'indoor_PM25_{envelope}'], data[f'indoor_PM10_{envelope}'],
                                         thr25, thr10, min_dur)
            base = percentile_baseline(data[f'indoor_PM25_{envelope}'], percentile)
            indoor_events[envelope] = rebaseline_events(found, base)

        n_tight, n_leaky = len(indoor_events['tight']), len(indoor_events['leaky'])
        entry = {
            'location': config.location,
            'filterType': config.filterType,
            'combined_events': outdoor_events,
            'total_events': bound_pair(n_tight, n_leaky),
            'avg_event_duration': bound_pair(nanmean_safe(event_durations(indoor_events['tight'])),
                                             nanmean_safe(event_durations(indoor_events['leaky'])),
                                             ignore_nan=True),
            'event_severities': _severities(outdoor_events),
            'event_severities_tight': _severities(indoor_events['tight']),
            'event_severities_leaky': _severities(indoor_events['leaky']),
        }
        if outdoor_events:
            entry['pm25_response'] = analyze_event_response_bounds(
                outdoor_events, data['outdoor_PM25'],
                data['indoor_PM25_tight'], data['indoor_PM25_leaky'], params
            )
        else:
            entry['pm25_response'] = None
        entry['event_table'] = compute_event_metrics_table(
            config, 'PM2.5', outdoor_events, data['outdoor_PM25'], data['indoor_PM25_mean'], params
        )
        logger.debug(f"{config.label()}: {len(outdoor_events)} combined outdoor events")
        result[config] = entry
    return result


def average_response_time(indoor, outdoor, params=None):
    """
    Mean and std of the trigger response time of one indoor series.

    A trigger is an hour-on-hour outdoor rise above response.diff_threshold
    at index k. When a full lookahead window follows, the response time is
    the 0-based offset into indoor[k:k + lookahead + 1] of the first sample
    below target_fraction times indoor[k]. Triggers that never respond are
    left out.

    Returns:
    --------
    tuple of float
        (mean, std); (NaN, NaN) when no trigger responds. The std of a single
        response is 0.
    """
    params = params or DEFAULT_PARAMS
    response = params['response']
    lookahead = int(response['lookahead_hours'])
    indoor = as_array(indoor)
    outdoor = as_array(outdoor)

    with np.errstate(invalid='ignore'):
        triggers = np.flatnonzero(np.diff(outdoor) > response['diff_threshold'])
    times = []
    for k in triggers:
        if k + lookahead >= indoor.size:
            continue
        window = indoor[k:k + lookahead + 1]
        with np.errstate(invalid='ignore'):
            hits = np.flatnonzero(window < indoor[k] * response['target_fraction'])
        if hits.size:
            times.append(float(hits[0]))

    if not times:
        return np.nan, np.nan
    times = np.array(times)
    std = float(np.std(times, ddof=1)) if times.size > 1 else 0.0
    return float(np.mean(times)), std


def calculate_trigger_metrics(data: dict, params=None) -> Dict[str, object]:
    """
    Overall trigger performance of one active configuration (PM2.5).

    Response times are computed for the mean, tight and leaky indoor series.
    Hours whose mean-series I/O ratio is below threshold_factor times its
    median count as actively filtering; efficiency_gain compares the mean
    ratio outside those hours with the mean ratio inside them.
    """
    params = params or DEFAULT_PARAMS
    outdoor = data['outdoor_PM25']

    mean_rt, mean_std = average_response_time(data['indoor_PM25_mean'], outdoor, params)
    rt_tight, std_tight = average_response_time(data['indoor_PM25_tight'], outdoor, params)
    rt_leaky, std_leaky = average_response_time(data['indoor_PM25_leaky'], outdoor, params)

    metrics = {
        'avg_response_time': mean_rt,
        'avg_response_time_bounds': bound_pair(rt_tight, rt_leaky, ignore_nan=True),
        'response_time_std': nanmean_safe([std_tight, std_leaky]),
        'mean_series_response_time_std': mean_std,
    }

    ratio = io_ratio(data['indoor_PM25_mean'], outdoor)
    threshold = percentile_baseline(ratio, 50) * params['active_mode']['threshold_factor']
    with np.errstate(invalid='ignore'):
        active = ratio < threshold
    metrics['active_hours'] = int(active.sum())
    metrics['active_percentage'] = 100.0 * active.sum() / active.size if active.size else np.nan

    metrics['active_io_ratio'] = np.nan
    metrics['inactive_io_ratio'] = np.nan
    metrics['efficiency_gain'] = np.nan
    if active.any():
        active_ratio = nanmean_safe(ratio[active])
        inactive_ratio = nanmean_safe(ratio[~active])
        metrics['active_io_ratio'] = active_ratio
        metrics['inactive_io_ratio'] = inactive_ratio
        if inactive_ratio:
            metrics['efficiency_gain'] = 100.0 * (inactive_ratio - active_ratio) / inactive_ratio
    return metrics


def analyze_trigger_response(active_data: Dict[Configuration, dict], params=None) -> Dict[Configuration, dict]:
    """
    Indoor response to outdoor trigger events, per pollutant.

    Outdoor PM2.5 and PM10 events are detected against the percentile
    baseline (detect_outdoor_events). For each pollutant with events the
    tight and leaky indoor responses are analysed and bounded, and the
    return-to-baseline time of each envelope is measured against that
    envelope's own percentile baseline.

    Returns:
    --------
    dict
        Configuration -> dict with pm25_events, pm10_events, pm25_response,
        pm10_response (None when no event was found) and the trigger metrics
        from calculate_trigger_metrics
    """
    params = params or DEFAULT_PARAMS
    percentile = params['baseline']['percentile']

    result = {}
    for config, data in active_data.items():
        entry = {'location': config.location, 'filterType': config.filterType}
        for pollutant, column, key in (('PM2.5', 'PM25', 'pm25'), ('PM10', 'PM10', 'pm10')):
            outdoor = data[f'outdoor_{column}']
            events = detect_outdoor_events(outdoor, pollutant, params)
            entry[f'{key}_events'] = events
            if not events:
                entry[f'{key}_response'] = None
                continue

            tight = data[f'indoor_{column}_tight']
            leaky = data[f'indoor_{column}_leaky']
            response = analyze_event_response_bounds(events, outdoor, tight, leaky, params)
            rtb_tight = compute_return_to_baseline(events, tight, percentile_baseline(tight, percentile), params)
            rtb_leaky = compute_return_to_baseline(events, leaky, percentile_baseline(leaky, percentile), params)
            response['return_to_baseline_tight'] = rtb_tight
            response['return_to_baseline_leaky'] = rtb_leaky
            response.update(bounded_columns('avg_return_to_baseline', bound_pair(
                nanmean_safe(rtb_tight), nanmean_safe(rtb_leaky), ignore_nan=True)))
            entry[f'{key}_response'] = response

        entry['metrics'] = calculate_trigger_metrics(data, params)
        logger.debug(f"{config.label()}: {len(entry['pm25_events'])} PM2.5 and "
                     f"{len(entry['pm10_events'])} PM10 trigger events")
        result[config] = entry
    return result


def trigger_response_table(trigger_results: Dict[Configuration, dict]) -> pd.DataFrame:
    """
    One row per configuration from analyze_trigger_response.

    Bounded response aggregates are prefixed with the pollutant (pm25_ or
    pm10_) and are NaN for a pollutant without events.
    """
    rows = []
    for config, entry in trigger_results.items():
        row = {'location': config.location, 'filterType': config.filterType, 'mode': config.mode}
        for key in ('pm25', 'pm10'):
            row[f'{key}_events'] = len(entry[f'{key}_events'])
            response = entry[f'{key}_response']
            for metric in TRIGGER_RESPONSE_METRICS:
                for suffix in ('', '_lower', '_upper'):
                    row[f'{key}_{metric}{suffix}'] = np.nan if response is None else response[f'{metric}{suffix}']

        metrics = entry['metrics']
        row.update(bounded_columns('avg_response_time', metrics['avg_response_time_bounds']))
        row['mean_series_response_time'] = metrics['avg_response_time']
        for name in ('response_time_std', 'active_hours', 'active_percentage',
                     'active_io_ratio', 'inactive_io_ratio', 'efficiency_gain'):
            row[name] = metrics[name]
        rows.append(row)
    return pd.DataFrame(rows)
