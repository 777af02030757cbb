"""
Deterministic tight/leaky bounds.

The tight and leaky building envelopes are two evaluations of the same
scenario that bracket the unknown real building. A BoundedMetric is that
bracket: the midpoint of the two realizations plus their min and max. It is
not a confidence interval.
"""

from typing import Dict, NamedTuple, Optional

import numpy as np


class Configuration(NamedTuple):
    """A comparable intervention, independent of envelope."""
    location: str
    filterType: str
    mode: str

    def label(self, sep: str = '-') -> str:
        return sep.join([self.location, self.filterType, self.mode])


class BoundedMetric(NamedTuple):
    """Mean of the tight/leaky realizations with their min and max."""
    mean: float
    lower: float
    upper: float

    @property
    def width(self) -> float:
        return self.upper - self.lower

    @property
    def half_range(self) -> float:
        return (self.upper - self.lower) / 2

    def is_nan(self) -> bool:
        return bool(np.isnan(self.mean) and np.isnan(self.lower) and np.isnan(self.upper))

    def as_columns(self, name: str) -> Dict[str, float]:
        return bounded_columns(name, self)


NAN_BOUNDS = BoundedMetric(np.nan, np.nan, np.nan)


def _mean_pair(a: float, b: float) -> float:
    # inf + inf is fine; inf + -inf is not a bracket we can describe
    if np.isinf(a) and np.isinf(b) and np.sign(a) != np.sign(b):
        return np.nan
    return (a + b) / 2


def bound_pair(tight: float, leaky: float, ignore_nan: bool = False) -> BoundedMetric:
    """
    Combine tight and leaky realizations of one metric.

    Parameters:
    -----------
    tight, leaky : float
        The two envelope realizations
    ignore_nan : bool
        If True and exactly one realization is NaN, the other realization is
        used for all three fields. If False any NaN gives an all-NaN bound.

    Returns:
    --------
    BoundedMetric
        mean=(tight+leaky)/2, lower=min, upper=max
    """
    a = float(tight)
    b = float(leaky)
    a_nan = np.isnan(a)
    b_nan = np.isnan(b)

    if a_nan and b_nan:
        return NAN_BOUNDS
    if a_nan or b_nan:
        if not ignore_nan:
            return NAN_BOUNDS
        value = b if a_nan else a
        return BoundedMetric(value, value, value)

    mean = _mean_pair(a, b)
    if np.isnan(mean):
        return NAN_BOUNDS
    return BoundedMetric(mean, min(a, b), max(a, b))


def bound_difference(x: BoundedMetric, y: BoundedMetric) -> BoundedMetric:
    """
    Bounds of Z = X - Y for independently bounded X and Y.

    The extremes of a difference occur at opposite extremes of the operands,
    so lower = X.lower - Y.upper and upper = X.upper - Y.lower.
    """
    lower = x.lower - y.upper
    upper = x.upper - y.lower
    mean = x.mean - y.mean
    if np.isnan(lower) or np.isnan(upper) or np.isnan(mean):
        return NAN_BOUNDS
    return BoundedMetric(mean, lower, upper)


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, +inf for a non-positive denominator, NaN propagates."""
    if np.isnan(numerator) or np.isnan(denominator):
        return np.nan
    if denominator <= 0:
        return np.inf
    return numerator / denominator


def bound_ratio(x: BoundedMetric, y: BoundedMetric) -> BoundedMetric:
    """
    Bounds of Z = X / Y for a non-negative X and independently bounded Y.

    Higher X and lower Y both increase Z, so lower = X.lower / Y.upper and
    upper = X.upper / Y.lower. A denominator bound at or below zero makes the
    corresponding side +inf.
    """
    if np.nanmin([x.lower, x.mean, x.upper]) < 0:
        raise ValueError("bound_ratio requires a non-negative numerator")
    lower = safe_ratio(x.lower, y.upper)
    upper = safe_ratio(x.upper, y.lower)
    mean = safe_ratio(x.mean, y.mean)
    if np.isnan(lower) or np.isnan(upper) or np.isnan(mean):
        return NAN_BOUNDS
    return BoundedMetric(mean, lower, upper)


def bound_overlap_percent(x: BoundedMetric, y: BoundedMetric) -> float:
    """
    Shared length of two bounds as a percent of their union.

    Two zero-width bounds at the same value overlap 100%. NaN if either bound
    is NaN.
    """
    if np.isnan([x.lower, x.upper, y.lower, y.upper]).any():
        return np.nan
    overlap = min(x.upper, y.upper) - max(x.lower, y.lower)
    union = max(x.upper, y.upper) - min(x.lower, y.lower)
    if overlap < 0:
        return 0.0
    if union == 0:
        return 100.0
    return 100.0 * overlap / union


def cost_per_unit(cost: float, effect: float, min_effect: float = 0.0) -> float:
    """
    Cost divided by effect for one envelope.

    An effect at or below MIN_EFFECT cannot be bought at any finite cost, so
    the result is +inf rather than zero or NaN.
    """
    if np.isnan(cost) or np.isnan(effect):
        return np.nan
    if effect <= min_effect:
        return np.inf
    return cost / effect


def percent_reduction(baseline: float, intervention: float,
                      zero_baseline: str = 'nan') -> float:
    """
    100 * (baseline - intervention) / baseline.

    Parameters:
    -----------
    baseline, intervention : float
        Values for the same envelope
    zero_baseline : str
        Result for a zero baseline: 'nan', 'zero' or 'inf'
        ('inf' is signed by the reduction, and 0/0 is still 0)
    """
    if np.isnan(baseline) or np.isnan(intervention):
        return np.nan
    if baseline == 0:
        if zero_baseline == 'zero':
            return 0.0
        if zero_baseline == 'inf':
            diff = baseline - intervention
            return 0.0 if diff == 0 else float(np.sign(diff) * np.inf)
        if zero_baseline == 'nan':
            return np.nan
        raise ValueError(f"Unknown zero_baseline policy: {zero_baseline}")
    return 100.0 * (baseline - intervention) / baseline


def bounded_columns(name: str, metric: BoundedMetric) -> Dict[str, float]:
    """Flatten a bound into the <metric>, <metric>_lower, <metric>_upper convention."""
    return {
        name: metric.mean,
        f'{name}_lower': metric.lower,
        f'{name}_upper': metric.upper,
    }


def bounds_from_columns(row, name: str) -> BoundedMetric:
    """Read a bound back out of a flat table row."""
    return BoundedMetric(row[name], row[f'{name}_lower'], row[f'{name}_upper'])


def format_bounds(mean: float, lower: float, upper: float,
                  mean_format: str = '{:.1f}', bound_format: str = '{:.1f}',
                  style: str = 'explicit', tight_label: str = 'tight',
                  leaky_label: str = 'leaky',
                  missing_text: str = 'bounds unavailable',
                  include_newline: bool = False,
                  unit: Optional[str] = None) -> str:
    """
    Render a bound for reports.

    Styles:
        'explicit' -> "45.2 (tight 40.1 – leaky 52.8)"
        'pm'       -> "45.2 ± 6.3"
        'both'     -> "45.2 ± 6.3 (tight 40.1 – leaky 52.8)"

    Parameters:
    -----------
    mean, lower, upper : float
        Bound to render; lower/upper are reordered if swapped
    mean_format, bound_format : str
        str.format templates for the mean and the bounds
    style : str
        'explicit', 'pm' or 'both'
    tight_label, leaky_label : str
        Labels for the lower and upper bound
    missing_text : str
        Text used when the mean or a bound is not finite
    include_newline : bool
        Put the parenthetical bounds on a new line
    unit : str, optional
        Suffix appended to every number

    Returns:
    --------
    str
    """
    style = style.lower()
    if style not in ('explicit', 'pm', 'both'):
        raise ValueError(f"Unknown style: {style}")
    suffix = unit or ''
    sep = '\n' if include_newline else ' '

    if not np.isfinite(mean):
        return missing_text

    mean_str = mean_format.format(mean) + suffix
    if not (np.isfinite(lower) and np.isfinite(upper)):
        if style == 'pm':
            return f'{mean_str} ± {missing_text}'
        if style == 'both':
            return f'{mean_str} ± {missing_text}{sep}({missing_text})'
        return f'{mean_str} ({missing_text})'

    lower, upper = min(lower, upper), max(lower, upper)
    lower_str = bound_format.format(lower) + suffix
    upper_str = bound_format.format(upper) + suffix
    half_str = bound_format.format((upper - lower) / 2) + suffix
    bounds_text = f'({tight_label} {lower_str} – {leaky_label} {upper_str})'

    if style == 'pm':
        return f'{mean_str} ± {half_str}'
    if style == 'both':
        return f'{mean_str} ± {half_str}{sep}{bounds_text}'
    return f'{mean_str} {bounds_text}'
