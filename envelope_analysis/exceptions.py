"""
Exceptions and warnings raised by the analysis pipeline.

Fail-fast conditions raise a subclass of AnalysisError. Conditions that only
affect one configuration are reported with MissingEnvelopePairWarning and the
configuration is skipped (or NaN-filled).
"""


class AnalysisError(ValueError):
    """Base class for analysis errors."""

    def __init__(self, message, location=None, leakage=None,
                 filter_type=None, scenario=None):
        super().__init__(message)
        self.location = location
        self.leakage = leakage
        self.filter_type = filter_type
        self.scenario = scenario


class MissingColumnError(AnalysisError):
    """Required column(s) absent from an input table."""

    def __init__(self, message, columns=None, **kwargs):
        super().__init__(message, **kwargs)
        self.columns = list(columns or [])


class MissingBaselineError(AnalysisError):
    """No baseline scenario for a location/leakage combination."""


class MissingScenarioError(AnalysisError):
    """A required intervention scenario is absent."""


class MissingDataError(AnalysisError):
    """A PM series is empty or contains NaN."""


class IncompleteEnvelopeError(AnalysisError):
    """A configuration lacks its tight or leaky simulation."""


class InvalidWeightsError(AnalysisError):
    """Efficacy weights are malformed or do not sum to 1.0."""


class MissingEnvelopePairWarning(UserWarning):
    """A configuration was skipped or NaN-filled for lack of a tight/leaky pair."""
