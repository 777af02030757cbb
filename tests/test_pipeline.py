"""End-to-end tests for the analysis pipeline."""

import tempfile
import unittest
import warnings
from pathlib import Path

import numpy as np
import pandas as pd

from envelope_analysis.exceptions import (AnalysisError, IncompleteEnvelopeError, MissingDataError,
                                          MissingEnvelopePairWarning)
from envelope_analysis.pipeline import DEFAULT_RANGE_METRICS, run_pipeline, save_tables
from envelope_analysis.utils import load_summary_table
from tests import EnvelopeTestCase, make_summary_table, set_series


class TestRunPipeline(EnvelopeTestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.results = run_pipeline(cls.summary, params=cls.params)

    def test_tables(self):
        for name in ('health_exposure', 'avoided_exposure', 'costs', 'tradeoffs',
                     'efficacy_scores', 'range_table', 'io_ratios', 'filter_comparison',
                     'event_metrics', 'event_summary', 'filter_performance', 'efficacy_vs_baseline',
                     'trigger_summary', 'penetration_summary', 'temporal_summary'):
            self.assertIsInstance(self.results[name], pd.DataFrame, name)

    def test_row_counts(self):
        self.assertEqual(len(self.results['costs']), 8)
        self.assertEqual(len(self.results['efficacy_scores']), 8)
        self.assertEqual(len(self.results['range_table']), 10 * len(DEFAULT_RANGE_METRICS))
        self.assertEqual(len(self.results['filter_comparison']), 2)
        self.assertEqual(len(self.results['filter_performance']), 4)
        self.assertEqual(len(self.results['efficacy_vs_baseline']), 8)
        for name in ('trigger_summary', 'penetration_summary', 'temporal_summary'):
            self.assertEqual(len(self.results[name]), 4, name)

    def test_stability_scores(self):
        # both HEPA and MERV run in active mode, so every location gets a dynamic comparison
        table = self.results['filter_comparison']
        for name in ('hepa_stability_score', 'merv_stability_score'):
            values = table[[name, f'{name}_lower', f'{name}_upper']].to_numpy(dtype=float)
            self.assertTrue(np.isfinite(values).all(), name)
            self.assertBoundColumnsOrdered(table, name)

    def test_trigger_events(self):
        summary = self.results['trigger_summary']
        self.assertTrue((summary['pm25_events'] > 0).all())
        self.assertBoundColumnsOrdered(summary, 'pm25_avg_peak_reduction')

    def test_event_tables(self):
        # 4 active configurations with 4 episodes each
        self.assertEqual(len(self.results['event_metrics']), 16)
        self.assertEqual(len(self.results['event_summary']), 4)

    def test_ranked(self):
        self.assertEqual(list(self.results['efficacy_scores']['rank']), list(range(1, 9)))

    def test_validation_is_fail_fast(self):
        summary = make_summary_table(drop=[('Phoenix', 'leaky', 'hepa', 'active')])
        with self.assertRaises(IncompleteEnvelopeError):
            run_pipeline(summary)

    def test_nan_outdoor_series(self):
        summary = make_summary_table()
        series = summary['outdoor_PM25'].iloc[5].copy()
        series[20] = np.nan
        set_series(summary, 5, 'outdoor_PM25', series)
        with self.assertRaises(MissingDataError) as ctx:
            run_pipeline(summary)
        self.assertIsInstance(ctx.exception, AnalysisError)
        self.assertEqual(ctx.exception.location, 'Phoenix')

    def test_sparse_data_without_validation(self):
        # no leaky HEPA runs at all for Phoenix, so exposure counts stay complete
        summary = make_summary_table(drop=[('Phoenix', 'leaky', 'hepa', 'active'),
                                           ('Phoenix', 'leaky', 'hepa', 'always_on')])
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            results = run_pipeline(summary, validate=False)
        self.assertTrue(any(issubclass(w.category, MissingEnvelopePairWarning) for w in caught))
        self.assertEqual(len(results['costs']), 6)
        self.assertEqual(len(results['efficacy_scores']), 6)
        self.assertEqual(len(results['range_table']), 10 * len(DEFAULT_RANGE_METRICS))

    def test_save_tables(self):
        with tempfile.TemporaryDirectory() as tmp:
            written = save_tables(self.results, tmp)
            names = {path.stem for path in written}
            self.assertIn('efficacy_scores', names)
            self.assertNotIn('params', names)
            costs = pd.read_csv(Path(tmp) / 'costs.csv')
            self.assertEqual(len(costs), 8)


class TestLoadSummaryTable(unittest.TestCase):

    def test_pickle_round_trip(self):
        summary = make_summary_table(locations=['Phoenix'], n_hours=48)
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'summary_table.pkl'
            summary.to_pickle(path)
            loaded = load_summary_table(path)
        self.assertEqual(len(loaded), len(summary))
        self.assertEqual(loaded['indoor_PM25'].iloc[0].size, 48)
        self.assertEqual(loaded.attrs['source'], str(path))

    def test_missing_file(self):
        with self.assertWarns(UserWarning):
            loaded = load_summary_table('/nonexistent/summary_table.pkl')
        self.assertTrue(loaded.empty)


if __name__ == '__main__':
    unittest.main()
