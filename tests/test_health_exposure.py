"""Tests for the hours-in-AQI-category tables."""

import unittest

import numpy as np

from envelope_analysis.config import AQI_CATEGORIES
from envelope_analysis.exceptions import (MissingBaselineError, MissingColumnError,
                                          MissingDataError, MissingScenarioError)
from envelope_analysis.health_exposure import analyze_avoided_exposure, analyze_health_exposure
from tests import TEST_HOURS, EnvelopeTestCase, make_summary_table, set_series


class TestHealthExposure(EnvelopeTestCase):

    def test_row_structure(self):
        table = analyze_health_exposure(self.summary)
        # per location: two baseline rows and 2 filters x 2 envelopes x 3 scenarios
        self.assertEqual(len(table), 2 * (2 + 12))
        self.assertEqual(list(table.columns[:4]), ['location', 'leakage', 'filterType', 'scenario'])
        self.assertEqual(list(table.columns[4:]), AQI_CATEGORIES)
        baseline_rows = table[table['filterType'] == 'baseline']
        self.assertTrue((baseline_rows['scenario'] == 'baseline').all())

    def test_counts_sum_to_hours(self):
        table = analyze_health_exposure(self.summary)
        np.testing.assert_array_equal(table[AQI_CATEGORIES].sum(axis=1), TEST_HOURS)

    def test_filter_improves_exposure(self):
        table = analyze_health_exposure(self.summary)
        rows = table[(table['location'] == 'Phoenix') & (table['leakage'] == 'leaky') &
                     (table['filterType'] == 'hepa')].set_index('scenario')
        self.assertGreaterEqual(rows.loc['always_on', 'Good'], rows.loc['baseline', 'Good'])

    def test_triggered_is_active(self):
        summary = make_summary_table(mode_labels={'active': 'triggered'})
        table = analyze_health_exposure(summary)
        self.assertIn('active', set(table['scenario']))
        self.assertNotIn('triggered', set(table['scenario']))

    def test_missing_column(self):
        with self.assertRaises(MissingColumnError) as ctx:
            analyze_health_exposure(self.summary.drop(columns=['indoor_PM10']))
        self.assertEqual(ctx.exception.columns, ['indoor_PM10'])

    def test_missing_baseline(self):
        summary = make_summary_table(drop=[('Phoenix', 'tight', 'baseline', 'baseline')])
        with self.assertRaises(MissingBaselineError) as ctx:
            analyze_health_exposure(summary)
        self.assertEqual(ctx.exception.location, 'Phoenix')
        self.assertEqual(ctx.exception.leakage, 'tight')

    def test_missing_scenario(self):
        summary = make_summary_table(drop=[('Seattle', 'leaky', 'merv', 'always_on')])
        with self.assertRaises(MissingScenarioError) as ctx:
            analyze_health_exposure(summary)
        self.assertEqual(ctx.exception.scenario, 'always_on')
        self.assertEqual(ctx.exception.filter_type, 'merv')

    def test_nan_series(self):
        summary = make_summary_table()
        series = summary['indoor_PM25'].iloc[3].copy()
        series[5] = np.nan
        set_series(summary, 3, 'indoor_PM25', series)
        with self.assertRaises(MissingDataError):
            analyze_health_exposure(summary)

    def test_empty_series(self):
        summary = make_summary_table()
        set_series(summary, 2, 'indoor_PM10', [])
        with self.assertRaises(MissingDataError):
            analyze_health_exposure(summary)


class TestAvoidedExposure(EnvelopeTestCase):

    def test_one_row_per_run(self):
        table = analyze_avoided_exposure(self.summary)
        self.assertEqual(len(table), len(self.summary))
        self.assertTrue((table['Good'] == 0).all())

    def test_moderate_hours_avoided(self):
        table = analyze_avoided_exposure(self.summary)
        counts = table[AQI_CATEGORIES[1:]].to_numpy()
        self.assertTrue((counts >= 0).all())
        self.assertGreater(counts[:, 0].sum(), 0)

    def test_missing_outdoor_column(self):
        with self.assertRaises(MissingColumnError):
            analyze_avoided_exposure(self.summary.drop(columns=['outdoor_PM25']))

    def test_nan_outdoor_series(self):
        summary = make_summary_table()
        series = summary['outdoor_PM25'].iloc[3].copy()
        series[10] = np.nan
        set_series(summary, 3, 'outdoor_PM25', series)
        with self.assertRaises(MissingDataError) as ctx:
            analyze_avoided_exposure(summary)
        run = summary.iloc[3]
        self.assertEqual(ctx.exception.location, run['location'])
        self.assertEqual(ctx.exception.leakage, run['leakage'])
        self.assertEqual(ctx.exception.filter_type, run['filterType'])

    def test_empty_outdoor_series(self):
        summary = make_summary_table()
        set_series(summary, 1, 'outdoor_PM10', [])
        with self.assertRaises(MissingDataError):
            analyze_avoided_exposure(summary)


if __name__ == '__main__':
    unittest.main()
