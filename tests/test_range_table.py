"""Tests for the tight/leaky range table."""

import unittest

import numpy as np

from envelope_analysis.exceptions import MissingColumnError, MissingEnvelopePairWarning
from envelope_analysis.range_table import RANGE_COLUMNS, build_range_table
from tests import EnvelopeTestCase, make_summary_table

METRICS = ['avg_indoor_PM25', 'avg_indoor_PM10', 'total_cost', 'filter_replaced']
# baseline plus 2 filters x 2 modes, per location
N_CONFIGS = 2 * 5


class TestRangeTable(EnvelopeTestCase):

    def test_row_count(self):
        table = build_range_table(self.summary, METRICS)
        self.assertEqual(len(table), N_CONFIGS * len(METRICS))
        self.assertEqual(list(table.columns), RANGE_COLUMNS)

    def test_row_count_with_missing_pairs(self):
        summary = make_summary_table(drop=[('Phoenix', 'leaky', 'hepa', 'active'),
                                           ('Seattle', 'tight', 'merv', 'always_on')])
        with self.assertWarns(MissingEnvelopePairWarning):
            table = build_range_table(summary, METRICS)
        self.assertEqual(len(table), N_CONFIGS * len(METRICS))
        missing = table[(table['location'] == 'Phoenix') & (table['filterType'] == 'hepa') &
                        (table['mode'] == 'active')]
        self.assertEqual(len(missing), len(METRICS))
        self.assertTrue(missing['mean'].isna().all())

    def test_statistics(self):
        table = build_range_table(self.summary, ['total_cost'])
        row = table[(table['location'] == 'Phoenix') & (table['filterType'] == 'hepa') &
                    (table['mode'] == 'active')].iloc[0]
        self.assertEqual(row['lower_bound'], 150.0)
        self.assertEqual(row['upper_bound'], 170.0)
        self.assertEqual(row['mean'], 160.0)
        self.assertEqual(row['range_width'], 20.0)
        self.assertAlmostEqual(row['range_percent'], 12.5)
        self.assertAlmostEqual(row['range_factor'], 170.0 / 160.0)

    def test_zero_mean(self):
        table = build_range_table(self.summary, ['total_cost'])
        baseline = table[table['filterType'] == 'baseline']
        self.assertTrue((baseline['range_percent'] == 0).all())
        self.assertTrue((baseline['range_factor'] == 1).all())

    def test_sorted_by_range_percent(self):
        table = build_range_table(self.summary, METRICS)
        percent = table['range_percent'].to_numpy(dtype=float)
        finite = percent[~np.isnan(percent)]
        self.assertTrue(np.all(np.diff(finite) <= 0))
        # NaN rows (baseline filter_replaced) come last
        n_nan = int(np.isnan(percent).sum())
        self.assertGreater(n_nan, 0)
        self.assertTrue(np.isnan(percent[-n_nan:]).all())

    def test_unknown_metric(self):
        with self.assertRaises(MissingColumnError):
            build_range_table(self.summary, ['avg_indoor_O3'])


if __name__ == '__main__':
    unittest.main()
