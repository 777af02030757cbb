"""Tests for filter replacement and fan-law penalties."""

import unittest

import numpy as np

from envelope_analysis.config import get_analysis_params
from envelope_analysis.exceptions import MissingEnvelopePairWarning
from envelope_analysis.tradeoffs import (TRADEOFF_METRICS, airflow_penalty_pair,
                                         analyze_physical_tradeoffs, fan_law_penalty,
                                         replacements_per_year)
from tests import EnvelopeTestCase, make_summary_table


class TestPenalties(unittest.TestCase):

    def test_replacements(self):
        self.assertAlmostEqual(replacements_per_year(2190.0, 8760), 4.0)
        self.assertTrue(np.isnan(replacements_per_year(np.nan, 8760)))
        self.assertTrue(np.isnan(replacements_per_year(0.0, 8760)))

    def test_fan_law(self):
        self.assertEqual(fan_law_penalty(0.0, 0.5), 0.0)
        self.assertAlmostEqual(fan_law_penalty(0.375, 0.5), 50.0)
        self.assertEqual(fan_law_penalty(0.5, 0.5), 100.0)

    def test_pressure_ratio_clipped(self):
        self.assertEqual(fan_law_penalty(1.0, 0.5), 100.0)
        self.assertEqual(fan_law_penalty(-1.0, 0.5), 0.0)

    def test_airflow_pair(self):
        params = get_analysis_params(overrides={'tradeoffs': {'system_static_budget': 2.0}})['tradeoffs']
        tight, leaky = airflow_penalty_pair('merv', 'active', params)
        initial = fan_law_penalty(0.25, 2.0)
        loaded = fan_law_penalty(0.75, 2.0)
        average = initial + 0.4 * (loaded - initial)
        self.assertAlmostEqual(tight, average * 1.05)
        self.assertAlmostEqual(leaky, average * 0.95)

    def test_always_on_loads_faster(self):
        params = get_analysis_params(overrides={'tradeoffs': {'system_static_budget': 2.0}})['tradeoffs']
        active = airflow_penalty_pair('hepa', 'active', params)
        always_on = airflow_penalty_pair('hepa', 'always_on', params)
        self.assertGreater(always_on[0], active[0])

    def test_airflow_cap(self):
        params = get_analysis_params()['tradeoffs']
        tight, leaky = airflow_penalty_pair('hepa', 'always_on', params)
        self.assertEqual(tight, 50.0)
        self.assertLessEqual(leaky, 50.0)


class TestAnalyzePhysicalTradeoffs(EnvelopeTestCase):

    def test_table(self):
        table = analyze_physical_tradeoffs(self.summary)
        self.assertEqual(len(table), 8)
        for metric in TRADEOFF_METRICS:
            self.assertBoundColumnsOrdered(table, metric)
        self.assertTrue((table['energy_penalty_percent_upper'] <= 100).all())
        self.assertTrue((table['airflow_penalty_percent_upper'] <= 50).all())

    def test_replacement_bounds(self):
        table = analyze_physical_tradeoffs(self.summary, hours_per_year=8760)
        row = table[(table['location'] == 'Phoenix') & (table['filterType'] == 'hepa') &
                    (table['mode'] == 'active')].iloc[0]
        self.assertAlmostEqual(row['estimated_replacements_per_year_lower'], 8760 / 2400)
        self.assertAlmostEqual(row['estimated_replacements_per_year_upper'], 8760 / 2000)

    def test_energy_is_twice_airflow(self):
        params = get_analysis_params(overrides={'tradeoffs': {'system_static_budget': 2.0}})
        table = analyze_physical_tradeoffs(self.summary, params=params)
        np.testing.assert_allclose(table['energy_penalty_percent'], 2 * table['airflow_penalty_percent'])

    def test_default_budget_collapses_airflow_bound(self):
        table = analyze_physical_tradeoffs(self.summary)
        self.assertTrue((table['airflow_penalty_percent_lower'] == 50.0).all())
        self.assertTrue((table['airflow_penalty_percent_upper'] == 50.0).all())
        self.assertTrue((table['energy_penalty_percent'] == 100.0).all())

    def test_missing_pair_is_skipped(self):
        summary = make_summary_table(drop=[('Seattle', 'tight', 'hepa', 'always_on')])
        with self.assertWarns(MissingEnvelopePairWarning):
            table = analyze_physical_tradeoffs(summary)
        self.assertEqual(len(table), 7)


if __name__ == '__main__':
    unittest.main()
