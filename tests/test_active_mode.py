"""Tests for the active-mode dynamics analyses."""

import unittest

import numpy as np

from envelope_analysis.active_mode import (analyze_cross_correlations, analyze_io_ratios,
                                           analyze_trigger_response, average_response_time,
                                           calculate_trigger_metrics, compare_filters_dynamic,
                                           detect_analyze_pollution_events, extract_active_mode_data,
                                           io_ratio, normalized_xcorr, quantify_envelope_uncertainty,
                                           trigger_response_table)
from envelope_analysis.bounds import BoundedMetric, Configuration
from envelope_analysis.exceptions import MissingEnvelopePairWarning
from tests import EPISODE_STARTS, TEST_LOCATIONS, EnvelopeTestCase, make_summary_table


class TestExtractActiveModeData(EnvelopeTestCase):

    def test_keys(self):
        data = extract_active_mode_data(self.summary)
        expected = {Configuration(loc, f, 'active') for loc in TEST_LOCATIONS for f in ('hepa', 'merv')}
        self.assertEqual(set(data), expected)

    def test_mean_series(self):
        data = extract_active_mode_data(self.summary)
        entry = data[Configuration('Phoenix', 'hepa', 'active')]
        np.testing.assert_allclose(entry['indoor_PM25_mean'],
                                   (entry['indoor_PM25_tight'] + entry['indoor_PM25_leaky']) / 2)
        self.assertEqual(len(entry['outdoor_PM25']), len(entry['indoor_PM25_mean']))

    def test_triggered_label(self):
        summary = make_summary_table(mode_labels={'active': 'triggered'})
        self.assertEqual(len(extract_active_mode_data(summary)), 4)

    def test_missing_envelope_skipped(self):
        summary = make_summary_table(drop=[('Seattle', 'leaky', 'merv', 'active')])
        with self.assertWarns(MissingEnvelopePairWarning):
            data = extract_active_mode_data(summary)
        self.assertNotIn(Configuration('Seattle', 'merv', 'active'), data)
        self.assertEqual(len(data), 3)


class TestIoRatios(EnvelopeTestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.active = extract_active_mode_data(cls.summary)

    def test_io_ratio_handles_zero_outdoor(self):
        ratio = io_ratio([1.0, 2.0], [0.0, 4.0])
        self.assertTrue(np.isnan(ratio[0]))
        self.assertEqual(ratio[1], 0.5)

    def test_table(self):
        table = analyze_io_ratios(self.active)
        self.assertEqual(len(table), 4)
        self.assertBoundColumnsOrdered(table, 'io_ratio_pm25')
        self.assertBoundColumnsOrdered(table, 'io_ratio_pm10')
        self.assertIn('io_ratio_pm25_variability', table.columns)

    def test_hepa_below_merv(self):
        table = analyze_io_ratios(self.active).set_index(['location', 'filterType'])
        for location in TEST_LOCATIONS:
            self.assertLess(table.loc[(location, 'hepa'), 'io_ratio_pm25'],
                            table.loc[(location, 'merv'), 'io_ratio_pm25'])

    def test_compare_filters(self):
        table = compare_filters_dynamic(self.active)
        self.assertEqual(sorted(table['location']), sorted(TEST_LOCATIONS))
        for metric in ('hepa_avg_io_ratio_pm25', 'merv_avg_io_ratio_pm25',
                       'io_ratio_pm25_difference', 'merv_to_hepa_io_ratio'):
            self.assertBoundColumnsOrdered(table, metric)
        self.assertTrue((table['merv_to_hepa_io_ratio'] > 1).all())
        self.assertTrue((table['io_ratio_pm25_difference'] < 0).all())

    def test_compare_filters_needs_both(self):
        only_hepa = {k: v for k, v in self.active.items() if k.filterType == 'hepa'}
        self.assertTrue(compare_filters_dynamic(only_hepa).empty)


class TestUncertainty(EnvelopeTestCase):

    def test_entries(self):
        active = extract_active_mode_data(self.summary)
        result = quantify_envelope_uncertainty(active, self.summary)
        entry = result[Configuration('Phoenix', 'hepa', 'active')]
        self.assertIsInstance(entry['pm25_bounds'], BoundedMetric)
        self.assertGreater(entry['pm25_range_percent'], 0)
        self.assertTrue(np.all(entry['hourly_lower_pm25'] <= entry['hourly_upper_pm25']))
        self.assertEqual(set(entry['uncertainty_contributions']),
                         {'envelope', 'outdoor', 'system', 'measurement'})
        reduction = entry['pm25_reduction_percent']
        self.assertBoundOrdered(reduction.lower, reduction.mean, reduction.upper)
        self.assertGreater(reduction.lower, 0)

    def test_without_summary(self):
        active = extract_active_mode_data(self.summary)
        entry = quantify_envelope_uncertainty(active)[Configuration('Seattle', 'merv', 'active')]
        self.assertNotIn('pm25_reduction_percent', entry)


class TestCrossCorrelation(EnvelopeTestCase):

    def test_identical_series(self):
        x = np.random.RandomState(1).uniform(1, 2, 100)
        lags, corr = normalized_xcorr(x, x, 5)
        np.testing.assert_array_equal(lags, np.arange(-5, 6))
        self.assertAlmostEqual(corr[lags == 0][0], 1.0)
        self.assertEqual(lags[np.argmax(corr)], 0)

    def test_trailing_series(self):
        x = np.random.RandomState(2).uniform(0, 1, 300)
        y = np.concatenate([np.zeros(3), x[:-3]])
        lags, corr = normalized_xcorr(x, y, 10)
        self.assertEqual(lags[np.argmax(corr)], -3)

    def test_zero_series(self):
        _, corr = normalized_xcorr(np.zeros(10), np.ones(10), 2)
        self.assertTrue(np.isnan(corr).all())

    def test_analysis(self):
        active = extract_active_mode_data(self.summary)
        result = analyze_cross_correlations(active, max_lag=12)
        entry = result[Configuration('Phoenix', 'merv', 'active')]
        self.assertEqual(entry['lags'].size, 25)
        bounds = entry['max_correlation_pm25_bounds']
        self.assertBoundOrdered(bounds.lower, bounds.mean, bounds.upper)
        self.assertGreater(entry['max_correlation_pm25'], 0.5)
        self.assertGreater(entry['transfer_function'].size, 0)
        self.assertEqual(entry['frequencies'].size, entry['transfer_function'].size)


class TestPollutionEvents(EnvelopeTestCase):

    def test_events(self):
        active = extract_active_mode_data(self.summary)
        result = detect_analyze_pollution_events(active, self.params)
        entry = result[Configuration('Phoenix', 'hepa', 'active')]
        self.assertEqual(len(entry['combined_events']), len(EPISODE_STARTS))
        starts = [event.start for event in entry['combined_events']]
        self.assertEqual(starts, sorted(starts))
        for event, episode in zip(entry['combined_events'], EPISODE_STARTS):
            self.assertTrue(episode <= event.peak_time < episode + 6)
        self.assertEqual(entry['event_severities'].size, len(EPISODE_STARTS))
        self.assertTrue((entry['event_severities'] > 1).all())

        counts = entry['total_events']
        self.assertBoundOrdered(counts.lower, counts.mean, counts.upper)

        response = entry['pm25_response']
        self.assertEqual(response['num_events'], len(EPISODE_STARTS))
        self.assertBoundOrdered(response['avg_peak_reduction_lower'], response['avg_peak_reduction'],
                                response['avg_peak_reduction_upper'])

        table = entry['event_table']
        self.assertEqual(len(table), len(EPISODE_STARTS))
        self.assertTrue((table['config'] == 'Phoenix-hepa-active').all())


class TestTriggerResponse(EnvelopeTestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.active = extract_active_mode_data(cls.summary)
        cls.results = analyze_trigger_response(cls.active, cls.params)

    def test_response_time_offset(self):
        outdoor = np.zeros(30)
        outdoor[2:] = 10.0
        indoor = np.full(30, 4.0)
        indoor[3] = 3.0
        indoor[4:] = 1.5
        # trigger at index 1, first sample below 2.0 is indoor[4]
        self.assertEqual(average_response_time(indoor, outdoor), (3.0, 0.0))

    def test_response_time_without_response(self):
        outdoor = np.zeros(30)
        outdoor[2:] = 10.0
        mean, std = average_response_time(np.full(30, 4.0), outdoor)
        self.assertTrue(np.isnan(mean))
        self.assertTrue(np.isnan(std))

    def test_trigger_too_close_to_end(self):
        outdoor = np.zeros(30)
        outdoor[11:] = 10.0
        indoor = np.full(30, 4.0)
        indoor[12:] = 1.0
        mean, _ = average_response_time(indoor, outdoor)
        self.assertTrue(np.isnan(mean))

    def test_trigger_metrics(self):
        metrics = calculate_trigger_metrics(self.active[Configuration('Phoenix', 'hepa', 'active')], self.params)
        bounds = metrics['avg_response_time_bounds']
        self.assertBoundOrdered(bounds.lower, bounds.mean, bounds.upper)
        self.assertFalse(np.isnan(metrics['avg_response_time']))
        self.assertTrue(0 <= metrics['active_percentage'] <= 100)
        self.assertGreater(metrics['active_hours'], 0)
        self.assertLess(metrics['active_io_ratio'], metrics['inactive_io_ratio'])
        self.assertGreater(metrics['efficiency_gain'], 0)

    def test_outdoor_events(self):
        self.assertEqual(len(self.results), 4)
        entry = self.results[Configuration('Phoenix', 'hepa', 'active')]
        self.assertEqual(len(entry['pm25_events']), len(EPISODE_STARTS))
        for event, episode in zip(entry['pm25_events'], EPISODE_STARTS):
            self.assertTrue(episode <= event.peak_time < episode + 6)
        self.assertGreaterEqual(len(entry['pm10_events']), len(EPISODE_STARTS))

    def test_bounded_responses(self):
        entry = self.results[Configuration('Seattle', 'merv', 'active')]
        response = entry['pm25_response']
        self.assertEqual(response['num_events'], len(EPISODE_STARTS))
        for metric in ('avg_lag_time', 'avg_peak_reduction', 'avg_return_to_baseline'):
            self.assertBoundOrdered(response[f'{metric}_lower'], response[metric], response[f'{metric}_upper'])
        self.assertEqual(response['return_to_baseline_tight'].size, len(EPISODE_STARTS))

    def test_table(self):
        table = trigger_response_table(self.results)
        self.assertEqual(len(table), 4)
        self.assertTrue((table['pm25_events'] == len(EPISODE_STARTS)).all())
        for metric in ('pm25_avg_lag_time', 'pm25_avg_peak_reduction', 'pm10_avg_recovery_time',
                       'pm25_avg_return_to_baseline', 'avg_response_time'):
            self.assertBoundColumnsOrdered(table, metric)

    def test_no_events(self):
        config = Configuration('Phoenix', 'hepa', 'active')
        flat = dict(self.active[config])
        flat['outdoor_PM25'] = np.full(flat['outdoor_PM25'].size, 8.0)
        entry = analyze_trigger_response({config: flat}, self.params)[config]
        self.assertEqual(entry['pm25_events'], [])
        self.assertIsNone(entry['pm25_response'])
        row = trigger_response_table({config: entry}).iloc[0]
        self.assertTrue(np.isnan(row['pm25_avg_peak_reduction_lower']))


if __name__ == '__main__':
    unittest.main()
