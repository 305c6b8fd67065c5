"""
Unit tests for the Monte Carlo engine: return sampling, averaged returns and distributions.
"""
import pytest
import numpy as np

from conftest import UNIT_RADIUS_U1
from simulation import (
    AccountConfig, PlanParameters, ReturnSampler, spawn_samplers,
    estimate_average_returns, create_histogram_data, midpoint_median,
    HistogramBin, DistributionSimulator, simulate_distribution
)


class TestPlanParameters:
    """Test PlanParameters initialization"""

    def test_years_from_ages(self):
        """Test simulated years equal life expectancy minus current age"""
        params = PlanParameters(current_age=30, retirement_age=48, life_expectancy=90)
        assert params.years == 60
        assert params.years_until_retirement == 18

    def test_start_year_defaults_to_current_year(self):
        """Test start year is filled in when omitted"""
        from datetime import date
        params = PlanParameters()
        assert params.start_year == date.today().year

    def test_account_dicts_coerced(self):
        """Test plain dict accounts become AccountConfig"""
        params = PlanParameters(accounts={
            'hsa': {'balance': 1_000, 'annual_contribution': 500,
                    'expected_return': 6.0, 'std_dev': 10.0}
        })
        assert isinstance(params.accounts['hsa'], AccountConfig)
        assert params.accounts['hsa'].balance == 1_000

    def test_account_order_preserved(self):
        """Test accounts keep insertion order"""
        params = PlanParameters(accounts={
            'zeta': AccountConfig(), 'alpha': AccountConfig(), 'mid': AccountConfig()
        })
        assert list(params.accounts) == ['zeta', 'alpha', 'mid']


class TestReturnSampler:
    """Test Box-Muller return sampling"""

    def test_box_muller_positive_deviate(self, fixed_source):
        """Test u1 = e^-0.5, u2 = 0 gives mean plus one standard deviation"""
        sampler = ReturnSampler(fixed_source([UNIT_RADIUS_U1, 0.0]))
        assert sampler.sample_annual_return(5, 10) == pytest.approx(0.15)

    def test_box_muller_negative_deviate(self, fixed_source):
        """Test u2 = 0.5 flips the cosine"""
        sampler = ReturnSampler(fixed_source([UNIT_RADIUS_U1, 0.5]))
        assert sampler.sample_annual_return(5, 10) == pytest.approx(-0.05)

    def test_zero_uniform_is_redrawn(self, fixed_source):
        """Test a zero u1 is redrawn instead of producing an infinite log"""
        source = fixed_source([0.0, UNIT_RADIUS_U1, 0.0])
        sampler = ReturnSampler(source)

        value = sampler.sample_annual_return(5, 10)

        assert np.isfinite(value)
        assert value == pytest.approx(0.15)
        assert source.draws == 3

    def test_zero_std_dev_returns_mean(self, fixed_source):
        """Test zero volatility returns exactly the mean"""
        sampler = ReturnSampler(fixed_source([0.3, 0.7]))
        assert sampler.sample_annual_return(7, 0) == 0.07

    def test_sequence_length(self):
        """Test sequence has one draw per year"""
        sampler = ReturnSampler(random_seed=1)
        returns = sampler.sample_annual_return_sequence(12, 7, 15)
        assert len(returns) == 12
        assert np.all(np.isfinite(returns))

    def test_empty_sequence(self):
        """Test zero years returns an empty sequence"""
        sampler = ReturnSampler(random_seed=1)
        assert len(sampler.sample_annual_return_sequence(0, 7, 15)) == 0
        assert len(sampler.sample_annual_return_sequence(-3, 7, 15)) == 0

    def test_sequence_draws_are_independent(self, fixed_source):
        """Test each year uses its own pair of uniforms"""
        sampler = ReturnSampler(fixed_source([UNIT_RADIUS_U1, 0.0, UNIT_RADIUS_U1, 0.5]))
        returns = sampler.sample_annual_return_sequence(2, 5, 10)
        assert returns[0] == pytest.approx(0.15)
        assert returns[1] == pytest.approx(-0.05)

    def test_matrix_block_redraws_zeros(self, fixed_source):
        """Test the vectorized form redraws zero u1 entries"""
        source = fixed_source([0.0, UNIT_RADIUS_U1, UNIT_RADIUS_U1, 0.0, 0.0])
        sampler = ReturnSampler(source)

        z = sampler.standard_normal_matrix(1, 2)

        assert z.shape == (1, 2)
        np.testing.assert_allclose(z, [[1.0, 1.0]])

    def test_matrix_shape_and_moments(self):
        """Test the return matrix has the requested shape and distribution"""
        sampler = ReturnSampler(random_seed=42)
        returns = sampler.sample_return_matrix(20_000, 3, 5, 10)

        assert returns.shape == (20_000, 3)
        assert abs(returns.mean() - 0.05) < 0.005
        assert abs(returns.std() - 0.10) < 0.005

    def test_seed_reproducibility(self):
        """Test the same seed reproduces the same draws"""
        first = ReturnSampler(random_seed=7).sample_annual_return_sequence(10, 7, 15)
        second = ReturnSampler(random_seed=7).sample_annual_return_sequence(10, 7, 15)
        np.testing.assert_array_equal(first, second)

    def test_spawned_streams_differ(self):
        """Test spawned samplers do not share draws"""
        first, second = spawn_samplers(123, 2)
        a = first.sample_annual_return_sequence(10, 7, 15)
        b = second.sample_annual_return_sequence(10, 7, 15)
        assert not np.allclose(a, b)

    def test_spawned_streams_reproducible(self):
        """Test spawning from the same seed is reproducible"""
        a = spawn_samplers(123, 2)[1].sample_annual_return_sequence(5, 7, 15)
        b = spawn_samplers(123, 2)[1].sample_annual_return_sequence(5, 7, 15)
        np.testing.assert_array_equal(a, b)


class TestEstimateAverageReturns:
    """Test Monte Carlo averaged returns"""

    def _params(self, **account_overrides):
        account = dict(balance=10_000, annual_contribution=0, expected_return=9.2, std_dev=17.0)
        account.update(account_overrides)
        return PlanParameters(current_age=40, retirement_age=60, life_expectancy=70,
                              accounts={'brokerage': AccountConfig(**account)})

    def test_zero_std_dev_is_exact(self):
        """Test zero volatility returns exactly expected_return / 100 every year"""
        params = self._params(expected_return=6.5, std_dev=0.0)
        averages = estimate_average_returns(params, iterations=1_000, sampler=ReturnSampler(random_seed=3))

        assert len(averages['brokerage']) == 30
        assert np.all(averages['brokerage'] == 6.5 / 100)

    def test_one_curve_per_account(self):
        """Test a curve of length years for every account, in order"""
        params = PlanParameters(current_age=50, retirement_age=60, life_expectancy=65,
                                accounts={'hsa': AccountConfig(), 'roth_ira': AccountConfig(),
                                          'custom': AccountConfig()})
        averages = estimate_average_returns(params, iterations=100, sampler=ReturnSampler(random_seed=1))

        assert list(averages) == ['hsa', 'roth_ira', 'custom']
        for curve in averages.values():
            assert len(curve) == 15

    def test_converges_to_expected_return(self):
        """Test averaged returns approach the mean with many iterations"""
        params = self._params()
        averages = estimate_average_returns(params, iterations=10_000, sampler=ReturnSampler(random_seed=11))

        assert np.all(np.abs(averages['brokerage'] - 0.092) < 0.01)

    def test_fewer_iterations_noisier(self):
        """Test per-year variance shrinks with more iterations"""
        params = self._params()
        few = estimate_average_returns(params, iterations=10, sampler=ReturnSampler(random_seed=5))
        many = estimate_average_returns(params, iterations=10_000, sampler=ReturnSampler(random_seed=5))

        assert np.std(many['brokerage']) < np.std(few['brokerage'])

    def test_empty_year_range(self):
        """Test no years gives empty curves"""
        params = PlanParameters(current_age=70, retirement_age=65, life_expectancy=70,
                                accounts={'hsa': AccountConfig()})
        averages = estimate_average_returns(params, iterations=100)
        assert len(averages['hsa']) == 0


class TestHistogram:
    """Test histogram construction"""

    def test_percentages_sum_to_100(self):
        """Test bucket percentages sum to 100"""
        values = np.random.default_rng(0).lognormal(mean=13, sigma=0.5, size=1_000)
        histogram = create_histogram_data(values, bins=50)

        assert len(histogram) == 50
        assert sum(b.percentage for b in histogram) == pytest.approx(100.0)

    def test_bin_centers_and_max_clamp(self):
        """Test centers and that the maximum lands in the last bucket"""
        histogram = create_histogram_data(np.array([0.0, 1.0, 2.0, 3.0, 4.0]), bins=4)

        assert [b.value for b in histogram] == pytest.approx([0.5, 1.5, 2.5, 3.5])
        assert [b.percentage for b in histogram] == pytest.approx([20.0, 20.0, 20.0, 40.0])

    def test_two_bins(self):
        """Test a two-value, two-bin split"""
        histogram = create_histogram_data([0.0, 10.0], bins=2)
        assert histogram == [HistogramBin(value=2.5, percentage=50.0),
                             HistogramBin(value=7.5, percentage=50.0)]

    def test_degenerate_values(self):
        """Test identical values produce one bucket holding every trial"""
        histogram = create_histogram_data(np.full(20, 5_000.0), bins=50)
        assert histogram == [HistogramBin(value=5_000.0, percentage=100.0)]

    def test_empty_values(self):
        """Test no values gives no buckets"""
        assert create_histogram_data(np.array([]), bins=10) == []


class TestMidpointMedian:
    """Test index-based median"""

    def test_odd_count(self):
        """Test five trials pick the middle sorted value"""
        assert midpoint_median(np.array([10, 30, 20, 50, 40])) == 30

    def test_even_count_takes_upper_middle(self):
        """Test even counts use index n // 2, not an averaged midpoint"""
        assert midpoint_median([4.0, 1.0, 3.0, 2.0]) == 3.0

    def test_empty(self):
        assert midpoint_median([]) is None


class TestDistributionSimulator:
    """Test Monte Carlo distribution simulation"""

    def _deterministic_params(self, **overrides):
        values = dict(
            current_age=30, retirement_age=32, life_expectancy=34,
            annual_expenses=1_000_000, inflation_rate=0.0,
            accounts={'brokerage': AccountConfig(balance=1_000, annual_contribution=100,
                                                 expected_return=10.0, std_dev=0.0)}
        )
        values.update(overrides)
        return PlanParameters(**values)

    def test_degenerate_distribution(self):
        """Test zero volatility yields a single 100% bucket and exact medians"""
        params = self._deterministic_params()
        summary = simulate_distribution(params, iterations=200, bins=50,
                                        sampler=ReturnSampler(random_seed=1))

        # 1000 -> 1200 -> 1420 -> 1562 -> 1718.2 (no contributions once retired)
        assert len(summary.peak_distribution) == 1
        assert summary.peak_distribution[0].percentage == 100.0
        assert summary.peak_distribution[0].value == pytest.approx(1_718.2)
        assert len(summary.min_distribution) == 1
        assert summary.min_distribution[0].value == pytest.approx(1_200.0)
        assert summary.median_peak == pytest.approx(1_718.2)
        assert summary.median_min == pytest.approx(1_200.0)

    def test_no_withdrawals_applied(self):
        """Test expenses never reduce simulated balances"""
        params = self._deterministic_params(annual_expenses=10_000_000)
        summary = simulate_distribution(params, iterations=10, sampler=ReturnSampler(random_seed=1))
        assert summary.median_min == pytest.approx(1_200.0)

    def test_contributions_scale_with_inflation(self):
        """Test contributions grow with cumulative inflation until retirement"""
        params = self._deterministic_params(
            inflation_rate=10.0,
            accounts={'other': AccountConfig(balance=0, annual_contribution=100,
                                             expected_return=0.0, std_dev=0.0)}
        )
        summary = simulate_distribution(params, iterations=5, sampler=ReturnSampler(random_seed=1))

        # 100, then 100 + 110, then flat after retirement
        assert summary.median_peak == pytest.approx(210.0)
        assert summary.median_min == pytest.approx(100.0)

    def test_histogram_percentages_sum_to_100(self):
        """Test both histograms sum to 100% across all bins"""
        params = self._deterministic_params(
            life_expectancy=60,
            accounts={
                'hsa': AccountConfig(balance=1_000, annual_contribution=7_300,
                                     expected_return=9.2, std_dev=17.0),
                'brokerage': AccountConfig(balance=100_000, annual_contribution=1_000,
                                           expected_return=9.2, std_dev=17.0),
            }
        )
        summary = simulate_distribution(params, iterations=500, bins=50,
                                        sampler=ReturnSampler(random_seed=9))

        assert len(summary.peak_distribution) == 50
        assert len(summary.min_distribution) == 50
        assert sum(b.percentage for b in summary.peak_distribution) == pytest.approx(100.0)
        assert sum(b.percentage for b in summary.min_distribution) == pytest.approx(100.0)
        assert summary.median_min <= summary.median_peak

    def test_empty_year_range(self):
        """Test no years gives empty distributions instead of an error"""
        params = self._deterministic_params(current_age=34, retirement_age=34, life_expectancy=34)
        summary = simulate_distribution(params, iterations=100)

        assert summary.peak_distribution == []
        assert summary.min_distribution == []
        assert summary.median_peak is None
        assert summary.median_min is None

    def test_class_and_function_agree(self):
        """Test the simulator class and the function give the same result for a seed"""
        params = self._deterministic_params(
            accounts={'brokerage': AccountConfig(balance=50_000, annual_contribution=1_000,
                                                 expected_return=7.0, std_dev=15.0)}
        )
        from_class = DistributionSimulator(params, iterations=300, bins=20,
                                           sampler=ReturnSampler(random_seed=4)).run_simulation()
        from_function = simulate_distribution(params, iterations=300, bins=20,
                                              sampler=ReturnSampler(random_seed=4))
        assert from_class == from_function

    def test_seeded_params_reproducible(self):
        """Test random_seed makes default-sampler runs reproducible"""
        params = self._deterministic_params(
            random_seed=2024,
            accounts={'brokerage': AccountConfig(balance=50_000, annual_contribution=1_000,
                                                 expected_return=7.0, std_dev=15.0)}
        )
        first = simulate_distribution(params, iterations=200, bins=10)
        second = simulate_distribution(params, iterations=200, bins=10)
        assert first.median_peak == second.median_peak
