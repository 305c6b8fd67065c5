"""
Monte Carlo engine for multi-account retirement projections.
Return sampling, averaged-return estimation and outcome distribution simulation.
Pure functions for simulation logic, decoupled from UI.
"""
import logging
import math
from datetime import date
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 10_000
DEFAULT_HISTOGRAM_BINS = 50

# Stream indices so seeded estimator and simulator never share draws
PROJECTION_STREAM = 0
DISTRIBUTION_STREAM = 1


@dataclass
class AccountConfig:
    """Configuration for a single investment account"""
    balance: float = 0.0
    annual_contribution: float = 0.0
    expected_return: float = 7.0  # percent
    std_dev: float = 15.0  # percent

    # Display only, ignored by the engine
    label: str = ""
    color: str = ""


@dataclass
class PlanParameters:
    """Parameters for a retirement plan projection"""
    current_age: int = 30
    retirement_age: int = 48
    life_expectancy: int = 90
    annual_expenses: float = 70_000
    inflation_rate: float = 2.0  # percent

    accounts: Dict[str, AccountConfig] = field(default_factory=dict)

    start_year: Optional[int] = None
    random_seed: Optional[int] = None

    def __post_init__(self):
        if self.start_year is None:
            self.start_year = date.today().year

        # Accept plain dicts (e.g. from JSON) for account configs
        self.accounts = {
            key: account if isinstance(account, AccountConfig) else AccountConfig(**account)
            for key, account in self.accounts.items()
        }

    @property
    def years(self) -> int:
        """Number of simulated years"""
        return self.life_expectancy - self.current_age

    @property
    def years_until_retirement(self) -> int:
        return self.retirement_age - self.current_age


class ReturnSampler:
    """Normal annual return draws via the Box-Muller transform.

    The uniform source is injectable: anything with a ``random(size=None)``
    method in the manner of ``numpy.random.Generator``. Tests pass a
    fixed-sequence source to get deterministic draws.
    """

    def __init__(self, uniform_source: Any = None, random_seed: Optional[int] = None):
        if uniform_source is None:
            uniform_source = np.random.default_rng(random_seed)
        self.uniform_source = uniform_source

    def _nonzero_uniform(self) -> float:
        """Draw a uniform value, redrawing zeros so ln(u) stays finite"""
        u = float(self.uniform_source.random())
        while u <= 0.0:
            u = float(self.uniform_source.random())
        return u

    def _nonzero_uniform_block(self, size: int) -> np.ndarray:
        u = np.asarray(self.uniform_source.random(size), dtype=float).reshape(size)
        zeros = u <= 0.0
        while zeros.any():
            u[zeros] = np.asarray(self.uniform_source.random(int(zeros.sum())), dtype=float)
            zeros = u <= 0.0
        return u

    def sample_annual_return(self, mean_percent: float, std_dev_percent: float) -> float:
        """Draw one annual return (as a fraction) from Normal(mean%, std%)"""
        u1 = self._nonzero_uniform()
        u2 = float(self.uniform_source.random())
        z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
        return mean_percent / 100 + std_dev_percent / 100 * z

    def sample_annual_return_sequence(self, years: int, mean_percent: float,
                                      std_dev_percent: float) -> np.ndarray:
        """Draw ``years`` independent annual returns"""
        if years <= 0:
            return np.zeros(0)
        return np.array([self.sample_annual_return(mean_percent, std_dev_percent)
                         for _ in range(years)])

    def standard_normal_matrix(self, trials: int, years: int) -> np.ndarray:
        """
        Draw a (trials, years) block of standard normal deviates.

        Vectorized Box-Muller: every u1 of the block is drawn before any u2.

        Args:
            trials: Number of independent sequences (rows)
            years: Length of each sequence (columns)

        Returns:
            Array of shape (trials, years)
        """
        if trials <= 0 or years <= 0:
            return np.zeros((max(trials, 0), max(years, 0)))

        size = trials * years
        u1 = self._nonzero_uniform_block(size)
        u2 = np.asarray(self.uniform_source.random(size), dtype=float).reshape(size)
        z = np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
        return z.reshape(trials, years)

    def sample_return_matrix(self, trials: int, years: int, mean_percent: float,
                             std_dev_percent: float) -> np.ndarray:
        """Draw ``trials`` independent return sequences of length ``years``"""
        z = self.standard_normal_matrix(trials, years)
        return mean_percent / 100 + std_dev_percent / 100 * z


def spawn_samplers(random_seed: Optional[int], count: int) -> List[ReturnSampler]:
    """Create samplers on independent, non-overlapping random streams"""
    children = np.random.SeedSequence(random_seed).spawn(count)
    return [ReturnSampler(np.random.default_rng(child)) for child in children]


def estimate_average_returns(params: PlanParameters,
                             iterations: int = DEFAULT_ITERATIONS,
                             sampler: Optional[ReturnSampler] = None) -> Dict[str, np.ndarray]:
    """
    Estimate the expected annual return per account per year by Monte Carlo averaging.

    Each iteration draws one full return sequence per account; the per-year
    sums are divided by the iteration count. The average of
    ``mean + std * z`` is accumulated as ``mean + std * sum(z) / iterations``
    so zero-volatility accounts come back at exactly their expected return.

    Args:
        params: Plan parameters
        iterations: Number of sequences averaged per account
        sampler: Return sampler (projection stream of params.random_seed if omitted)

    Returns:
        Dictionary of account key -> array of averaged returns (length = years)
    """
    if sampler is None:
        sampler = spawn_samplers(params.random_seed, 2)[PROJECTION_STREAM]

    years = max(params.years, 0)
    logger.debug("Estimating average returns: %d accounts, %d years, %d iterations",
                 len(params.accounts), years, iterations)

    average_returns = {}
    for key, account in params.accounts.items():
        z_sums = sampler.standard_normal_matrix(iterations, years).sum(axis=0)
        average_returns[key] = (account.expected_return / 100
                                + account.std_dev / 100 * z_sums / iterations)
    return average_returns


@dataclass
class HistogramBin:
    """One histogram bucket: center value and share of trials (percent)"""
    value: float
    percentage: float


@dataclass
class DistributionSummary:
    """Distribution of per-trial peak and minimum total balances"""
    peak_distribution: List[HistogramBin]
    min_distribution: List[HistogramBin]
    median_peak: Optional[float]
    median_min: Optional[float]


def create_histogram_data(values: np.ndarray, bins: int = DEFAULT_HISTOGRAM_BINS) -> List[HistogramBin]:
    """
    Bin values into equal-width buckets over [min, max] as percentages.

    Args:
        values: Raw values, one per trial
        bins: Number of buckets

    Returns:
        List of HistogramBin in ascending value order
    """
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return []

    low = float(values.min())
    high = float(values.max())
    bin_width = (high - low) / bins

    # All values identical: one bucket holds every trial
    if bin_width == 0:
        logger.debug("Degenerate histogram: all %d values equal %s", values.size, low)
        return [HistogramBin(value=low, percentage=100.0)]

    indices = np.floor((values - low) / bin_width).astype(int)
    indices = np.minimum(indices, bins - 1)
    counts = np.bincount(indices, minlength=bins)

    return [
        HistogramBin(value=low + (index + 0.5) * bin_width,
                     percentage=count / values.size * 100)
        for index, count in enumerate(counts)
    ]


def midpoint_median(values: np.ndarray) -> Optional[float]:
    """Element at index floor(n/2) of the ascending sort (upper median for even n)"""
    values = np.sort(np.asarray(values, dtype=float))
    if values.size == 0:
        return None
    return float(values[values.size // 2])


class DistributionSimulator:
    """Monte Carlo simulation of peak and minimum total portfolio value"""

    def __init__(self, params: PlanParameters,
                 iterations: int = DEFAULT_ITERATIONS,
                 bins: int = DEFAULT_HISTOGRAM_BINS,
                 sampler: Optional[ReturnSampler] = None):
        self.params = params
        self.iterations = iterations
        self.bins = bins
        if sampler is None:
            sampler = spawn_samplers(params.random_seed, 2)[DISTRIBUTION_STREAM]
        self.sampler = sampler

    def _simulate_extremes(self):
        """Run every trial; return per-trial (peak, minimum) total balances"""
        years = self.params.years
        inflation = self.params.inflation_rate / 100

        # Each trial draws its own return path per account
        returns = {
            key: self.sampler.sample_return_matrix(self.iterations, years,
                                                   account.expected_return, account.std_dev)
            for key, account in self.params.accounts.items()
        }
        balances = {
            key: np.full(self.iterations, float(account.balance))
            for key, account in self.params.accounts.items()
        }

        peaks = np.full(self.iterations, -np.inf)
        minimums = np.full(self.iterations, np.inf)

        for year_idx in range(years):
            contributing = year_idx < self.params.years_until_retirement
            total = np.zeros(self.iterations)
            for key, account in self.params.accounts.items():
                balances[key] *= (1 + returns[key][:, year_idx])
                if contributing:
                    balances[key] += account.annual_contribution * (1 + inflation) ** year_idx
                total += balances[key]

            peaks = np.maximum(peaks, total)
            minimums = np.minimum(minimums, total)

        return peaks, minimums

    def run_simulation(self) -> DistributionSummary:
        """Run Monte Carlo simulation"""
        if self.params.years <= 0 or self.iterations <= 0:
            return DistributionSummary(peak_distribution=[], min_distribution=[],
                                       median_peak=None, median_min=None)

        logger.debug("Simulating distribution: %d trials, %d years, %d accounts",
                     self.iterations, self.params.years, len(self.params.accounts))

        peaks, minimums = self._simulate_extremes()

        return DistributionSummary(
            peak_distribution=create_histogram_data(peaks, self.bins),
            min_distribution=create_histogram_data(minimums, self.bins),
            median_peak=midpoint_median(peaks),
            median_min=midpoint_median(minimums)
        )


def simulate_distribution(params: PlanParameters,
                          iterations: int = DEFAULT_ITERATIONS,
                          bins: int = DEFAULT_HISTOGRAM_BINS,
                          sampler: Optional[ReturnSampler] = None) -> DistributionSummary:
    """Simulate the distribution of peak and minimum total balances"""
    return DistributionSimulator(params, iterations, bins, sampler).run_simulation()
