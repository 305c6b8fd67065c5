"""
Shared fixtures for the retirement projection tests.
"""
import math
import os
import sys

import numpy as np
import pytest

# Add the parent directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from simulation import AccountConfig, PlanParameters

# u1 giving sqrt(-2 ln u1) == 1, so u2 = 0 yields z = +1 and u2 = 0.5 yields z = -1
UNIT_RADIUS_U1 = math.exp(-0.5)


class FixedUniformSource:
    """Uniform source replaying a fixed sequence (cycled), shaped like numpy's Generator.random"""

    def __init__(self, values):
        self.values = list(values)
        self.position = 0
        self.draws = 0

    def _next(self):
        value = self.values[self.position % len(self.values)]
        self.position += 1
        self.draws += 1
        return value

    def random(self, size=None):
        if size is None:
            return self._next()
        return np.array([self._next() for _ in range(int(np.prod(size)))]).reshape(size)


@pytest.fixture
def fixed_source():
    """Factory for fixed-sequence uniform sources"""
    return FixedUniformSource


@pytest.fixture
def withdrawal_plan():
    """Plan retiring after one year with zero-growth accounts"""
    return PlanParameters(
        current_age=64,
        retirement_age=65,
        life_expectancy=67,
        annual_expenses=250,
        inflation_rate=0.0,
        start_year=2030,
        accounts={
            'hsa': AccountConfig(balance=100, expected_return=0, std_dev=0),
            'retirement_401k': AccountConfig(balance=200, expected_return=0, std_dev=0),
            'brokerage': AccountConfig(balance=0, expected_return=0, std_dev=0),
            'roth_ira': AccountConfig(balance=500, expected_return=0, std_dev=0),
            'real_estate': AccountConfig(balance=1000, expected_return=0, std_dev=0),
        }
    )
