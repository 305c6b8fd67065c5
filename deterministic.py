"""
Deterministic retirement projection using Monte Carlo averaged returns.
Provides one smoothed year-by-year trajectory of account balances.
"""
import logging
from typing import Dict, List, Optional
from dataclasses import dataclass, field

import numpy as np

from simulation import (
    PlanParameters, ReturnSampler, DEFAULT_ITERATIONS, estimate_average_returns
)

logger = logging.getLogger(__name__)

# Accounts drawn for retirement expenses, in order. Other accounts are never drawn.
WITHDRAWAL_PRIORITY = ('hsa', 'retirement_401k', 'brokerage', 'roth_ira')


@dataclass
class ProjectionYear:
    """One year of the deterministic projection"""
    age: int
    year: int
    total_balance: float
    balances: Dict[str, float] = field(default_factory=dict)
    withdrawal: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        """Flatten to a table row with one '<account>_balance' column per account"""
        row = {'age': self.age, 'year': self.year, 'total_balance': self.total_balance}
        for key, balance in self.balances.items():
            row[f'{key}_balance'] = balance
        row['withdrawal'] = self.withdrawal
        return row


def withdraw_greedily(balances: Dict[str, float], amount: float) -> float:
    """
    Withdraw ``amount`` from accounts in WITHDRAWAL_PRIORITY order, in place.

    Each account gives min(remaining, balance); accounts are never taken below
    zero and accounts outside the priority list are untouched.

    Args:
        balances: Account key -> balance, modified in place
        amount: Amount needed

    Returns:
        Unmet remainder (0 when fully funded)
    """
    remaining = amount
    for key in WITHDRAWAL_PRIORITY:
        if remaining <= 0:
            break
        if key not in balances:
            continue
        withdrawal = min(remaining, balances[key])
        balances[key] -= withdrawal
        remaining -= withdrawal
    return remaining


class DeterministicProjector:
    """Deterministic projection with averaged returns, contributions and withdrawals"""

    def __init__(self, params: PlanParameters,
                 iterations: int = DEFAULT_ITERATIONS,
                 sampler: Optional[ReturnSampler] = None,
                 average_returns: Optional[Dict[str, np.ndarray]] = None):
        self.params = params
        self.iterations = iterations
        self.sampler = sampler
        self.average_returns = average_returns

    def _inflation_factor(self, year_idx: int) -> float:
        return (1 + self.params.inflation_rate / 100) ** year_idx

    def run_projection(self) -> List[ProjectionYear]:
        """Run deterministic projection"""
        years = self.params.years
        if years <= 0:
            return []

        average_returns = self.average_returns
        if average_returns is None:
            average_returns = estimate_average_returns(self.params, self.iterations, self.sampler)

        balances = {key: float(account.balance) for key, account in self.params.accounts.items()}
        projection = []
        shortfall_years = 0

        for year_idx in range(years):
            age = self.params.current_age + year_idx
            is_retired = age >= self.params.retirement_age

            # Growth, then contributions while working
            for key, account in self.params.accounts.items():
                balances[key] *= (1 + average_returns[key][year_idx])
                if not is_retired:
                    balances[key] += account.annual_contribution * self._inflation_factor(year_idx)

            # Recorded before this year's withdrawal
            total_balance = sum(balances.values())

            withdrawal = 0.0
            if is_retired:
                withdrawal = self.params.annual_expenses * self._inflation_factor(year_idx)
                if withdraw_greedily(balances, withdrawal) > 0:
                    shortfall_years += 1

            projection.append(ProjectionYear(
                age=age,
                year=self.params.start_year + year_idx,
                total_balance=total_balance,
                balances=dict(balances),
                withdrawal=withdrawal
            ))

        logger.debug("Projection built: %d years, %d with unmet withdrawals",
                     years, shortfall_years)
        return projection


def build_projection(params: PlanParameters,
                     iterations: int = DEFAULT_ITERATIONS,
                     sampler: Optional[ReturnSampler] = None,
                     average_returns: Optional[Dict[str, np.ndarray]] = None) -> List[ProjectionYear]:
    """Build the smoothed year-by-year projection for a plan"""
    return DeterministicProjector(params, iterations, sampler, average_returns).run_projection()


def calculate_summary_stats(projection: List[ProjectionYear],
                            params: PlanParameters) -> Dict[str, float]:
    """
    Calculate dashboard summary statistics for a projection.

    Success rate is the percentage of years in which the withdrawable
    accounts still hold a positive combined balance.

    Args:
        projection: Output of build_projection
        params: Plan parameters the projection was built from

    Returns:
        Dictionary with success_rate (percent), peak_balance,
        final_balance and total_current_savings
    """
    total_current_savings = sum(account.balance for account in params.accounts.values())
    if not projection:
        return {
            'success_rate': 0.0,
            'peak_balance': 0.0,
            'final_balance': 0.0,
            'total_current_savings': total_current_savings
        }

    funded_years = sum(
        1 for row in projection
        if sum(row.balances.get(key, 0.0) for key in WITHDRAWAL_PRIORITY) > 0
    )

    return {
        'success_rate': funded_years / len(projection) * 100,
        'peak_balance': max(row.total_balance for row in projection),
        'final_balance': projection[-1].total_balance,
        'total_current_savings': total_current_savings
    }
