"""
Configuration Utilities for the Retirement Dashboard
Default plan, input ranges, plan validation and account management helpers.
Pure functions: every helper returns a new PlanParameters and leaves its input untouched.
"""

import logging
import random
from dataclasses import replace
from typing import Dict, Any, Optional, Tuple

from simulation import AccountConfig, PlanParameters

logger = logging.getLogger(__name__)


# Display labels for the canonical accounts
ACCOUNT_LABELS = {
    'hsa': 'HSA',
    'retirement_401k': '401(k)',
    'roth_ira': 'Roth IRA',
    'brokerage': 'Brokerage',
    'real_estate': 'Real Estate'
}

# Input bounds used by the dashboard sliders: (min, max, step)
PARAMETER_RANGES = {
    'current_age': (18, 80, 1),
    'retirement_age': (19, 85, 1),
    'life_expectancy': (20, 100, 1),
    'annual_expenses': (20_000, 200_000, 5_000),
    'inflation_rate': (0.0, 10.0, 0.1),
    'balance': (0, 2_000_000, 5_000),
    'annual_contribution': (0, 50_000, 500),
    'expected_return': (0.0, 15.0, 0.1),
    'std_dev': (0.0, 30.0, 0.1),
}

NEW_ACCOUNT_DEFAULTS = {
    'balance': 0,
    'annual_contribution': 0,
    'expected_return': 7.0,
    'std_dev': 15.0,
}


def get_default_accounts() -> Dict[str, AccountConfig]:
    """Get the default five-account setup"""
    return {
        'hsa': AccountConfig(balance=1_000, annual_contribution=7_300,
                             expected_return=9.2, std_dev=17.0,
                             label=ACCOUNT_LABELS['hsa'], color='#48bb78'),
        'retirement_401k': AccountConfig(balance=100_000, annual_contribution=33_000,
                                         expected_return=9.2, std_dev=17.0,
                                         label=ACCOUNT_LABELS['retirement_401k'], color='#4299e1'),
        'roth_ira': AccountConfig(balance=100_000, annual_contribution=6_500,
                                  expected_return=9.2, std_dev=17.0,
                                  label=ACCOUNT_LABELS['roth_ira'], color='#9f7aea'),
        'brokerage': AccountConfig(balance=100_000, annual_contribution=1_000,
                                   expected_return=9.2, std_dev=17.0,
                                   label=ACCOUNT_LABELS['brokerage'], color='#ed8936'),
        'real_estate': AccountConfig(balance=100_000, annual_contribution=4_000,
                                     expected_return=4.0, std_dev=8.0,
                                     label=ACCOUNT_LABELS['real_estate'], color='#f56565'),
    }


def get_default_plan_params() -> PlanParameters:
    """Get default plan parameters"""
    return PlanParameters(
        current_age=30,
        retirement_age=48,
        life_expectancy=90,
        annual_expenses=70_000,
        inflation_rate=2.0,
        accounts=get_default_accounts()
    )


def account_label(key: str, account: Optional[AccountConfig] = None) -> str:
    """Display label for an account, falling back to the canonical label or the key"""
    if account is not None and account.label:
        return account.label
    return ACCOUNT_LABELS.get(key, key)


def validate_plan_params(params: PlanParameters) -> Tuple[bool, str]:
    """
    Validate plan parameters before they reach the engine.

    Args:
        params: PlanParameters to check

    Returns:
        (is_valid, error_message)
    """
    if not params.current_age < params.retirement_age:
        return False, "Retirement age must be greater than current age"

    if not params.retirement_age < params.life_expectancy:
        return False, "Life expectancy must be greater than retirement age"

    if params.annual_expenses <= 0:
        return False, "Annual expenses must be positive"

    for key, account in params.accounts.items():
        if account.balance < 0:
            return False, f"Balance for account '{key}' must not be negative"
        if account.annual_contribution < 0:
            return False, f"Annual contribution for account '{key}' must not be negative"
        if account.std_dev < 0:
            return False, f"Standard deviation for account '{key}' must not be negative"

    return True, ""


def _next_account_id(accounts: Dict[str, Any]) -> str:
    index = len(accounts) + 1
    while f'account{index}' in accounts:
        index += 1
    return f'account{index}'


def add_account(params: PlanParameters, color: Optional[str] = None) -> Tuple[PlanParameters, str]:
    """
    Add a new account with default settings.

    Args:
        params: Current plan parameters
        color: Display color (random if omitted)

    Returns:
        (new plan parameters, new account key)
    """
    key = _next_account_id(params.accounts)
    if color is None:
        color = f"#{random.randint(0, 0xFFFFFF):06x}"

    accounts = dict(params.accounts)
    accounts[key] = AccountConfig(label=f"Account {key[len('account'):]}", color=color,
                                  **NEW_ACCOUNT_DEFAULTS)
    logger.debug("Added account %s", key)
    return replace(params, accounts=accounts), key


def remove_account(params: PlanParameters, key: str) -> PlanParameters:
    """Remove an account; unknown keys are ignored"""
    accounts = {k: v for k, v in params.accounts.items() if k != key}
    return replace(params, accounts=accounts)


def update_account(params: PlanParameters, key: str, **changes) -> PlanParameters:
    """Return new parameters with one account's fields changed"""
    if key not in params.accounts:
        raise KeyError(f"Unknown account: {key}")
    accounts = dict(params.accounts)
    accounts[key] = replace(accounts[key], **changes)
    return replace(params, accounts=accounts)
