"""
IO utilities for saving/loading plan parameters and exporting results.
Handles JSON serialization of parameters and CSV exports of projections and distributions.
"""
import json
import logging
import pandas as pd
from typing import Dict, Any, List
from dataclasses import asdict, fields

from simulation import AccountConfig, PlanParameters, DistributionSummary
from deterministic import ProjectionYear
from config_utils import validate_plan_params

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ['current_age', 'retirement_age', 'life_expectancy',
                   'annual_expenses', 'inflation_rate', 'accounts']


def params_to_dict(params: PlanParameters) -> Dict[str, Any]:
    """
    Convert PlanParameters to dictionary for JSON serialization.

    Args:
        params: PlanParameters object

    Returns:
        Dictionary representation
    """
    return asdict(params)


def dict_to_params(param_dict: Dict[str, Any]) -> PlanParameters:
    """
    Convert dictionary to PlanParameters object.

    Args:
        param_dict: Dictionary with parameter values

    Returns:
        PlanParameters object

    Raises:
        ValueError: If a required field is missing or an account entry is malformed
    """
    for field_name in REQUIRED_FIELDS:
        if field_name not in param_dict:
            raise ValueError(f"Missing required field: {field_name}")

    # Create a copy to avoid modifying the original
    filtered_dict = param_dict.copy()

    # Drop keys PlanParameters does not know (e.g. UI preferences)
    known = {f.name for f in fields(PlanParameters)}
    for key in list(filtered_dict):
        if key not in known:
            filtered_dict.pop(key)

    account_fields = {f.name for f in fields(AccountConfig)}
    accounts = {}
    for key, account in (filtered_dict.get('accounts') or {}).items():
        if isinstance(account, AccountConfig):
            accounts[key] = account
            continue
        if not isinstance(account, dict):
            raise ValueError(f"Account '{key}' must be a mapping of settings")
        unknown = set(account) - account_fields
        if unknown:
            raise ValueError(f"Unknown fields for account '{key}': {', '.join(sorted(unknown))}")
        accounts[key] = AccountConfig(**account)
    filtered_dict['accounts'] = accounts

    return PlanParameters(**filtered_dict)


def save_parameters_json(params: PlanParameters, filepath: str) -> None:
    """
    Save plan parameters to JSON file.

    Args:
        params: PlanParameters object to save
        filepath: Path to save JSON file
    """
    with open(filepath, 'w') as f:
        json.dump(params_to_dict(params), f, indent=2)


def load_parameters_json(filepath: str) -> PlanParameters:
    """
    Load plan parameters from JSON file.

    Args:
        filepath: Path to JSON file

    Returns:
        PlanParameters object
    """
    with open(filepath, 'r') as f:
        param_dict = json.load(f)

    return dict_to_params(param_dict)


def create_parameters_download_json(params: PlanParameters) -> str:
    """Create JSON string for downloading parameters"""
    return json.dumps(params_to_dict(params), indent=2)


def parse_parameters_upload_json(json_string: str) -> PlanParameters:
    """Parse uploaded JSON string to PlanParameters"""
    return dict_to_params(json.loads(json_string))


def validate_parameters_json(json_string: str) -> tuple[bool, str]:
    """
    Validate uploaded parameters JSON.

    Args:
        json_string: JSON string to validate

    Returns:
        (is_valid, error_message)
    """
    try:
        param_dict = json.loads(json_string)

        if not isinstance(param_dict, dict):
            return False, "Parameters must be a JSON object"

        # Check required fields
        for field_name in REQUIRED_FIELDS:
            if field_name not in param_dict:
                return False, f"Missing required field: {field_name}"

        if not isinstance(param_dict['accounts'], dict):
            return False, "Accounts must be a mapping of account id to settings"

        params = dict_to_params(param_dict)
        return validate_plan_params(params)

    except json.JSONDecodeError as e:
        return False, f"Invalid JSON: {str(e)}"
    except (TypeError, ValueError) as e:
        return False, f"Parameter validation error: {str(e)}"


def projection_to_dataframe(projection: List[ProjectionYear]) -> pd.DataFrame:
    """
    Build the year-by-year table for a projection.

    Args:
        projection: Output of build_projection

    Returns:
        DataFrame with age, year, total_balance, one <account>_balance column
        per account and withdrawal
    """
    return pd.DataFrame([row.to_dict() for row in projection])


def export_projection_csv(projection: List[ProjectionYear]) -> str:
    """Export the year-by-year projection to CSV string"""
    return projection_to_dataframe(projection).to_csv(index=False)


def distribution_to_dataframe(summary: DistributionSummary) -> pd.DataFrame:
    """Long-format table of both histograms"""
    rows = []
    for name, histogram in (('peak', summary.peak_distribution),
                            ('minimum', summary.min_distribution)):
        for bin_ in histogram:
            rows.append({'distribution': name, 'value': bin_.value,
                         'percentage': bin_.percentage})
    return pd.DataFrame(rows, columns=['distribution', 'value', 'percentage'])


def export_distribution_csv(summary: DistributionSummary) -> str:
    """Export peak and minimum histograms to CSV string"""
    return distribution_to_dataframe(summary).to_csv(index=False)


def format_currency(value: float) -> str:
    """
    Format a value as whole US dollars.

    Args:
        value: Numeric value to format

    Returns:
        Formatted string, e.g. "$1,234,568" or "-$500"
    """
    sign = "-" if round(value) < 0 else ""
    return f"{sign}${abs(value):,.0f}"


def format_axis_value(value: float) -> str:
    """Compact axis label: '1.5 Mil', '250 K' (trailing .0 dropped)"""
    if value >= 1_000_000:
        formatted = f"{value / 1_000_000:.1f}"
        suffix = "Mil"
    else:
        formatted = f"{value / 1_000:.1f}"
        suffix = "K"
    if formatted.endswith(".0"):
        formatted = formatted[:-2]
    return f"{formatted} {suffix}"
