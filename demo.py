#!/usr/bin/env python3
"""
Demo script showing how to use the retirement projection modules programmatically.
This demonstrates the core functionality without the Streamlit UI.
"""
import logging
from dataclasses import replace

from simulation import spawn_samplers, simulate_distribution, PROJECTION_STREAM, DISTRIBUTION_STREAM
from deterministic import build_projection, calculate_summary_stats
from config_utils import get_default_plan_params, account_label
from io_utils import create_parameters_download_json, format_currency


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s]: %(message)s")

    print("🚀 Retirement Projection Demo")
    print("=" * 50)

    # 1. Plan parameters
    print("\n📊 Setting up plan parameters...")
    params = replace(get_default_plan_params(), random_seed=42)  # For reproducible results

    print(f"   Ages: now {params.current_age}, retire {params.retirement_age}, "
          f"plan to {params.life_expectancy} ({params.years} years)")
    print(f"   Annual expenses: {format_currency(params.annual_expenses)} "
          f"(+{params.inflation_rate:g}% inflation)")
    for key, account in params.accounts.items():
        print(f"   {account_label(key, account):<12} {format_currency(account.balance):>10} "
              f"+{format_currency(account.annual_contribution)}/yr  "
              f"{account.expected_return:g}% ± {account.std_dev:g}%")

    samplers = spawn_samplers(params.random_seed, 2)

    # 2. Averaged projection
    print("\n📉 Building averaged projection...")
    projection = build_projection(params, sampler=samplers[PROJECTION_STREAM])
    stats = calculate_summary_stats(projection, params)

    print(f"   Success Rate: {stats['success_rate']:.4g}%")
    print(f"   Peak Balance: {format_currency(stats['peak_balance'])}")
    print(f"   Final Balance: {format_currency(stats['final_balance'])}")

    # 3. Year-by-year sample around retirement
    print(f"\n📋 Years Around Retirement:")
    print(f"   {'Age':<5} {'Year':<6} {'Total':>14} {'Withdrawal':>12}")
    print(f"   {'-'*5} {'-'*6} {'-'*14} {'-'*12}")
    start = max(0, params.years_until_retirement - 2)
    for row in projection[start:start + 5]:
        print(f"   {row.age:<5} {row.year:<6} {format_currency(row.total_balance):>14} "
              f"{format_currency(row.withdrawal):>12}")

    # 4. Monte Carlo distribution
    print("\n🎲 Running Monte Carlo simulation...")
    summary = simulate_distribution(params, sampler=samplers[DISTRIBUTION_STREAM])
    print(f"   Median Peak Value: {format_currency(summary.median_peak)}")
    print(f"   Median Minimum Value: {format_currency(summary.median_min)}")

    # 5. Parameter export
    print(f"\n💾 Parameter Export Demo:")
    json_params = create_parameters_download_json(params)
    print(f"   Parameters exported to JSON ({len(json_params)} characters)")

    print(f"\n✅ Demo completed successfully!")
    print(f"   To run the full Streamlit UI: streamlit run app.py")
    print(f"   To run tests: python3 -m pytest tests/ -v")


if __name__ == "__main__":
    main()
