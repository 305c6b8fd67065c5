"""
Streamlit web application for multi-account retirement projections.
Provides interactive inputs for the plan and accounts and shows the averaged
projection alongside the Monte Carlo outcome distributions.
"""
import hashlib
import logging
from dataclasses import replace

import streamlit as st

from simulation import PlanParameters, spawn_samplers, simulate_distribution
from simulation import PROJECTION_STREAM, DISTRIBUTION_STREAM
from deterministic import build_projection, calculate_summary_stats
from config_utils import (
    PARAMETER_RANGES, get_default_plan_params, validate_plan_params,
    account_label, add_account, remove_account, update_account
)
from charts import create_balance_projection_chart, create_withdrawal_chart, create_distribution_chart
from io_utils import (
    create_parameters_download_json, parse_parameters_upload_json, validate_parameters_json,
    projection_to_dataframe, export_projection_csv, export_distribution_csv, format_currency
)

logger = logging.getLogger(__name__)

ACCOUNT_WIDGET_SUFFIXES = ("_balance", "_contribution", "_return", "_std_dev")


def initialize_session_state():
    """Initialize session state variables with the default plan"""
    defaults = {
        'plan_params': get_default_plan_params(),

        # Results caching
        'projection': None,
        'distribution': None,
        'last_params_hash': None,
    }

    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def get_current_params() -> PlanParameters:
    """Get current plan parameters from session state"""
    return st.session_state.plan_params


def set_current_params(params: PlanParameters):
    st.session_state.plan_params = params


def params_hash(params: PlanParameters) -> str:
    """Create hash of parameters for caching"""
    params_str = str(params.__dict__)
    return hashlib.md5(params_str.encode()).hexdigest()


def _slider(label, name, value, help=None, key=None, container=None):
    low, high, step = PARAMETER_RANGES[name]
    value = min(max(value, low), high)
    if isinstance(step, float):
        value, low, high = float(value), float(low), float(high)
    else:
        value = int(value)
    container = container if container is not None else st.sidebar
    return container.slider(label, min_value=low, max_value=high, value=value,
                            step=step, help=help, key=key)


def create_sidebar():
    """Create sidebar with all input controls"""
    params = get_current_params()
    st.sidebar.title("Retirement Plan")

    st.sidebar.header("Timeline")
    current_age = _slider("Current Age", 'current_age', params.current_age)
    retirement_age = _slider(
        "Retirement Age", 'retirement_age', params.retirement_age,
        help="Contributions stop and withdrawals start at this age."
    )
    life_expectancy = _slider("Life Expectancy", 'life_expectancy', params.life_expectancy)

    st.sidebar.header("Spending")
    annual_expenses = _slider(
        "Annual Expenses", 'annual_expenses', params.annual_expenses,
        help="Today's dollars; grown by inflation every year."
    )
    inflation_rate = _slider("Inflation Rate (%)", 'inflation_rate', params.inflation_rate)

    params = replace(
        params,
        current_age=current_age,
        retirement_age=retirement_age,
        life_expectancy=life_expectancy,
        annual_expenses=annual_expenses,
        inflation_rate=inflation_rate
    )

    st.sidebar.header("Accounts")
    for key, account in params.accounts.items():
        expander = st.sidebar.expander(account_label(key, account))
        balance = _slider("Balance", 'balance', account.balance,
                          key=f"{key}_balance", container=expander)
        contribution = _slider("Annual Contribution", 'annual_contribution', account.annual_contribution,
                               key=f"{key}_contribution", container=expander)
        expected_return = _slider("Expected Return (%)", 'expected_return', account.expected_return,
                                  key=f"{key}_return", container=expander)
        std_dev = _slider("Standard Deviation (%)", 'std_dev', account.std_dev,
                          key=f"{key}_std_dev", container=expander)
        params = update_account(params, key, balance=balance,
                                annual_contribution=contribution,
                                expected_return=expected_return,
                                std_dev=std_dev)

        if expander.button("Remove Account", key=f"{key}_remove"):
            set_current_params(remove_account(params, key))
            st.rerun()

    if st.sidebar.button("➕ Add Account"):
        params, new_key = add_account(params)
        logger.info("Dashboard added account %s", new_key)
        set_current_params(params)
        st.rerun()

    set_current_params(params)


def save_load_section():
    """Create save/load parameters section"""
    st.header("Save/Load Parameters")

    col1, col2 = st.columns(2)

    with col1:
        st.subheader("Save Parameters")
        st.download_button(
            label="Download Parameters JSON",
            data=create_parameters_download_json(get_current_params()),
            file_name="retirement_plan.json",
            mime="application/json"
        )

    with col2:
        st.subheader("Load Parameters")
        uploaded_file = st.file_uploader("Upload Parameters JSON", type=['json'])

        if uploaded_file is not None and st.button("Load Parameters", type="primary"):
            json_str = uploaded_file.read().decode('utf-8')
            is_valid, error = validate_parameters_json(json_str)

            if is_valid:
                set_current_params(parse_parameters_upload_json(json_str))

                # Keyed account sliders would otherwise keep their old values
                for widget_key in list(st.session_state.keys()):
                    if widget_key.endswith(ACCOUNT_WIDGET_SUFFIXES):
                        del st.session_state[widget_key]

                # Clear old results since parameters changed
                st.session_state.projection = None
                st.session_state.distribution = None

                st.success("Parameters loaded successfully!")
                st.rerun()
            else:
                st.error(f"Invalid parameters file: {error}")


def run_simulations():
    """Run the averaged projection and the distribution simulation"""
    params = get_current_params()
    current_hash = params_hash(params)

    # Check if we need to rerun simulations
    if (st.session_state.projection is None or
            st.session_state.last_params_hash != current_hash):

        logger.info("Recomputing projection for %d accounts over %d years",
                    len(params.accounts), params.years)
        samplers = spawn_samplers(params.random_seed, 2)

        with st.spinner("Building projection..."):
            st.session_state.projection = build_projection(
                params, sampler=samplers[PROJECTION_STREAM])

        with st.spinner("Running Monte Carlo simulation..."):
            st.session_state.distribution = simulate_distribution(
                params, sampler=samplers[DISTRIBUTION_STREAM])

        st.session_state.last_params_hash = current_hash


def display_summary_kpis():
    """Display summary KPIs"""
    params = get_current_params()
    stats = calculate_summary_stats(st.session_state.projection, params)
    distribution = st.session_state.distribution

    col1, col2, col3, col4, col5 = st.columns(5)

    with col1:
        st.metric("Success Rate", f"{stats['success_rate']:.4g}%")

    with col2:
        st.metric("Peak Balance", format_currency(stats['peak_balance']))

    with col3:
        st.metric("Current Savings", format_currency(stats['total_current_savings']))

    with col4:
        if distribution.median_peak is not None:
            st.metric("Median Peak (Monte Carlo)", format_currency(distribution.median_peak))

    with col5:
        if distribution.median_min is not None:
            st.metric("Median Minimum (Monte Carlo)", format_currency(distribution.median_min))


def display_charts():
    """Display interactive charts"""
    params = get_current_params()
    projection = st.session_state.projection
    distribution = st.session_state.distribution

    st.plotly_chart(create_balance_projection_chart(projection, params), use_container_width=True)
    st.plotly_chart(create_withdrawal_chart(projection), use_container_width=True)

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(create_distribution_chart(
            distribution.peak_distribution, "Peak Portfolio Value Distribution",
            distribution.median_peak, color='#4299e1'
        ), use_container_width=True)
    with col2:
        st.plotly_chart(create_distribution_chart(
            distribution.min_distribution, "Minimum Portfolio Value Distribution",
            distribution.median_min, color='#f56565'
        ), use_container_width=True)


def display_year_by_year_table():
    """Display year-by-year projection table"""
    df = projection_to_dataframe(st.session_state.projection)

    currency_cols = [col for col in df.columns if col.endswith('_balance') or col == 'withdrawal']
    display_df = df.copy()
    for col in currency_cols:
        display_df[col] = display_df[col].apply(format_currency)

    st.dataframe(display_df, use_container_width=True)


def display_downloads():
    """Display download section"""
    col1, col2 = st.columns(2)

    with col1:
        st.download_button(
            label="Download Year-by-Year CSV",
            data=export_projection_csv(st.session_state.projection),
            file_name="projection.csv",
            mime="text/csv"
        )

    with col2:
        st.download_button(
            label="Download Distributions CSV",
            data=export_distribution_csv(st.session_state.distribution),
            file_name="distributions.csv",
            mime="text/csv"
        )


def main():
    """Main application"""
    st.set_page_config(
        page_title="Retirement Dashboard",
        page_icon="💰",
        layout="wide"
    )

    st.title("💰 Retirement Dashboard")

    initialize_session_state()
    create_sidebar()

    is_valid, error = validate_plan_params(get_current_params())
    if not is_valid:
        st.error(f"⚠️ {error}")
        st.stop()

    run_simulations()

    tab1, tab2, tab3 = st.tabs(["Overview", "Year-by-Year", "Save/Load"])

    with tab1:
        display_summary_kpis()
        display_charts()
        display_downloads()

    with tab2:
        display_year_by_year_table()

    with tab3:
        save_load_section()


if __name__ == "__main__":
    main()
