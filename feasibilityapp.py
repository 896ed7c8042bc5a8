"""
Feasibility Lab - Streamlit Web App
===================================
Staged investment-feasibility simulation: technical, marketing and financial
decisions generated by Gemini, market shocks between modules, and a final
DCF evaluation with an investment-committee report.
"""

import logging

import matplotlib.pyplot as plt
import pandas as pd
import streamlit as st

from engine import (
    ModuleType,
    answered_option,
    cash_flow_schedule,
    get_results,
    is_finished,
    is_over_budget,
    money,
)
from gemini_service import GeminiContentProvider
from session import FeasibilitySession
from simulation_config import LOG_LEVEL, PROJECT_TYPES, project_type_names

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

MODULE_TITLES = {
    ModuleType.TECHNICAL: "⚙️ Technical & Operational Feasibility",
    ModuleType.MARKETING: "📈 Market & Competition Study",
    ModuleType.FINANCIAL: "💰 Financial Structuring",
}

# ==================== Page Config ====================

st.set_page_config(
    page_title="Feasibility Lab",
    page_icon="🏗️",
    layout="wide",
    initial_sidebar_state="expanded"
)

# ==================== Helper Functions ====================

def format_pct(x):
    """Format a 0..100 KPI value"""
    return f"{x:.1f}%"


def new_session():
    try:
        provider = GeminiContentProvider()
    except ValueError as e:
        st.error(
            f"{e}\n\n"
            f"Create a .env file next to this app containing:\n\n"
            f"GEMINI_API_KEY=your_key_here"
        )
        st.stop()
    return FeasibilitySession(provider)


# ==================== Session State Initialization ====================

if "session" not in st.session_state:
    st.session_state.session = new_session()

session = st.session_state.session
gs = session.state
kpis = gs.kpis

# ==================== Sidebar ====================

with st.sidebar:
    st.title("🏗️ Feasibility Lab")
    st.markdown("*Investment Decision Simulation*")

    st.divider()

    if gs.current_module != ModuleType.INIT:
        st.subheader("📊 Project")
        st.markdown(f"""
        - **Project:** {gs.project_name}
        - **Type:** {project_type_names().get(gs.project_type, gs.project_type)}
        - **Budget:** {money(gs.budget)}
        - **Capex committed:** {money(gs.spent)}
        """)
        if is_over_budget(gs):
            st.warning(f"Over budget by {money(gs.spent - gs.budget)}")

        st.progress(kpis.progress / 100.0, text=f"Progress {kpis.progress:.0f}%")
        st.divider()

    if st.button("🔄 New Study", use_container_width=True):
        st.session_state.session = new_session()
        st.rerun()

    st.divider()

    st.caption("Built with Streamlit | Content: Gemini | Engine: engine.py")

# ==================== Main Content ====================

st.title("🏗️ Strategic Feasibility Center")

if session.last_error:
    st.error(session.last_error)

if gs.current_module == ModuleType.INIT:
    st.subheader("Choose a project to study")

    cols = st.columns(len(PROJECT_TYPES))
    for col, project in zip(cols, PROJECT_TYPES):
        with col:
            st.markdown(f"**{project.name}**")
            st.caption(project.description)
            if st.button("Start", key=f"start_{project.id}", use_container_width=True):
                with st.spinner("Preparing project brief with Gemini..."):
                    session.start(project.id)
                st.rerun()

elif is_finished(gs):
    results = get_results(gs)

    if results['recommended']:
        st.success("✅ RECOMMENDATION: ACCEPT", icon="✅")
    else:
        st.error("⛔ RECOMMENDATION: REJECT / REVISE", icon="⛔")

    st.divider()

    col1, col2, col3, col4 = st.columns(4)

    with col1:
        st.metric("NPV", money(results['npv']))
    with col2:
        st.metric("IRR (approx.)", f"{results['irr']:.1f}%")
    with col3:
        st.metric("Viability Score", f"{results['viability_score']:.0f}/100")
    with col4:
        st.metric("Investor Confidence", format_pct(results['investor_confidence']))

    st.divider()

    # Discounted cash flow profile
    st.subheader("📉 Discounted Cash Flow")
    schedule = cash_flow_schedule(gs)

    fig, ax = plt.subplots(figsize=(10, 4))
    ax.bar(schedule['year'], schedule['present_value'], color='#4ECDC4', edgecolor='black', alpha=0.7, label='Present value')
    ax.plot(schedule['year'], schedule['cumulative_npv'], color='red', marker='o', linewidth=2, label='Cumulative NPV')
    ax.axhline(0, color='black', linewidth=0.8)
    ax.set_xlabel('Year')
    ax.set_ylabel('Currency units')
    ax.set_title('Present Value by Year')
    ax.legend()
    ax.grid(alpha=0.3)
    plt.tight_layout()
    st.pyplot(fig)

    with st.expander("Cash flow table"):
        st.dataframe(schedule.round(2), use_container_width=True, hide_index=True)

    st.divider()

    st.subheader("📝 Investment Committee Report")
    if session.final_report:
        st.markdown(session.final_report)
        st.download_button("Download Report", session.final_report.encode("utf-8"),
                           file_name=f"feasibility_report_{gs.project_type}.txt")
    elif st.button("🔁 Retry Report"):
        with st.spinner("Generating report with Gemini..."):
            session.retry_report()
        st.rerun()

else:
    # Study in progress
    if session.context:
        with st.expander("📄 Project Brief", expanded=gs.current_module == ModuleType.TECHNICAL):
            st.markdown(f"**{session.context.company_name}**")
            st.write(session.context.context)
            for obj in session.context.objectives:
                st.markdown(f"- {obj}")

    # KPI Dashboard
    k1, k2, k3, k4 = st.columns(4)

    with k1:
        st.metric("Risk Index", format_pct(kpis.risk_index))
    with k2:
        st.metric("Investor Confidence", format_pct(kpis.investor_confidence))
    with k3:
        st.metric("Market Confidence", format_pct(kpis.market_confidence))
    with k4:
        st.metric("Capex / Budget", f"{money(gs.spent)} / {money(gs.budget)}")

    if session.active_event:
        ev = session.active_event
        message = f"**{ev.title}** ({ev.effect_on.value}): {ev.description}"
        if ev.impact_type.value == "NEGATIVE":
            st.warning(message, icon="⚠️")
        elif ev.impact_type.value == "POSITIVE":
            st.success(message, icon="⚡")
        else:
            st.info(message)

    st.divider()

    st.subheader(MODULE_TITLES.get(gs.current_module, gs.current_module.value))

    for decision in session.decisions:
        chosen = answered_option(gs, decision.id)
        with st.container(border=True):
            st.caption(decision.category)
            st.markdown(f"**{decision.question}**")
            cols = st.columns(len(decision.options) or 1)
            for col, option in zip(cols, decision.options):
                with col:
                    selected = chosen == option.id
                    st.markdown(f"{'✅ ' if selected else ''}**{option.label}**")
                    st.caption(option.description)
                    st.caption(f"Capex {money(option.impacts.capex)} · Risk {option.impacts.risk:+.0f}")
                    if st.button("Choose", key=f"{gs.current_module.value}_{decision.id}_{option.id}",
                                 disabled=chosen is not None, use_container_width=True):
                        session.select_option(decision.id, option.id)
                        st.rerun()

    remaining = len(session.pending_decisions())
    label = "Final Evaluation ▶️" if gs.current_module == ModuleType.FINANCIAL else "Next Module ▶️"
    if st.button(label, disabled=not session.can_advance(), type="primary"):
        with st.spinner("Simulating market conditions..."):
            session.next_module()
        st.rerun()
    if remaining:
        st.caption(f"{remaining} decision(s) left in this module")

    # History log (last 10)
    if gs.history:
        with st.expander("📜 Study Log (last 10)"):
            log_df = pd.DataFrame({'entry': gs.history[-10:]})
            st.dataframe(log_df, use_container_width=True, hide_index=True)

# ==================== Footer ====================

st.divider()
st.caption("Feasibility Lab v1.0 | Powered by Streamlit | Logic: engine.py (headless)")
