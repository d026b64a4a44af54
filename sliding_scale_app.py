##############################################
# sliding_scale_app.py
##############################################
import streamlit as st
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns

from calculator_config import get_settings, load_configured_table
from calculator_logging import configure_logging
from calculator_session import CalculatorSession, Step
from dose_calculator import (
    EAT_NOW_NOTE,
    HYPO_STEPS,
    HYPO_TITLE,
    KETOACIDOSIS_NOTE,
    KETOACIDOSIS_STEPS,
    KETOACIDOSIS_TITLE,
    hypo_note,
    resolve_dose,
)
from dose_table import (
    GLUCOSE_MAX,
    GLUCOSE_MIN,
    GLUCOSE_STEP,
    DoseTable,
    DoseTableError,
    MealCategory,
)

SESSION_KEY = "calculator"
SLIDER_KEY = "glucose_slider"

##############################
# 0. Medical Disclaimer
##############################
DISCLAIMER = """
<div style="background-color: #ffecec; padding: 15px; border-radius: 5px; margin-bottom: 1rem;">
<h4 style="color: #d9534f; margin-bottom: 8px;">Medical Disclaimer</h4>
<p style="color: #333; line-height:1.4; margin: 0;">
This calculator is for <b>educational purposes</b> only. Always consult with your healthcare
provider about your specific insulin needs and follow their medical advice.
</p>
</div>
"""

##############################
# 0.1 Custom CSS for UI
##############################
CUSTOM_CSS = """
<style>
footer {
    visibility: hidden;
}
.glucose-readout {
    text-align: center;
    font-size: 2.2rem;
    font-weight: 700;
    color: #2c3e50;
}
.dose-panel {
    padding: 1rem;
    border-radius: 8px;
    margin: 0.6rem 0;
}
.dose-panel p {
    margin: 0;
}
.dose-panel .units {
    font-size: 2rem;
    font-weight: 700;
}
.long-acting {
    background-color: #f0fdf4;
    border: 1px solid #bbf7d0;
    color: #15803d;
}
.fast-acting {
    background-color: #fff7ed;
    border: 1px solid #fed7aa;
    color: #c2410c;
}
</style>
"""


def numbered(steps) -> str:
    return "\n".join(f"{i}. {step}" for i, step in enumerate(steps, start=1))


########################################################################
# 1. Table & Session Helpers
########################################################################

@st.cache_resource
def load_table() -> DoseTable:
    return load_configured_table(get_settings())


def get_session(table: DoseTable) -> CalculatorSession:
    """One calculator per browser session; a changed table starts a fresh one."""
    session = st.session_state.get(SESSION_KEY)
    if session is None or session.table != table:
        session = CalculatorSession(table)
        st.session_state[SESSION_KEY] = session
    return session


def reset_calculator(session: CalculatorSession):
    session.reset()
    # drop the slider's own state so the next reading starts from the default
    st.session_state.pop(SLIDER_KEY, None)
    st.rerun()


########################################################################
# 2. Reference Table & Charts
########################################################################

def plot_dose_heatmap(table: DoseTable):
    """Heatmap of the reference table, one row per meal."""
    fig, ax = plt.subplots(figsize=(8, 2.8))
    sns.heatmap(
        table.as_frame(),
        annot=True,
        fmt="d",
        cmap="Oranges",
        cbar=False,
        linewidths=0.5,
        ax=ax,
    )
    ax.set_xlabel("Glucose Level (mmol/L)")
    ax.set_ylabel("")
    ax.set_title("Fast-Acting Units by Meal and Glucose Range")
    plt.xticks(rotation=30)
    plt.tight_layout()
    st.pyplot(fig)
    plt.close(fig)


def plot_dose_steps(table: DoseTable):
    """Dose against glucose for each meal, with the safety bands shaded."""
    fig, ax = plt.subplots(figsize=(8, 4))
    readings = np.round(np.arange(GLUCOSE_MIN, GLUCOSE_MAX + GLUCOSE_STEP / 2, GLUCOSE_STEP), 1)

    for meal in MealCategory:
        doses = [resolve_dose(table, meal, g) for g in readings]
        ax.step(readings, doses, where="post", lw=2, label=meal.label)

    bands = table.safety_bands
    if bands is not None:
        ax.axvspan(GLUCOSE_MIN, bands.hypo_below, color="red", alpha=0.1, label="Hypoglycemia - no dose")
        ax.axvspan(bands.ketoacidosis_above, GLUCOSE_MAX, color="purple", alpha=0.1, label="Ketoacidosis risk")

    for threshold in table.thresholds:
        ax.axvline(threshold, color="grey", lw=0.8, ls=":")

    ax.set_xlim(GLUCOSE_MIN, GLUCOSE_MAX)
    ax.set_xlabel("Blood Glucose (mmol/L)")
    ax.set_ylabel("Fast-Acting Dose (units)")
    ax.set_title("Sliding Scale by Meal")
    ax.grid(True, alpha=0.3)
    ax.legend(loc="upper left")
    plt.tight_layout()
    st.pyplot(fig)
    plt.close(fig)


def display_reference_table(table: DoseTable):
    st.markdown("### Dosage Reference Table")
    st.caption("Glucose Level (mmol/L)")
    st.table(table.as_frame())
    st.caption(
        "All values shown are units of fast-acting insulin (Orange Pen). "
        f"At breakfast, also give {table.long_acting_units} units of long-acting insulin (Green Pen)."
    )

    with st.expander("Show Dose Charts"):
        plot_dose_heatmap(table)
        plot_dose_steps(table)


########################################################################
# 3. Calculator Steps
########################################################################

def display_meal_step(session: CalculatorSession):
    st.markdown("#### Select Meal")
    for meal in MealCategory:
        if st.button(meal.label, key=f"meal_{meal.value}"):
            session.select_meal(meal)
            st.rerun()


def display_glucose_step(session: CalculatorSession):
    st.markdown(f"#### Blood Glucose (mmol/L) - {session.meal.label}")
    reading = st.slider(
        "Blood Glucose (mmol/L)",
        min_value=GLUCOSE_MIN,
        max_value=GLUCOSE_MAX,
        value=session.glucose,
        step=GLUCOSE_STEP,
        format="%.1f",
        key=SLIDER_KEY,
    )
    session.set_glucose(reading)
    st.markdown(f"<div class='glucose-readout'>{session.glucose:.1f}</div>", unsafe_allow_html=True)

    if session.blocked:
        st.error(
            f"**{HYPO_TITLE}**\n\n{numbered(HYPO_STEPS)}\n\n**{hypo_note(session.table)}**",
            icon="⚠️",
        )
        if st.button("Start Over", key="reset_blocked"):
            reset_calculator(session)
    else:
        if st.button("Calculate Dose", key="calculate", type="primary"):
            session.confirm()
            st.rerun()


def display_result_step(session: CalculatorSession):
    result = session.result
    st.markdown(f"**Blood Glucose: {result.glucose:.1f} mmol/L**")

    if result.ketoacidosis_risk:
        st.error(
            f"**{KETOACIDOSIS_TITLE}**\n\n{numbered(KETOACIDOSIS_STEPS)}\n\n**{KETOACIDOSIS_NOTE}**",
            icon="⚠️",
        )

    if result.long_acting_units is not None:
        st.markdown(
            f"""
            <div class="dose-panel long-acting">
            <p>Long Acting (Green Pen) - Give First</p>
            <p class="units">{result.long_acting_units} units</p>
            </div>
            """,
            unsafe_allow_html=True,
        )

    st.markdown(
        f"""
        <div class="dose-panel fast-acting">
        <p>Fast Acting (Orange Pen)</p>
        <p class="units">{result.fast_acting_units} units</p>
        </div>
        """,
        unsafe_allow_html=True,
    )

    if not result.ketoacidosis_risk:
        st.caption(EAT_NOW_NOTE)

    if st.button("Start Over", key="reset_result"):
        reset_calculator(session)


########################################################################
# 4. Streamlit App
########################################################################

def display_sidebar(table: DoseTable):
    st.sidebar.title("Calculator Settings")
    st.sidebar.markdown(f"**Dose table:** `{table.name}`")
    if table.description:
        st.sidebar.caption(table.description)
    st.sidebar.write(f"**Thresholds (mmol/L):** {', '.join(f'{t:g}' for t in table.thresholds)}")
    st.sidebar.write(f"**Long-acting at breakfast:** {table.long_acting_units} units")
    if table.safety_bands is not None:
        st.sidebar.write(f"**Hypoglycemia below:** {table.safety_bands.hypo_below:g} mmol/L")
        st.sidebar.write(f"**Ketoacidosis risk above:** {table.safety_bands.ketoacidosis_above:g} mmol/L")
    else:
        st.sidebar.write("**Safety checks:** none for this table")


def main():
    st.set_page_config(page_title="Insulin Calculator", page_icon="💉", layout="wide")
    configure_logging(get_settings().log_level)
    st.markdown(CUSTOM_CSS, unsafe_allow_html=True)
    st.markdown(DISCLAIMER, unsafe_allow_html=True)

    try:
        table = load_table()
    except DoseTableError as exc:
        st.error(f"Dose table configuration is invalid: {exc}")
        st.stop()

    display_sidebar(table)
    session = get_session(table)

    ref_col, calc_col = st.columns([3, 2])
    with ref_col:
        display_reference_table(table)

    with calc_col:
        st.markdown("### Insulin Calculator")
        if session.step is Step.SELECT_MEAL:
            display_meal_step(session)
        elif session.step is Step.ENTER_GLUCOSE:
            display_glucose_step(session)
        else:
            display_result_step(session)


if __name__ == "__main__":
    main()
