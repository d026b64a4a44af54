"""Tests for the Streamlit calculator page, run headlessly."""

import json
from pathlib import Path

import pytest
import streamlit as st
from streamlit.testing.v1 import AppTest

from calculator_config import get_settings

APP_PATH = str(Path(__file__).resolve().parent.parent / "sliding_scale_app.py")


@pytest.fixture(autouse=True)
def fresh_configuration(monkeypatch):
    monkeypatch.delenv("SLIDING_SCALE_DOSE_PRESET", raising=False)
    monkeypatch.delenv("SLIDING_SCALE_DOSE_TABLE_FILE", raising=False)
    get_settings.cache_clear()
    st.cache_resource.clear()
    yield
    get_settings.cache_clear()
    st.cache_resource.clear()


@pytest.fixture
def app() -> AppTest:
    at = AppTest.from_file(APP_PATH, default_timeout=30)
    at.run()
    assert not at.exception
    return at


def markdown_text(at: AppTest) -> str:
    return "\n".join(element.value for element in at.markdown)


def test_initial_page_shows_reference_table_and_meals(app) -> None:
    table = app.table[0].value

    assert list(table.index) == ["Breakfast", "Lunch", "Tea Time"]
    assert table.loc["Lunch", "21 and above"] == 18
    assert [b.label for b in app.button if b.key.startswith("meal_")] == [
        "Breakfast",
        "Lunch",
        "Tea Time",
    ]


def test_tea_flow(app) -> None:
    app.button(key="meal_tea").click().run()
    app.slider(key="glucose_slider").set_value(9.5).run()
    app.button(key="calculate").click().run()

    assert not app.exception
    session = app.session_state["calculator"]
    assert session.step.value == "result"
    assert session.result.fast_acting_units == 8
    text = markdown_text(app)
    assert "Fast Acting (Orange Pen)" in text
    assert "Give First" not in text


def test_low_glucose_shows_treatment_and_start_over(app) -> None:
    app.button(key="meal_lunch").click().run()
    app.slider(key="glucose_slider").set_value(4.0).run()

    assert len(app.error) == 1
    assert "Low Blood Sugar" in app.error[0].value
    assert not [b for b in app.button if b.key == "calculate"]

    app.button(key="reset_blocked").click().run()

    session = app.session_state["calculator"]
    assert session.step.value == "meal"
    assert session.meal is None
    assert session.glucose == 5.5


def test_high_glucose_breakfast_result(app) -> None:
    app.button(key="meal_breakfast").click().run()
    app.slider(key="glucose_slider").set_value(23.0).run()
    app.button(key="calculate").click().run()

    assert "Ketoacidosis" in app.error[0].value
    text = markdown_text(app)
    assert "30 units" in text
    assert "24 units" in text

    app.button(key="reset_result").click().run()
    assert app.session_state["calculator"].step.value == "meal"


def test_unknown_preset_shows_configuration_error(monkeypatch) -> None:
    monkeypatch.setenv("SLIDING_SCALE_DOSE_PRESET", "nine_bucket")

    at = AppTest.from_file(APP_PATH, default_timeout=30).run()

    assert not at.exception
    assert len(at.error) == 1
    assert "nine_bucket" in at.error[0].value
    assert len(at.button) == 0


def test_missing_table_file_shows_configuration_error(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("SLIDING_SCALE_DOSE_TABLE_FILE", str(tmp_path / "missing.json"))

    at = AppTest.from_file(APP_PATH, default_timeout=30).run()

    assert not at.exception
    assert len(at.error) == 1
    assert "Cannot read dose table file" in at.error[0].value
    assert len(at.table) == 0


def test_fractional_table_file_shows_configuration_error(monkeypatch, tmp_path, table_payload) -> None:
    table_payload["doses"]["breakfast"] = [12.9, 14, 16, 18]
    path = tmp_path / "clinic.json"
    path.write_text(json.dumps(table_payload), encoding="utf-8")
    monkeypatch.setenv("SLIDING_SCALE_DOSE_TABLE_FILE", str(path))

    at = AppTest.from_file(APP_PATH, default_timeout=30).run()

    assert not at.exception
    assert "whole number" in at.error[0].value
