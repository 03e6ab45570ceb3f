import pandas as pd
import pytest

from meterprofiles import utils
from meterprofiles.types import (
    CanonicalMeterProfile,
    MeterRecordSummary,
    NormalizationResult,
)


@pytest.fixture
def scenario_csv():
    # 2024-01-01 and 2024-01-02 are Monday and Tuesday
    return (
        "Date,Time,kWh\n"
        "2024-01-01,00:00,12.5\n"
        "2024-01-01,00:30,10.0\n"
        "2024-01-02,00:00,8.0\n"
    )


@pytest.fixture
def meter_pool():
    return [
        MeterRecordSummary(id="w", shop_name="Woolworths"),
        MeterRecordSummary(id="p", shop_name="Pick n Pay"),
    ]


@pytest.fixture
def shop_a_values():
    return [float(h % 6 + 1) for h in range(24)]


@pytest.fixture
def pivot_rows(shop_a_values):
    # Shop A (2) is a copy-paste of Shop A; Shop B differs
    rows = [["Time", "Shop A", "Shop A (2)", "Shop B"]]
    for h in range(24):
        a = shop_a_values[h]
        rows.append([f"{h:02d}:00", a, a, 10.0 + h])
    return rows


@pytest.fixture
def week_rng():
    # Monday 2025-01-06 .. Sunday 2025-01-12, half-hourly
    return pd.date_range("2025-01-06", periods=48 * 7, freq="30min")


@pytest.fixture
def make_readings():
    def _make(rng, kw):
        return utils.build_readings(rng, [kw] * len(rng), cadence_min=30)

    return _make


@pytest.fixture
def make_profile():
    def _make(weekday, weekend=None, representation="raw_kw", **kw):
        return CanonicalMeterProfile(
            weekday_profile=tuple(weekday),
            weekend_profile=tuple(weekend if weekend is not None else weekday),
            representation=representation,
            **kw,
        )

    return _make


@pytest.fixture
def make_result(make_profile):
    def _make(weekday=None, **kw):
        profile = make_profile(weekday if weekday is not None else [1.0] * 24, **kw)
        return NormalizationResult(
            status="ok", profile=profile, readings=utils.empty_readings()
        )

    return _make
