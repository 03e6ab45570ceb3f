"""Cross-meter comparison series and statistics."""

import pandas as pd
import pytest

from meterprofiles import aggregate, exceptions, utils
from meterprofiles.aggregate import MeterSeries


@pytest.fixture
def two_meters(week_rng, make_readings):
    return [
        MeterSeries("a", "Shop A", make_readings(week_rng, 2.0), site_name="Mall"),
        MeterSeries("b", "Shop B", make_readings(week_rng, 4.0), site_name="Mall", floor_area=48.0),
    ]


def test_hourly_series(two_meters):
    res = aggregate.compare_meters(two_meters, mode="hourly")
    s = res.series
    assert s.labels == [f"{h:02d}:00" for h in range(24)]
    assert s.values_for("a") == [2.0] * 24
    assert s.values_for("b") == [4.0] * 24


def test_weekly_series_is_mean_daily_total(two_meters):
    res = aggregate.compare_meters(two_meters, mode="weekly")
    assert res.series.labels == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    # 48 half-hours x 1 kWh
    assert res.series.values_for("a") == [48.0] * 7


def test_monthly_labels_are_chronological(make_readings):
    rng = pd.date_range("2023-12-30", "2024-01-02 23:00", freq="h")
    meters = [MeterSeries("m", "Meter", make_readings(rng, 1.0))]
    res = aggregate.compare_meters(meters, mode="monthly")
    assert res.series.labels == ["Dec 2023", "Jan 2024"]
    # 48 hourly readings at 30-minute cadence, 0.5 kWh each
    assert res.series.values_for("m") == [24.0, 24.0]


def test_monthly_fills_missing_months_with_zero(make_readings):
    dec = pd.date_range("2023-12-01", periods=4, freq="h")
    feb = pd.date_range("2024-02-01", periods=4, freq="h")
    meters = [
        MeterSeries("x", "X", make_readings(dec, 1.0)),
        MeterSeries("y", "Y", make_readings(feb, 1.0)),
    ]
    res = aggregate.compare_meters(meters, mode="monthly")
    assert res.series.labels == ["Dec 2023", "Feb 2024"]
    assert res.series.values_for("x") == [2.0, 0.0]
    assert res.series.values_for("y") == [0.0, 2.0]


def test_weekend_filter_on_weekday_data_gives_zeros(make_readings):
    weekdays = pd.date_range("2025-01-06", periods=48 * 5, freq="30min")
    meters = [MeterSeries("a", "A", make_readings(weekdays, 3.0))]
    res = aggregate.compare_meters(meters, mode="hourly", day_type="weekend")
    assert len(res.series.points) == 24
    assert res.series.values_for("a") == [0.0] * 24
    assert res.stats[0].total_kwh == 0


def test_date_filter_is_inclusive(two_meters):
    day = pd.Timestamp("2025-01-06")
    res = aggregate.compare_meters(two_meters, mode="monthly", start=day, end=day)
    assert res.series.labels == ["Jan 2025"]
    assert res.series.values_for("a") == [48.0]


def test_stats_and_baseline(two_meters):
    res = aggregate.compare_meters(two_meters, mode="hourly", baseline_id="a")
    a, b = res.stats

    assert a.total_kwh == 48 and b.total_kwh == 96
    assert a.avg_value == 2.0 and b.peak_value == 4.0
    assert a.vs_group_pct == pytest.approx(-33.3)
    assert b.vs_group_pct == pytest.approx(33.3)
    assert a.vs_baseline_pct is None
    assert b.vs_baseline_pct == pytest.approx(100.0)
    assert a.energy_intensity is None
    assert b.energy_intensity == pytest.approx(2.0)
    assert a.meter_name == "Shop A" and a.site_name == "Mall"

    base = res.baseline_series
    assert base.values_for("a") == [0.0] * 24
    assert base.values_for("b") == [100.0] * 24


def test_zero_baseline_gives_zero_percentages(week_rng, make_readings):
    meters = [
        MeterSeries("z", "Zero", make_readings(week_rng, 0.0)),
        MeterSeries("b", "B", make_readings(week_rng, 4.0)),
    ]
    res = aggregate.compare_meters(meters, mode="weekly", baseline_id="z")
    assert res.stats[1].vs_baseline_pct is None
    assert res.baseline_series.values_for("b") == [0.0] * 7


def test_mixed_representations_are_rejected(week_rng, make_readings):
    meters = [
        MeterSeries("a", "A", make_readings(week_rng, 1.0)),
        MeterSeries("b", "B", make_readings(week_rng, 1.0), representation="percentage"),
    ]
    with pytest.raises(exceptions.RepresentationMismatchError):
        aggregate.compare_meters(meters, mode="hourly")


def test_unknown_baseline_is_rejected(two_meters):
    with pytest.raises(exceptions.MPError):
        aggregate.compare_meters(two_meters, baseline_id="nope")


def test_meter_without_readings(two_meters):
    meters = two_meters + [MeterSeries("e", "Empty", utils.empty_readings())]
    res = aggregate.compare_meters(meters, mode="weekly")
    assert res.series.values_for("e") == [0.0] * 7
    assert res.stats[2].avg_value == 0.0
