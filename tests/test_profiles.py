"""Profile model invariants, representation handling and quality checks."""

import numpy as np
import pytest
from pydantic import ValidationError

from meterprofiles import exceptions, profiles, utils, validate
from meterprofiles.types import CanonicalMeterProfile


def test_profile_requires_24_hours(make_profile):
    with pytest.raises(ValidationError):
        make_profile([1.0] * 23)


def test_profile_rejects_negative_values(make_profile):
    with pytest.raises(ValidationError):
        make_profile([1.0] * 23 + [-0.1])


def test_percentage_profile_must_sum_to_100(make_profile):
    with pytest.raises(ValidationError):
        make_profile([1.0] * 24, representation="percentage")
    ok = make_profile([100 / 24] * 24, representation="percentage")
    assert ok.representation == "percentage"


def test_profile_is_frozen(make_profile):
    p = make_profile([1.0] * 24)
    with pytest.raises(ValidationError):
        p.peak_kw = 5.0


def test_to_percentage(make_profile):
    wd = [float(h) for h in range(24)]
    we = [2.0] * 24
    pct = profiles.to_percentage(make_profile(wd, we))
    assert pct.representation == "percentage"
    assert sum(pct.weekday_profile) == pytest.approx(100.0)
    assert sum(pct.weekend_profile) == pytest.approx(100.0)
    assert pct.weekend_profile[0] == pytest.approx(100 / 24)
    # already percentage -> unchanged
    assert profiles.to_percentage(pct) is pct


def test_to_percentage_rejects_zero_profile(make_profile):
    with pytest.raises(exceptions.ConversionError):
        profiles.to_percentage(make_profile([0.0] * 24, [1.0] * 24))


def test_stack_raw_profiles_sums(make_profile):
    out = profiles.stack_profiles([make_profile([1.0] * 24), make_profile([2.5] * 24)])
    assert out.representation == "raw_kw"
    assert np.allclose(out.weekday_profile, 3.5)
    assert out.peak_kw == pytest.approx(3.5)


def test_stack_mixed_representations(make_profile):
    raw = make_profile([1.0] * 24)
    pct = make_profile([100 / 24] * 24, representation="percentage")
    with pytest.raises(exceptions.RepresentationMismatchError):
        profiles.stack_profiles([raw, pct])

    out = profiles.stack_profiles([raw, pct], reconcile=True)
    assert out.representation == "percentage"
    assert sum(out.weekday_profile) == pytest.approx(100.0)


def test_assert_profile_catches_constructed_bad_profiles():
    bad = CanonicalMeterProfile.model_construct(
        weekday_profile=(1.0,) * 23,
        weekend_profile=(1.0,) * 24,
        representation="raw_kw",
    )
    with pytest.raises(exceptions.ProfileError):
        validate.assert_profile(bad)


def test_assert_readings(week_rng, make_readings):
    df = make_readings(week_rng, 1.0)
    validate.assert_readings(df)
    with pytest.raises(exceptions.ProfileError):
        validate.assert_readings(df.iloc[::-1])
    with pytest.raises(exceptions.ProfileError):
        validate.assert_readings(df.drop(columns=["kwh"]))
    assert validate.assert_readings(utils.empty_readings()) is None


def test_quality_empty_profile(make_profile):
    q = validate.profile_quality(make_profile([0.0] * 24, data_points=100))
    assert q.empty and q.invalid


def test_quality_flat_line_warns_but_stays_valid(make_profile):
    q = validate.profile_quality(make_profile([3.0] * 24, data_points=500))
    assert q.flat_line
    assert not q.invalid
    assert len(q.warnings) == 1


def test_quality_outliers_and_too_few_points(make_profile):
    wd = [1.0] * 23 + [2e6]
    q = validate.profile_quality(make_profile(wd, data_points=10))
    assert q.extreme_outliers
    assert q.too_few_points
    assert not q.invalid

    q = validate.profile_quality(make_profile([1.0] * 23 + [2e7], data_points=500))
    assert q.invalid
