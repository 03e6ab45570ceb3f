import pytest

from meterprofiles import exceptions, matching
from meterprofiles.types import MeterRecordSummary


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("woolworths_jan.csv", "woolworths"),
        ("Shop-12 export v2.xlsx", "shop 12"),
        ("Shop 12 2024-01-15.csv", "shop 12"),
        ("Main.Incomer", "main incomer"),
        ("  Pick   n  Pay ", "pick n pay"),
        ("Spar_March_2024_data.csv", "spar"),
        ("data", "data"),
    ],
)
def test_normalize_name(raw, expected):
    assert matching.normalize_name(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["woolworths_jan.csv", "a.csv.csv", "Shop 12 2024-01-15", "Export Data Final", "x__y--z"],
)
def test_normalize_name_is_idempotent(raw):
    once = matching.normalize_name(raw)
    assert matching.normalize_name(once) == once


def test_normalize_header_strips_trailing_counter():
    assert matching.normalize_header("Shop A (2)") == "shop a"
    assert matching.normalize_header("Shop_A_2") == "shop a"
    assert matching.normalize_header("123") == "123"


def test_filename_matches_exactly(meter_pool):
    res = matching.match_label("woolworths_jan.csv", meter_pool)
    assert res.meter_id == "w"
    assert res.match_type == "exact"
    assert res.confidence == 100
    assert res.matched_name == "Woolworths"


def test_exact_outranks_earlier_fuzzy_candidate():
    pool = [
        MeterRecordSummary(id="bakery", shop_name="Shop 12 Bakery"),
        MeterRecordSummary(id="shop12", shop_name="Shop 12"),
    ]
    res = matching.match_label("shop_12.csv", pool)
    assert res.meter_id == "shop12"
    assert res.match_type == "exact"


def test_containment_score():
    pool = [MeterRecordSummary(id="bakery", shop_name="Shop 12 Bakery")]
    res = matching.match_label("Shop 12", pool)
    # 7 / 14 * 80
    assert res.match_type == "fuzzy"
    assert res.confidence == pytest.approx(40.0)


def test_word_overlap_score():
    pool = [MeterRecordSummary(id="c", shop_name="Hyper Checkers Store")]
    res = matching.match_label("Checkers Hyper", pool)
    # 2 shared tokens of max 3, times 60
    assert res.meter_id == "c"
    assert res.confidence == pytest.approx(40.0)


def test_below_threshold_is_new(meter_pool):
    res = matching.match_label("Spar", meter_pool)
    assert res.meter_id is None
    assert res.match_type == "new"


def test_excluded_ids_are_never_returned(meter_pool):
    res = matching.match_label("Woolworths", meter_pool, exclude={"w"})
    assert res.meter_id != "w"


def test_alternate_names_are_checked():
    pool = [MeterRecordSummary(id="m", shop_name=None, meter_label="Main Incomer", shop_number="S01")]
    assert matching.match_label("main_incomer.csv", pool).meter_id == "m"
    assert matching.match_label("S01", pool).meter_id == "m"


def test_header_variant_ignores_counters():
    pool = [MeterRecordSummary(id="a", shop_name="Shop A")]
    res = matching.match_label("Shop A (2)", pool, variant="header")
    assert res.match_type == "exact"


def test_custom_strategy_list(meter_pool):
    res = matching.match_label(
        "woolworths jan", meter_pool, strategies=[matching.containment_strategy()]
    )
    # without the exact rule, identical names still score via containment
    assert res.match_type == "fuzzy"
    assert res.confidence == pytest.approx(80.0)


def test_session_claims_each_meter_once(meter_pool):
    session = matching.MatchSession()
    first = session.match("Woolworths.csv", meter_pool)
    second = session.match("woolworths_feb.csv", meter_pool)
    assert first.meter_id == "w"
    assert second.match_type == "new"
    assert session.claimed == {"w"}

    session.release("w")
    assert session.match("woolworths_feb.csv", meter_pool).meter_id == "w"


def test_session_manual_assignment(meter_pool):
    session = matching.MatchSession()
    res = session.manual("p")
    assert res.match_type == "manual"
    assert "p" in session.claimed
    with pytest.raises(exceptions.MPError):
        session.claim("p")


def test_match_many_prefers_longer_labels():
    pool = [MeterRecordSummary(id="m", shop_name="Shop 12A")]
    session = matching.MatchSession()
    results = session.match_many(["Shop 12", "Shop 12A"], pool)
    assert results[0].match_type == "new"
    assert results[1].meter_id == "m"
    assert results[1].match_type == "exact"


def test_match_many_cancel_releases_its_claims(meter_pool):
    calls = []

    def stop():
        calls.append(1)
        return len(calls) > 1

    session = matching.MatchSession(claimed={"x"})
    with pytest.raises(exceptions.ImportCancelled):
        session.match_many(["Woolworths", "Pick n Pay"], meter_pool, should_stop=stop)
    assert len(calls) == 2
    assert session.claimed == {"x"}
