from meterprofiles import duplicates
from meterprofiles.types import ImportCandidate


def test_later_profile_is_the_duplicate(make_profile):
    base = [float(h) for h in range(24)]
    a = make_profile(base, source_file_name="z.csv")
    b = make_profile(base, source_file_name="a.csv")
    # input order decides, not names or any other attribute
    assert duplicates.detect_duplicates([a, b]) == {1: 0}
    assert duplicates.detect_duplicates([b, a]) == {1: 0}


def test_tolerance(make_profile):
    base = [1.0] * 24
    near = [1.005] * 24
    far = [1.0] * 23 + [1.02]
    assert duplicates.detect_duplicates([make_profile(base), make_profile(near)]) == {1: 0}
    assert duplicates.detect_duplicates([make_profile(base), make_profile(far)]) == {}
    assert duplicates.detect_duplicates(
        [make_profile(base), make_profile(far)], tolerance=0.05
    ) == {1: 0}


def test_first_occurrence_is_canonical_for_groups(make_profile):
    same = [2.0] * 24
    other = [3.0] * 24
    profiles = [make_profile(same), make_profile(other), make_profile(same), make_profile(same)]
    assert duplicates.detect_duplicates(profiles) == {2: 0, 3: 0}


def test_weekend_differences_are_ignored(make_profile):
    wd = [1.0] * 24
    a = make_profile(wd, [0.0] * 24)
    b = make_profile(wd, [5.0] * 24)
    assert duplicates.detect_duplicates([a, b]) == {1: 0}


def test_missing_profiles_are_skipped(make_profile):
    p = make_profile([1.0] * 24)
    assert duplicates.detect_duplicates([None, p, None, p]) == {3: 1}


def test_flag_duplicates_marks_candidates(make_result):
    cands = [
        ImportCandidate(label="Shop A", source_file_name="f.xlsx", result=make_result(), selected=True),
        ImportCandidate(label="Shop A (2)", source_file_name="f.xlsx", result=make_result(), selected=True),
    ]
    dupes = duplicates.flag_duplicates(cands)
    assert dupes == {1: 0}
    assert cands[1].is_duplicate
    assert cands[1].duplicate_of == 0
    assert cands[1].match.match_type == "duplicate"
    assert not cands[1].selected
    assert cands[0].selected and not cands[0].is_duplicate
