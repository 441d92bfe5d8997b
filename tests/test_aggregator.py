import pytest

from gradebook.aggregator import (
    class_statistics,
    compute_annual_results,
    compute_sequence_results,
    compute_term_results,
    scaled_score,
)
from gradebook.models import SEQUENCES, TERMS, StudentMarks, Subject

FIRST_TERM, SECOND_TERM, THIRD_TERM = TERMS

SUBJECTS = [Subject("Maths", 20), Subject("French", 40), Subject("Biology", 10)]


def _half_marks():
    return {s.name: s.total / 2 for s in SUBJECTS}


# ── sequence results ─────────────────────────────────────────────────────────

def test_half_marks_average_exactly_ten():
    students = ["Alice", "Bob", "Chloe"]
    marks = [StudentMarks(**{seq: _half_marks() for seq in SEQUENCES}) for _ in students]

    for seq in SEQUENCES:
        result_set = compute_sequence_results(students, SUBJECTS, marks, seq)
        assert [r.average for r in result_set.results] == [10.0, 10.0, 10.0]
        assert result_set.class_average == 10.0
        assert result_set.pass_percentage == 100.0


def test_no_students_gives_zero_statistics():
    result_set = compute_sequence_results([], SUBJECTS, [], "firstSequence")
    assert result_set.results == []
    assert result_set.class_average == 0
    assert result_set.pass_percentage == 0


def test_no_subjects_gives_zero_average():
    result_set = compute_sequence_results(["Alice"], [], [StudentMarks()], "firstSequence")
    assert result_set.results[0].average == 0.0
    assert result_set.results[0].totalMarks == 0.0


def test_unset_marks_count_as_zero():
    marks = [StudentMarks(firstSequence={"Maths": None, "French": 40})]
    result = compute_sequence_results(["Alice"], SUBJECTS, marks, "firstSequence").results[0]
    assert result.totalMarks == 40
    assert result.average == pytest.approx(20 / 3)


def test_ranking_descends_by_average():
    students = ["Low", "High", "Mid"]
    marks = [
        StudentMarks(firstSequence={"Maths": 4}),
        StudentMarks(firstSequence={"Maths": 18}),
        StudentMarks(firstSequence={"Maths": 11}),
    ]
    results = compute_sequence_results(students, [SUBJECTS[0]], marks, "firstSequence").results
    assert [r.student for r in results] == ["High", "Mid", "Low"]
    assert [r.rank for r in results] == [1, 2, 3]
    for a in results:
        for b in results:
            if a.average > b.average:
                assert a.rank < b.rank


def test_ties_keep_roster_order_with_distinct_ranks():
    students = ["Alice", "Bob", "Chloe"]
    marks = [
        StudentMarks(firstSequence={"Maths": 12}),
        StudentMarks(firstSequence={"Maths": 15}),
        StudentMarks(firstSequence={"Maths": 12}),
    ]
    results = compute_sequence_results(students, [SUBJECTS[0]], marks, "firstSequence").results
    assert [(r.student, r.rank) for r in results] == [("Bob", 1), ("Alice", 2), ("Chloe", 3)]


def test_pass_threshold_is_inclusive():
    assert class_statistics([10.0, 9.99]) == (pytest.approx(9.995), 50.0)
    assert class_statistics([]) == (0.0, 0.0)


def test_custom_scale_and_passing_mark():
    marks = [StudentMarks(firstSequence={"Maths": 10})]
    result_set = compute_sequence_results(["Alice"], [SUBJECTS[0]], marks, "firstSequence",
                                          passing_mark=60, max_note=100)
    assert result_set.results[0].average == 50.0
    assert result_set.pass_percentage == 0.0


def test_unknown_sequence_raises():
    with pytest.raises(ValueError):
        compute_sequence_results([], SUBJECTS, [], "seventhSequence")


def test_scaled_score_guards_non_positive_total():
    assert scaled_score(5, 0) == 0.0
    assert scaled_score(15, 30) == 10.0


# ── term results ─────────────────────────────────────────────────────────────

def test_strict_term_averages_both_sequences():
    marks = [StudentMarks(firstSequence={"Maths": 10}, secondSequence={"Maths": 14})]
    result = compute_term_results(["Alice"], [SUBJECTS[0]], marks, FIRST_TERM).results[0]
    assert result.totalMarks == 12
    assert result.average == 12


def test_strict_term_needs_both_sequences():
    marks = [StudentMarks(firstSequence={"Maths": 10})]
    assert compute_term_results(["Alice"], [SUBJECTS[0]], marks, FIRST_TERM) is None


def test_unset_values_do_not_count_as_data():
    marks = [StudentMarks(firstSequence={"Maths": 10}, secondSequence={"Maths": None})]
    assert compute_term_results(["Alice"], [SUBJECTS[0]], marks, FIRST_TERM) is None


def test_data_presence_is_decided_for_the_whole_class():
    # Bob has no second-sequence mark, but Alice does, so Bob's counts as 0.
    marks = [
        StudentMarks(thirdSequence={"Maths": 10}, fourthSequence={"Maths": 10}),
        StudentMarks(thirdSequence={"Maths": 16}),
    ]
    results = compute_term_results(["Alice", "Bob"], [SUBJECTS[0]], marks, SECOND_TERM).results
    assert {r.student: r.average for r in results} == {"Alice": 10, "Bob": 8}


def test_lenient_term_uses_single_present_sequence():
    only_fifth = [StudentMarks(fifthSequence={"Maths": 14})]
    result = compute_term_results(["Alice"], [SUBJECTS[0]], only_fifth, THIRD_TERM).results[0]
    assert result.average == 14

    only_sixth = [StudentMarks(sixthSequence={"Maths": 6})]
    result = compute_term_results(["Alice"], [SUBJECTS[0]], only_sixth, THIRD_TERM).results[0]
    assert result.average == 6


def test_lenient_term_without_any_data():
    assert compute_term_results(["Alice"], SUBJECTS, [StudentMarks()], THIRD_TERM) is None


# ── annual results ───────────────────────────────────────────────────────────

def test_annual_example_with_missing_sixth_sequence():
    marks = [StudentMarks(
        firstSequence={"Maths": 10}, secondSequence={"Maths": 10},
        thirdSequence={"Maths": 12}, fourthSequence={"Maths": 8},
        fifthSequence={"Maths": 14},
    )]
    result = compute_annual_results(["Alice"], [SUBJECTS[0]], marks).results[0]
    assert result.firstTermAverage == 10
    assert result.secondTermAverage == 10
    assert result.thirdTermAverage == 14
    assert result.finalAverage == pytest.approx(34 / 3)
    assert result.rank == 1


def test_annual_sixth_zero_falls_back_to_fifth():
    marks = [StudentMarks(
        firstSequence={"Maths": 10}, thirdSequence={"Maths": 10},
        fifthSequence={"Maths": 14}, sixthSequence={"Maths": 0},
    )]
    result = compute_annual_results(["Alice"], [SUBJECTS[0]], marks).results[0]
    assert result.thirdTermAverage == 14


def test_annual_needs_every_term():
    marks = [StudentMarks(firstSequence={"Maths": 10}, thirdSequence={"Maths": 10})]
    assert compute_annual_results(["Alice"], [SUBJECTS[0]], marks) is None


def test_annual_ranks_on_final_average():
    full = {seq: {"Maths": 16} for seq in SEQUENCES}
    weak = {seq: {"Maths": 6} for seq in SEQUENCES}
    marks = [StudentMarks(**weak), StudentMarks(**full)]
    result_set = compute_annual_results(["Weak", "Strong"], [SUBJECTS[0]], marks)
    assert [(r.student, r.rank) for r in result_set.results] == [("Strong", 1), ("Weak", 2)]
    assert result_set.class_average == 11
    assert result_set.pass_percentage == 50
    assert result_set.is_annual
