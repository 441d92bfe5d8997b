"""Result aggregation: scaled averages, ranking and class statistics.

Every function here is pure.  They take the roster, the subjects and the
marks as plain values and return fresh result records; nothing is cached.

A computation whose data precondition is not met returns ``None`` rather than
an empty :class:`~gradebook.models.ResultSet`, so callers can tell "not enough
data yet" apart from "computed, but there are no students".
"""
from typing import Callable, List, Optional, Sequence

from gradebook.models import (
    TERMS,
    AnnualResult,
    AnyResult,
    ResultSet,
    SequenceResult,
    StudentMarks,
    Subject,
    TermDefinition,
    TermResult,
    check_sequence,
)

PASSING_MARK = 10.0
MAX_NOTE = 20.0


def scaled_score(raw: float, total: float, max_note: float = MAX_NOTE) -> float:
    """Normalise *raw* out of *total* onto the 0..*max_note* scale."""
    if total <= 0:
        return 0.0
    return (raw / total) * max_note


def sequence_has_data(marks: Sequence[StudentMarks], sequence: str) -> bool:
    """True if any student has at least one set mark in *sequence*."""
    return any(m.has_data(sequence) for m in marks)


def rank_results(results: List[AnyResult], key: Callable[[AnyResult], float]) -> List[AnyResult]:
    """Sort descending by *key* and number the ranks 1..n.

    The sort is stable, so equal scores keep roster order and still get
    distinct consecutive ranks.
    """
    ranked = sorted(results, key=key, reverse=True)
    for position, result in enumerate(ranked):
        result.rank = position + 1
    return ranked


def class_statistics(averages: Sequence[float],
                     passing_mark: float = PASSING_MARK) -> tuple:
    """Return *(class_average, pass_percentage)*; both 0 for an empty class."""
    if not averages:
        return 0.0, 0.0
    class_average = sum(averages) / len(averages)
    passed = sum(1 for avg in averages if avg >= passing_mark)
    return class_average, passed / len(averages) * 100


def _finish(results: List[AnyResult], key: Callable[[AnyResult], float],
            passing_mark: float) -> ResultSet:
    class_average, pass_percentage = class_statistics(
        [key(r) for r in results], passing_mark
    )
    return ResultSet(
        results=rank_results(results, key),
        class_average=class_average,
        pass_percentage=pass_percentage,
    )


def compute_sequence_results(
    students: Sequence[str],
    subjects: Sequence[Subject],
    marks: Sequence[StudentMarks],
    sequence: str,
    passing_mark: float = PASSING_MARK,
    max_note: float = MAX_NOTE,
) -> ResultSet:
    """Rank every student on a single sequence.

    Unset marks count as 0.  A sequence result is always produced, even when
    the sequence holds no marks at all.
    """
    check_sequence(sequence)
    results: List[AnyResult] = []
    for index, student in enumerate(students):
        student_marks = marks[index]
        total_marks = 0.0
        total_score = 0.0
        for subject in subjects:
            mark = student_marks.raw(sequence, subject.name)
            total_marks += mark
            total_score += scaled_score(mark, subject.total, max_note)
        average = total_score / len(subjects) if subjects else 0.0
        results.append(SequenceResult(student=student, totalMarks=total_marks, average=average))
    return _finish(results, lambda r: r.average, passing_mark)


def compute_term_results(
    students: Sequence[str],
    subjects: Sequence[Subject],
    marks: Sequence[StudentMarks],
    term: TermDefinition,
    passing_mark: float = PASSING_MARK,
    max_note: float = MAX_NOTE,
) -> Optional[ResultSet]:
    """Rank every student on the two sequences of *term*.

    A strict term needs marks in both sequences, a lenient one in at least
    one of them; otherwise ``None`` is returned.  When only one sequence has
    data its marks are used as is rather than averaged with zero.
    """
    has_first = sequence_has_data(marks, term.first)
    has_second = sequence_has_data(marks, term.second)
    if term.require_both and not (has_first and has_second):
        return None
    if not (has_first or has_second):
        return None

    results: List[AnyResult] = []
    for index, student in enumerate(students):
        student_marks = marks[index]
        total_marks = 0.0
        total_score = 0.0
        for subject in subjects:
            mark1 = student_marks.raw(term.first, subject.name)
            mark2 = student_marks.raw(term.second, subject.name)
            if has_first and has_second:
                raw = (mark1 + mark2) / 2
            elif has_first:
                raw = mark1
            else:
                raw = mark2
            total_marks += raw
            total_score += scaled_score(raw, subject.total, max_note)
        average = total_score / len(subjects) if subjects else 0.0
        results.append(TermResult(student=student, totalMarks=total_marks, average=average))
    return _finish(results, lambda r: r.average, passing_mark)


def compute_annual_results(
    students: Sequence[str],
    subjects: Sequence[Subject],
    marks: Sequence[StudentMarks],
    passing_mark: float = PASSING_MARK,
    max_note: float = MAX_NOTE,
) -> Optional[ResultSet]:
    """Combine the three terms into a final average per student.

    Every term needs at least one populated sequence, otherwise ``None``.
    The first two terms always average both sequences; the third one falls
    back to the fifth sequence alone where the sixth mark is unset or 0.
    """
    for term in TERMS:
        if not (sequence_has_data(marks, term.first) or sequence_has_data(marks, term.second)):
            return None

    first, second, third = TERMS
    results: List[AnyResult] = []
    for index, student in enumerate(students):
        student_marks = marks[index]
        term_totals = [0.0, 0.0, 0.0]
        for subject in subjects:
            term_totals[0] += scaled_score(
                (student_marks.raw(first.first, subject.name)
                 + student_marks.raw(first.second, subject.name)) / 2,
                subject.total, max_note)
            term_totals[1] += scaled_score(
                (student_marks.raw(second.first, subject.name)
                 + student_marks.raw(second.second, subject.name)) / 2,
                subject.total, max_note)
            fifth = student_marks.raw(third.first, subject.name)
            sixth = student_marks.sequence(third.second).get(subject.name)
            third_avg = (fifth + sixth) / 2 if sixth else fifth
            term_totals[2] += scaled_score(third_avg, subject.total, max_note)

        count = len(subjects)
        averages = [t / count if count else 0.0 for t in term_totals]
        results.append(AnnualResult(
            student=student,
            firstTermAverage=averages[0],
            secondTermAverage=averages[1],
            thirdTermAverage=averages[2],
            finalAverage=sum(averages) / 3,
        ))
    return _finish(results, lambda r: r.finalAverage, passing_mark)
