"""The gradebook session: roster, marks, comments and computed results.

A :class:`GradebookSession` owns every mutable collection of one gradebook.
Mutations are applied in memory first and then written through to the
injected key-value store, so a failing store never loses the in-memory
state; the :class:`~gradebook.storage.StoreError` still reaches the caller.

Results are only recomputed by the ``calculate_*`` methods.  Any change to
the roster, the subjects or the marks flags every computed view as stale (see
:attr:`ResultsBoard.stale`) until that view is calculated again.
"""
import functools
import logging
import math
import threading
from typing import Any, Iterable, List, Optional, Tuple

from gradebook import aggregator, storage
from gradebook.config import load_settings
from gradebook.models import (
    ANNUAL_COMMENT,
    SEQUENCES,
    TERMS,
    Mark,
    ResultsBoard,
    ResultSet,
    StudentComments,
    StudentMarks,
    Subject,
    check_sequence,
)
from gradebook.storage import KeyValueStore

logger = logging.getLogger(__name__)


def parse_mark(value: Any, total: float) -> Tuple[bool, Mark]:
    """Validate a mark typed for a subject out of *total*.

    Returns *(accepted, mark)*.  Empty input is accepted as unset; anything
    else must be a number within ``[0, total]``.
    """
    if value is None or value == "":
        return True, None
    if isinstance(value, bool):
        return False, None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False, None
    if math.isnan(number) or not 0 <= number <= total:
        return False, None
    return True, number


def _valid_total(total: Any) -> float:
    if isinstance(total, bool):
        raise ValueError(f"subject total must be a positive number, got {total!r}")
    try:
        number = float(total)
    except (TypeError, ValueError):
        raise ValueError(f"subject total must be a positive number, got {total!r}")
    if not number > 0 or math.isinf(number):
        raise ValueError(f"subject total must be a positive number, got {total!r}")
    return number


def _synchronized(method):
    # Routes run in FastAPI's threadpool; one writer at a time.
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class GradebookSession:
    def __init__(self, store: Optional[KeyValueStore] = None,
                 passing_mark: float = aggregator.PASSING_MARK,
                 max_note: float = aggregator.MAX_NOTE):
        self.store = store
        self.passing_mark = passing_mark
        self.max_note = max_note
        self.students: List[str] = []
        self.subjects: List[Subject] = []
        self.marks: List[StudentMarks] = []
        self.comments: StudentComments = {}
        self.results = ResultsBoard()
        self._lock = threading.RLock()

    @property
    def results_stale(self) -> bool:
        """True while any computed view predates the last edit."""
        return bool(self.results.stale)

    # ── Store sync ────────────────────────────────────────────────────────────

    @classmethod
    def load(cls, store: KeyValueStore, **kwargs) -> "GradebookSession":
        session = cls(store, **kwargs)
        session.hydrate()
        return session

    @_synchronized
    def hydrate(self) -> None:
        """Replace the in-memory collections with what the store holds."""
        if self.store is None:
            return
        students_blob = self.store.get(storage.STUDENTS_KEY)
        subjects_blob = self.store.get(storage.SUBJECTS_KEY)
        marks_blob = self.store.get(storage.MARKS_KEY)
        comments_blob = self.store.get(storage.COMMENTS_KEY)

        self.students = storage.decode_students(students_blob) if students_blob else []
        self.subjects = storage.decode_subjects(subjects_blob) if subjects_blob else []
        marks = storage.decode_marks(marks_blob) if marks_blob else []
        if len(marks) != len(self.students):
            logger.warning("Stored marks (%d) do not match stored students (%d); realigning",
                           len(marks), len(self.students))
            marks = marks[:len(self.students)]
            marks += [StudentMarks() for _ in range(len(self.students) - len(marks))]
        self.marks = marks
        self.comments = storage.decode_comments(comments_blob) if comments_blob else {}
        self.results = ResultsBoard()
        logger.info("Loaded gradebook: %d students, %d subjects",
                    len(self.students), len(self.subjects))

    def _persist(self, *keys: str) -> None:
        if self.store is None:
            return
        encoders = {
            storage.STUDENTS_KEY: (self.students, storage.encode_students),
            storage.SUBJECTS_KEY: (self.subjects, storage.encode_subjects),
            storage.MARKS_KEY: (self.marks, storage.encode_marks),
            storage.COMMENTS_KEY: (self.comments, storage.encode_comments),
        }
        for key in keys:
            collection, encode = encoders[key]
            try:
                if collection:
                    self.store.set(key, encode(collection))
                else:
                    self.store.remove(key)
            except storage.StoreError:
                logger.error("Failed to persist %r; in-memory state kept", key)
                raise

    def _changed(self, *keys: str) -> None:
        self.results.invalidate()
        self._persist(*keys)

    # ── Students ──────────────────────────────────────────────────────────────

    @_synchronized
    def add_student(self, name: str) -> int:
        """Append a student with empty marks; return its index."""
        self.students.append(name)
        self.marks.append(StudentMarks())
        logger.debug("Added student %r at index %d", name, len(self.students) - 1)
        self._changed(storage.STUDENTS_KEY, storage.MARKS_KEY)
        return len(self.students) - 1

    @_synchronized
    def edit_student(self, index: int, name: str) -> bool:
        if not 0 <= index < len(self.students):
            return False
        self.students[index] = name
        self._changed(storage.STUDENTS_KEY)
        return True

    @_synchronized
    def delete_student(self, index: int) -> bool:
        """Remove the student at *index* together with its marks.

        Comments stored under *index* are dropped.  Comments of later
        students are not renumbered.
        """
        if not 0 <= index < len(self.students):
            return False
        name = self.students.pop(index)
        self.marks.pop(index)
        self.comments.pop(index, None)
        logger.debug("Deleted student %r (index %d)", name, index)
        self._changed(storage.STUDENTS_KEY, storage.MARKS_KEY, storage.COMMENTS_KEY)
        return True

    # ── Subjects ──────────────────────────────────────────────────────────────

    @_synchronized
    def add_subject(self, name: str, total: Any) -> None:
        self.subjects.append(Subject(name=name, total=_valid_total(total)))
        self._changed(storage.SUBJECTS_KEY)

    @_synchronized
    def edit_subject(self, index: int, name: str, total: Any) -> bool:
        """Rename and/or re-total a subject; marks follow a rename."""
        if not 0 <= index < len(self.subjects):
            return False
        total = _valid_total(total)
        old_name = self.subjects[index].name
        self.subjects[index] = Subject(name=name, total=total)
        keys = [storage.SUBJECTS_KEY]
        if old_name != name:
            for record in self.marks:
                for score_map in record.sequences():
                    if old_name in score_map:
                        score_map[name] = score_map.pop(old_name)
            keys.append(storage.MARKS_KEY)
        self._changed(*keys)
        return True

    @_synchronized
    def delete_subject(self, name: str) -> bool:
        """Remove subject *name* and purge its marks from every sequence."""
        index = next((i for i, s in enumerate(self.subjects) if s.name == name), None)
        if index is None:
            return False
        return self.delete_subject_at(index)

    @_synchronized
    def delete_subject_at(self, index: int) -> bool:
        if not 0 <= index < len(self.subjects):
            return False
        name = self.subjects.pop(index).name
        for record in self.marks:
            for score_map in record.sequences():
                score_map.pop(name, None)
        logger.debug("Deleted subject %r (index %d)", name, index)
        self._changed(storage.SUBJECTS_KEY, storage.MARKS_KEY)
        return True

    def find_subject(self, name: str) -> Optional[Subject]:
        # Duplicate names share one mark key; the last definition wins.
        found = None
        for subject in self.subjects:
            if subject.name == name:
                found = subject
        return found

    # ── Marks & comments ──────────────────────────────────────────────────────

    def _apply_mark(self, student_index: int, sequence: str, subject: str, value: Any) -> bool:
        check_sequence(sequence)
        if not 0 <= student_index < len(self.marks):
            return False
        found = self.find_subject(subject)
        if found is None:
            return False
        accepted, mark = parse_mark(value, found.total)
        if not accepted:
            logger.debug("Ignored mark %r for %s/%s (total %s)", value, sequence, subject, found.total)
            return False
        self.marks[student_index].sequence(sequence)[subject] = mark
        return True

    @_synchronized
    def set_mark(self, student_index: int, sequence: str, subject: str, value: Any) -> bool:
        """Record one mark.  Invalid input is ignored and ``False`` returned."""
        if not self._apply_mark(student_index, sequence, subject, value):
            return False
        self._changed(storage.MARKS_KEY)
        return True

    @_synchronized
    def set_marks_bulk(self, sequence: str,
                       entries: Iterable[Tuple[int, str, Any]]) -> List[bool]:
        """Record many *(student_index, subject, value)* marks for *sequence*.

        Each entry is validated exactly like :meth:`set_mark`; the store is
        written once at the end.
        """
        outcomes = [self._apply_mark(index, sequence, subject, value)
                    for index, subject, value in entries]
        if any(outcomes):
            self._changed(storage.MARKS_KEY)
        return outcomes

    @_synchronized
    def set_comment(self, student_index: int, slot: str, text: str) -> bool:
        if slot != ANNUAL_COMMENT:
            check_sequence(slot)
        if not 0 <= student_index < len(self.students):
            return False
        self.comments.setdefault(student_index, {})[slot] = text
        self._persist(storage.COMMENTS_KEY)
        return True

    def has_marks(self) -> bool:
        return any(record.has_data(seq) for record in self.marks for seq in SEQUENCES)

    # ── Results ───────────────────────────────────────────────────────────────

    def _stats_kwargs(self) -> dict:
        return {"passing_mark": self.passing_mark, "max_note": self.max_note}

    @_synchronized
    def calculate_sequence_results(self, sequence: str) -> ResultSet:
        result_set = aggregator.compute_sequence_results(
            self.students, self.subjects, self.marks, sequence, **self._stats_kwargs()
        )
        self.results.put("sequence", result_set)
        self.results.sequence_key = sequence
        logger.info("Computed %s results for %d students (class average %.2f)",
                    sequence, len(result_set.results), result_set.class_average)
        return result_set

    @_synchronized
    def calculate_term_results(self) -> List[str]:
        """Recompute every term and the annual summary.

        A view whose data precondition is not met keeps its previous results.
        Returns the keys of the views that were updated.
        """
        updated = []
        for term in TERMS:
            result_set = aggregator.compute_term_results(
                self.students, self.subjects, self.marks, term, **self._stats_kwargs()
            )
            if result_set is None:
                logger.info("Skipped %s: not enough sequence data", term.key)
                continue
            self.results.put(term.key, result_set)
            updated.append(term.key)
        annual = aggregator.compute_annual_results(
            self.students, self.subjects, self.marks, **self._stats_kwargs()
        )
        if annual is None:
            logger.info("Skipped annual results: a term has no marks")
        else:
            self.results.put("annual", annual)
            updated.append("annual")
        return updated

    # ── Reset ─────────────────────────────────────────────────────────────────

    @_synchronized
    def reset(self, confirm: bool = False) -> bool:
        """Wipe the store and every collection.  Needs ``confirm=True``."""
        if not confirm:
            return False
        self.students = []
        self.subjects = []
        self.marks = []
        self.comments = {}
        self.results = ResultsBoard()
        if self.store is not None:
            self.store.clear()
        logger.info("Gradebook reset")
        return True


# ── Active session used by the HTTP app ──────────────────────────────────────

_active: Optional[GradebookSession] = None
_active_dir: Optional[str] = None
_active_lock = threading.Lock()


def get_session() -> GradebookSession:
    """Return the process-wide session for :data:`storage.DATA_DIR`.

    The session is loaded from disk on first use and again whenever
    ``storage.DATA_DIR`` points somewhere else.
    """
    global _active, _active_dir
    with _active_lock:
        if _active is None or _active_dir != storage.DATA_DIR:
            settings = load_settings(storage.DATA_DIR)
            _active = GradebookSession.load(
                storage.JsonFileStore(storage.DATA_DIR),
                passing_mark=settings.passing_mark,
                max_note=settings.max_note,
            )
            _active_dir = storage.DATA_DIR
        return _active


def close_session() -> None:
    global _active, _active_dir
    with _active_lock:
        _active = None
        _active_dir = None
