"""Data persistence: key-value store port and the JSON blob formats it holds."""
import json
import logging
import os
from typing import Any, Dict, List, Optional, Protocol

from gradebook.models import SEQUENCES, Mark, StudentComments, StudentMarks, Subject

logger = logging.getLogger(__name__)

DATA_DIR = "./data"

STUDENTS_KEY = "students"
SUBJECTS_KEY = "subjects"
MARKS_KEY = "marks"
COMMENTS_KEY = "studentComments"
STORE_KEYS = (STUDENTS_KEY, SUBJECTS_KEY, MARKS_KEY, COMMENTS_KEY)


class StoreError(RuntimeError):
    """A blob could not be read from or written to the store."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...


class JsonFileStore:
    """Keeps each key as ``<data_dir>/<key>.json``."""

    def __init__(self, data_dir: Optional[str] = None):
        self.data_dir = os.path.abspath(data_dir or DATA_DIR)

    def _path(self, key: str) -> str:
        return os.path.join(self.data_dir, f"{key}.json")

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as e:
            raise StoreError(f"could not read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(value)
        except OSError as e:
            raise StoreError(f"could not write {path}: {e}") from e

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as e:
            raise StoreError(f"could not remove {path}: {e}") from e

    def clear(self) -> None:
        for key in STORE_KEYS:
            self.remove(key)


class MemoryStore:
    """Dict-backed store, handy for scripting and tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def clear(self) -> None:
        self.data.clear()


# ── Blob encoding ─────────────────────────────────────────────────────────────

def _loads(key: str, blob: str) -> Any:
    try:
        return json.loads(blob)
    except ValueError as e:
        raise StoreError(f"stored {key!r} is not valid JSON: {e}") from e


def _decode_mark(value: Any) -> Mark:
    # The browser front end stores unset marks as "".
    if value is None or value == "":
        return None
    return float(value)


def _encode_mark(value: Mark) -> Any:
    return "" if value is None else value


def _decode_score_map(data: Optional[dict]) -> Dict[str, Mark]:
    return {name: _decode_mark(v) for name, v in (data or {}).items()}


def decode_students(blob: str) -> List[str]:
    return [str(name) for name in _loads(STUDENTS_KEY, blob)]


def encode_students(students: List[str]) -> str:
    return json.dumps(students, indent=2)


def decode_subjects(blob: str) -> List[Subject]:
    try:
        return [Subject(name=str(s["name"]), total=float(s["total"]))
                for s in _loads(SUBJECTS_KEY, blob)]
    except (KeyError, TypeError, ValueError) as e:
        raise StoreError(f"stored subjects are malformed: {e}") from e


def encode_subjects(subjects: List[Subject]) -> str:
    return json.dumps([{"name": s.name, "total": s.total} for s in subjects], indent=2)


def decode_marks(blob: str) -> List[StudentMarks]:
    """Parse the stored marks collection.

    Records written before sequences existed are flat ``{subject: mark}``
    maps.  If the first record has no ``firstSequence`` the whole collection
    is treated as such and moved into the first sequence.
    """
    data = _loads(MARKS_KEY, blob)
    if not isinstance(data, list):
        raise StoreError("stored marks must be a list")
    try:
        if data and isinstance(data[0], dict) and "firstSequence" not in data[0]:
            logger.info("Migrating %d legacy single-sequence marks records", len(data))
            return [StudentMarks(firstSequence=_decode_score_map(old)) for old in data]
        return [
            StudentMarks(**{seq: _decode_score_map(record.get(seq)) for seq in SEQUENCES})
            for record in data
        ]
    except (AttributeError, TypeError, ValueError) as e:
        raise StoreError(f"stored marks are malformed: {e}") from e


def encode_marks(marks: List[StudentMarks]) -> str:
    return json.dumps([
        {seq: {name: _encode_mark(v) for name, v in record.sequence(seq).items()}
         for seq in SEQUENCES}
        for record in marks
    ], indent=2)


def decode_comments(blob: str) -> StudentComments:
    # JSON object keys are strings; student indices are ints in memory.
    try:
        return {int(index): {str(k): str(v) for k, v in slots.items()}
                for index, slots in _loads(COMMENTS_KEY, blob).items()}
    except (AttributeError, TypeError, ValueError) as e:
        raise StoreError(f"stored comments are malformed: {e}") from e


def encode_comments(comments: StudentComments) -> str:
    return json.dumps({str(index): slots for index, slots in comments.items()}, indent=2)
