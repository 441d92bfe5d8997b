from dataclasses import asdict
from typing import Dict, List, Optional, Union

from pydantic import BaseModel

from gradebook.models import ResultSet

# Marks arrive as typed in the form: a number, a numeric string or "".
MarkValue = Optional[Union[float, str]]


class StudentIn(BaseModel):
    name: str


class Student(BaseModel):
    index: int
    name: str


class SubjectIn(BaseModel):
    name: str
    total: float


class Subject(BaseModel):
    name: str
    total: float


class MarkEntry(BaseModel):
    student_index: int
    sequence: str
    subject: str
    value: MarkValue = None


class BulkMarkEntry(BaseModel):
    student_index: int
    subject: str
    value: MarkValue = None


class BulkMarks(BaseModel):
    sequence: str
    entries: List[BulkMarkEntry]


class CommentEntry(BaseModel):
    student_index: int
    slot: str  # a sequence name or "annual"
    text: str


class Changed(BaseModel):
    changed: bool


class MarkOutcome(BaseModel):
    accepted: bool


class BulkOutcome(BaseModel):
    accepted: List[bool]
    accepted_count: int


class ResultsView(BaseModel):
    view: str
    title: str
    is_annual: bool
    results: List[dict]
    class_average: float
    pass_percentage: float
    stale: bool = False

    @classmethod
    def from_result_set(cls, view: str, title: str, result_set: ResultSet,
                        stale: bool = False) -> "ResultsView":
        return cls(
            view=view,
            title=title,
            is_annual=view == "annual",
            results=[asdict(r) for r in result_set.results],
            class_average=result_set.class_average,
            pass_percentage=result_set.pass_percentage,
            stale=stale,
        )


class ResultsSummary(BaseModel):
    stale: bool
    stale_views: List[str] = []
    has_marks: bool
    sequence: Optional[str] = None
    computed: Dict[str, bool] = {}


class TermsOutcome(BaseModel):
    updated: List[str]
