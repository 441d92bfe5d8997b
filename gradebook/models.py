"""Data models for the sequence gradebook."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple, Union

# A raw mark; None means "unset", which is distinct from 0.
Mark = Optional[float]

SEQUENCES: Tuple[str, ...] = (
    "firstSequence",
    "secondSequence",
    "thirdSequence",
    "fourthSequence",
    "fifthSequence",
    "sixthSequence",
)

# Comment slot for the annual progress note.
ANNUAL_COMMENT = "annual"

SEQUENCE_LABELS: Dict[str, str] = {
    "firstSequence": "First Sequence",
    "secondSequence": "Second Sequence",
    "thirdSequence": "Third Sequence",
    "fourthSequence": "Fourth Sequence",
    "fifthSequence": "Fifth Sequence",
    "sixthSequence": "Sixth Sequence",
}


@dataclass(frozen=True)
class TermDefinition:
    key: str
    label: str
    first: str
    second: str
    require_both: bool  # strict terms need data in both sequences


TERMS: Tuple[TermDefinition, ...] = (
    TermDefinition("firstTerm", "First Term", "firstSequence", "secondSequence", True),
    TermDefinition("secondTerm", "Second Term", "thirdSequence", "fourthSequence", True),
    TermDefinition("thirdTerm", "Third Term", "fifthSequence", "sixthSequence", False),
)

RESULT_VIEWS: Tuple[str, ...] = ("sequence",) + tuple(t.key for t in TERMS) + ("annual",)


def check_sequence(sequence: str) -> str:
    if sequence not in SEQUENCES:
        raise ValueError(f"unknown sequence: {sequence!r}")
    return sequence


@dataclass
class Subject:
    name: str
    total: float  # maximum raw score, always > 0


@dataclass
class StudentMarks:
    """One score map per sequence: ``{subject_name: mark}``."""
    firstSequence: Dict[str, Mark] = field(default_factory=dict)
    secondSequence: Dict[str, Mark] = field(default_factory=dict)
    thirdSequence: Dict[str, Mark] = field(default_factory=dict)
    fourthSequence: Dict[str, Mark] = field(default_factory=dict)
    fifthSequence: Dict[str, Mark] = field(default_factory=dict)
    sixthSequence: Dict[str, Mark] = field(default_factory=dict)

    def sequence(self, name: str) -> Dict[str, Mark]:
        return getattr(self, check_sequence(name))

    def sequences(self) -> List[Dict[str, Mark]]:
        return [getattr(self, name) for name in SEQUENCES]

    def has_data(self, name: str) -> bool:
        """True if at least one mark of sequence *name* is set."""
        return any(v is not None for v in self.sequence(name).values())

    def raw(self, sequence: str, subject: str) -> float:
        """Mark used for aggregation: unset and missing both count as 0."""
        value = self.sequence(sequence).get(subject)
        return 0.0 if value is None else value


# { student_index: { sequence_or_"annual": text } }
StudentComments = Dict[int, Dict[str, str]]


@dataclass
class SequenceResult:
    student: str
    totalMarks: float
    average: float
    rank: int = 0


# Same shape; kept separate so callers can tell which aggregation produced it.
@dataclass
class TermResult(SequenceResult):
    pass


@dataclass
class AnnualResult:
    student: str
    firstTermAverage: float
    secondTermAverage: float
    thirdTermAverage: float
    finalAverage: float
    rank: int = 0


AnyResult = Union[SequenceResult, TermResult, AnnualResult]


@dataclass
class ResultSet:
    """Ranked results for one period plus the class statistics."""
    results: List[AnyResult] = field(default_factory=list)
    class_average: float = 0.0
    pass_percentage: float = 0.0

    @property
    def is_annual(self) -> bool:
        return bool(self.results) and isinstance(self.results[0], AnnualResult)

    def find(self, student: str) -> Optional[AnyResult]:
        for result in self.results:
            if result.student == student:
                return result
        return None


@dataclass
class ResultsBoard:
    """Last computed results per view. ``None`` means not computed yet.

    ``stale`` holds the computed views that a later edit has outdated.
    """
    sequence: Optional[ResultSet] = None
    sequence_key: Optional[str] = None  # which sequence ``sequence`` belongs to
    firstTerm: Optional[ResultSet] = None
    secondTerm: Optional[ResultSet] = None
    thirdTerm: Optional[ResultSet] = None
    annual: Optional[ResultSet] = None
    stale: Set[str] = field(default_factory=set)

    def get(self, view: str) -> Optional[ResultSet]:
        if view not in RESULT_VIEWS:
            raise ValueError(f"unknown result view: {view!r}")
        return getattr(self, view)

    def put(self, view: str, result_set: ResultSet) -> None:
        if view not in RESULT_VIEWS:
            raise ValueError(f"unknown result view: {view!r}")
        setattr(self, view, result_set)
        self.stale.discard(view)

    def computed(self) -> List[str]:
        return [view for view in RESULT_VIEWS if getattr(self, view) is not None]

    def invalidate(self) -> None:
        """Mark every computed view as outdated."""
        self.stale.update(self.computed())

    def is_stale(self, view: str) -> bool:
        return view in self.stale

    def title(self, view: str) -> str:
        if view not in RESULT_VIEWS:
            raise ValueError(f"unknown result view: {view!r}")
        if view == "sequence":
            return SEQUENCE_LABELS.get(self.sequence_key or "", "Sequence")
        if view == "annual":
            return "Annual Summary"
        return next(t.label for t in TERMS if t.key == view)
