from dataclasses import asdict
from typing import Dict, List

from fastapi import APIRouter, HTTPException
import logging

from gradebook.schemas import BulkMarks, BulkOutcome, Changed, CommentEntry, MarkEntry, MarkOutcome
from gradebook.session import get_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/marks")
def get_marks() -> List[dict]:
    marks = get_session().marks
    logger.info("GET /marks — returned marks for %d students", len(marks))
    return [asdict(record) for record in marks]


@router.post("/marks", response_model=MarkOutcome)
def post_mark(entry: MarkEntry):
    logger.info("POST /marks — student: %d, sequence: %s, subject: %s, value: %r",
                entry.student_index, entry.sequence, entry.subject, entry.value)
    try:
        accepted = get_session().set_mark(entry.student_index, entry.sequence,
                                          entry.subject, entry.value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return MarkOutcome(accepted=accepted)


@router.post("/marks/bulk", response_model=BulkOutcome)
def post_marks_bulk(bulk: BulkMarks):
    logger.info("POST /marks/bulk — sequence: %s, entries: %d", bulk.sequence, len(bulk.entries))
    try:
        outcomes = get_session().set_marks_bulk(
            bulk.sequence,
            [(e.student_index, e.subject, e.value) for e in bulk.entries],
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("POST /marks/bulk — accepted %d of %d", sum(outcomes), len(outcomes))
    return BulkOutcome(accepted=outcomes, accepted_count=sum(outcomes))


@router.get("/comments")
def get_comments() -> Dict[str, Dict[str, str]]:
    return {str(index): slots for index, slots in get_session().comments.items()}


@router.post("/comments", response_model=Changed)
def post_comment(entry: CommentEntry):
    logger.info("POST /comments — student: %d, slot: %s", entry.student_index, entry.slot)
    try:
        changed = get_session().set_comment(entry.student_index, entry.slot, entry.text)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return Changed(changed=changed)
