from typing import List

from fastapi import APIRouter, HTTPException
import logging

from gradebook.schemas import Changed, Subject, SubjectIn
from gradebook.session import get_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/subjects", response_model=List[Subject])
def get_subjects():
    return [Subject(name=s.name, total=s.total) for s in get_session().subjects]


@router.post("/subjects", response_model=Subject)
def post_subject(subject: SubjectIn):
    logger.info("POST /subjects — name: %s, total: %s", subject.name, subject.total)
    try:
        get_session().add_subject(subject.name, subject.total)
    except ValueError as e:
        logger.warning("POST /subjects — rejected: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    return Subject(name=subject.name, total=subject.total)


@router.put("/subjects/{index}", response_model=Changed)
def put_subject(index: int, subject: SubjectIn):
    logger.info("PUT /subjects/%d — name: %s, total: %s", index, subject.name, subject.total)
    try:
        changed = get_session().edit_subject(index, subject.name, subject.total)
    except ValueError as e:
        logger.warning("PUT /subjects/%d — rejected: %s", index, e)
        raise HTTPException(status_code=400, detail=str(e))
    return Changed(changed=changed)


@router.delete("/subjects/{index}", response_model=Changed)
def delete_subject(index: int):
    logger.info("DELETE /subjects/%d", index)
    changed = get_session().delete_subject_at(index)
    if not changed:
        logger.warning("DELETE /subjects/%d — index out of range, ignored", index)
    return Changed(changed=changed)
