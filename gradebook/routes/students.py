from typing import List

from fastapi import APIRouter
import logging

from gradebook.schemas import Changed, Student, StudentIn
from gradebook.session import get_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/students", response_model=List[Student])
def get_students():
    session = get_session()
    return [Student(index=i, name=name) for i, name in enumerate(session.students)]


@router.post("/students", response_model=Student)
def post_student(student: StudentIn):
    logger.info("POST /students — name: %s", student.name)
    index = get_session().add_student(student.name)
    return Student(index=index, name=student.name)


@router.put("/students/{index}", response_model=Changed)
def put_student(index: int, student: StudentIn):
    logger.info("PUT /students/%d — name: %s", index, student.name)
    changed = get_session().edit_student(index, student.name)
    if not changed:
        logger.warning("PUT /students/%d — no such student, ignored", index)
    return Changed(changed=changed)


@router.delete("/students/{index}", response_model=Changed)
def delete_student(index: int):
    logger.info("DELETE /students/%d", index)
    changed = get_session().delete_student(index)
    if not changed:
        logger.warning("DELETE /students/%d — no such student, ignored", index)
    return Changed(changed=changed)
