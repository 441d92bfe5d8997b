from fastapi import APIRouter, HTTPException
import logging

from gradebook.schemas import Changed
from gradebook.session import get_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.delete("/data", response_model=Changed)
def reset_data(confirm: bool = False):
    """Erase every student, subject, mark, comment and result."""
    if not confirm:
        logger.warning("DELETE /data — refused without confirm=true")
        raise HTTPException(status_code=409, detail="Reset is irreversible; repeat with confirm=true")
    logger.info("DELETE /data — resetting gradebook")
    return Changed(changed=get_session().reset(confirm=True))
