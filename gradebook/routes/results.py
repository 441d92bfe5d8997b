from fastapi import APIRouter, HTTPException
import logging

from gradebook.models import RESULT_VIEWS
from gradebook.schemas import ResultsSummary, ResultsView, TermsOutcome
from gradebook.session import get_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/results/sequence/{sequence}", response_model=ResultsView)
def calculate_sequence(sequence: str):
    logger.info("POST /results/sequence/%s", sequence)
    session = get_session()
    try:
        result_set = session.calculate_sequence_results(sequence)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ResultsView.from_result_set("sequence", session.results.title("sequence"), result_set)


@router.post("/results/terms", response_model=TermsOutcome)
def calculate_terms():
    logger.info("POST /results/terms")
    updated = get_session().calculate_term_results()
    logger.info("POST /results/terms — updated: %s", ", ".join(updated) or "nothing")
    return TermsOutcome(updated=updated)


@router.get("/results", response_model=ResultsSummary)
def get_results_summary():
    session = get_session()
    return ResultsSummary(
        stale=session.results_stale,
        stale_views=[view for view in RESULT_VIEWS if session.results.is_stale(view)],
        has_marks=session.has_marks(),
        sequence=session.results.sequence_key,
        computed={view: session.results.get(view) is not None for view in RESULT_VIEWS},
    )


@router.get("/results/{view}", response_model=ResultsView)
def get_results(view: str):
    session = get_session()
    try:
        result_set = session.results.get(view)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result_set is None:
        raise HTTPException(status_code=404, detail=f"{view} results have not been calculated")
    return ResultsView.from_result_set(view, session.results.title(view), result_set,
                                       stale=session.results.is_stale(view))
