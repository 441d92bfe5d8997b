from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
import io
import logging
import zipfile
import openpyxl

from gradebook import reports
from gradebook.models import TERMS, AnnualResult, ResultSet
from gradebook.session import GradebookSession, get_session

logger = logging.getLogger(__name__)

router = APIRouter()

renderer: reports.ReportRenderer = reports.PdfReportRenderer()

_SEQUENCE_HEADERS = ["rank", "student", "total_marks", "average"]
_ANNUAL_HEADERS = ["rank", "student", "first_term_average", "second_term_average",
                   "third_term_average", "final_average"]


def _build_rows(result_set: ResultSet):
    """Return *(headers, rows)* for a results sheet."""
    if result_set.is_annual:
        rows = [[r.rank, r.student, r.firstTermAverage, r.secondTermAverage,
                 r.thirdTermAverage, r.finalAverage]
                for r in result_set.results if isinstance(r, AnnualResult)]
        return _ANNUAL_HEADERS, rows
    rows = [[r.rank, r.student, r.totalMarks, r.average] for r in result_set.results]
    return _SEQUENCE_HEADERS, rows


def _require_results(session: GradebookSession, view: str) -> ResultSet:
    try:
        result_set = session.results.get(view)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result_set is None or not result_set.results:
        logger.warning("export %s — nothing to export", view)
        raise HTTPException(status_code=404, detail=f"No {view} results to export")
    return result_set


def _student_report(session: GradebookSession, index: int) -> bytes:
    return renderer.student_report(
        session.students[index],
        index,
        session.marks[index],
        session.subjects,
        session.comments,
        [(term.label, session.results.get(term.key)) for term in TERMS],
        session.results.annual,
    )


def _attachment(content: bytes, media_type: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([content]),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/export/results/{view}/pdf")
def export_results_pdf(view: str):
    logger.info("GET /export/results/%s/pdf", view)
    session = get_session()
    result_set = _require_results(session, view)
    title = session.results.title(view)
    content = renderer.results_report(title, result_set.results, result_set.class_average,
                                      result_set.pass_percentage, view == "annual")
    if content is None:
        raise HTTPException(status_code=404, detail=f"No {view} results to export")
    return _attachment(content, "application/pdf", reports.results_filename(title))


@router.get("/export/results/{view}/xlsx")
def export_results_xlsx(view: str):
    logger.info("GET /export/results/%s/xlsx", view)
    session = get_session()
    result_set = _require_results(session, view)
    headers, rows = _build_rows(result_set)

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = session.results.title(view)[:31]
    ws.append(headers)
    for row in rows:
        ws.append(row)
    ws.append([])
    ws.append(["class_average", result_set.class_average])
    ws.append(["pass_percentage", result_set.pass_percentage])

    output = io.BytesIO()
    wb.save(output)
    stem = reports.results_filename(session.results.title(view))[:-len(".pdf")]
    return _attachment(
        output.getvalue(),
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        f"{stem}.xlsx",
    )


@router.get("/export/reports/{index}/pdf")
def export_student_report(index: int):
    logger.info("GET /export/reports/%d/pdf", index)
    session = get_session()
    if not 0 <= index < len(session.students):
        raise HTTPException(status_code=404, detail=f"No student at index {index}")
    filename = reports.report_filename(session.students[index])
    return _attachment(_student_report(session, index), "application/pdf", filename)


@router.get("/export/reports")
def export_all_reports():
    """Every student's report in one ZIP archive."""
    session = get_session()
    if not session.students:
        raise HTTPException(status_code=404, detail="No students to export")
    logger.info("GET /export/reports — %d student(s)", len(session.students))

    zip_buffer = io.BytesIO()
    with zipfile.ZipFile(zip_buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for index, student in enumerate(session.students):
            # Duplicate names would collide inside the archive.
            arcname = f"{index + 1:02d}_{reports.report_filename(student)}"
            zf.writestr(arcname, _student_report(session, index))
    return _attachment(zip_buffer.getvalue(), "application/zip", "student_reports.zip")
