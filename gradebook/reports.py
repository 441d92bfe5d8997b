"""Render student reports and ranked result sheets as PDF with PyMuPDF.

Layout notes
------------
Pages are A4 portrait in PDF points (595 x 842).  Tables are drawn row by
row with ``page.insert_text`` and thin rules; a new page is started when the
next row would cross the bottom margin.  Cell text that is wider than its
column is cut and ends with "...".
"""
import re
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import fitz

from gradebook.models import (
    ANNUAL_COMMENT,
    SEQUENCE_LABELS,
    SEQUENCES,
    AnnualResult,
    AnyResult,
    ResultSet,
    StudentComments,
    StudentMarks,
    Subject,
)

NO_COMMENT = "No comment"
NO_PROGRESS_NOTE = "No progress note"
APP_TITLE = "Gradebook"

_PAGE_W, _PAGE_H = fitz.paper_size("a4")
_MARGIN = 40
_FONT = "helv"
_BOLD = "hebo"
_FONTSIZE = 9
_ROW_H = 16
_RULE = (0.75, 0.75, 0.75)
_HEAD_FILL = (0.16, 0.5, 0.73)


class ReportRenderer(Protocol):
    def student_report(self, student: str, index: int, marks: StudentMarks,
                       subjects: Sequence[Subject], comments: StudentComments,
                       term_results: Sequence[Tuple[str, Optional[ResultSet]]],
                       annual: Optional[ResultSet]) -> bytes: ...

    def results_report(self, title: str, results: Sequence[AnyResult],
                       class_average: float, pass_percentage: float,
                       is_annual: bool) -> Optional[bytes]: ...


def report_filename(student: str) -> str:
    return f"{student}_report.pdf"


def results_filename(title: str) -> str:
    return re.sub(r"\s+", "-", title.strip().lower()) + ".pdf"


def format_mark(value) -> str:
    """Marks print without a trailing ``.0``; unset marks print as ``-``."""
    if value is None:
        return "-"
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def _fit(text: str, width: float, fontname: str = _FONT) -> str:
    if fitz.get_text_length(text, fontname=fontname, fontsize=_FONTSIZE) <= width:
        return text
    while text and fitz.get_text_length(text + "...", fontname=fontname,
                                        fontsize=_FONTSIZE) > width:
        text = text[:-1]
    return text + "..."


def _wrap(text: str, width: float, fontsize: float) -> List[str]:
    def fits(s):
        return fitz.get_text_length(s, fontname=_FONT, fontsize=fontsize) <= width

    lines = []
    for block in text.splitlines() or [""]:
        current = ""
        for word in block.split():
            candidate = f"{current} {word}" if current else word
            if fits(candidate):
                current = candidate
                continue
            if current:
                lines.append(current)
            # A single word wider than the page is split by characters.
            while not fits(word):
                cut = max(len(word) - 1, 1)
                while cut > 1 and not fits(word[:cut]):
                    cut -= 1
                lines.append(word[:cut])
                word = word[cut:]
            current = word
        lines.append(current)
    return lines


class _Canvas:
    """A cursor over a growing document."""

    def __init__(self):
        self.doc = fitz.open()
        self.page = None
        self.y = 0.0
        self._new_page()

    def _new_page(self):
        self.page = self.doc.new_page(width=_PAGE_W, height=_PAGE_H)
        self.y = _MARGIN

    def _ensure(self, height: float):
        if self.y + height > _PAGE_H - _MARGIN:
            self._new_page()

    def heading(self, text: str, fontsize: float = 16):
        self._ensure(fontsize + 10)
        self.y += fontsize
        self.page.insert_text((_MARGIN, self.y), text, fontsize=fontsize, fontname=_BOLD)
        self.y += 10

    def line(self, text: str, fontsize: float = 11):
        self._ensure(fontsize + 6)
        self.y += fontsize
        self.page.insert_text((_MARGIN, self.y), text, fontsize=fontsize, fontname=_FONT)
        self.y += 6

    def paragraph(self, text: str, fontsize: float = 10):
        """Word-wrap *text* to the page width, continuing on new pages."""
        width = _PAGE_W - 2 * _MARGIN
        for line in _wrap(text, width, fontsize):
            self._ensure(fontsize + 4)
            self.y += fontsize
            self.page.insert_text((_MARGIN, self.y), line, fontsize=fontsize, fontname=_FONT)
            self.y += 4
        self.y += 6

    def table(self, head: List[str], body: List[List[str]], widths: List[float]):
        """Draw *body* under a filled header row; *widths* are fractions."""
        usable = _PAGE_W - 2 * _MARGIN
        cols = [w * usable for w in widths]
        self._row(head, cols, header=True)
        for row in body:
            if self.y + _ROW_H > _PAGE_H - _MARGIN:
                self._new_page()
                self._row(head, cols, header=True)
            self._row(row, cols)
        self.y += 8

    def _row(self, cells: List[str], cols: List[float], header: bool = False):
        self._ensure(_ROW_H)
        top = self.y
        if header:
            shape = self.page.new_shape()
            shape.draw_rect(fitz.Rect(_MARGIN, top, _PAGE_W - _MARGIN, top + _ROW_H))
            shape.finish(color=_HEAD_FILL, fill=_HEAD_FILL, width=0)
            shape.commit()
        x = _MARGIN
        fontname = _BOLD if header else _FONT
        color = (1, 1, 1) if header else (0, 0, 0)
        for text, width in zip(cells, cols):
            self.page.insert_text((x + 3, top + _ROW_H - 4), _fit(text, width - 6, fontname),
                                  fontsize=_FONTSIZE, fontname=fontname, color=color)
            x += width
        self.page.draw_line((_MARGIN, top + _ROW_H), (_PAGE_W - _MARGIN, top + _ROW_H),
                            color=_RULE, width=0.5)
        self.y = top + _ROW_H

    def tobytes(self) -> bytes:
        try:
            return self.doc.tobytes(garbage=3, deflate=True)
        finally:
            self.doc.close()


class PdfReportRenderer:
    """Default :class:`ReportRenderer`."""

    def student_report(self, student: str, index: int, marks: StudentMarks,
                       subjects: Sequence[Subject], comments: StudentComments,
                       term_results: Sequence[Tuple[str, Optional[ResultSet]]],
                       annual: Optional[ResultSet]) -> bytes:
        """One student's marks for all six sequences, term summary and note.

        Term and annual rows are looked up by student name and skipped when
        that period has not been computed.
        """
        own_comments: Dict[str, str] = comments.get(index, {})
        canvas = _Canvas()
        canvas.heading(f"Student Report: {student}")

        rows = []
        for seq in SEQUENCES:
            score_map = marks.sequence(seq)
            comment = own_comments.get(seq) or NO_COMMENT
            for subject in subjects:
                rows.append([SEQUENCE_LABELS[seq], subject.name,
                             format_mark(score_map.get(subject.name)), comment])
        canvas.table(["Sequence", "Subject", "Mark", "Teacher Comment"], rows,
                     [0.2, 0.25, 0.1, 0.45])

        summary = []
        for label, result_set in term_results:
            result = result_set.find(student) if result_set else None
            if result is not None:
                summary.append([label, f"{result.average:.2f}", str(result.rank)])
        annual_result = annual.find(student) if annual else None
        if annual_result is not None:
            summary.append(["Annual Summary", f"{annual_result.finalAverage:.2f}",
                            str(annual_result.rank)])
        canvas.heading("Term Summary", fontsize=12)
        canvas.table(["Period", "Average", "Rank"], summary, [0.5, 0.25, 0.25])

        canvas.heading("Progress Notes", fontsize=12)
        canvas.paragraph(own_comments.get(ANNUAL_COMMENT) or NO_PROGRESS_NOTE)
        return canvas.tobytes()

    def results_report(self, title: str, results: Sequence[AnyResult],
                       class_average: float, pass_percentage: float,
                       is_annual: bool) -> Optional[bytes]:
        """Ranked class sheet; ``None`` when there is nothing to print."""
        if not results:
            return None
        canvas = _Canvas()
        canvas.heading(f"{APP_TITLE} - {title}")
        if is_annual:
            head = ["Rank", "Student", "1st Term Avg", "2nd Term Avg", "3rd Term Avg", "Final Avg"]
            body = [[str(r.rank), r.student, f"{r.firstTermAverage:.2f}",
                     f"{r.secondTermAverage:.2f}", f"{r.thirdTermAverage:.2f}",
                     f"{r.finalAverage:.2f}"]
                    for r in results if isinstance(r, AnnualResult)]
            widths = [0.08, 0.32, 0.15, 0.15, 0.15, 0.15]
        else:
            head = ["Rank", "Student", "Total Marks", "Average"]
            body = [[str(r.rank), r.student, f"{r.totalMarks:.2f}", f"{r.average:.2f}"]
                    for r in results if not isinstance(r, AnnualResult)]
            widths = [0.1, 0.5, 0.2, 0.2]
        canvas.table(head, body, widths)
        canvas.line(f"Class average: {class_average:.2f}")
        canvas.line(f"Pass percentage: {pass_percentage:.2f}%")
        return canvas.tobytes()
