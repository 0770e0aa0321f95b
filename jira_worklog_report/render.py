"""
Report output: CSV text, Excel workbook, HTML document and its PDF rendering.
"""

import os
from datetime import date
from html import escape
from typing import List, Sequence, TextIO

import pandas as pd
from babel.dates import format_date

from .errors import RenderingError

STYLESHEET = """
    <style>
      html { -webkit-print-color-adjust: exact; print-color-adjust: exact; }

      body {
        margin: 1.5em 2.5em;
      }

      table {
        width: 100%;
        border-collapse: collapse;
      }

      table, td, th {
        border: solid 1px;
      }

      tr:last-child {
        background: lightgray;
        font-weight: bold;
      }

      tr:last-child td {
        border-top-width: 2px;
      }
    </style>
"""


def table_frame(table: Sequence[Sequence]) -> pd.DataFrame:
    """Build a DataFrame whose columns are the table's header row."""
    if not table:
        raise ValueError("table must contain at least a header row")
    return pd.DataFrame([list(r) for r in table[1:]], columns=list(table[0]))


def write_csv(table: Sequence[Sequence], stream: TextIO) -> None:
    """Write the table as CSV, header first, one line per row."""
    table_frame(table).to_csv(stream, index=False, lineterminator="\n")


def write_xlsx(table: Sequence[Sequence], out_path: str, sheet_name: str="Worklog") -> None:
    """Write the table to a single-sheet .xlsx workbook."""
    try:
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
        with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
            table_frame(table).to_excel(writer, index=False, sheet_name=sheet_name)
    except OSError as e:
        raise RenderingError(f"could not write {out_path}: {e}") from e


def report_heading(period_start: date, title: str="", locale: str="pl") -> str:
    """'<title> - <month year>' with the title escaped and omitted when empty."""
    month = format_date(period_start, format="LLLL yyyy", locale=locale)
    prefix = f"{escape(title)} - " if title else ""
    return f"{prefix}{escape(month)}"


def html_table(table: Sequence[Sequence]) -> str:
    """Render rows as an HTML table; the first row becomes header cells."""
    lines: List[str] = []
    for index, row in enumerate(table):
        tag = "th" if index == 0 else "td"
        cells = "".join(f"<{tag}>{escape(str(cell))}</{tag}>" for cell in row)
        lines.append(f"<tr>{cells}</tr>")
    return "<table>" + "\n".join(lines) + "</table>"


def build_html(table: Sequence[Sequence], period_start: date, title: str="", locale: str="pl") -> str:
    """Build the printable HTML document for a report table.

    The embedded stylesheet marks the last row (the total) bold, shaded and
    with a heavier top border.
    """
    return f"{STYLESHEET}\n    <h1>{report_heading(period_start, title, locale)}</h1>{html_table(table)}"


def render_pdf(html_content: str) -> bytes:
    """Render HTML into PDF bytes with WeasyPrint.

    Raises:
        RenderingError: for any failure of the rendering backend, including
        missing native libraries.
    """
    try:
        from weasyprint import HTML
        return HTML(string=html_content).write_pdf()
    except Exception as e:
        raise RenderingError(f"PDF rendering failed: {e}") from e


def write_bytes(out_path: str, data: bytes) -> None:
    try:
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
        with open(out_path, "wb") as fh:
            fh.write(data)
    except OSError as e:
        raise RenderingError(f"could not write {out_path}: {e}") from e
