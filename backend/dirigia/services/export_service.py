"""Document and data exports.

* Plain text: the stored appeal, byte-for-byte, UTF-8.
* PDF: deterministic A4 layout (20 mm margins, Noto Sans 12 pt, 7 mm
  line height) with greedy word wrap and automatic page breaks,
  rendered with PyMuPDF.  The font is embedded so dashes, curly quotes
  and symbols survive; the Base-14 Helvetica only covers Latin-1.
* CSV: one of four tables, fixed column allow-lists, rows limited to
  the caller.
"""

from __future__ import annotations

import datetime as dt
import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Sequence

import fitz  # PyMuPDF
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dirigia.models.tables import OcrRaw, Payment, Profile, Resource

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# PDF layout

MM_TO_PT = 72.0 / 25.4


@dataclass(frozen=True)
class PageLayout:
    page_width_mm: float = 210.0
    page_height_mm: float = 297.0
    margin_mm: float = 20.0
    line_height_mm: float = 7.0
    # Bundled by pymupdf-fonts
    font_name: str = "notos"
    font_size: float = 12.0

    @property
    def page_width(self) -> float:
        return self.page_width_mm * MM_TO_PT

    @property
    def page_height(self) -> float:
        return self.page_height_mm * MM_TO_PT

    @property
    def margin(self) -> float:
        return self.margin_mm * MM_TO_PT

    @property
    def line_height(self) -> float:
        return self.line_height_mm * MM_TO_PT

    @property
    def max_width(self) -> float:
        return self.page_width - 2 * self.margin


A4_LAYOUT = PageLayout()


def _split_long_word(word: str, measure: Callable[[str], float], max_width: float) -> List[str]:
    parts: List[str] = []
    current = ""
    for ch in word:
        if current and measure(current + ch) > max_width:
            parts.append(current)
            current = ch
        else:
            current += ch
    if current:
        parts.append(current)
    return parts


def wrap_text(text: str, measure: Callable[[str], float], max_width: float) -> List[str]:
    """Greedy word wrap; explicit newlines (and blank lines) are kept."""
    lines: List[str] = []
    for paragraph in text.replace("\r\n", "\n").split("\n"):
        words = paragraph.split()
        if not words:
            lines.append("")
            continue
        current = ""
        for word in words:
            candidate = f"{current} {word}" if current else word
            if measure(candidate) <= max_width:
                current = candidate
                continue
            if current:
                lines.append(current)
            if measure(word) <= max_width:
                current = word
                continue
            pieces = _split_long_word(word, measure, max_width)
            lines.extend(pieces[:-1])
            current = pieces[-1] if pieces else ""
        lines.append(current)
    return lines


def paginate(lines: Sequence[str], layout: PageLayout = A4_LAYOUT) -> List[List[tuple[float, str]]]:
    """Assign each line a baseline y; break when the next line would cross the bottom margin."""
    pages: List[List[tuple[float, str]]] = [[]]
    y = layout.margin
    bottom = layout.page_height - layout.margin
    for line in lines:
        if y + layout.line_height > bottom:
            pages.append([])
            y = layout.margin
        pages[-1].append((y, line))
        y += layout.line_height
    return pages


def render_pdf(text: str, layout: PageLayout = A4_LAYOUT) -> bytes:
    """Render ``text`` as a paginated PDF document."""
    # One Font per call; MuPDF objects are not shared across worker threads
    font = fitz.Font(layout.font_name)

    def measure(s: str) -> float:
        return font.text_length(s, fontsize=layout.font_size)

    pages = paginate(wrap_text(text, measure, layout.max_width), layout)
    doc = fitz.open()
    try:
        for page_lines in pages:
            page = doc.new_page(width=layout.page_width, height=layout.page_height)
            writer = fitz.TextWriter(page.rect)
            filled = [(y, line) for y, line in page_lines if line]
            for y, line in filled:
                writer.append(fitz.Point(layout.margin, y), line, font=font, fontsize=layout.font_size)
            if filled:
                writer.write_text(page)
        return doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()


def render_txt(text: str) -> bytes:
    return text.encode("utf-8")


def export_filename(resource_id: str, extension: str) -> str:
    return f"recurso-multa-{resource_id}.{extension}"


# -----------------------------------------------------------------------------
# CSV


@dataclass(frozen=True)
class CsvTable:
    model: Any
    columns: tuple[str, ...]
    owner_column: str


CSV_TABLES: Dict[str, CsvTable] = {
    "profiles": CsvTable(
        model=Profile,
        columns=("id", "name", "email", "plan", "resources_count", "created_at", "updated_at"),
        owner_column="id",
    ),
    "resources": CsvTable(
        model=Resource,
        columns=(
            "id", "user_id", "ait_number", "placa", "renavam", "artigo", "local",
            "orgao_autuador", "data_infracao", "generated_text", "pdf_url", "created_at",
        ),
        owner_column="user_id",
    ),
    "payments": CsvTable(
        model=Payment,
        columns=(
            "id", "user_id", "amount", "payment_method", "plan", "status",
            "billing_id", "br_code", "paid_at", "created_at", "updated_at",
        ),
        owner_column="user_id",
    ),
    "ocr_raw": CsvTable(
        model=OcrRaw,
        columns=("id", "user_id", "uploaded_file_url", "extracted_text", "created_at"),
        owner_column="user_id",
    ),
}


def csv_cell(value: Any) -> str:
    """Quote one value: null -> empty, otherwise ``"..."`` with quotes doubled."""
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        value = value.value
    elif isinstance(value, (dt.datetime, dt.date)):
        value = value.isoformat()
    elif isinstance(value, (dict, list)):
        value = json.dumps(value, ensure_ascii=False)
    text = str(value)
    return '"' + text.replace('"', '""') + '"'


def build_csv(columns: Iterable[str], rows: Iterable[Dict[str, Any]]) -> str:
    cols = list(columns)
    out = [",".join(cols)]
    for row in rows:
        out.append(",".join(csv_cell(row.get(c)) for c in cols))
    return "\n".join(out)


async def export_table_csv(session: AsyncSession, table: str, user_id: str) -> str:
    """Return the caller's rows of ``table`` as CSV text.

    ``table`` must be a key of ``CSV_TABLES``; callers validate it.
    """
    table_def = CSV_TABLES[table]
    model = table_def.model
    stmt = select(*[getattr(model, c) for c in table_def.columns]).where(getattr(model, table_def.owner_column) == user_id)
    result = await session.execute(stmt)
    rows = [dict(zip(table_def.columns, r)) for r in result.all()]
    logger.info("[export] table=%s rows=%d user=%s", table, len(rows), user_id)
    return build_csv(table_def.columns, rows)
