from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from pib_dashboard.config import MAX_NAMES_IN_SUMMARY, REGION_LABEL
from pib_dashboard.core.query_engine import RankedEntry, SeriesRow
from pib_dashboard.core.stats import is_finite

WORD_MIME_TYPE = "application/msword"

MAX_FILENAME_LENGTH = 110


@dataclass
class ExportCell:
    value: Any
    numeric: bool = False

    @property
    def text(self) -> str:
        return format_brl(self.value) if self.numeric else str(self.value)


@dataclass
class ExportDocument:
    filename_base: str
    title: str
    filters: List[str]
    headers: List[str]
    rows: List[List[ExportCell]] = field(default_factory=list)

    @property
    def filename(self) -> str:
        return f"{sanitize_filename(self.filename_base)}.doc"


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_brl(value: Optional[float]) -> str:
    """'R$ 1.234.568' (pt-BR thousands separator, no cents); '' for no value."""
    if not is_finite(value):
        return ""
    return "R$ " + f"{value:,.0f}".replace(",", ".")


def sanitize_filename(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", str(text))
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    collapsed = re.sub(r"[^a-zA-Z0-9]+", "_", ascii_only).strip("_")
    return collapsed[:MAX_FILENAME_LENGTH]


def summarize_names(names: Sequence[str], limit: int = MAX_NAMES_IN_SUMMARY) -> str:
    head = ", ".join(names[:limit])
    return head + ("…" if len(names) > limit else "")


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

def ranking_export(
    entries: Sequence[RankedEntry],
    variable: str,
    series: str,
    year: Any,
    top_n: int,
) -> ExportDocument:
    return ExportDocument(
        filename_base=f"ranking_{REGION_LABEL}_{variable}_{series}_{year}_top{top_n}",
        title=f"Ranking — {REGION_LABEL} ({year})",
        filters=[
            f"Variável: {variable}",
            f"Série: {series}",
            f"Ano: {year}",
            f"Top N: {top_n}",
        ],
        headers=["#", "Município", "Código", "Valor"],
        rows=[
            [ExportCell(e.rank), ExportCell(e.name), ExportCell(e.code), ExportCell(e.value, numeric=True)]
            for e in entries
        ],
    )


def series_export(
    rows: Sequence[SeriesRow],
    variable: str,
    series: str,
    selected_names: Sequence[str],
) -> ExportDocument:
    names = list(selected_names)
    return ExportDocument(
        filename_base=f"serie_{REGION_LABEL}_{variable}_{series}_munis_{', '.join(names[:MAX_NAMES_IN_SUMMARY])}",
        title="Série — Municípios selecionados",
        filters=[
            f"Variável: {variable}",
            f"Série: {series}",
            f"Municípios: {summarize_names(names)}",
        ],
        headers=["Ano", "Município", "Código", "Valor"],
        rows=[
            [ExportCell(r.year), ExportCell(r.name), ExportCell(r.code), ExportCell(r.value, numeric=True)]
            for r in rows
        ],
    )


TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
WORD_TEMPLATE = "word_export.html"


@lru_cache(maxsize=1)
def _template_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(enabled_extensions=("html",)),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_word_html(doc: ExportDocument, generated_at: Optional[datetime] = None) -> str:
    """
    HTML body that Word opens as a document (.doc).
    All text is escaped by the template environment; numeric cells are right-aligned.
    """
    stamp = (generated_at or datetime.now()).strftime("%d/%m/%Y %H:%M:%S")
    template = _template_env().get_template(WORD_TEMPLATE)
    return template.render(doc=doc, generated_at=stamp)


def word_bytes(doc: ExportDocument, generated_at: Optional[datetime] = None) -> bytes:
    return render_word_html(doc, generated_at=generated_at).encode("utf-8")
