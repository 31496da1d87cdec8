"""
Word export: currency formatting, filenames and the rendered HTML document.
"""
from datetime import datetime

from pib_dashboard.core.export import (
    ExportCell,
    format_brl,
    ranking_export,
    render_word_html,
    sanitize_filename,
    series_export,
    word_bytes,
)
from pib_dashboard.core.query_engine import RankedEntry, SeriesRow


def test_format_brl():
    assert format_brl(1234567.4) == "R$ 1.234.567"
    assert format_brl(950) == "R$ 950"
    assert format_brl(None) == ""
    assert format_brl(float("nan")) == ""


def test_sanitize_filename():
    name = sanitize_filename("ranking_RS_Produto Interno Bruto_PIB a preços correntes_2021_top15")
    assert name == "ranking_RS_Produto_Interno_Bruto_PIB_a_precos_correntes_2021_top15"
    assert sanitize_filename("  --Água--  ") == "Agua"
    assert len(sanitize_filename("x" * 300)) == 110


def test_cell_text():
    assert ExportCell(3).text == "3"
    assert ExportCell(1500.0, numeric=True).text == "R$ 1.500"


def test_ranking_export_document():
    entries = [
        RankedEntry(rank=1, code="4314902", name="Porto Alegre", value=120.0),
        RankedEntry(rank=2, code="4304606", name="Canoas", value=48.0),
    ]
    doc = ranking_export(entries, "PIB", "PIB a preços correntes", 2021, 15)

    assert doc.filename == "ranking_RS_PIB_PIB_a_precos_correntes_2021_top15.doc"
    assert doc.title == "Ranking — RS (2021)"
    assert doc.headers == ["#", "Município", "Código", "Valor"]
    assert doc.filters[-1] == "Top N: 15"
    assert [c.text for c in doc.rows[0]] == ["1", "Porto Alegre", "4314902", "R$ 120"]
    assert [c.numeric for c in doc.rows[0]] == [False, False, False, True]


def test_series_export_truncates_names():
    rows = [SeriesRow(year=2020, name="Canoas", code="4304606", value=44.0)]
    names = [f"Município {i}" for i in range(8)]
    doc = series_export(rows, "PIB", "Nominal", names)

    assert doc.headers == ["Ano", "Município", "Código", "Valor"]
    assert doc.filters[2].endswith("Município 5…")
    assert "Municipio_6" not in doc.filename
    assert doc.filename.startswith("serie_RS_PIB_Nominal_munis_Municipio_0")


def test_render_word_html():
    doc = ranking_export(
        [RankedEntry(rank=1, code="1", name="A <&> B", value=1000.0)],
        "PIB", "Nominal", 2021, 5,
    )
    out = render_word_html(doc, generated_at=datetime(2024, 2, 1, 10, 0, 0))

    assert '<meta charset="utf-8"/>' in out
    assert "<h1>Ranking — RS (2021)</h1>" in out
    assert "<div>Variável: PIB</div>" in out
    assert "Gerado em: 01/02/2024 10:00:00" in out
    assert "<th>Município</th>" in out
    assert "A &lt;&amp;&gt; B" in out
    assert '<td class="num">R$ 1.000</td>' in out
    assert "td.num { text-align: right; }" in out


def test_word_bytes_are_utf8():
    doc = series_export([], "PIB", "Nominal", ["São Leopoldo"])
    data = word_bytes(doc, generated_at=datetime(2024, 1, 1))
    assert "São Leopoldo".encode("utf-8") in data


def test_render_word_html_escapes_filters_and_title():
    doc = ranking_export([], "PIB <script>alert(1)</script>", "Nominal", 2021, 5)
    out = render_word_html(doc, generated_at=datetime(2024, 2, 1, 10, 0, 0))

    assert "<script>" not in out
    assert "<div>Variável: PIB &lt;script&gt;alert(1)&lt;/script&gt;</div>" in out
    assert "<tbody>" in out and "<td" not in out
