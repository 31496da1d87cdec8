from __future__ import annotations

from typing import Any, Dict, List

import plotly.graph_objects as go

from pib_dashboard.config import GEO_CODE_PROPERTY, REGION_LABEL
from pib_dashboard.core.query_engine import MapView, RaceView, SeriesView

# pt-BR separators: "." for thousands, "," for decimals (Plotly takes decimal first)
PT_BR_SEPARATORS = ",."

MAP_FRAME_MS = 700
RACE_FRAME_MS = 650


def empty_figure(title: str = "Sem dados") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title)
    return fig


def _year_annotation(year: int, y: float) -> List[Dict[str, Any]]:
    return [
        dict(
            text=f"Ano: <b>{year}</b>",
            x=0.99,
            y=y,
            xref="paper",
            yref="paper",
            xanchor="right",
            yanchor="top",
            showarrow=False,
            bgcolor="rgba(255,255,255,0.75)",
            bordercolor="rgba(0,0,0,0.20)",
            borderwidth=1,
            font=dict(size=12),
        )
    ]


def _animation_controls(years: List[int], frame_ms: int, y: float) -> Dict[str, Any]:
    """Play/Pause buttons plus a year slider, both driving the named frames."""
    return dict(
        updatemenus=[
            dict(
                type="buttons",
                direction="left",
                x=0.02,
                y=y,
                xanchor="left",
                yanchor="bottom",
                showactive=False,
                buttons=[
                    dict(
                        label="Play",
                        method="animate",
                        args=[None, dict(fromcurrent=True, frame=dict(duration=frame_ms, redraw=True), transition=dict(duration=0))],
                    ),
                    dict(
                        label="Pause",
                        method="animate",
                        args=[[None], dict(mode="immediate", frame=dict(duration=0, redraw=False), transition=dict(duration=0))],
                    ),
                ],
            )
        ],
        sliders=[
            dict(
                active=0,
                x=0.20,
                y=y,
                len=0.78,
                xanchor="left",
                yanchor="bottom",
                currentvalue=dict(prefix="Ano: "),
                pad=dict(t=0, b=0),
                steps=[
                    dict(
                        label=str(yr),
                        method="animate",
                        args=[[str(yr)], dict(mode="immediate", frame=dict(duration=0, redraw=True), transition=dict(duration=0))],
                    )
                    for yr in years
                ],
            )
        ],
    )


# ---------------------------------------------------------------------------
# Choropleth
# ---------------------------------------------------------------------------

def map_figure(view: MapView, geojson: Dict[str, Any], variable: str, series: str) -> go.Figure:
    """Animated choropleth, one frame per year, each frame with its own color bounds."""
    if view.is_empty:
        return empty_figure()

    y0 = view.years[0]
    frames = [
        go.Frame(
            name=str(y),
            data=[go.Choropleth(z=view.vectors[y], meta=y)],
            layout=dict(
                coloraxis=dict(cmin=view.scales[y].cmin, cmax=view.scales[y].cmax),
                annotations=_year_annotation(y, 0.99),
            ),
        )
        for y in view.years
    ]

    trace = go.Choropleth(
        geojson=geojson,
        featureidkey=f"properties.{GEO_CODE_PROPERTY}",
        locations=view.codes,
        z=view.vectors[y0],
        text=view.names,
        meta=y0,
        coloraxis="coloraxis",
        hovertemplate="<b>%{text}</b><br>Ano: %{meta}<br>Valor: R$ %{z:,.0f}<extra></extra>",
    )

    fig = go.Figure(data=[trace], frames=frames)
    fig.update_layout(
        title=dict(text=f"{REGION_LABEL} — {variable} ({series})", x=0.02, xanchor="left", font=dict(size=14)),
        height=520,
        margin=dict(l=10, r=10, t=88, b=0),
        separators=PT_BR_SEPARATORS,
        geo=dict(fitbounds="locations", visible=False),
        coloraxis=dict(
            colorscale="Viridis",
            cmin=view.scales[y0].cmin,
            cmax=view.scales[y0].cmax,
            colorbar=dict(title="R$ (escala por ano: p05–p95)"),
        ),
        annotations=_year_annotation(y0, 0.99),
        **_animation_controls(view.years, MAP_FRAME_MS, 0.02),
    )
    return fig


# ---------------------------------------------------------------------------
# Bar chart race
# ---------------------------------------------------------------------------

def race_figure(view: RaceView, variable: str, series: str) -> go.Figure:
    """
    Horizontal bar race. The x range is fixed to the session maximum so
    bars do not rescale between frames; the largest bar is drawn on top.
    """
    if view.is_empty:
        return empty_figure()

    def bar(year: int) -> go.Bar:
        top = list(reversed(view.frames[year]))
        return go.Bar(
            orientation="h",
            x=[e.value for e in top],
            y=[e.name for e in top],
            customdata=[[e.code] for e in top],
            meta=year,
            hovertemplate=(
                "<b>%{y}</b><br>Ano: %{meta}<br>Código: %{customdata[0]}<br>"
                "Valor: R$ %{x:,.0f}<extra></extra>"
            ),
        )

    y0 = view.years[0]
    frames = [
        go.Frame(name=str(y), data=[bar(y)], layout=dict(annotations=_year_annotation(y, 0.98)))
        for y in view.years
    ]

    fig = go.Figure(data=[bar(y0)], frames=frames)
    fig.update_layout(
        title=dict(text=f"Top {view.top_n} — {variable} ({series})", x=0.02, xanchor="left", font=dict(size=14)),
        height=560,
        margin=dict(l=260, r=10, t=78, b=125),
        separators=PT_BR_SEPARATORS,
        xaxis=dict(title="R$", tickformat=",.0f", range=[0, view.axis_max], fixedrange=True),
        yaxis=dict(automargin=False, fixedrange=True, tickfont=dict(size=11)),
        annotations=_year_annotation(y0, 0.98),
        **_animation_controls(view.years, RACE_FRAME_MS, 0.0),
    )
    return fig


# ---------------------------------------------------------------------------
# Time lines
# ---------------------------------------------------------------------------

def series_figure(
    view: SeriesView,
    variable: str,
    series: str,
    show_yearly_mean: bool = True,
) -> go.Figure:
    """
    One line per municipality, plus the optional yearly mean, the period mean
    (flat dotted line) and the OLS trend of the yearly mean (dashed line).
    """
    if view.is_empty:
        return empty_figure("Selecione municípios e filtros.")

    fig = go.Figure()
    for s in view.series:
        fig.add_trace(
            go.Scatter(
                mode="lines",
                name=s.name,
                x=view.years,
                y=s.values,
                hovertemplate="<b>%{fullData.name}</b><br>Ano: %{x}<br>Valor: R$ %{y:,.0f}<extra></extra>",
            )
        )

    if show_yearly_mean:
        fig.add_trace(
            go.Scatter(
                mode="lines",
                name="Média anual (selecionados)",
                x=view.years,
                y=view.yearly_mean,
                line=dict(width=4),
                hovertemplate="Ano: %{x}<br>Média anual: R$ %{y:,.0f}<extra></extra>",
            )
        )

    if view.period_mean is not None:
        fig.add_trace(
            go.Scatter(
                mode="lines",
                name="Média do período (reta)",
                x=view.years,
                y=[view.period_mean] * len(view.years),
                line=dict(dash="dot", width=3),
                hovertemplate="Ano: %{x}<br>Média do período: R$ %{y:,.0f}<extra></extra>",
            )
        )

    if view.trend is not None:
        fig.add_trace(
            go.Scatter(
                mode="lines",
                name="Tendência (OLS) da média anual",
                x=view.years,
                y=view.trend.values,
                line=dict(dash="dash", width=3),
                hovertemplate="Ano: %{x}<br>Tendência: R$ %{y:,.0f}<extra></extra>",
            )
        )

    fig.update_layout(
        title=f"Série temporal — {variable} ({series})",
        height=620,
        margin=dict(l=95, r=20, t=60, b=55),
        separators=PT_BR_SEPARATORS,
        hovermode="x unified",
        xaxis=dict(title="Ano", automargin=True),
        yaxis=dict(title="R$", automargin=True, tickformat=",.0f"),
    )
    return fig
