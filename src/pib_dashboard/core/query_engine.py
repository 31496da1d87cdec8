from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pib_dashboard.config import (
    PREFERRED_VARIABLE,
    TOP_N_DEFAULT,
    TOP_N_MAX,
    TOP_N_MIN,
)
from pib_dashboard.core.cube import Vector
from pib_dashboard.core.session import DashboardContext
from pib_dashboard.core.stats import (
    ColorScale,
    TrendLine,
    color_scale,
    global_max,
    is_finite,
    ols_trend,
    period_mean,
    subset_mean,
    top_n as top_n_items,
)

logger = logging.getLogger(__name__)

# Headroom on the race x axis so the longest bar never touches the edge
RACE_AXIS_HEADROOM = 1.05


@dataclass
class RankedEntry:
    rank: int
    code: str
    name: str
    value: float


@dataclass
class MapView:
    years: List[int]
    vectors: Dict[int, Vector]
    scales: Dict[int, ColorScale]
    codes: List[str]
    names: List[str]

    @property
    def is_empty(self) -> bool:
        return not self.years


@dataclass
class RaceView:
    years: List[int]
    frames: Dict[int, List[RankedEntry]]
    axis_max: float
    top_n: int

    @property
    def is_empty(self) -> bool:
        return not self.years


@dataclass
class EntitySeries:
    code: str
    name: str
    values: List[Optional[float]]


@dataclass
class SeriesView:
    """
    Time lines for a subset of municipalities plus the subset statistics.

    yearly_mean is aligned with years (None where no member has data);
    trend is the OLS fit of yearly_mean evaluated at every year.
    """
    years: List[int]
    series: List[EntitySeries] = field(default_factory=list)
    yearly_mean: List[Optional[float]] = field(default_factory=list)
    period_mean: Optional[float] = None
    trend: Optional[TrendLine] = None

    @property
    def is_empty(self) -> bool:
        return not self.years or not self.series


@dataclass
class SeriesRow:
    year: int
    name: str
    code: str
    value: float


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def collation_key(text: str) -> str:
    """Accent- and case-insensitive sort key for Portuguese names."""
    decomposed = unicodedata.normalize("NFD", str(text))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def clamp_top_n(value: Any) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = TOP_N_DEFAULT
    return max(TOP_N_MIN, min(TOP_N_MAX, n))


def default_variable(variables: Sequence[str], preferred: str = PREFERRED_VARIABLE) -> Optional[str]:
    wanted = preferred.lower()
    for v in variables:
        if wanted in v.lower():
            return v
    return variables[0] if variables else None


def default_year(years: Sequence[int]) -> Optional[int]:
    return years[-1] if years else None


def _resolve_series(ctx: DashboardContext, series: Optional[str]) -> str:
    return ctx.fixed_series if series is None else series


def _indices_for(ctx: DashboardContext, codes: Iterable[Any]) -> List[int]:
    out: List[int] = []
    for c in codes:
        idx = ctx.entities.index_of(c)
        if idx is not None:
            out.append(idx)
    return out


def _rank(ctx: DashboardContext, vector: Vector, n: int) -> List[RankedEntry]:
    return [
        RankedEntry(
            rank=pos + 1,
            code=ctx.entities.codes[i],
            name=ctx.entities.names[i],
            value=v,
        )
        for pos, (i, v) in enumerate(top_n_items(vector, n))
    ]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def combo_years(ctx: DashboardContext, variable: str, series: Optional[str] = None) -> List[int]:
    return ctx.cube.years(variable, _resolve_series(ctx, series))


def ranking(
    ctx: DashboardContext,
    variable: str,
    year: Any,
    top_n: int,
    series: Optional[str] = None,
) -> List[RankedEntry]:
    """Top-N municipalities for one year; empty when the year has no data."""
    try:
        year_key = int(year)
    except (TypeError, ValueError):
        return []

    vector = ctx.cube.vector(variable, _resolve_series(ctx, series), year_key)
    if vector is None:
        logger.debug("No data for %s / %s / %s", variable, series, year)
        return []
    return _rank(ctx, vector, top_n)


def map_view(ctx: DashboardContext, variable: str, series: Optional[str] = None) -> MapView:
    s = _resolve_series(ctx, series)
    years = ctx.cube.years(variable, s)
    by_year = ctx.cube.year_vectors(variable, s)
    return MapView(
        years=years,
        vectors={y: by_year[y] for y in years},
        scales={y: color_scale(by_year[y]) for y in years},
        codes=list(ctx.entities.codes),
        names=list(ctx.entities.names),
    )


def race_view(
    ctx: DashboardContext,
    variable: str,
    top_n: int,
    series: Optional[str] = None,
) -> RaceView:
    s = _resolve_series(ctx, series)
    years = ctx.cube.years(variable, s)
    by_year = ctx.cube.year_vectors(variable, s)
    return RaceView(
        years=years,
        frames={y: _rank(ctx, by_year[y], top_n) for y in years},
        axis_max=global_max(by_year[y] for y in years) * RACE_AXIS_HEADROOM,
        top_n=top_n,
    )


def entity_series(
    ctx: DashboardContext,
    variable: str,
    codes: Iterable[Any],
    series: Optional[str] = None,
) -> List[EntitySeries]:
    """Full year vector of each selected municipality (unknown codes are skipped)."""
    s = _resolve_series(ctx, series)
    years = ctx.cube.years(variable, s)
    by_year = ctx.cube.year_vectors(variable, s)

    out: List[EntitySeries] = []
    for idx in _indices_for(ctx, codes):
        values: List[Optional[float]] = []
        for y in years:
            v = by_year[y][idx]
            values.append(v if is_finite(v) else None)
        out.append(
            EntitySeries(code=ctx.entities.codes[idx], name=ctx.entities.names[idx], values=values)
        )
    return out


def series_view(
    ctx: DashboardContext,
    variable: str,
    codes: Iterable[Any],
    series: Optional[str] = None,
) -> SeriesView:
    s = _resolve_series(ctx, series)
    years = ctx.cube.years(variable, s)
    codes = list(codes)
    indices = _indices_for(ctx, codes)

    if not years or not indices:
        return SeriesView(years=years)

    by_year = ctx.cube.year_vectors(variable, s)
    vectors = [by_year[y] for y in years]
    yearly = [subset_mean(vec, indices) for vec in vectors]

    return SeriesView(
        years=years,
        series=entity_series(ctx, variable, codes, series=s),
        yearly_mean=yearly,
        period_mean=period_mean(vectors, indices),
        trend=ols_trend(years, yearly),
    )


def series_rows(
    ctx: DashboardContext,
    variable: str,
    codes: Iterable[Any],
    series: Optional[str] = None,
) -> List[SeriesRow]:
    """Flat (year, municipality) table of the finite values, by year then name."""
    s = _resolve_series(ctx, series)
    by_year = ctx.cube.year_vectors(variable, s)
    indices = _indices_for(ctx, codes)

    rows: List[SeriesRow] = []
    for y in ctx.cube.years(variable, s):
        vec = by_year[y]
        for idx in indices:
            v = vec[idx]
            if not is_finite(v):
                continue
            rows.append(
                SeriesRow(year=y, name=ctx.entities.names[idx], code=ctx.entities.codes[idx], value=v)
            )

    rows.sort(key=lambda r: (r.year, collation_key(r.name)))
    return rows


def municipality_options(
    ctx: DashboardContext,
    variable: str,
    series: Optional[str] = None,
) -> List[Tuple[str, str]]:
    """
    (name, code) of the municipalities with at least one record for the combo,
    sorted by name. Names come from the records; a repeated name keeps its
    first code.
    """
    s = _resolve_series(ctx, series)
    recs = ctx.records
    if recs.empty:
        return []

    subset = recs[(recs["variable"] == variable) & (recs["series"] == s)]
    first = subset.drop_duplicates(subset="name", keep="first")
    options = list(zip(first["name"].tolist(), first["code"].tolist()))
    options.sort(key=lambda item: collation_key(item[0]))
    return options


def filter_options(options: Sequence[Tuple[str, str]], query: str) -> List[Tuple[str, str]]:
    """Case-insensitive substring search over option names."""
    q = str(query or "").strip().lower()
    if not q:
        return list(options)
    return [opt for opt in options if q in opt[0].lower()]
