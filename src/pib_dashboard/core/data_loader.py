from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from pib_dashboard.config import (
    GEO_CODE_PROPERTY,
    GEO_NAME_PROPERTY,
    HTTP_RETRIES,
    HTTP_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

# Column names of the long-format CSV (external contract, must match exactly)
YEAR_COL = "Ano"
CODE_COL = "CD_MUN7"
NAME_COL = "Nome do Município"
VARIABLE_COL = "variavel"
SERIES_COL = "serie"
VALUE_COL = "valor_brl"

REQUIRED_COLUMNS = [YEAR_COL, CODE_COL, NAME_COL, VARIABLE_COL, SERIES_COL, VALUE_COL]

# Years outside (-YEAR_LIMIT, YEAR_LIMIT) are rejected before the integer cast
YEAR_LIMIT = 10_000

# Normalized record columns
RECORD_COLUMNS = ["year", "code", "name", "variable", "series", "value", "idx"]


class DataLoaderError(Exception):
    """Raised when a data source cannot be fetched or parsed."""


@dataclass
class EntityIndex:
    """
    Fixed ordering of municipalities, established once per geometry load.

    Index positions are used as vector offsets everywhere downstream.
    """
    codes: List[str]
    names: List[str]
    code_to_idx: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.code_to_idx:
            self.code_to_idx = {c: i for i, c in enumerate(self.codes)}

    def __len__(self) -> int:
        return len(self.codes)

    def index_of(self, code: Any) -> Optional[int]:
        return self.code_to_idx.get(normalize_code(code))


@dataclass
class RecordLoadResult:
    records: pd.DataFrame
    total_rows: int
    rejected_rows: int


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------

def _build_retry_session() -> requests.Session:
    """
    Build a requests Session with conservative transport retries.
    A failed load itself is never retried; this only smooths over flaky hosts.
    """
    session = requests.Session()

    retry = Retry(
        total=HTTP_RETRIES,
        connect=HTTP_RETRIES,
        read=HTTP_RETRIES,
        status=HTTP_RETRIES,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )

    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session


_SESSION: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        _SESSION = _build_retry_session()
    return _SESSION


def _is_url(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def fetch_text(source: str, timeout_seconds: int = HTTP_TIMEOUT_SECONDS) -> str:
    """
    Return the text behind a local path or an http(s) URL.
    Any failure is raised as DataLoaderError.
    """
    if not source:
        raise DataLoaderError("Empty data source.")

    if _is_url(source):
        try:
            resp = _get_session().get(source, timeout=timeout_seconds)
        except requests.RequestException as exc:
            raise DataLoaderError(f"HTTP error while fetching {source}: {exc}") from exc

        if resp.status_code != 200:
            raise DataLoaderError(f"Failed to fetch {source} (status={resp.status_code}).")

        return resp.content.decode("utf-8-sig", errors="replace")

    try:
        return Path(source).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise DataLoaderError(f"Could not read {source}: {exc}") from exc


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def normalize_code(value: Any) -> str:
    """
    String form of a municipality code. Integral floats (4300034.0) coming
    from numeric JSON/CSV cells are rendered without the decimal part.
    """
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_geometry(geo: Any) -> EntityIndex:
    """
    Build the entity index from a GeoJSON FeatureCollection.

    Entities keep feature order. The display name falls back to the code
    when the name property is missing or empty.
    """
    if not isinstance(geo, dict) or not isinstance(geo.get("features"), list):
        raise DataLoaderError("GeoJSON does not contain a 'features' list.")

    codes: List[str] = []
    names: List[str] = []
    for pos, ft in enumerate(geo["features"]):
        if not isinstance(ft, dict):
            raise DataLoaderError(f"GeoJSON feature {pos} is not an object.")
        props = ft.get("properties") or {}
        if not isinstance(props, dict):
            raise DataLoaderError(f"GeoJSON feature {pos} has non-object properties.")
        code = normalize_code(props.get(GEO_CODE_PROPERTY))
        name = props.get(GEO_NAME_PROPERTY) or props.get(GEO_CODE_PROPERTY)
        codes.append(code)
        names.append(str(name) if name is not None else code)

    entities = EntityIndex(codes=codes, names=names)
    logger.info("Geometry loaded: %d municipalities", len(entities))
    return entities


def load_geometry(source: str) -> Tuple[Dict[str, Any], EntityIndex]:
    text = fetch_text(source)
    try:
        geo = json.loads(text)
    except ValueError as exc:
        raise DataLoaderError(f"GeoJSON at {source} is not valid JSON: {exc}") from exc
    return geo, parse_geometry(geo)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

def _text_column(df: pd.DataFrame, col: str) -> pd.Series:
    return df[col].fillna("").astype(str).str.strip()


def parse_records(raw: pd.DataFrame, entities: EntityIndex) -> RecordLoadResult:
    """
    Normalize raw CSV rows into the record frame.

    A row is kept iff its year is an integer below YEAR_LIMIT in magnitude,
    its code is present in the entity index, its variable and series are
    non-empty, and its value parses to a finite number. Dropped rows are
    only counted.

    Returned columns: year, code, name, variable, series, value, idx
    (idx = position in the entity index). Row order is preserved.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in raw.columns]
    if missing:
        raise DataLoaderError(
            f"CSV is missing required columns {missing}. Present columns: {list(raw.columns)}"
        )

    total = int(len(raw))

    year = pd.to_numeric(raw[YEAR_COL], errors="coerce").astype(float)
    value = pd.to_numeric(raw[VALUE_COL], errors="coerce").astype(float)
    code = raw[CODE_COL].apply(normalize_code)
    name = _text_column(raw, NAME_COL)
    variable = _text_column(raw, VARIABLE_COL)
    series = _text_column(raw, SERIES_COL)
    idx = code.map(entities.code_to_idx)

    year_arr = year.to_numpy()
    year_ok = np.isfinite(year_arr)
    year_ok[year_ok] = (np.mod(year_arr[year_ok], 1) == 0) & (np.abs(year_arr[year_ok]) < YEAR_LIMIT)

    mask = (
        year_ok
        & np.isfinite(value.to_numpy())
        & (code != "").to_numpy()
        & idx.notna().to_numpy()
        & (variable != "").to_numpy()
        & (series != "").to_numpy()
    )

    out = pd.DataFrame(
        {
            "year": year[mask].astype(int),
            "code": code[mask],
            "name": name[mask],
            "variable": variable[mask],
            "series": series[mask],
            "value": value[mask],
            "idx": idx[mask].astype(int),
        },
        columns=RECORD_COLUMNS,
    ).reset_index(drop=True)

    # Records without a name take the geometry name
    blank = out["name"] == ""
    if blank.any():
        out.loc[blank, "name"] = out.loc[blank, "idx"].map(lambda i: entities.names[i])

    rejected = total - int(len(out))
    if rejected:
        logger.info("Dropped %d of %d CSV rows that failed validation", rejected, total)

    return RecordLoadResult(records=out, total_rows=total, rejected_rows=rejected)


def load_records(source: str, entities: EntityIndex) -> RecordLoadResult:
    text = fetch_text(source)
    try:
        raw = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (ValueError, pd.errors.ParserError) as exc:
        raise DataLoaderError(f"CSV at {source} could not be parsed: {exc}") from exc

    result = parse_records(raw, entities)
    logger.info(
        "Records loaded: %d valid of %d rows (%d dropped)",
        len(result.records), result.total_rows, result.rejected_rows,
    )
    return result
