from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

# Root of the project (repo root)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Data directory (GeoJSON + long-format CSV are shipped here)
DATA_DIR = PROJECT_ROOT / "data"

# ---------------------------------------------------------------------------
# App identity
# ---------------------------------------------------------------------------

APP_NAME = "PIB dos Municípios — RS"
APP_VERSION = "0.1.0"

# Short label of the region, used in titles and export filenames
REGION_LABEL = "RS"

# ---------------------------------------------------------------------------
# Data sources
#
# Each source may be a local path or an http(s) URL. Geometry is always
# fetched before the CSV.
# ---------------------------------------------------------------------------

GEOJSON_SOURCE = os.getenv(
    "PIB_GEOJSON_SOURCE",
    str(DATA_DIR / "rs_municipios_min.geojson"),
).strip()

CSV_SOURCE = os.getenv(
    "PIB_CSV_SOURCE",
    str(DATA_DIR / "pib_long.csv"),
).strip()

# GeoJSON feature properties
GEO_CODE_PROPERTY = "CD_MUN7"
GEO_NAME_PROPERTY = "NM_MUN"

# ---------------------------------------------------------------------------
# HTTP fetch (only used when a source is a URL)
# ---------------------------------------------------------------------------

def _env_int(name: str, default: int) -> int:
    """Non-negative integer from the environment; unset, blank or invalid values give the default."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %d", name, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring %s=%r: negative, using %d", name, raw, default)
        return default
    return value


HTTP_TIMEOUT_SECONDS = _env_int("PIB_HTTP_TIMEOUT_SECONDS", 60)
HTTP_RETRIES = _env_int("PIB_HTTP_RETRIES", 2)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_LEVEL = os.getenv("PIB_LOG_LEVEL", "INFO").strip().upper() or "INFO"

# ---------------------------------------------------------------------------
# Dashboard defaults
# ---------------------------------------------------------------------------

TOP_N_DEFAULT = 15
TOP_N_MIN = 5
TOP_N_MAX = 50

# Variable pre-selected in both tabs when present (case-insensitive substring)
PREFERRED_VARIABLE = "produto interno bruto"

# Number of municipality names listed in status lines and export titles
MAX_NAMES_IN_SUMMARY = 6
