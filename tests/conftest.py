"""Shared fixtures: a five-municipality geometry and a small long-format CSV."""
import json
import sys
from pathlib import Path

import pytest

_SRC_DIR = str(Path(__file__).resolve().parent.parent / "src")
if _SRC_DIR not in sys.path:
    sys.path.insert(0, _SRC_DIR)

from pib_dashboard.core.session import build_context  # noqa: E402

CSV_HEADER = "Ano,CD_MUN7,Nome do Município,variavel,serie,valor_brl"

PIB = "Produto Interno Bruto"
NOMINAL = "PIB a preços correntes"
REAL = "PIB a preços de 2023"


def make_geojson(entries):
    """entries: list of (code, name or None)."""
    features = []
    for code, name in entries:
        props = {"CD_MUN7": code}
        if name is not None:
            props["NM_MUN"] = name
        features.append(
            {
                "type": "Feature",
                "properties": props,
                "geometry": {"type": "Point", "coordinates": [-51.2, -30.0]},
            }
        )
    return {"type": "FeatureCollection", "features": features}


def make_csv(rows):
    """rows: list of (year, code, name, variable, series, value) tuples of raw text."""
    lines = [CSV_HEADER]
    for row in rows:
        lines.append(",".join(f'"{c}"' if "," in str(c) else str(c) for c in row))
    return "\n".join(lines) + "\n"


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def geojson():
    return make_geojson(
        [
            ("4314902", "Porto Alegre"),
            ("4304606", "Canoas"),
            ("4300059", "Água Santa"),
            ("4301602", "Bagé"),
            ("4300001", None),
        ]
    )


@pytest.fixture
def csv_rows():
    return [
        # nominal series, 3 years
        (2019, "4314902", "Porto Alegre", PIB, NOMINAL, 100),
        (2019, "4304606", "Canoas", PIB, NOMINAL, 40),
        (2019, "4300059", "Água Santa", PIB, NOMINAL, 5),
        (2020, "4314902", "Porto Alegre", PIB, NOMINAL, 110),
        (2020, "4304606", "Canoas", PIB, NOMINAL, 44),
        (2021, "4314902", "Porto Alegre", PIB, NOMINAL, 120),
        (2021, "4304606", "Canoas", PIB, NOMINAL, 48),
        (2021, "4300059", "Água Santa", PIB, NOMINAL, 6),
        (2021, "4301602", "Bagé", PIB, NOMINAL, 30),
        # deflated series
        (2021, "4314902", "Porto Alegre", PIB, REAL, 90),
        # second variable, a single year
        (2020, "4304606", "Canoas", "Valor adicionado", NOMINAL, 12),
        # rejected rows
        (2021, "9999999", "Nowhere", PIB, NOMINAL, 1),
        (2021, "4314902", "Porto Alegre", PIB, NOMINAL, ""),
        ("abc", "4314902", "Porto Alegre", PIB, NOMINAL, 3),
    ]


@pytest.fixture
def data_files(tmp_path, geojson, csv_rows):
    geo_path = tmp_path / "municipios.geojson"
    csv_path = tmp_path / "pib_long.csv"
    geo_path.write_text(json.dumps(geojson), encoding="utf-8")
    csv_path.write_text(make_csv(csv_rows), encoding="utf-8")
    return geo_path, csv_path


@pytest.fixture
def ctx(data_files):
    geo_path, csv_path = data_files
    return build_context(str(geo_path), str(csv_path))
