"""
Cube builder: dense per-year vectors, sorted year lists and last-write-wins.
"""
import pandas as pd

from pib_dashboard.core.cube import build_cube
from pib_dashboard.core.data_loader import RECORD_COLUMNS, parse_geometry, parse_records

from conftest import NOMINAL, PIB, REAL


def _records(entities, rows):
    raw = pd.DataFrame(
        [[str(c) for c in r] for r in rows],
        columns=["Ano", "CD_MUN7", "Nome do Município", "variavel", "serie", "valor_brl"],
    )
    return parse_records(raw, entities).records


def test_vectors_have_one_slot_per_entity(ctx):
    n = len(ctx.entities)
    for box in ctx.cube.by_combo.values():
        for vec in box.values():
            assert len(vec) == n


def test_slots_align_with_entity_index(ctx):
    vec = ctx.cube.vector(PIB, NOMINAL, 2021)
    for code, expected in [("4314902", 120.0), ("4304606", 48.0), ("4300059", 6.0), ("4301602", 30.0)]:
        assert vec[ctx.entities.index_of(code)] == expected
    assert vec[ctx.entities.index_of("4300001")] is None


def test_missing_observations_are_none_not_zero(ctx):
    vec = ctx.cube.vector(PIB, NOMINAL, 2020)
    assert vec.count(None) == 3
    assert 0.0 not in vec


def test_year_lists_strictly_ascending(geojson):
    entities = parse_geometry(geojson)
    records = _records(
        entities,
        [
            (2021, "4314902", "Porto Alegre", PIB, NOMINAL, 3),
            (2019, "4314902", "Porto Alegre", PIB, NOMINAL, 1),
            (2020, "4314902", "Porto Alegre", PIB, NOMINAL, 2),
            (2019, "4304606", "Canoas", PIB, NOMINAL, 9),
        ],
    )
    cube = build_cube(records, entities)
    years = cube.years(PIB, NOMINAL)
    assert years == [2019, 2020, 2021]
    assert all(a < b for a, b in zip(years, years[1:]))


def test_four_valid_rows_populate_four_slots(geojson):
    entities = parse_geometry(geojson)
    records = _records(
        entities,
        [
            (2021, "4314902", "Porto Alegre", PIB, NOMINAL, 120),
            (2021, "4304606", "Canoas", PIB, NOMINAL, 48),
            (2021, "4300059", "Água Santa", PIB, NOMINAL, 6),
            (2021, "4301602", "Bagé", PIB, NOMINAL, 30),
            (2021, "4300001", "X", PIB, NOMINAL, ""),
        ],
    )
    cube = build_cube(records, entities)
    vec = cube.vector(PIB, NOMINAL, 2021)
    assert sum(v is not None for v in vec) == 4
    assert cube.years(PIB, NOMINAL) == [2021]


def test_collisions_last_write_wins(geojson):
    entities = parse_geometry(geojson)
    records = _records(
        entities,
        [
            (2021, "4314902", "Porto Alegre", PIB, NOMINAL, 1),
            (2021, "4304606", "Canoas", PIB, NOMINAL, 5),
            (2021, "4314902", "Porto Alegre", PIB, NOMINAL, 2),
        ],
    )
    cube = build_cube(records, entities)
    assert cube.vector(PIB, NOMINAL, 2021)[0] == 2.0


def test_variable_and_series_lists_are_sorted(ctx):
    assert ctx.cube.variables == [PIB, "Valor adicionado"]
    assert ctx.cube.series == [NOMINAL, REAL]
    assert (PIB, REAL) in ctx.cube


def test_unknown_selection_returns_nothing(ctx):
    assert ctx.cube.vector(PIB, NOMINAL, 1999) is None
    assert ctx.cube.years("Inexistente", NOMINAL) == []


def test_empty_record_set(geojson):
    entities = parse_geometry(geojson)
    cube = build_cube(pd.DataFrame(columns=RECORD_COLUMNS), entities)
    assert cube.by_combo == {}
    assert cube.series == []
