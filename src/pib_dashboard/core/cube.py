from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import pandas as pd

from pib_dashboard.core.data_loader import EntityIndex

logger = logging.getLogger(__name__)

ComboKey = Tuple[str, str]  # (variable, series)
Vector = List[Optional[float]]


@dataclass
class Cube:
    """
    (variable, series) -> year -> dense value vector over the entity index.

    Missing observations are None. Every vector has exactly entity_count slots.
    """
    entity_count: int
    by_combo: Dict[ComboKey, Dict[int, Vector]] = field(default_factory=dict)
    combo_years: Dict[ComboKey, List[int]] = field(default_factory=dict)
    variables: List[str] = field(default_factory=list)
    series: List[str] = field(default_factory=list)

    def __contains__(self, key: object) -> bool:
        return key in self.by_combo

    def years(self, variable: str, series: str) -> List[int]:
        return list(self.combo_years.get((variable, series), []))

    def year_vectors(self, variable: str, series: str) -> Dict[int, Vector]:
        return self.by_combo.get((variable, series), {})

    def vector(self, variable: str, series: str, year: int) -> Optional[Vector]:
        return self.year_vectors(variable, series).get(int(year))


def build_cube(records: pd.DataFrame, entities: EntityIndex) -> Cube:
    """
    Reshape normalized records into the cube.

    Rows colliding on (variable, series, year, entity) overwrite each other
    in record order: the last one wins.
    """
    n = len(entities)
    cube = Cube(entity_count=n)

    if records.empty:
        logger.info("Cube built from an empty record set")
        return cube

    for (variable, series, year), grp in records.groupby(
        ["variable", "series", "year"], sort=False
    ):
        box = cube.by_combo.setdefault((variable, series), {})
        vec = box.get(int(year))
        if vec is None:
            vec = [None] * n
            box[int(year)] = vec
        for i, v in zip(grp["idx"].tolist(), grp["value"].tolist()):
            vec[int(i)] = float(v)

    for key, box in cube.by_combo.items():
        cube.combo_years[key] = sorted(box.keys())

    cube.variables = sorted(records["variable"].unique().tolist())
    cube.series = sorted(records["series"].unique().tolist())

    logger.info(
        "Cube built: %d combos, %d variables, %d series",
        len(cube.by_combo), len(cube.variables), len(cube.series),
    )
    return cube
