from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import pandas as pd

from pib_dashboard.config import CSV_SOURCE, GEOJSON_SOURCE
from pib_dashboard.core.cube import Cube, build_cube
from pib_dashboard.core.data_loader import (
    DataLoaderError,
    EntityIndex,
    load_geometry,
    load_records,
)
from pib_dashboard.core.series_selector import pick_nominal_series

logger = logging.getLogger(__name__)


class ReloadInProgressError(Exception):
    """Raised when a load is requested while another one is still running."""


@dataclass
class DashboardContext:
    """
    Everything derived from one load of the two sources.

    A context is never mutated after it is built; a reload replaces it whole.
    """
    geojson: Dict[str, Any]
    entities: EntityIndex
    records: pd.DataFrame
    cube: Cube
    fixed_series: str
    rejected_rows: int
    loaded_at: datetime


def build_context(geojson_source: str, csv_source: str) -> DashboardContext:
    """
    Fetch geometry, then the CSV, and derive the cube and fixed series.
    Any failure raises DataLoaderError and nothing is returned.
    """
    geo, entities = load_geometry(geojson_source)
    loaded = load_records(csv_source, entities)

    cube = build_cube(loaded.records, entities)

    fixed = pick_nominal_series(cube.series)
    if fixed is None:
        raise DataLoaderError("No series found in the CSV.")
    logger.info("Fixed series for this session: %r", fixed)

    return DashboardContext(
        geojson=geo,
        entities=entities,
        records=loaded.records,
        cube=cube,
        fixed_series=fixed,
        rejected_rows=loaded.rejected_rows,
        loaded_at=datetime.now(),
    )


class DashboardSession:
    """
    Owns the current DashboardContext for one user session.

    Loads are single-writer: a load that starts while another is running
    raises ReloadInProgressError. A failed load leaves the previous context
    in place.
    """

    def __init__(
        self,
        geojson_source: str = GEOJSON_SOURCE,
        csv_source: str = CSV_SOURCE,
    ) -> None:
        self.geojson_source = geojson_source
        self.csv_source = csv_source
        self._context: Optional[DashboardContext] = None
        self._busy = threading.Lock()

    @property
    def context(self) -> Optional[DashboardContext]:
        return self._context

    @property
    def is_loaded(self) -> bool:
        return self._context is not None

    @property
    def is_busy(self) -> bool:
        return self._busy.locked()

    def load(self) -> DashboardContext:
        if not self._busy.acquire(blocking=False):
            raise ReloadInProgressError("A data load is already in progress.")
        try:
            t0 = time.perf_counter()
            ctx = build_context(self.geojson_source, self.csv_source)
            self._context = ctx
            logger.info("Dashboard data loaded in %.2fs", time.perf_counter() - t0)
            return ctx
        finally:
            self._busy.release()

    def ensure_loaded(self) -> DashboardContext:
        if self._context is None:
            return self.load()
        return self._context

    def reload(self) -> DashboardContext:
        logger.info("Reloading dashboard data")
        return self.load()
