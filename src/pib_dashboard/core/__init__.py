"""
Core data and analytics layer.

This package contains:
- data_loader: fetch and parse the GeoJSON and the long-format CSV
- series_selector: pick the nominal (current prices) series for the session
- cube: reshape records into (variable, series) -> year -> value vectors
- stats: quantiles, color scales, top-N, means and OLS trend
- session: the loaded context and the single-writer load/reload discipline
- query_engine: views derived from the cube for the dashboard panels
- export: Word-compatible (.doc) export of ranking and series tables
"""
