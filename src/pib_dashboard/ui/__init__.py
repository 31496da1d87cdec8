"""
Streamlit UI layer.

- figures: Plotly figures built from query_engine views
- app: page layout, controls and status messages
"""
