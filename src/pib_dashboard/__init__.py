"""Municipal GDP dashboard (choropleth, bar race, ranking and time lines)."""
