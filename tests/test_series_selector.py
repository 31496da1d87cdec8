"""
Fixed-series picker: precedence of the nominal / non-real / first-label rules.
"""
from pib_dashboard.core.series_selector import pick_nominal_series


def test_prefers_current_prices_label():
    labels = ["PIB a preços de 2023", "PIB a preços correntes", "Valor Adicionado Real"]
    assert pick_nominal_series(labels) == "PIB a preços correntes"


def test_nominal_match_is_case_insensitive():
    assert pick_nominal_series(["Série A", "PIB NOMINAL"]) == "PIB NOMINAL"


def test_first_nominal_label_wins():
    assert pick_nominal_series(["Valor nominal", "Preços correntes"]) == "Valor nominal"


def test_falls_back_to_first_non_real_label():
    labels = ["PIB real", "Deflator implícito", "PIB valor bruto", "Outro"]
    assert pick_nominal_series(labels) == "PIB valor bruto"


def test_year_2023_counts_as_real():
    assert pick_nominal_series(["Série 2023", "Série base"]) == "Série base"


def test_falls_back_to_first_label_when_all_look_real():
    assert pick_nominal_series(["PIB real", "PIB a preços de 2023"]) == "PIB real"


def test_empty_input_returns_none():
    assert pick_nominal_series([]) is None
