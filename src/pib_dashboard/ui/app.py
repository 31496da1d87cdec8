from __future__ import annotations

import logging
import traceback
from typing import List, Optional

import pandas as pd
import streamlit as st

from pib_dashboard.config import (
    APP_NAME,
    APP_VERSION,
    LOG_LEVEL,
    MAX_NAMES_IN_SUMMARY,
    TOP_N_DEFAULT,
    TOP_N_MAX,
    TOP_N_MIN,
)
from pib_dashboard.core.data_loader import DataLoaderError
from pib_dashboard.core.export import (
    WORD_MIME_TYPE,
    format_brl,
    ranking_export,
    series_export,
    summarize_names,
    word_bytes,
)
from pib_dashboard.core.query_engine import (
    clamp_top_n,
    combo_years,
    default_variable,
    default_year,
    filter_options,
    map_view,
    municipality_options,
    race_view,
    ranking,
    series_rows,
    series_view,
)
from pib_dashboard.core.session import (
    DashboardContext,
    DashboardSession,
    ReloadInProgressError,
)
from pib_dashboard.ui.figures import map_figure, race_figure, series_figure

logger = logging.getLogger(__name__)

SESSION_KEY = "dashboard_session"


def _get_session() -> DashboardSession:
    if SESSION_KEY not in st.session_state:
        st.session_state[SESSION_KEY] = DashboardSession()
    return st.session_state[SESSION_KEY]


def _years_label(years: List[int]) -> str:
    if not years:
        return "sem anos"
    return f"{years[0]}–{years[-1]}"


def _variable_select(ctx: DashboardContext, label: str, key: str) -> Optional[str]:
    variables = ctx.cube.variables
    if not variables:
        return None
    preferred = default_variable(variables)
    return st.selectbox(
        label,
        options=variables,
        index=variables.index(preferred) if preferred in variables else 0,
        key=key,
    )


# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------

def _render_sidebar(session: DashboardSession) -> None:
    with st.sidebar:
        st.header("Dados")
        ctx = session.context
        if ctx is not None:
            st.write(f"Municípios: {len(ctx.entities)}")
            st.write(f"Registros válidos: {len(ctx.records)}")
            st.write(f"Série fixa: {ctx.fixed_series}")
            st.caption(f"Carregado em {ctx.loaded_at:%d/%m/%Y %H:%M:%S}")

        if st.button("Recarregar dados", key="btn_reload"):
            try:
                with st.spinner("Recarregando…"):
                    session.reload()
                st.success("Dados recarregados.")
            except ReloadInProgressError:
                st.warning("Um carregamento já está em andamento.")
            except DataLoaderError as exc:
                logger.error("Reload failed: %s", exc)
                st.error("Erro ao recarregar.")
                st.code(str(exc))
            except Exception:
                logger.exception("Unexpected error during reload")
                st.error("Erro ao recarregar.")
                st.text_area("Traceback", value=traceback.format_exc(), height=220, key="reload_traceback")


# ---------------------------------------------------------------------------
# Panorama tab: map, race and ranking table
# ---------------------------------------------------------------------------

def _render_panorama(ctx: DashboardContext) -> None:
    series = ctx.fixed_series

    col1, col2, col3 = st.columns([3, 1, 1])
    with col1:
        variable = _variable_select(ctx, "Variável", key="panorama_variable")
    if variable is None:
        st.info("Sem dados.")
        return

    years = combo_years(ctx, variable)
    with col2:
        top_n = clamp_top_n(
            st.number_input(
                "Top N",
                min_value=TOP_N_MIN,
                max_value=TOP_N_MAX,
                value=TOP_N_DEFAULT,
                step=1,
                key="panorama_top_n",
            )
        )
    year = default_year(years)
    with col3:
        if years:
            year = st.selectbox(
                "Ano (ranking)",
                options=years,
                index=len(years) - 1,
                key=f"panorama_year_{variable}",
            )

    st.caption(f"OK — {variable} ({series}) | Anos: {_years_label(years)}")

    st.plotly_chart(
        map_figure(map_view(ctx, variable), ctx.geojson, variable, series),
        use_container_width=True,
    )
    st.plotly_chart(race_figure(race_view(ctx, variable, top_n), variable, series), use_container_width=True)

    st.subheader("Ranking")
    entries = ranking(ctx, variable, year, top_n)
    if not entries:
        st.write("Sem dados.")
        return

    st.caption(f"Ano: {year} | Top {top_n} | {variable} ({series})")
    table = pd.DataFrame(
        [
            {"#": e.rank, "Município": e.name, "Código": e.code, "Valor": format_brl(e.value)}
            for e in entries
        ]
    )
    st.dataframe(table, use_container_width=True, hide_index=True)

    doc = ranking_export(entries, variable, series, year, top_n)
    st.download_button(
        "Salvar no Word",
        data=word_bytes(doc),
        file_name=doc.filename,
        mime=WORD_MIME_TYPE,
        key="btn_word_ranking",
    )


# ---------------------------------------------------------------------------
# Municipalities tab: time lines for a selection
# ---------------------------------------------------------------------------

def _render_series(ctx: DashboardContext) -> None:
    series = ctx.fixed_series

    variable = _variable_select(ctx, "Variável", key="series_variable")
    if variable is None:
        st.info("Sem dados.")
        return

    options = municipality_options(ctx, variable)
    query = st.text_input("Buscar município", value="", key="series_search")
    visible = filter_options(options, query)

    # Keep already-selected municipalities selectable while the search filters the rest
    selected_key = f"series_munis_{variable}"
    previous = st.session_state.get(selected_key, [])
    labels = {code: name for name, code in options}
    choices = [code for _, code in visible]
    choices += [c for c in previous if c not in choices and c in labels]

    codes = st.multiselect(
        "Municípios",
        options=choices,
        format_func=lambda c: labels.get(c, c),
        key=selected_key,
    )
    show_mean = st.checkbox("Mostrar média anual (selecionados)", value=True, key="series_show_mean")

    years = combo_years(ctx, variable)
    st.caption(
        f"OK — {variable} ({series}) | Anos disponíveis: {_years_label(years)} | Selecionados: {len(codes)}"
    )

    view = series_view(ctx, variable, codes)
    if not view.is_empty:
        names = [s.name for s in view.series]
        st.write(f"{variable} ({series}) | Municípios: {summarize_names(names, MAX_NAMES_IN_SUMMARY)}")
    st.plotly_chart(series_figure(view, variable, series, show_yearly_mean=show_mean), use_container_width=True)

    rows = series_rows(ctx, variable, codes)
    if not rows:
        return

    table = pd.DataFrame(
        [{"Ano": r.year, "Município": r.name, "Código": r.code, "Valor": format_brl(r.value)} for r in rows]
    )
    st.dataframe(table, use_container_width=True, hide_index=True)

    doc = series_export(rows, variable, series, [s.name for s in view.series])
    st.download_button(
        "Salvar no Word",
        data=word_bytes(doc),
        file_name=doc.filename,
        mime=WORD_MIME_TYPE,
        key="btn_word_series",
    )


def run_app() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    st.set_page_config(page_title=APP_NAME, page_icon="📊", layout="wide")
    st.title(APP_NAME)
    st.caption(f"Versão {APP_VERSION}")

    session = _get_session()

    try:
        with st.spinner("Carregando…"):
            session.ensure_loaded()
    except ReloadInProgressError:
        st.info("Carregando…")
        return
    except DataLoaderError as exc:
        logger.error("Initial load failed: %s", exc)
        st.error("Erro ao carregar dados.")
        st.text_area("Traceback", value=traceback.format_exc(), height=220)
        return
    except Exception:
        logger.exception("Unexpected error during initial load")
        st.error("Erro ao carregar dados.")
        st.text_area("Traceback", value=traceback.format_exc(), height=220)
        return

    _render_sidebar(session)

    # A reload from the sidebar may have replaced the context
    ctx = session.context
    tab_panorama, tab_series = st.tabs(["Panorama", "Municípios"])
    with tab_panorama:
        _render_panorama(ctx)
    with tab_series:
        _render_series(ctx)
