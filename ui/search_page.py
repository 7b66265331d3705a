"""
Web Search UI: query box, options and per-result content.

Every run builds its own WebSearchService (and rendering pool) and shuts it
down before returning, so no browser process outlives a Streamlit rerun.
"""

import asyncio
import concurrent.futures
from typing import Optional

import streamlit as st

from models.enums import FetchStatus
from models.schema import EnrichedResult
from search.config import SearchConfig
from search.orchestrator import NoResultsError
from search.service import WebSearchOutput, WebSearchService


STATUS_BADGES = {
    FetchStatus.SUCCESS: "🟢",
    FetchStatus.ERROR: "🔴",
    FetchStatus.SKIPPED: "⚪",
    FetchStatus.PENDING: "⏳",
}


async def _search(query: str, limit: int, include_content: bool, max_content_length: int) -> WebSearchOutput:
    service = WebSearchService(SearchConfig.from_env())
    try:
        return await service.full_web_search(
            query,
            limit=limit,
            include_content=include_content,
            max_content_length=max_content_length,
        )
    finally:
        await service.shutdown()


def _run(coro):
    """Run a coroutine from Streamlit, which may already own an event loop."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as ex:
        return ex.submit(asyncio.run, coro).result()


def render():
    """Render the search page."""
    st.caption(
        "Search the web without an API key: results come from Bing, Brave or "
        "DuckDuckGo and each page is fetched and reduced to readable text."
    )

    col1, col2 = st.columns([4, 1])
    with col1:
        query = st.text_input("Query", key="search_query")
    with col2:
        st.markdown("")
        st.markdown("")
        run_btn = st.button("🔎 Search", type="primary", key="run_search")

    c1, c2, c3 = st.columns(3)
    with c1:
        limit = st.slider("Results", min_value=1, max_value=10, value=5, key="search_limit")
    with c2:
        include_content = st.toggle("Fetch page content", value=True, key="search_include_content")
    with c3:
        max_content_length = st.number_input(
            "Max content length (0 = no limit)",
            min_value=0,
            value=0,
            step=1000,
            key="search_max_len",
        )

    if run_btn:
        if not query.strip():
            st.error("Please enter a query.")
            return

        with st.spinner("Searching…"):
            try:
                output = _run(_search(query, int(limit), include_content, int(max_content_length)))
            except NoResultsError as e:
                st.error(f"No results: {e}")
                return
            except ValueError as e:
                st.error(str(e))
                return

        st.session_state.search_output = output

    output: Optional[WebSearchOutput] = st.session_state.get("search_output")
    if not output:
        return

    _render_output(output)


def _render_output(output: WebSearchOutput):
    col_a, col_b, col_c = st.columns(3)
    with col_a:
        st.metric("Results", output.total_results)
    with col_b:
        st.metric("Engine", output.provider)
    with col_c:
        st.metric("Time", f"{output.search_time_ms / 1000:.1f}s")

    st.caption(output.status)
    if output.degraded:
        st.warning("⚠ No engine passed the relevance check; showing the best available list.")

    for idx, r in enumerate(output.results, 1):
        badge = ""
        if isinstance(r, EnrichedResult):
            badge = STATUS_BADGES.get(r.fetch_status, "") + " "
        with st.expander(f"{badge}{idx}. {r.title}", expanded=idx == 1):
            st.markdown(f"[{r.url}]({r.url})")
            if r.description:
                st.caption(r.description)
            if not isinstance(r, EnrichedResult):
                continue
            if r.fetch_status == FetchStatus.SUCCESS:
                st.text(r.full_content or "")
            elif r.fetch_status == FetchStatus.ERROR:
                cat = r.error_category.value if r.error_category else "Other error"
                st.error(f"[{cat}] {r.error}")
            elif r.fetch_status == FetchStatus.SKIPPED:
                st.info(r.error or "Skipped")
