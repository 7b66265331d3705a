"""
Main Streamlit application — single-page layout.
"""

import logging
import os

import streamlit as st
from dotenv import load_dotenv

from ui import search_page

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


# Page configuration
st.set_page_config(
    page_title="Open Web Search",
    page_icon="🔎",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS
st.markdown("""
<style>
    /* Tighter spacing */
    .block-container {
        padding-top: 1.5rem;
        padding-bottom: 1rem;
    }

    /* Prevent zoom on iOS input focus */
    input, select, textarea {
        font-size: 16px !important;
    }

    /* Nicer expander headers */
    .streamlit-expanderHeader {
        font-size: 16px;
        font-weight: 600;
    }
</style>
""", unsafe_allow_html=True)


def render_sidebar():
    """Show the active configuration in the sidebar."""
    st.markdown("### 🔎 Open Web Search")
    st.markdown("---")
    st.markdown("#### ⚙️ Settings")
    st.caption(f"Browsers: {os.getenv('BROWSER_TYPES', 'chromium,firefox')}")
    st.caption(f"Pool size: {os.getenv('MAX_BROWSERS', '3')}")
    st.caption(f"Relevance threshold: {os.getenv('RELEVANCE_THRESHOLD', '0.3')}")
    st.caption(
        "Multi-engine: "
        + ("on" if os.getenv("FORCE_MULTI_ENGINE_SEARCH", "false").lower() == "true" else "off")
    )


def main():
    """Main application entrypoint."""

    with st.sidebar:
        render_sidebar()

    # Main page
    search_page.render()


if __name__ == "__main__":
    main()
