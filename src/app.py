"""
Screen Protector Compatibility Catalog — Streamlit UI

Sections:
    Search   (public)  — fuzzy search by model name, optional VIP / free filter
    Discover (public)  — random sample of the catalog
    Admin    (login)   — CSV preview + full catalog replace, presentation content editor

Run with:
    streamlit run src/app.py
"""

import pandas as pd
import streamlit as st

from catalog_service import CatalogService
from errors import CatalogError
from export import catalog_frame, to_csv_bytes, to_excel_bytes
from ingest import check_upload, temporary_upload
from log_setup import get_logger, setup_logging
from sampling import DEFAULT_SAMPLE_SIZE
from search_index import DEFAULT_LIMIT, MIN_QUERY_LENGTH
from settings import load_settings

settings = load_settings()
setup_logging(settings.log_level, settings.log_format)
logger = get_logger("app")

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Compatibility Catalog",
    page_icon="📱",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.title("📱 Screen Protector Compatibility Catalog")


@st.cache_resource(show_spinner="Connecting to catalog...")
def get_service() -> CatalogService:
    """One service (and one search index cache) per server process."""
    return CatalogService.from_settings(settings)


service = get_service()


def show_error(error: CatalogError) -> None:
    outcome = error.to_dict()
    st.error(f"**{outcome['error']}** — {outcome['message']}")
    if outcome.get('detail'):
        with st.expander("Details"):
            st.json(outcome['detail'])


def records_frame(records) -> pd.DataFrame:
    return catalog_frame(records).drop(columns=['presentation content'])


# ---------------------------------------------------------------------------
# Sidebar: stats + login
# ---------------------------------------------------------------------------
stats = service.stats()
st.sidebar.header("📊 Catalog")
st.sidebar.metric("Models", f"{stats['total_models']:,}")
st.sidebar.metric("VIP models", f"{stats['vip_models']:,}")

st.sidebar.markdown("---")
st.sidebar.header("🔐 Admin")

caller = st.session_state.get('caller')
if caller is None:
    if not settings.login_enabled:
        st.sidebar.caption("Login disabled — set CATALOG_ADMIN_PASSWORD to enable imports.")
    else:
        with st.sidebar.form("login"):
            username = st.text_input("Username")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Log in")
        if submitted:
            try:
                st.session_state['caller'] = service.authenticate(username, password)
                st.rerun()
            except CatalogError as e:
                st.sidebar.error(e.message)
else:
    st.sidebar.success(f"Logged in as **{caller.username}**")
    if st.sidebar.button("Log out"):
        st.session_state.pop('caller', None)
        st.rerun()

# =========================================================================
# Tabs
# =========================================================================
tab_names = ["🔎 Search", "🎲 Discover"]
if caller is not None:
    tab_names.append("🛠️ Admin")
tabs = st.tabs(tab_names)

# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------
with tabs[0]:
    sc1, sc2, sc3 = st.columns([3, 1, 1])
    with sc1:
        query = st.text_input(
            "Model name",
            placeholder="e.g. iPhone 11, Galaxy A52, Moto G8",
            help=f"Type at least {MIN_QUERY_LENGTH} characters.",
        )
    with sc2:
        tier = st.selectbox("Tier", ["All", "VIP only", "Free only"])
    with sc3:
        limit = st.number_input("Results", min_value=1, max_value=50, value=DEFAULT_LIMIT)

    stripped = query.strip()
    if stripped and len(stripped) < MIN_QUERY_LENGTH:
        st.info(f"Type at least {MIN_QUERY_LENGTH} characters to search.")
    else:
        results = service.search(
            query,
            limit=int(limit),
            vip_only=(tier == "VIP only"),
            free_only=(tier == "Free only"),
        )
        if not results:
            st.warning("No model found. Check the spelling or try fewer words.")
        for record in results:
            with st.container(border=True):
                st.markdown(f"### {record.model_name}")
                if record.is_vip:
                    st.markdown("🔒 **VIP** — compatibility list available in the VIP table.")
                elif record.is_compatible:
                    st.markdown("**Compatible with:** " + " · ".join(record.compatible_models))
                else:
                    st.markdown("No compatible models listed.")
                if record.presentation_content:
                    st.markdown(record.presentation_content, unsafe_allow_html=True)

# ---------------------------------------------------------------------------
# Discover
# ---------------------------------------------------------------------------
with tabs[1]:
    if st.button("🔀 Shuffle"):
        st.rerun()
    sample = service.sample(DEFAULT_SAMPLE_SIZE)
    st.caption(f"Showing {len(sample.records)} of {sample.total:,} models")
    cols = st.columns(4)
    for i, record in enumerate(sample.records):
        with cols[i % 4]:
            with st.container(border=True):
                st.markdown(f"**{record.model_name}**")
                if record.is_vip:
                    st.caption("🔒 VIP")
                else:
                    st.caption(", ".join(record.compatible_models) or "—")

# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
if caller is not None:
    with tabs[2]:
        st.header("Step 1: Upload Catalog CSV")
        st.markdown(
            "No header row. Columns: **model**, **compatibility** "
            "(models separated by `/`, or the VIP sentence), optional **presentation HTML**. "
            "Committing **replaces the entire catalog**."
        )
        upload = st.file_uploader("Catalog CSV", type=["csv"], key="catalog_upload")

        if upload is not None:
            data = upload.getvalue()
            try:
                check_upload(upload.name, data, settings.max_upload_bytes)
                with temporary_upload(data) as path:
                    preview = service.preview_import(path)
            except CatalogError as e:
                show_error(e)
                preview = None

            if preview is not None:
                pc1, pc2, pc3 = st.columns(3)
                pc1.metric("Valid records", f"{preview.total_count:,}")
                pc2.metric("Rejected rows", f"{preview.counts.get('rejected', 0):,}")
                pc3.metric("Duplicates", f"{preview.counts.get('duplicates_skipped', 0):,}")
                st.dataframe(records_frame(preview.records), use_container_width=True, hide_index=True)

                st.header("Step 2: Replace Catalog")
                if st.button("Replace catalog with this file", type="primary", use_container_width=True):
                    with st.spinner("Importing..."):
                        try:
                            with temporary_upload(data) as path:
                                summary = service.commit_import(path, caller)
                        except CatalogError as e:
                            show_error(e)
                        except Exception:
                            logger.exception("Unexpected import failure")
                            st.error("Internal error while importing. The previous catalog was kept.")
                        else:
                            st.success(
                                f"Imported **{summary.total_inserted:,}** models "
                                f"({summary.duplicates_skipped:,} duplicates skipped)."
                            )
                            st.dataframe(
                                records_frame(summary.inserted_preview),
                                use_container_width=True, hide_index=True,
                            )

        st.divider()
        st.header("Export Catalog")
        current_catalog = service.list_all()
        st.caption(f"{len(current_catalog):,} models in the live catalog")
        ec1, ec2 = st.columns(2)
        with ec1:
            st.download_button(
                label="📥 Download Excel",
                data=to_excel_bytes(current_catalog),
                file_name="compatibility_catalog.xlsx",
                mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                use_container_width=True,
            )
        with ec2:
            st.download_button(
                label="📥 Download CSV (import format)",
                data=to_csv_bytes(current_catalog),
                file_name="compatibility_catalog.csv",
                mime="text/csv",
                use_container_width=True,
            )

        st.divider()
        st.header("Presentation Content")
        record_id = st.number_input("Record id", min_value=1, step=1, value=1)
        try:
            current = service.get_record(int(record_id))
        except CatalogError as e:
            show_error(e)
            current = None

        if current is not None:
            st.markdown(f"Editing **{current.model_name}**")
            with st.form("presentation"):
                content = st.text_area("HTML", value=current.presentation_content or "", height=200)
                save = st.form_submit_button("Save")
            if save:
                try:
                    updated = service.update_presentation_content(current.id, content, caller)
                except CatalogError as e:
                    show_error(e)
                else:
                    st.success(f"Saved presentation content for {updated.model_name}.")

# ---------------------------------------------------------------------------
# Footer
# ---------------------------------------------------------------------------
st.divider()
st.caption(
    "Compatibility Catalog — fuzzy model search with rapidfuzz. "
    "Catalog is replaced in full on each CSV import."
)
