"""
Catalog Matcher - Streamlit UI

Architecture:
    Step 1: Upload the inventory export (CSV with ';' or Excel) -> cleaned catalog
    Step 2: Upload product images (or paste filenames) -> assign images to records
    Step 3: Paste generated product titles -> correct them against the inventory

Run with:
    streamlit run src/app.py
"""

import io
import json

import pandas as pd
import streamlit as st

from matcher import MODE_IDENTIFIER_FIRST, MODE_NAME_ONLY, explain_match
from inventory import (
    read_inventory,
    load_and_clean_inventory,
    records_from_frame,
    apply_assignments,
    CSV_DELIMITER,
)
from reconcile import (
    assign_images,
    summarize_assignments,
    correct_titles,
    correct_scenario_products,
    STATUS_ASSIGNED,
    STATUS_DUPLICATE,
    STATUS_KEPT_EXISTING,
    STATUS_NO_MATCH,
    TITLE_KEPT,
)

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Catalog Matcher",
    page_icon="🖼️",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.title("🖼️ Catalog Image & Title Matcher")

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
st.sidebar.header("⚙️ Settings")
overwrite_existing = st.sidebar.checkbox(
    "Overwrite images from previous runs",
    value=False,
    help="By default, records that already have a picture keep it.",
)

st.sidebar.markdown("---")
st.sidebar.markdown("**Status Legend:**")
st.sidebar.markdown("🟢 **ASSIGNED** - Image written to the record")
st.sidebar.markdown("🟡 **DUPLICATE / KEPT_EXISTING** - Record already has an image")
st.sidebar.markdown("🔴 **NO_MATCH** - Below threshold, assign manually")

# =========================================================================
# STEP 1 - Inventory
# =========================================================================
st.header("Step 1: Inventory")

inventory_upload = st.file_uploader(
    "Upload inventory export (.csv with ';' or .xlsx)", type=["csv", "xlsx"], key="inventory_upload"
)

if inventory_upload is None:
    st.info("Upload the inventory export to start.")
    st.stop()

try:
    df_raw = read_inventory(inventory_upload, filename=inventory_upload.name)
    df_inventory, inv_stats = load_and_clean_inventory(df_raw)
except Exception as e:
    st.error(f"Failed to read inventory: {e}")
    st.stop()

columns = inv_stats['columns']
catalog = records_from_frame(df_inventory, columns)

st.success(
    f"Inventory loaded - **{inv_stats['final']:,}** records "
    f"(from {inv_stats['original']:,} rows, {inv_stats['empty_id_dropped']:,} without ID dropped)"
)
for warning in inv_stats['warnings']:
    st.warning(warning)
with st.expander("Preview inventory (first 10 rows)"):
    st.dataframe(df_inventory.head(10), use_container_width=True, hide_index=True)

# ------------------------------------------------------------------
# Test Single Match
# ------------------------------------------------------------------
st.divider()
st.subheader("🧪 Test Single Match")
tc1, tc2, tc3 = st.columns([3, 1, 1])
with tc1:
    test_query = st.text_input("Filename stem or title", value="hanging-trunk-organizer-black")
with tc2:
    test_mode = st.selectbox("Mode", [MODE_IDENTIFIER_FIRST, MODE_NAME_ONLY])
with tc3:
    st.write("")
    st.write("")
    test_btn = st.button("Test Match", use_container_width=True)

if test_btn:
    info = explain_match(test_query, catalog, mode=test_mode)
    best = info['best_match']
    st.markdown(f"**Normalized:** `{info['normalized']}`")
    st.caption(
        f"Keywords: {', '.join(info['general_keywords']) or '-'} | "
        f"Salient: {', '.join(info['salient_keywords']) or '-'}"
    )
    if best.matched:
        st.success(
            f"`{best.record.identifier}` {best.record.display_name} "
            f"({best.score * 100:.0f}%, {best.tier})"
        )
    else:
        st.error(f"No match (best score {best.score * 100:.0f}%)")
    if info['alternatives']:
        st.dataframe(pd.DataFrame(info['alternatives']), use_container_width=True, hide_index=True)

# =========================================================================
# STEP 2 - Image assignment
# =========================================================================
st.divider()
st.header("Step 2: Assign Images")

image_uploads = st.file_uploader(
    "Upload product images", type=["jpg", "jpeg", "png", "webp", "gif", "svg"],
    accept_multiple_files=True, key="image_upload",
)
pasted_names = st.text_area("…or paste image filenames, one per line", height=120)

image_files = [f.name for f in image_uploads or []]
image_files += [line.strip() for line in pasted_names.splitlines() if line.strip()]


def color_status(val):
    if val == STATUS_ASSIGNED:
        return 'background-color: #d4edda; color: #155724'
    elif val in (STATUS_DUPLICATE, STATUS_KEPT_EXISTING):
        return 'background-color: #fff3cd; color: #856404'
    elif val == STATUS_NO_MATCH:
        return 'background-color: #f8d7da; color: #721c24'
    return ''


if image_files and st.button("🚀 Assign Images", type="primary", use_container_width=True):
    progress = st.progress(0, text="Matching images...")

    def progress_cb(current, total):
        progress.progress(current / total, text=f"Matching... {current:,}/{total:,}")

    report = assign_images(
        image_files, catalog,
        overwrite_existing=overwrite_existing,
        progress_callback=progress_cb,
    )
    progress.progress(1.0, text="✅ Matching complete!")

    summary = summarize_assignments(report)
    ca, cb, cc = st.columns(3)
    ca.metric("✅ Assigned", summary['assigned_count'], f"{summary['assigned_rate']:.1f}%")
    cb.metric(
        "⚠️ Already had image",
        summary['duplicate_count'] + summary['kept_existing_count'],
    )
    cc.metric("❌ No Match", summary['no_match_count'], f"{summary['no_match_rate']:.1f}%")

    df_report = pd.DataFrame(report)
    st.dataframe(
        df_report.style.map(color_status, subset=['status']),
        use_container_width=True, hide_index=True,
    )

    df_updated = apply_assignments(df_inventory, catalog, columns)
    output = io.StringIO()
    df_updated.to_csv(output, sep=CSV_DELIMITER, index=False)
    st.download_button(
        label="📥 Download updated inventory CSV",
        data=output.getvalue().encode('utf-8'),
        file_name="items.csv",
        mime="text/csv",
        type="primary",
        use_container_width=True,
    )

# =========================================================================
# STEP 3 - Title correction
# =========================================================================
st.divider()
st.header("Step 3: Correct Generated Titles")

tab_titles, tab_json = st.tabs(["Title list", "Scenario JSON"])

with tab_titles:
    pasted_titles = st.text_area("Generated product titles, one per line", height=150, key="titles")
    if st.button("Correct Titles", use_container_width=True):
        titles = [t.strip() for t in pasted_titles.splitlines() if t.strip()]
        if not titles:
            st.info("Paste at least one title.")
        else:
            fixes = correct_titles(titles, catalog)
            st.dataframe(
                pd.DataFrame(fixes)[['original_title', 'title', 'status', 'score', 'tier']],
                use_container_width=True, hide_index=True,
            )
            for fix in fixes:
                if fix['status'] == TITLE_KEPT:
                    st.warning(fix['diagnostic'])

with tab_json:
    pasted_json = st.text_area("Generated scenarios payload (JSON)", height=200, key="scenario_json")
    if st.button("Correct Scenario Products", use_container_width=True):
        try:
            payload = json.loads(pasted_json)
        except json.JSONDecodeError as e:
            st.error(f"Invalid JSON: {e}")
            payload = None
        if payload is not None:
            corrected, fixes = correct_scenario_products(payload, catalog)
            if fixes:
                st.dataframe(
                    pd.DataFrame(fixes)[['scenario', 'original_title', 'title', 'status', 'score']],
                    use_container_width=True, hide_index=True,
                )
            else:
                st.info("No product titles found in payload.")
            st.download_button(
                label="📥 Download corrected JSON",
                data=json.dumps(corrected, ensure_ascii=False, indent=2).encode('utf-8'),
                file_name="scenarios_corrected.json",
                mime="application/json",
            )

# ---------------------------------------------------------------------------
# Footer
# ---------------------------------------------------------------------------
st.divider()
st.caption(
    "Catalog Matcher - ID / SKU / keyword matching with a two-tier confidence threshold. "
    "Unresolved titles are kept as generated."
)
