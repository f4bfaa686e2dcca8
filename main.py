import asyncio
import logging

import streamlit as st

from assessment_report.capture import capture_charts
from assessment_report.charts import build_chart_view
from assessment_report.config import CHART_TITLES, PLOTLY_CONFIG
from assessment_report.model import ReportModel, ReportModelError, Subject
from assessment_report.pdf import render_report
from assessment_report.report_store import ReportExportError

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="Assessment Report Export", layout="wide")
st.title("Employee Assessment Report")

uploaded = st.file_uploader("Assessment result (JSON)", type=["json"])
col_name, col_dept = st.columns(2)
employee_name = col_name.text_input("Employee name")
employee_department = col_dept.text_input("Department")

if uploaded is None:
    st.info("Upload an assessment result to preview its charts and export the report.")
    st.stop()

try:
    model = ReportModel.from_json(uploaded.getvalue())
except ReportModelError as exc:
    st.error(f"The uploaded file is not a valid assessment result: {exc}")
    st.stop()

view = build_chart_view(model)
chart_cols = st.columns(2)
for idx, panel in enumerate(view):
    with chart_cols[idx % 2]:
        st.caption(CHART_TITLES.get(panel.chart_id, panel.chart_id))
        if panel.has_drawing():
            st.plotly_chart(panel.figure, width="stretch", config=PLOTLY_CONFIG)
        else:
            st.write("No data for this chart.")

if st.button("Generate PDF", type="primary"):
    subject = Subject(name=employee_name, department=employee_department)
    with st.spinner("Capturing charts and laying out the report..."):
        snapshots = asyncio.run(capture_charts(view))
        try:
            report = render_report(model, snapshots, subject)
        except ReportExportError as exc:
            st.error(f"Could not create the PDF: {exc}")
            st.stop()
    missing = [CHART_TITLES[c] for c, snap in snapshots.items() if snap is None]
    if missing:
        st.warning("Charts not captured: " + ", ".join(missing))
    if report.errors:
        st.warning("Some sections could not be rendered; see the Rendering Notes page in the PDF.")
    st.download_button(
        "Download PDF",
        data=report.pdf_bytes,
        file_name=report.filename,
        mime="application/pdf",
    )
