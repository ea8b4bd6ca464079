import streamlit as st
import json
import pandas as pd
import logging
import io
import os
import tempfile
import zipfile

from scriptgen.captures import exchanges_from_har
from scriptgen.config import load_config
from scriptgen.errors import ScriptGenerationError
from scriptgen.generators import GeneratorType
from scriptgen.orchestrator import ScriptBuilder
from scriptgen.outline import outline_to_json, outline_to_xml, outline_to_yaml, parse_outline

st.set_page_config(page_title="Capture to Load Script", page_icon="🎬", layout="wide")
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def initialize_session_state():
    defaults = {'capture_sessions': [], 'outline': None, 'generated_artifacts': None}
    for key, value in defaults.items():
        st.session_state.setdefault(key, value)


def load_capture_sessions(uploaded_files):
    sessions = []
    for uploaded in uploaded_files:
        exchanges = exchanges_from_har(json.load(uploaded))
        logger.info(f"{uploaded.name}: {len(exchanges)} exchanges")
        sessions.append(exchanges)
    return sessions


def save_uploads(uploaded_files, folder):
    os.makedirs(folder, exist_ok=True)
    paths = []
    for uploaded in uploaded_files:
        path = os.path.join(folder, uploaded.name)
        with open(path, "wb") as f:
            f.write(uploaded.getvalue())
        paths.append(path)
    return paths


def build_package(builder: ScriptBuilder, generator_type: str, work_dir: str) -> bytes:
    script_file = builder.generate_scripts(generator_type)
    zip_buffer = io.BytesIO()
    with zipfile.ZipFile(zip_buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.write(script_file, os.path.basename(script_file))
        zf.writestr("outline.xml", outline_to_xml(builder.outline))
        for dp in builder.outline.data_pools:
            data_file = os.path.join(work_dir, dp.file_name)
            if os.path.exists(data_file):
                zf.write(data_file, f"data/{dp.file_name}")
    return zip_buffer.getvalue()


def main():
    initialize_session_state()
    st.title("🎬 Capture to Load Script")

    with st.sidebar:
        st.header("⚙️ Configuration")
        capture_files = st.file_uploader("1. Captured sessions (HAR)", type=["har", "json"], accept_multiple_files=True)
        outline_file = st.file_uploader("2. Outline document (optional)", type="xml")
        datapool_files = st.file_uploader("3. Data pools (CSV)", type="csv", accept_multiple_files=True)
        config_file = st.file_uploader("4. Generator config (YAML, optional)", type=["yaml", "yml"])
        st.divider(); st.header("Script Parameters")
        server = st.text_input("Server (host:port)", "localhost:8080")
        web_app = st.text_input("Web application", "app")
        generator_type = st.radio("Engine", [g.value for g in GeneratorType], horizontal=True)
        abbreviated = st.checkbox("Abbreviated script (no paths or file collectors)", value=False)

    if capture_files:
        st.session_state.capture_sessions = load_capture_sessions(capture_files)
    if not st.session_state.capture_sessions:
        st.info("Upload at least one captured session to start."); return

    st.header("Step 1: Captured Sessions")
    first = st.session_state.capture_sessions[0]
    st.dataframe(pd.DataFrame([{"#": e.index, "Comment": e.comment, "Method": e.request.method, "URL": e.request.url}
                               for e in first]), use_container_width=True)

    st.header("Step 2: Generate Script")
    if st.button("🚀 Generate Script Package", type="primary", use_container_width=True):
        work_dir = tempfile.mkdtemp(prefix="scriptgen_")
        try:
            with st.spinner("Building outline and script..."):
                outline = parse_outline(outline_file.getvalue()) if outline_file else None
                datapool_paths = save_uploads(datapool_files or [], os.path.join(work_dir, "sources"))
                segmenter_config, settings = (load_config(save_uploads([config_file], work_dir)[0])
                                              if config_file else (None, None))
                builder = ScriptBuilder(
                    output_path=work_dir, datapools_path=work_dir, outline=outline,
                    capture_sessions=st.session_state.capture_sessions, server=server, web_app=web_app,
                    abbreviated=abbreviated, datapool_sources=datapool_paths, working_dir=work_dir,
                    segmenter_config=segmenter_config, settings=settings,
                )
                st.session_state.outline = builder.outline
                st.session_state.generated_artifacts = build_package(builder, generator_type, work_dir)
            st.success("Script package generated successfully!")
        except (ScriptGenerationError, ValueError) as e:
            logger.error(f"Script generation failed: {e}")
            st.error(str(e))

    if st.session_state.outline:
        with st.expander("🔬 View Outline (YAML)"):
            st.code(outline_to_yaml(st.session_state.outline), language="yaml")
        with st.expander("🔬 View Outline (JSON)"):
            st.json(json.loads(outline_to_json(st.session_state.outline)))

    if st.session_state.generated_artifacts:
        st.download_button("⬇️ Download Script Package (.zip)", st.session_state.generated_artifacts,
                           "script_package.zip", "application/zip", use_container_width=True)


if __name__ == "__main__":
    main()
