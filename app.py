"""PV Rapid Shutdown Device Test Platform - Streamlit Dashboard.

Spreadsheet import, experiment management, live measurement charts and
rapid shutdown circuit simulation.
"""

import streamlit as st
import pandas as pd
import sys
import time
from pathlib import Path
from datetime import datetime

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from config.config import APP_CONFIG, UPLOAD_CONFIG, CHART_CONFIG, MONITOR_CONFIG, setup_logging
from config.test_standards import (
    TEST_STANDARDS,
    ParameterType,
    format_parameter_name,
)
from pv_rsd.ingestion import (
    SpreadsheetParseError,
    parse,
    upload_fingerprint,
    to_canonical_measurements,
    to_worksheet_bytes,
    measurements_to_csv_bytes,
)
from pv_rsd.analysis import (
    build_chart_frame,
    chart_colors,
    measurements_frame,
    measurement_summary,
    table_frame,
    SimulationParams,
    LoadType,
    FaultType,
    run_simulation,
    summarize_simulation,
)

setup_logging()

# Initialize database and seed test standards
DB_INITIALIZED = False
DB_INIT_ERROR = None
try:
    from pv_rsd.database import (
        init_database,
        get_db,
        Device,
        ExperimentStatus,
        AlertSeverity,
        get_experiment,
        list_experiments,
        create_experiment,
        start_experiment,
        stop_experiment,
        add_measurement,
        fetch_measurements,
        advance_live_experiment,
        import_spreadsheet,
        dashboard_overview,
        list_alerts,
        acknowledge_alert,
    )
    init_database()
    DB_INITIALIZED = True
except Exception as e:
    DB_INIT_ERROR = str(e)
    print(f"Database initialization skipped or failed: {e}")

# Page configuration
st.set_page_config(
    page_title=APP_CONFIG["app_name"],
    page_icon="⚡",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Custom CSS
st.markdown("""
<style>
    .main-header {
        font-size: 2.5rem;
        font-weight: bold;
        color: #10b981;
        text-align: center;
        padding: 1rem;
    }
    .sub-header {
        font-size: 1.2rem;
        color: #3b82f6;
        text-align: center;
        padding-bottom: 2rem;
    }
    .stButton>button {
        width: 100%;
        border-radius: 5px;
        height: 3em;
    }
</style>
""", unsafe_allow_html=True)

# Initialize session state
if 'parsed_data' not in st.session_state:
    st.session_state.parsed_data = None
if 'upload_name' not in st.session_state:
    st.session_state.upload_name = None
if 'upload_id' not in st.session_state:
    st.session_state.upload_id = None
if 'upload_key' not in st.session_state:
    st.session_state.upload_key = 0
if 'simulation_results' not in st.session_state:
    st.session_state.simulation_results = None
if 'live_experiment_id' not in st.session_state:
    st.session_state.live_experiment_id = None


def load_upload(uploaded_file):
    """Parse an uploaded file into session state."""
    try:
        parsed = parse(uploaded_file.getvalue(), filename=uploaded_file.name, mime_type=uploaded_file.type)
    except SpreadsheetParseError as e:
        st.session_state.parsed_data = None
        st.error(f"❌ 文件解析失败，请确保是正确的Excel格式: {e}")
        return
    st.session_state.parsed_data = parsed
    st.session_state.upload_name = uploaded_file.name
    st.session_state.upload_id = upload_fingerprint(uploaded_file.getvalue(), uploaded_file.name)


def show_series_chart(df: pd.DataFrame):
    """Line chart with the fixed per-quantity colours."""
    if df.empty or len(df.columns) == 0:
        st.info("No numeric columns to plot")
        return
    st.line_chart(df, color=chart_colors(df.columns))


# Main header
st.markdown(f'<div class="main-header">⚡ {APP_CONFIG["app_name"]}</div>', unsafe_allow_html=True)
st.markdown('<div class="sub-header">光伏关断器测试数据管理 · 实时监测 · 电路仿真</div>', unsafe_allow_html=True)

# Sidebar
with st.sidebar:
    st.markdown("### ⚙️ Configuration")

    if DB_INITIALIZED:
        st.success("Database connected")
    else:
        st.warning(f"Database unavailable: {DB_INIT_ERROR}")

    st.markdown("---")
    st.markdown("#### Experiment Types")
    for standard in TEST_STANDARDS.values():
        st.markdown(f"- {standard.icon} {standard.name} ({standard.standard_code})")

    st.markdown("---")
    st.info(f"📦 Version {APP_CONFIG['version']}")

# Main content tabs
tab0, tab1, tab2, tab3, tab4, tab5 = st.tabs([
    "🏠 总览", "📂 数据管理", "🧪 实验", "📈 实时监测", "🔌 仿真中心", "🔔 告警"
])

# Tab 0: Overview
with tab0:
    st.header("🏠 系统总览")

    if not DB_INITIALIZED:
        st.info("Database is required for the overview")
    else:
        with get_db() as db:
            overview = dashboard_overview(db)
            recent_rows = [{
                'ID': e.id,
                '名称': e.experiment_name,
                '类型': TEST_STANDARDS[e.experiment_type].name,
                '状态': e.status.value,
                '开始时间': e.start_time,
            } for e in overview['recent_experiments']]

        col1, col2, col3 = st.columns(3)
        col1.metric("运行中实验", overview['running_experiments'])
        col2.metric("今日完成", overview['completed_today'])
        col3.metric("在线设备", f"{overview['active_devices']}/{overview['total_devices']}")

        st.subheader("最近实验")
        if recent_rows:
            st.dataframe(pd.DataFrame(recent_rows), use_container_width=True, hide_index=True)
        else:
            st.info("No experiments yet")

# Tab 1: Data management
with tab1:
    st.header("📂 导入、查看和分析实验数据")

    uploaded_file = st.file_uploader(
        "拖拽Excel文件到此处",
        type=[ext.lstrip('.') for ext in UPLOAD_CONFIG["allowed_extensions"]],
        help="支持 .xlsx, .xls, .csv",
        key=f"uploader_{st.session_state.upload_key}",
    )

    # same-name uploads with new content are parsed again
    if uploaded_file is not None:
        if upload_fingerprint(uploaded_file.getvalue(), uploaded_file.name) != st.session_state.upload_id:
            load_upload(uploaded_file)

    parsed = st.session_state.parsed_data
    if parsed is None:
        st.info("👆 Upload a spreadsheet to see its data")
    else:
        col1, col2, col3, col4 = st.columns(4)
        meta = parsed.metadata
        with col1:
            st.metric("数据点数", len(parsed.records))
        with col2:
            if meta and meta.record_time:
                st.metric("记录时间", meta.record_time)
        with col3:
            if meta and meta.device_address:
                st.metric("设备地址", meta.device_address)
        with col4:
            if meta and meta.device_type:
                st.metric("设备类型", meta.device_type)

        view_mode = st.radio("数据预览", ["表格视图", "图表视图"], horizontal=True)
        if view_mode == "表格视图":
            st.dataframe(table_frame(parsed), use_container_width=True, hide_index=True)
        else:
            show_series_chart(build_chart_frame(parsed))

        st.markdown("---")
        col_a, col_b, col_c = st.columns(3)

        with col_a:
            save_disabled = not DB_INITIALIZED
            if st.button("☁️ 保存到数据库", disabled=save_disabled):
                try:
                    with get_db() as db:
                        experiment = import_spreadsheet(
                            db, parsed,
                            file_name=st.session_state.upload_name,
                        )
                        experiment_id = experiment.id
                    st.success(f"✅ 数据已成功保存到数据库！(实验 #{experiment_id})")
                except Exception as e:
                    st.error(f"保存失败: {e}")

        with col_b:
            export_bytes = to_worksheet_bytes(parsed.records, columns=parsed.headers)
            st.download_button(
                "📥 导出数据",
                data=export_bytes,
                file_name=f"export_data_{int(time.time() * 1000)}.xlsx",
                mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            )

        with col_c:
            if st.button("🗑️ 清除数据并上传新文件"):
                st.session_state.parsed_data = None
                st.session_state.upload_name = None
                st.session_state.upload_id = None
                st.session_state.upload_key += 1
                st.rerun()

        with st.expander("Canonical measurements"):
            canonical = to_canonical_measurements(parsed)
            st.dataframe(
                pd.DataFrame([m.to_record() for m in canonical]),
                use_container_width=True, hide_index=True,
            )

# Tab 2: Experiments
with tab2:
    st.header("🧪 实验管理")

    if not DB_INITIALIZED:
        st.info("Database is required for experiment management")
    else:
        col1, col2 = st.columns([1, 2])

        with col1:
            st.subheader("新建实验")
            type_labels = {t: f"{s.icon} {s.name}" for t, s in TEST_STANDARDS.items()}
            exp_type = st.selectbox(
                "实验类型",
                options=list(TEST_STANDARDS.keys()),
                format_func=lambda t: type_labels[t],
            )
            standard = TEST_STANDARDS[exp_type]
            st.caption(standard.description)

            exp_name = st.text_input("实验名称")
            with get_db() as db:
                device_ids = [d.id for d in db.query(Device).order_by(Device.id).all()]
            device_id = st.selectbox("测试设备", options=[None] + device_ids)
            notes = st.text_area("备注")

            params = {}
            for p in standard.parameters:
                if p.param_type == ParameterType.BOOLEAN:
                    params[p.key] = st.checkbox(p.display_label(), value=p.default, key=f"p_{exp_type.value}_{p.key}")
                elif p.param_type == ParameterType.NUMBER:
                    params[p.key] = st.number_input(p.display_label(), value=float(p.default), key=f"p_{exp_type.value}_{p.key}")
                else:
                    params[p.key] = st.text_input(p.display_label(), value=p.default, key=f"p_{exp_type.value}_{p.key}")

            if st.button("创建实验"):
                with get_db() as db:
                    experiment = create_experiment(
                        db, exp_type,
                        experiment_name=exp_name or None,
                        device_id=device_id,
                        test_parameters=params,
                        notes=notes or None,
                    )
                    new_id = experiment.id
                st.success(f"✅ 实验 #{new_id} 已创建")

        with col2:
            st.subheader("实验列表")
            status_filter = st.selectbox(
                "状态", options=[None] + list(ExperimentStatus),
                format_func=lambda s: "全部" if s is None else s.value,
            )
            with get_db() as db:
                experiments = list_experiments(db, status=status_filter)
                rows = [{
                    'ID': e.id,
                    '名称': e.experiment_name,
                    '类型': TEST_STANDARDS[e.experiment_type].name,
                    '状态': e.status.value,
                    '开始时间': e.start_time,
                    '结束时间': e.end_time,
                } for e in experiments]
                experiment_ids = [e.id for e in experiments]
            st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

            if experiment_ids:
                selected_id = st.selectbox("查看实验", options=experiment_ids)
                with get_db() as db:
                    experiment = get_experiment(db, selected_id)
                    measurements = fetch_measurements(db, selected_id)
                    status = experiment.status
                    parameters = experiment.test_parameters or {}
                    summary = measurement_summary(measurements)
                    mdf = measurements_frame(measurements)
                    csv_bytes = measurements_to_csv_bytes(measurements)

                st.markdown(f"**状态:** {status.value}")
                if parameters:
                    st.table(pd.DataFrame(
                        [{'参数': format_parameter_name(k), '值': v} for k, v in parameters.items()]
                    ))

                col_s1, col_s2, col_s3 = st.columns(3)
                if summary['count']:
                    col_s1.metric("平均电压", f"{summary['avg_voltage_v']:.2f} V")
                    col_s2.metric("平均电流", f"{summary['avg_current_a']:.3f} A")
                    col_s3.metric("平均功率", f"{summary['avg_power_w']:.2f} W")
                    chart_df = mdf.set_index('sequence_number')[['voltage_v', 'current_a', 'power_w']]
                    chart_df.columns = ['电压 (V)', '电流 (A)', '功率 (W)']
                    show_series_chart(chart_df)

                col_b1, col_b2, col_b3 = st.columns(3)
                with col_b1:
                    if status == ExperimentStatus.PENDING and st.button("▶️ 开始实验"):
                        with get_db() as db:
                            start_experiment(db, selected_id)
                        st.session_state.live_experiment_id = selected_id
                        st.rerun()
                with col_b2:
                    if status == ExperimentStatus.RUNNING and st.button("⏹️ 停止实验"):
                        with get_db() as db:
                            stop_experiment(db, selected_id)
                        st.rerun()
                with col_b3:
                    st.download_button(
                        "📥 导出CSV",
                        data=csv_bytes,
                        file_name=f"experiment_{selected_id}_{datetime.now():%Y%m%d}.csv",
                        mime="text/csv",
                    )

# Tab 3: Live monitor
with tab3:
    st.header("📈 实时监测")

    live_id = st.session_state.live_experiment_id
    if not DB_INITIALIZED or live_id is None:
        st.info("Start an experiment in the 🧪 tab to monitor it here")
    else:
        with get_db() as db:
            live_status = get_experiment(db, live_id).status
        st.markdown(f"Monitoring experiment #{live_id} ({live_status.value})")

        auto_acquire = live_status == ExperimentStatus.RUNNING and st.toggle(
            "自动采集",
            value=True,
            help=f"每 {CHART_CONFIG['refresh_interval_s']:.0f} 秒记录一个测量点，"
                 f"{MONITOR_CONFIG['auto_stop_s']:.0f} 秒后自动停止实验",
        )
        if auto_acquire:
            with get_db() as db:
                advance_live_experiment(db, live_id)

        with get_db() as db:
            window = fetch_measurements(db, live_id)[-CHART_CONFIG["realtime_window"]:]
            live_df = measurements_frame(window)

        if live_df.empty:
            st.info("Waiting for measurements...")
        else:
            latest = live_df.iloc[-1]
            col1, col2, col3 = st.columns(3)
            col1.metric("电压", f"{latest['voltage_v']:.2f} V")
            col2.metric("电流", f"{latest['current_a']:.3f} A")
            col3.metric("功率", f"{latest['power_w']:.2f} W")
            chart_df = live_df.set_index('timestamp')[['voltage_v', 'current_a', 'power_w']]
            chart_df.columns = ['电压 (V)', '电流 (A)', '功率 (W)']
            show_series_chart(chart_df)

        with st.expander("Record a measurement"):
            c1, c2 = st.columns(2)
            voltage = c1.number_input("电压 (V)", value=20.0, step=0.1)
            current = c2.number_input("电流 (A)", value=0.5, step=0.01)
            if st.button("Add"):
                with get_db() as db:
                    add_measurement(db, live_id, current_a=current, voltage_v=voltage)
                st.rerun()

        if auto_acquire or st.toggle("Auto refresh", value=False):
            time.sleep(CHART_CONFIG["refresh_interval_s"])
            st.rerun()

# Tab 4: Simulation
with tab4:
    st.header("🔌 光伏关断器电路仿真与分析")

    col1, col2 = st.columns([1, 2])

    with col1:
        st.subheader("PV Module")
        defaults = SimulationParams()
        module_voc = st.number_input("Voc (V)", value=defaults.module_voc)
        module_isc = st.number_input("Isc (A)", value=defaults.module_isc)
        module_vmp = st.number_input("Vmp (V)", value=defaults.module_vmp)
        irradiance = st.slider("Irradiance (W/m²)", 0.0, 1200.0, defaults.irradiance, step=10.0)
        temperature = st.slider("Temperature (°C)", -20.0, 85.0, defaults.temperature, step=0.5)

        st.subheader("Rapid Shutdown Device")
        threshold = st.number_input("Voltage threshold (V)", value=defaults.rsd_voltage_threshold)
        leakage = st.number_input("Leakage current (mA)", value=defaults.rsd_leakage_current)

        st.subheader("Load & Fault")
        load_type = st.selectbox("Load type", options=list(LoadType), format_func=lambda x: x.value)
        load_value = st.number_input("Load (Ω)", value=defaults.load_value, min_value=0.1)
        fault_type = st.selectbox("Fault", options=list(FaultType), format_func=lambda x: x.value)
        fault_magnitude = st.slider("Fault magnitude (%)", 0.0, 100.0, 0.0)

        if st.button("▶️ 开始仿真"):
            params = SimulationParams(
                module_voc=module_voc,
                module_isc=module_isc,
                module_vmp=module_vmp,
                irradiance=irradiance,
                temperature=temperature,
                rsd_voltage_threshold=threshold,
                rsd_leakage_current=leakage,
                load_type=load_type,
                load_value=load_value,
                fault_type=fault_type,
                fault_magnitude=fault_magnitude,
            )
            st.session_state.simulation_results = run_simulation(params)

        if st.button("🔄 Reset"):
            st.session_state.simulation_results = None

    with col2:
        results = st.session_state.simulation_results
        if results is None:
            st.info("Set parameters and start the simulation")
        else:
            summary = summarize_simulation(results)
            c1, c2, c3, c4 = st.columns(4)
            c1.metric("Max voltage", f"{summary['max_voltage']:.2f} V")
            c2.metric("Max current", f"{summary['max_current']:.3f} A")
            c3.metric("Avg power", f"{summary['avg_power']:.1f} W")
            c4.metric("RSD off", f"{summary['rsd_off_ratio'] * 100:.0f} %")

            sim_df = results.set_index('time')[['voltage', 'current', 'power']]
            sim_df.columns = ['电压 (V)', '电流 (A)', '功率 (W)']
            show_series_chart(sim_df)
            st.dataframe(results, use_container_width=True, hide_index=True)

# Tab 5: Alerts
with tab5:
    st.header("🔔 告警")

    if not DB_INITIALIZED:
        st.info("Database is required for alerts")
    else:
        with get_db() as db:
            alerts = [
                (a.id, a.severity, a.title, a.message, a.created_at)
                for a in list_alerts(db, unacknowledged_only=True, limit=5)
            ]

        if not alerts:
            st.success("No open alerts")
        for alert_id, severity, title, message, created_at in alerts:
            text = f"**{title}** ({created_at:%Y-%m-%d %H:%M})\n\n{message or ''}"
            if severity == AlertSeverity.CRITICAL:
                st.error(text)
            elif severity == AlertSeverity.WARNING:
                st.warning(text)
            else:
                st.info(text)
            if st.button("Acknowledge", key=f"ack_{alert_id}"):
                with get_db() as db:
                    acknowledge_alert(db, alert_id)
                st.rerun()

# Footer
st.markdown("---")
st.markdown(f"**© {datetime.now().year} {APP_CONFIG['app_name']}**")
