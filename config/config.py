"""Configuration file for PV Rapid Shutdown Device Test Platform.

Environment variables, database connection, ingestion and simulation
settings, and logging.
"""

import logging
import os
from typing import Dict, Any

# ============================================================================
# DATABASE CONFIGURATION
# ============================================================================
DATABASE_CONFIG: Dict[str, Any] = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", 5432)),
    "database": os.getenv("DB_NAME", "pv_rsd_test"),
    "user": os.getenv("DB_USER", "postgres"),
    "password": os.getenv("DB_PASSWORD", "postgres"),
}

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "postgresql://{user}:{password}@{host}:{port}/{database}".format(**DATABASE_CONFIG),
)

# Handle hosted providers' postgres:// vs postgresql:// prefix
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# ============================================================================
# APPLICATION SETTINGS
# ============================================================================
APP_CONFIG = {
    "app_name": "PV Rapid Shutdown Device Test Platform",
    "version": "1.0.0",
    "debug": os.getenv("DEBUG", "False").lower() == "true",
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
}

# ============================================================================
# FILE UPLOAD SETTINGS
# ============================================================================
UPLOAD_CONFIG = {
    "max_file_size_mb": 50,
    "allowed_extensions": [".xlsx", ".xls", ".csv"],
    "mime_types": {
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
        "application/vnd.ms-excel": ".xls",
        "text/csv": ".csv",
    },
    "csv_encodings": ["utf-8-sig", "gbk"],
}

# ============================================================================
# INGESTION SETTINGS
# ============================================================================
INGESTION_CONFIG = {
    # Vendor exports put "记录时间: ..." style cells in the second row
    "metadata_row_index": 1,
    "metadata_marker": "记录时间",
    "metadata_labels": {
        "record_time": "记录时间:",
        "device_address": "设备地址:",
        "device_type": "设备类型:",
        "data_points": "数据点数:",
    },
    "header_row_with_metadata": 3,
    "header_row_default": 0,
    "export_sheet_name": "Data",
}

# ============================================================================
# CHART SETTINGS
# ============================================================================
CHART_CONFIG = {
    "series_colors": {
        "电压": "#3b82f6",  # voltage
        "电流": "#10b981",  # current
        "功率": "#f59e0b",  # power
        "温度": "#ef4444",  # temperature
    },
    "default_color": "#8b5cf6",
    "index_keywords": ["序号", "index", "seq"],
    "realtime_window": 50,
    "refresh_interval_s": 1.0,
}

# ============================================================================
# LIVE MONITOR SETTINGS
# ============================================================================
MONITOR_CONFIG = {
    "auto_stop_s": 30.0,  # running experiments finish after this long
    # uniform ranges (low, high) of generated readings
    "current_a": (0.5, 1.0),
    "voltage_v": (20.0, 22.0),
    "power_w": (10.0, 15.0),
    "temperature_c": (25.0, 35.0),
    "humidity_percent": (45.0, 55.0),
    "recent_experiments": 10,
}

# ============================================================================
# SIMULATION SETTINGS
# ============================================================================
SIMULATION_CONFIG = {
    "module_voc": 48.5,
    "module_isc": 11.2,
    "module_pmax": 400.0,
    "module_vmp": 40.5,
    "module_imp": 9.87,
    "irradiance": 1000.0,  # W/m²
    "temperature": 25.0,  # °C
    "rsd_voltage_threshold": 30.0,  # V
    "rsd_response_time": 30.0,  # ms
    "rsd_leakage_current": 0.5,  # mA
    "load_value": 50.0,  # Ω
    "temp_coefficient": -0.0035,  # -0.35 %/°C
    "fault_onset_s": 5.0,
    "duration_s": 10.0,
    "step_s": 0.1,
}


def setup_logging(level: str = None) -> None:
    """Configure root logging from APP_CONFIG."""
    level_name = (level or APP_CONFIG["log_level"]).upper()
    logging.basicConfig(
        level=logging.DEBUG if APP_CONFIG["debug"] else getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
