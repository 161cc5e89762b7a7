"""Database module for experiment and measurement storage.

Features:
- Device registry with calibration dates
- Experiment lifecycle (pending -> running -> completed/failed/cancelled)
- Measurement time series with polling for live charts
- Spreadsheet import into experiment + measurements
- Alerts with acknowledgement
"""

from .schema import (
    Base,
    Profile,
    Device,
    Experiment,
    Measurement,
    ExperimentFile,
    TestStandard,
    Alert,
    UserRole,
    DeviceStatus,
    ExperimentStatus,
    AlertSeverity,
)
from .init_db import (
    create_db_engine,
    init_database,
    get_db,
    seed_test_standards,
    seed_demo_device,
    engine,
    SessionLocal,
)
from .repository import (
    ExperimentNotFoundError,
    InvalidTransitionError,
    get_experiment,
    list_experiments,
    create_experiment,
    start_experiment,
    stop_experiment,
    add_measurement,
    fetch_measurements,
    generate_measurement,
    advance_live_experiment,
    import_spreadsheet,
    dashboard_overview,
    create_alert,
    list_alerts,
    acknowledge_alert,
)

__all__ = [
    # Base
    'Base',
    # Models
    'Profile',
    'Device',
    'Experiment',
    'Measurement',
    'ExperimentFile',
    'TestStandard',
    'Alert',
    # Enums
    'UserRole',
    'DeviceStatus',
    'ExperimentStatus',
    'AlertSeverity',
    # Database functions
    'create_db_engine',
    'init_database',
    'get_db',
    'seed_test_standards',
    'seed_demo_device',
    'engine',
    'SessionLocal',
    # Repository
    'ExperimentNotFoundError',
    'InvalidTransitionError',
    'get_experiment',
    'list_experiments',
    'create_experiment',
    'start_experiment',
    'stop_experiment',
    'add_measurement',
    'fetch_measurements',
    'generate_measurement',
    'advance_live_experiment',
    'import_spreadsheet',
    'dashboard_overview',
    'create_alert',
    'list_alerts',
    'acknowledge_alert',
]
