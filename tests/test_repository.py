"""Tests for experiment, measurement and alert persistence."""

from __future__ import annotations

from datetime import datetime, timedelta

import numpy as np
import pytest

from config.config import MONITOR_CONFIG
from config.test_standards import ExperimentType
from pv_rsd.database import (
    AlertSeverity,
    Device,
    DeviceStatus,
    ExperimentFile,
    ExperimentNotFoundError,
    ExperimentStatus,
    InvalidTransitionError,
    Measurement,
    TestStandard,
    acknowledge_alert,
    add_measurement,
    advance_live_experiment,
    create_alert,
    create_experiment,
    dashboard_overview,
    fetch_measurements,
    generate_measurement,
    get_experiment,
    import_spreadsheet,
    list_alerts,
    list_experiments,
    seed_test_standards,
    start_experiment,
    stop_experiment,
)
from pv_rsd.ingestion import ParsedSpreadsheet, SpreadsheetMetadata


# -----------------------------------------------------------------------
# Seeding
# -----------------------------------------------------------------------


def test_seeding_is_idempotent(db_session) -> None:
    assert db_session.query(TestStandard).count() == 4
    assert seed_test_standards(db_session) == 0
    assert db_session.get(Device, "PV-RSD-001") is not None


# -----------------------------------------------------------------------
# Experiment lifecycle
# -----------------------------------------------------------------------


def test_create_experiment_merges_default_parameters(db_session) -> None:
    experiment = create_experiment(
        db_session,
        ExperimentType.DIELECTRIC,
        experiment_name="耐压 #1",
        device_id="PV-RSD-001",
        test_parameters={"test_voltage": 3000},
    )
    assert experiment.status == ExperimentStatus.PENDING
    assert experiment.test_parameters == {
        "test_voltage": 3000,
        "duration": 60,
        "max_leakage_current": 5,
    }


def test_start_and_stop(db_session) -> None:
    experiment = create_experiment(db_session, ExperimentType.LEAKAGE)
    start_experiment(db_session, experiment.id)
    assert experiment.status == ExperimentStatus.RUNNING

    stop_experiment(db_session, experiment.id, ExperimentStatus.FAILED, pass_fail=False)
    assert experiment.status == ExperimentStatus.FAILED
    assert experiment.pass_fail is False
    assert experiment.end_time is not None


def test_invalid_transitions(db_session) -> None:
    experiment = create_experiment(db_session, ExperimentType.LEAKAGE)
    with pytest.raises(InvalidTransitionError):
        stop_experiment(db_session, experiment.id)

    start_experiment(db_session, experiment.id)
    with pytest.raises(InvalidTransitionError):
        start_experiment(db_session, experiment.id)
    with pytest.raises(InvalidTransitionError):
        stop_experiment(db_session, experiment.id, ExperimentStatus.RUNNING)


def test_missing_experiment(db_session) -> None:
    with pytest.raises(ExperimentNotFoundError):
        get_experiment(db_session, 999)


def test_list_experiments_filters(db_session) -> None:
    create_experiment(db_session, ExperimentType.DIELECTRIC)
    leakage = create_experiment(db_session, ExperimentType.LEAKAGE)
    start_experiment(db_session, leakage.id)

    assert [e.id for e in list_experiments(db_session, status=ExperimentStatus.RUNNING)] == [leakage.id]
    assert len(list_experiments(db_session, experiment_type=ExperimentType.DIELECTRIC)) == 1
    assert len(list_experiments(db_session, limit=1)) == 1


# -----------------------------------------------------------------------
# Measurements
# -----------------------------------------------------------------------


def test_add_measurement_sequence_and_power(db_session) -> None:
    experiment = create_experiment(db_session, ExperimentType.NORMAL_OPERATION)
    first = add_measurement(db_session, experiment.id, current_a=0.5, voltage_v=20.0)
    second = add_measurement(db_session, experiment.id, current_a=0.6, voltage_v=20.0, power_w=11.0)

    assert (first.sequence_number, second.sequence_number) == (1, 2)
    assert first.power_w == pytest.approx(10.0)
    assert second.power_w == 11.0

    assert [m.sequence_number for m in fetch_measurements(db_session, experiment.id)] == [1, 2]
    assert [m.sequence_number for m in fetch_measurements(db_session, experiment.id, after_sequence=1)] == [2]


def test_add_measurement_to_missing_experiment(db_session) -> None:
    with pytest.raises(ExperimentNotFoundError):
        add_measurement(db_session, 12345, current_a=1.0)


def test_import_spreadsheet(db_session) -> None:
    parsed = ParsedSpreadsheet(
        headers=["序号", "电流(A)", "电压(V)"],
        records=[
            {"序号": 1, "电流(A)": 0.5, "电压(V)": 20.0},
            {"序号": 2, "电流(A)": 0.6, "电压(V)": 21.0},
        ],
        metadata=SpreadsheetMetadata(
            record_time="2025-03-01 10:00:00", device_address="01", device_type="RSD", data_points=2,
        ),
    )
    parse_time = datetime(2025, 3, 2, 9, 30)

    experiment = import_spreadsheet(
        db_session, parsed, device_id="PV-RSD-001", parse_time=parse_time,
        file_name="Export.XLSX", file_size=1024,
    )

    assert experiment.experiment_type == ExperimentType.NORMAL_OPERATION
    assert experiment.status == ExperimentStatus.COMPLETED
    assert experiment.experiment_name == "导入数据 - 2025/3/2"
    assert experiment.start_time == datetime(2025, 3, 1, 10, 0, 0)
    assert experiment.test_parameters["device_address"] == "01"

    stored = fetch_measurements(db_session, experiment.id)
    assert [(m.sequence_number, m.current_a, m.voltage_v) for m in stored] == [(1, 0.5, 20.0), (2, 0.6, 21.0)]
    assert stored[0].additional_data == {"device_address": "01", "device_type": "RSD"}
    assert stored[0].timestamp == parse_time

    [upload] = db_session.query(ExperimentFile).filter_by(experiment_id=experiment.id).all()
    assert upload.file_type == ".xlsx"
    assert upload.file_size == 1024


def test_import_without_metadata(db_session) -> None:
    parsed = ParsedSpreadsheet(headers=["电压 (V)"], records=[{"电压 (V)": 12.0}])
    experiment = import_spreadsheet(db_session, parsed, parse_time=datetime(2025, 1, 5))
    assert experiment.test_parameters == {}
    assert experiment.start_time == datetime(2025, 1, 5)
    assert db_session.query(Measurement).filter_by(experiment_id=experiment.id).count() == 1
    assert db_session.query(ExperimentFile).count() == 0


# -----------------------------------------------------------------------
# Live acquisition
# -----------------------------------------------------------------------


def test_generated_readings_are_seeded_and_in_range(db_session) -> None:
    first = create_experiment(db_session, ExperimentType.NORMAL_OPERATION)
    second = create_experiment(db_session, ExperimentType.NORMAL_OPERATION)
    a = generate_measurement(db_session, first.id, rng=np.random.default_rng(3))
    b = generate_measurement(db_session, second.id, rng=np.random.default_rng(3))

    fields = ["current_a", "voltage_v", "power_w", "temperature_c", "humidity_percent"]
    assert [getattr(a, f) for f in fields] == [getattr(b, f) for f in fields]
    for f in fields:
        low, high = MONITOR_CONFIG[f]
        assert low <= getattr(a, f) <= high
    assert a.sequence_number == 1


def test_live_tick_records_then_auto_stops(db_session) -> None:
    experiment = create_experiment(db_session, ExperimentType.NORMAL_OPERATION)
    start_experiment(db_session, experiment.id)
    started = experiment.start_time
    rng = np.random.default_rng(0)

    for second in (1, 2):
        tick = started + timedelta(seconds=second)
        measurement = advance_live_experiment(db_session, experiment.id, rng=rng, now=tick)
        assert measurement.timestamp == tick
    assert [m.sequence_number for m in fetch_measurements(db_session, experiment.id)] == [1, 2]

    done = started + timedelta(seconds=MONITOR_CONFIG["auto_stop_s"])
    assert advance_live_experiment(db_session, experiment.id, rng=rng, now=done) is None
    assert experiment.status == ExperimentStatus.COMPLETED
    assert experiment.pass_fail is True

    # stopped experiments get no more readings
    assert advance_live_experiment(db_session, experiment.id, rng=rng, now=done) is None
    assert len(fetch_measurements(db_session, experiment.id)) == 2


def test_live_tick_ignores_pending_experiment(db_session) -> None:
    experiment = create_experiment(db_session, ExperimentType.LEAKAGE)
    assert advance_live_experiment(db_session, experiment.id) is None
    assert fetch_measurements(db_session, experiment.id) == []


# -----------------------------------------------------------------------
# Dashboard
# -----------------------------------------------------------------------


def test_dashboard_overview(db_session) -> None:
    now = datetime(2025, 3, 2, 12, 0)
    db_session.add(Device(id="PV-RSD-002", device_name="Spare", status=DeviceStatus.MAINTENANCE))
    parsed = ParsedSpreadsheet(headers=["序号"], records=[{"序号": 1}])

    yesterday = import_spreadsheet(db_session, parsed, parse_time=datetime(2025, 3, 1, 23, 0))
    today = import_spreadsheet(db_session, parsed, parse_time=datetime(2025, 3, 2, 9, 0))
    running = create_experiment(db_session, ExperimentType.DIELECTRIC)
    start_experiment(db_session, running.id)

    overview = dashboard_overview(db_session, now=now)

    assert overview["running_experiments"] == 1
    assert overview["completed_today"] == 1
    assert overview["total_devices"] == 2
    assert overview["active_devices"] == 1
    assert [e.id for e in overview["recent_experiments"]] == [running.id, today.id, yesterday.id]


def test_dashboard_recent_experiments_are_capped(db_session) -> None:
    for _ in range(MONITOR_CONFIG["recent_experiments"] + 2):
        create_experiment(db_session, ExperimentType.LEAKAGE)
    overview = dashboard_overview(db_session)
    assert len(overview["recent_experiments"]) == MONITOR_CONFIG["recent_experiments"]
    assert overview["running_experiments"] == 0


# -----------------------------------------------------------------------
# Alerts
# -----------------------------------------------------------------------


def test_alert_acknowledgement(db_session) -> None:
    experiment = create_experiment(db_session, ExperimentType.ABNORMAL_CONDITION)
    alert = create_alert(
        db_session, experiment.id, "overvoltage", "过压", severity=AlertSeverity.CRITICAL,
    )
    assert [a.id for a in list_alerts(db_session, unacknowledged_only=True)] == [alert.id]

    acknowledge_alert(db_session, alert.id, user_id=None)
    assert alert.acknowledged is True
    assert alert.acknowledged_at is not None
    assert list_alerts(db_session, unacknowledged_only=True) == []
    assert len(list_alerts(db_session)) == 1


def test_acknowledge_missing_alert(db_session) -> None:
    with pytest.raises(LookupError):
        acknowledge_alert(db_session, 404)
