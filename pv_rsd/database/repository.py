"""Experiment, measurement and alert persistence.

All functions take an open Session and leave committing to the caller
(normally the get_db() context manager).
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Any, Optional, Iterable

import numpy as np
from sqlalchemy.orm import Session

from config.config import MONITOR_CONFIG
from config.test_standards import ExperimentType, get_test_standard
from pv_rsd.ingestion.spreadsheet import ParsedSpreadsheet
from pv_rsd.ingestion.field_mapper import (
    CanonicalMeasurement, to_canonical_measurements, parse_timestamp,
)
from .schema import (
    Experiment, ExperimentStatus, ExperimentFile, Measurement, Alert, AlertSeverity,
    Device, DeviceStatus,
)

logger = logging.getLogger(__name__)


class ExperimentNotFoundError(LookupError):
    """No experiment with the requested id."""


class InvalidTransitionError(ValueError):
    """Experiment status change not allowed from its current status."""


# ============================================================================
# EXPERIMENTS
# ============================================================================

def get_experiment(db: Session, experiment_id: int) -> Experiment:
    """Fetch an experiment or raise ExperimentNotFoundError."""
    experiment = db.get(Experiment, experiment_id)
    if experiment is None:
        raise ExperimentNotFoundError(f"Experiment {experiment_id} not found")
    return experiment


def list_experiments(
    db: Session,
    status: Optional[ExperimentStatus] = None,
    experiment_type: Optional[ExperimentType] = None,
    limit: Optional[int] = None,
) -> List[Experiment]:
    """List experiments, newest first."""
    query = db.query(Experiment)
    if status is not None:
        query = query.filter(Experiment.status == status)
    if experiment_type is not None:
        query = query.filter(Experiment.experiment_type == experiment_type)
    query = query.order_by(Experiment.start_time.desc(), Experiment.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def create_experiment(
    db: Session,
    experiment_type: ExperimentType,
    experiment_name: Optional[str] = None,
    device_id: Optional[str] = None,
    operator_id: Optional[str] = None,
    test_parameters: Optional[Dict[str, Any]] = None,
    notes: Optional[str] = None,
) -> Experiment:
    """Create a pending experiment.

    Parameters not supplied fall back to the defaults of the experiment
    type's test standard.
    """
    params = {}
    standard = get_test_standard(experiment_type)
    if standard is not None:
        params.update(standard.default_parameters())
    params.update(test_parameters or {})

    experiment = Experiment(
        experiment_type=experiment_type,
        experiment_name=experiment_name,
        device_id=device_id,
        operator_id=operator_id,
        status=ExperimentStatus.PENDING,
        test_parameters=params,
        notes=notes,
    )
    db.add(experiment)
    db.flush()
    logger.info("Created experiment %s (%s)", experiment.id, experiment_type.value)
    return experiment


def start_experiment(db: Session, experiment_id: int) -> Experiment:
    """Move a pending experiment to running."""
    experiment = get_experiment(db, experiment_id)
    if experiment.status != ExperimentStatus.PENDING:
        raise InvalidTransitionError(
            f"Cannot start experiment {experiment_id} in status {experiment.status.value}"
        )
    experiment.status = ExperimentStatus.RUNNING
    experiment.start_time = datetime.now()
    db.flush()
    return experiment


def stop_experiment(
    db: Session,
    experiment_id: int,
    status: ExperimentStatus = ExperimentStatus.COMPLETED,
    pass_fail: Optional[bool] = None,
    test_results: Optional[Dict[str, Any]] = None,
) -> Experiment:
    """Finish a running experiment as completed, failed or cancelled."""
    if status not in (ExperimentStatus.COMPLETED, ExperimentStatus.FAILED, ExperimentStatus.CANCELLED):
        raise InvalidTransitionError(f"{status.value} is not a final status")

    experiment = get_experiment(db, experiment_id)
    if experiment.status != ExperimentStatus.RUNNING:
        raise InvalidTransitionError(
            f"Cannot stop experiment {experiment_id} in status {experiment.status.value}"
        )
    experiment.status = status
    experiment.end_time = datetime.now()
    if pass_fail is not None:
        experiment.pass_fail = pass_fail
    if test_results is not None:
        experiment.test_results = test_results
    db.flush()
    logger.info("Experiment %s stopped: %s", experiment_id, status.value)
    return experiment


# ============================================================================
# MEASUREMENTS
# ============================================================================

def add_measurement(
    db: Session,
    experiment_id: int,
    current_a: Optional[float] = None,
    voltage_v: Optional[float] = None,
    power_w: Optional[float] = None,
    temperature_c: Optional[float] = None,
    humidity_percent: Optional[float] = None,
    timestamp: Optional[datetime] = None,
    sequence_number: Optional[int] = None,
    additional_data: Optional[Dict[str, Any]] = None,
) -> Measurement:
    """Append one measurement; sequence number continues from the last one."""
    get_experiment(db, experiment_id)

    if sequence_number is None:
        last = (
            db.query(Measurement.sequence_number)
            .filter(Measurement.experiment_id == experiment_id)
            .order_by(Measurement.sequence_number.desc())
            .first()
        )
        sequence_number = (last[0] if last else 0) + 1

    if power_w is None and current_a is not None and voltage_v is not None:
        power_w = current_a * voltage_v

    measurement = Measurement(
        experiment_id=experiment_id,
        sequence_number=sequence_number,
        timestamp=timestamp or datetime.now(),
        current_a=current_a,
        voltage_v=voltage_v,
        power_w=power_w,
        temperature_c=temperature_c,
        humidity_percent=humidity_percent,
        additional_data=additional_data,
    )
    db.add(measurement)
    db.flush()
    return measurement


def fetch_measurements(db: Session, experiment_id: int, after_sequence: int = 0) -> List[Measurement]:
    """Measurements with sequence number above after_sequence, in order.

    Polling with the last seen sequence number gives the dashboard its
    live feed.
    """
    return (
        db.query(Measurement)
        .filter(
            Measurement.experiment_id == experiment_id,
            Measurement.sequence_number > after_sequence,
        )
        .order_by(Measurement.sequence_number)
        .all()
    )


def generate_measurement(
    db: Session,
    experiment_id: int,
    rng: Optional[np.random.Generator] = None,
    timestamp: Optional[datetime] = None,
) -> Measurement:
    """Append one generated reading to an experiment.

    Values are drawn uniformly from the MONITOR_CONFIG ranges; pass a seeded
    Generator for repeatable readings.
    """
    rng = rng if rng is not None else np.random.default_rng()
    readings = {
        key: float(rng.uniform(*MONITOR_CONFIG[key]))
        for key in ('current_a', 'voltage_v', 'power_w', 'temperature_c', 'humidity_percent')
    }
    return add_measurement(db, experiment_id, timestamp=timestamp, **readings)


def advance_live_experiment(
    db: Session,
    experiment_id: int,
    rng: Optional[np.random.Generator] = None,
    now: Optional[datetime] = None,
) -> Optional[Measurement]:
    """One tick of the live monitor.

    Records a generated measurement for a running experiment, or finishes it
    as a passed, completed run once it has been running for
    MONITOR_CONFIG['auto_stop_s'].

    Returns:
        The new Measurement, or None if the experiment is not running or
        has just been stopped
    """
    now = now or datetime.now()
    experiment = get_experiment(db, experiment_id)
    if experiment.status != ExperimentStatus.RUNNING:
        return None

    if now - experiment.start_time >= timedelta(seconds=MONITOR_CONFIG['auto_stop_s']):
        stop_experiment(db, experiment_id, pass_fail=True)
        return None

    return generate_measurement(db, experiment_id, rng=rng, timestamp=now)


def import_spreadsheet(
    db: Session,
    parsed: ParsedSpreadsheet,
    operator_id: Optional[str] = None,
    device_id: Optional[str] = None,
    parse_time: Optional[datetime] = None,
    file_name: Optional[str] = None,
    file_size: Optional[int] = None,
    mime_type: Optional[str] = None,
) -> Experiment:
    """Store a parsed upload as one completed experiment plus its measurements.

    Returns:
        The new Experiment (flushed, not committed)
    """
    now = parse_time or datetime.now()
    metadata = parsed.metadata.to_dict() if parsed.metadata else {}
    measurements: Iterable[CanonicalMeasurement] = to_canonical_measurements(parsed, parse_time=now)

    start_time = now
    if parsed.metadata and parsed.metadata.record_time:
        start_time = parse_timestamp(parsed.metadata.record_time, now)

    experiment = Experiment(
        experiment_type=ExperimentType.NORMAL_OPERATION,
        experiment_name=f"导入数据 - {now.year}/{now.month}/{now.day}",
        status=ExperimentStatus.COMPLETED,
        operator_id=operator_id,
        device_id=device_id,
        test_parameters=metadata,
        start_time=start_time,
        end_time=now,
    )
    db.add(experiment)
    db.flush()

    rows = [
        Measurement(
            experiment_id=experiment.id,
            sequence_number=m.sequence_number,
            timestamp=m.timestamp,
            current_a=m.current_a,
            voltage_v=m.voltage_v,
            power_w=m.power_w,
            temperature_c=m.temperature_c,
            humidity_percent=m.humidity_percent,
            additional_data=m.additional_data(),
        )
        for m in measurements
    ]
    db.add_all(rows)

    if file_name:
        db.add(ExperimentFile(
            experiment_id=experiment.id,
            file_name=file_name,
            file_type=_suffix(file_name),
            file_size=file_size,
            mime_type=mime_type,
            uploaded_by=operator_id,
        ))

    db.flush()
    logger.info("Imported %d measurements into experiment %s", len(rows), experiment.id)
    return experiment


# ============================================================================
# DASHBOARD
# ============================================================================

def dashboard_overview(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Figures for the home dashboard.

    An experiment counts as completed today when its end time falls on the
    calendar day of now.

    Returns:
        Dictionary with running_experiments, completed_today, total_devices,
        active_devices and recent_experiments (newest first)
    """
    now = now or datetime.now()
    day_start = datetime(now.year, now.month, now.day)
    day_end = day_start + timedelta(days=1)

    running = db.query(Experiment).filter(Experiment.status == ExperimentStatus.RUNNING).count()
    completed_today = db.query(Experiment).filter(
        Experiment.status == ExperimentStatus.COMPLETED,
        Experiment.end_time >= day_start,
        Experiment.end_time < day_end,
    ).count()
    recent = (
        db.query(Experiment)
        .order_by(Experiment.created_at.desc(), Experiment.id.desc())
        .limit(MONITOR_CONFIG['recent_experiments'])
        .all()
    )

    return {
        'running_experiments': running,
        'completed_today': completed_today,
        'total_devices': db.query(Device).count(),
        'active_devices': db.query(Device).filter(Device.status == DeviceStatus.ACTIVE).count(),
        'recent_experiments': recent,
    }


# ============================================================================
# ALERTS
# ============================================================================

def create_alert(
    db: Session,
    experiment_id: int,
    alert_type: str,
    title: str,
    message: Optional[str] = None,
    severity: AlertSeverity = AlertSeverity.WARNING,
) -> Alert:
    """Raise an alert against an experiment."""
    get_experiment(db, experiment_id)
    alert = Alert(
        experiment_id=experiment_id,
        alert_type=alert_type,
        severity=severity,
        title=title,
        message=message,
    )
    db.add(alert)
    db.flush()
    logger.warning("Alert on experiment %s: %s", experiment_id, title)
    return alert


def list_alerts(db: Session, unacknowledged_only: bool = False, limit: Optional[int] = None) -> List[Alert]:
    """Alerts, newest first."""
    query = db.query(Alert)
    if unacknowledged_only:
        query = query.filter(Alert.acknowledged.is_(False))
    query = query.order_by(Alert.created_at.desc(), Alert.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def acknowledge_alert(db: Session, alert_id: int, user_id: Optional[str] = None) -> Alert:
    """Mark an alert as acknowledged."""
    alert = db.get(Alert, alert_id)
    if alert is None:
        raise LookupError(f"Alert {alert_id} not found")
    alert.acknowledged = True
    alert.acknowledged_by = user_id
    alert.acknowledged_at = datetime.now()
    db.flush()
    return alert


def _suffix(file_name: str) -> Optional[str]:
    if '.' not in file_name:
        return None
    return '.' + file_name.rsplit('.', 1)[1].lower()
