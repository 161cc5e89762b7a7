"""Relational Schema for PV Rapid Shutdown Device Test Data.

Tracks:
- Operator profiles
- Devices under test
- Experiments and their test parameters/results
- Measurement time series
- Uploaded files
- Test standards
- Alerts raised during experiments
"""

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Boolean, Text, JSON,
    ForeignKey, UniqueConstraint, Index, Enum
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime, timezone
import enum

from config.test_standards import ExperimentType

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# ENUMERATIONS
# ============================================================================

class UserRole(enum.Enum):
    ADMIN = "admin"
    ENGINEER = "engineer"
    VIEWER = "viewer"

class DeviceStatus(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"

class ExperimentStatus(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

class AlertSeverity(enum.Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

# ============================================================================
# PROFILES & DEVICES
# ============================================================================

class Profile(Base):
    __tablename__ = 'profiles'

    id = Column(String(64), primary_key=True)
    full_name = Column(String(100))
    role = Column(Enum(UserRole), default=UserRole.VIEWER, nullable=False)
    department = Column(String(100))
    phone = Column(String(50))
    avatar_url = Column(String(255))

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    experiments = relationship("Experiment", back_populates="operator")

class Device(Base):
    __tablename__ = 'devices'

    id = Column(String(64), primary_key=True)  # e.g. PV-RSD-001
    device_name = Column(String(100), nullable=False)
    device_type = Column(String(100))
    manufacturer = Column(String(100))
    model = Column(String(100))
    serial_number = Column(String(100), unique=True)

    # Ratings
    rated_voltage = Column(Float)  # V
    rated_current = Column(Float)  # A
    rated_power = Column(Float)  # W

    # Calibration tracking
    calibration_date = Column(DateTime)
    next_calibration = Column(DateTime)

    status = Column(Enum(DeviceStatus), default=DeviceStatus.ACTIVE, nullable=False)
    device_metadata = Column('metadata', JSON)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    experiments = relationship("Experiment", back_populates="device")

# ============================================================================
# EXPERIMENTS & MEASUREMENTS
# ============================================================================

class Experiment(Base):
    __tablename__ = 'experiments'

    id = Column(Integer, primary_key=True)
    experiment_type = Column(Enum(ExperimentType), nullable=False)
    experiment_name = Column(String(200))

    device_id = Column(String(64), ForeignKey('devices.id'))
    operator_id = Column(String(64), ForeignKey('profiles.id'))

    start_time = Column(DateTime, nullable=False, default=_utcnow)
    end_time = Column(DateTime)
    status = Column(Enum(ExperimentStatus), default=ExperimentStatus.PENDING, nullable=False, index=True)

    test_parameters = Column(JSON)  # Parameters chosen for the experiment type
    test_results = Column(JSON)
    pass_fail = Column(Boolean)
    notes = Column(Text)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    device = relationship("Device", back_populates="experiments")
    operator = relationship("Profile", back_populates="experiments")
    measurements = relationship(
        "Measurement", back_populates="experiment",
        order_by="Measurement.sequence_number", cascade="all, delete-orphan"
    )
    files = relationship("ExperimentFile", back_populates="experiment", cascade="all, delete-orphan")
    alerts = relationship("Alert", back_populates="experiment", cascade="all, delete-orphan")

class Measurement(Base):
    __tablename__ = 'measurements'

    id = Column(Integer, primary_key=True)
    experiment_id = Column(Integer, ForeignKey('experiments.id'), nullable=False)
    sequence_number = Column(Integer, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=_utcnow)

    current_a = Column(Float)
    voltage_v = Column(Float)
    power_w = Column(Float)
    temperature_c = Column(Float)
    humidity_percent = Column(Float)

    additional_data = Column(JSON)  # device address/type from imports

    created_at = Column(DateTime, default=_utcnow)

    # Relationships
    experiment = relationship("Experiment", back_populates="measurements")

    __table_args__ = (
        Index('ix_measurements_experiment_seq', 'experiment_id', 'sequence_number'),
    )

class ExperimentFile(Base):
    __tablename__ = 'files'

    id = Column(Integer, primary_key=True)
    experiment_id = Column(Integer, ForeignKey('experiments.id'), nullable=False)

    file_name = Column(String(255), nullable=False)
    file_type = Column(String(20))  # .xlsx, .xls, .csv
    file_size = Column(Integer)  # bytes
    storage_path = Column(String(500))
    mime_type = Column(String(100))
    uploaded_by = Column(String(64), ForeignKey('profiles.id'))
    description = Column(Text)

    created_at = Column(DateTime, default=_utcnow)

    # Relationships
    experiment = relationship("Experiment", back_populates="files")

# ============================================================================
# STANDARDS & ALERTS
# ============================================================================

class TestStandard(Base):
    __tablename__ = 'test_standards'
    __test__ = False  # not a pytest class

    id = Column(Integer, primary_key=True)
    standard_name = Column(String(200), nullable=False)
    standard_code = Column(String(50), nullable=False)
    experiment_type = Column(Enum(ExperimentType))
    description = Column(Text)
    requirements = Column(JSON)  # Parameter definitions with defaults

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint('standard_code', 'experiment_type', name='uq_standard_code_type'),
    )

class Alert(Base):
    __tablename__ = 'alerts'

    id = Column(Integer, primary_key=True)
    experiment_id = Column(Integer, ForeignKey('experiments.id'), nullable=False)

    alert_type = Column(String(50), nullable=False)  # overvoltage, overcurrent, ...
    severity = Column(Enum(AlertSeverity), default=AlertSeverity.WARNING, nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text)

    acknowledged = Column(Boolean, default=False, nullable=False)
    acknowledged_by = Column(String(64), ForeignKey('profiles.id'))
    acknowledged_at = Column(DateTime)

    created_at = Column(DateTime, default=_utcnow, index=True)

    # Relationships
    experiment = relationship("Experiment", back_populates="alerts")
