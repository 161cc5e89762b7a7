"""Map spreadsheet records onto canonical measurements.

Vendor exports spell the same column several ways ("电流 (A)" and
"电流(A)"). Each canonical field has an ordered alias list; the first
alias present in a record is the only one read for that field.
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime, time
from typing import Dict, List, Any, Optional, Iterable, Union, Mapping

import pandas as pd

from .spreadsheet import ParsedSpreadsheet

_FLOAT_PREFIX_RE = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?')

FIELD_ALIASES: Dict[str, List[str]] = {
    'sequence_number': ['序号'],
    'current_a': ['电流 (A)', '电流(A)'],
    'voltage_v': ['电压 (V)', '电压(V)'],
    'power_w': ['功率 (W)', '功率(W)'],
    'timestamp': ['时间戳'],
    'temperature_c': ['温度 (°C)', '温度(°C)'],
    'humidity_percent': ['湿度 (%)', '湿度(%)'],
    'device_address': ['设备地址'],
    'device_type': ['设备类型'],
}

# Column names used when canonical measurements are written back out
CANONICAL_HEADERS: Dict[str, str] = {
    'sequence_number': '序号',
    'current_a': '电流 (A)',
    'voltage_v': '电压 (V)',
    'power_w': '功率 (W)',
    'timestamp': '时间戳',
    'temperature_c': '温度 (°C)',
    'humidity_percent': '湿度 (%)',
    'device_address': '设备地址',
    'device_type': '设备类型',
}


@dataclass
class CanonicalMeasurement:
    """One normalised measurement point."""
    sequence_number: int
    current_a: float
    voltage_v: float
    power_w: float
    timestamp: datetime
    temperature_c: Optional[float] = None
    humidity_percent: Optional[float] = None
    device_address: Optional[str] = None
    device_type: Optional[str] = None

    def additional_data(self) -> Dict[str, Any]:
        return {
            'device_address': self.device_address,
            'device_type': self.device_type,
        }

    def to_record(self) -> Dict[str, Any]:
        """Flat record keyed by canonical Chinese column names."""
        return {
            CANONICAL_HEADERS['sequence_number']: self.sequence_number,
            CANONICAL_HEADERS['current_a']: self.current_a,
            CANONICAL_HEADERS['voltage_v']: self.voltage_v,
            CANONICAL_HEADERS['power_w']: self.power_w,
            CANONICAL_HEADERS['timestamp']: self.timestamp.isoformat(),
            CANONICAL_HEADERS['temperature_c']: self.temperature_c,
            CANONICAL_HEADERS['humidity_percent']: self.humidity_percent,
            CANONICAL_HEADERS['device_address']: self.device_address,
            CANONICAL_HEADERS['device_type']: self.device_type,
        }


def parse_float(value: Any) -> Optional[float]:
    """Locale-agnostic float parsing of a cell.

    Reads the leading numeric part of strings ("0.52A" -> 0.52) and
    returns None when there is none.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if value != value else float(value)
    match = _FLOAT_PREFIX_RE.match(str(value).strip())
    if not match:
        return None
    return float(match.group(0))


def lookup(record: Mapping[str, Any], aliases: Iterable[str]) -> Any:
    """Value under the first alias present with a non-empty value."""
    for alias in aliases:
        value = record.get(alias)
        if value is None or value == '':
            continue
        if isinstance(value, float) and value != value:
            continue
        return value
    return None


def parse_timestamp(value: Any, default: datetime) -> datetime:
    """Parse a timestamp cell, falling back to default.

    Time-only cells are placed on the date of default. Values that cannot
    be represented as a timestamp (out of range, inf) give default.
    """
    if value is None:
        return default
    try:
        if isinstance(value, datetime):
            ts = pd.Timestamp(value)
        elif isinstance(value, time):
            ts = pd.Timestamp(datetime.combine(default.date(), value))
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            if not math.isfinite(value):
                return default
            # numeric stamps are epoch milliseconds
            ts = pd.to_datetime(value, unit='ms', errors='coerce')
        else:
            ts = pd.to_datetime(str(value).strip(), errors='coerce')
    except (OverflowError, ValueError, pd.errors.OutOfBoundsDatetime):
        return default

    if ts is None or pd.isna(ts):
        return default
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts.to_pydatetime()


def to_canonical_measurements(
    parsed: Union[ParsedSpreadsheet, Iterable[Mapping[str, Any]]],
    parse_time: Optional[datetime] = None,
) -> List[CanonicalMeasurement]:
    """Convert parsed records into canonical measurements.

    Missing or unparseable current/voltage/power default to 0.0, a missing
    timestamp defaults to parse_time and a missing sequence number to the
    1-based record position.

    Args:
        parsed: ParsedSpreadsheet or an iterable of records
        parse_time: Time used for records without a timestamp (default now)

    Returns:
        List of CanonicalMeasurement, one per record
    """
    if parse_time is None:
        parse_time = datetime.now()

    metadata = None
    if isinstance(parsed, ParsedSpreadsheet):
        metadata = parsed.metadata
        records = parsed.records
    else:
        records = list(parsed)

    measurements = []
    for position, record in enumerate(records, start=1):
        seq = parse_float(lookup(record, FIELD_ALIASES['sequence_number']))
        device_address = lookup(record, FIELD_ALIASES['device_address'])
        device_type = lookup(record, FIELD_ALIASES['device_type'])

        measurements.append(CanonicalMeasurement(
            sequence_number=int(seq) if seq is not None and math.isfinite(seq) else position,
            current_a=_float_or_zero(lookup(record, FIELD_ALIASES['current_a'])),
            voltage_v=_float_or_zero(lookup(record, FIELD_ALIASES['voltage_v'])),
            power_w=_float_or_zero(lookup(record, FIELD_ALIASES['power_w'])),
            timestamp=parse_timestamp(lookup(record, FIELD_ALIASES['timestamp']), parse_time),
            temperature_c=parse_float(lookup(record, FIELD_ALIASES['temperature_c'])),
            humidity_percent=parse_float(lookup(record, FIELD_ALIASES['humidity_percent'])),
            device_address=_str_or_none(device_address) or (metadata.device_address if metadata else None),
            device_type=_str_or_none(device_type) or (metadata.device_type if metadata else None),
        ))

    return measurements


def _float_or_zero(value: Any) -> float:
    result = parse_float(value)
    return 0.0 if result is None else result


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)
