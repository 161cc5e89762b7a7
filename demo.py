#!/usr/bin/env python3
"""Demo script for the PV Rapid Shutdown Device Test Platform.

Demonstrates:
1. Building a vendor-style export with a metadata block
2. Parsing it and mapping to canonical measurements
3. Re-exporting and storing it in an in-memory database
4. Running the RSD circuit simulation
"""

import io
from datetime import datetime

import pandas as pd

from config.config import setup_logging
from pv_rsd.ingestion import parse, to_canonical_measurements, to_worksheet_bytes
from pv_rsd.analysis import (
    build_chart_frame,
    measurement_summary,
    SimulationParams,
    FaultType,
    run_simulation,
    summarize_simulation,
)
from pv_rsd.database import create_db_engine, init_database, get_db, import_spreadsheet, fetch_measurements
from sqlalchemy.orm import sessionmaker


def generate_sample_export() -> bytes:
    """Generate a vendor export with metadata rows."""
    rows = [
        ["光伏关断器测试数据"],
        ["记录时间: 2025-03-01 10:00:00", "设备地址: 01", "设备类型: RSD-1000", "数据点数: 5"],
        [None],
        ["序号", "电流(A)", "电压(V)", "功率(W)", "时间戳"],
    ]
    for i in range(1, 6):
        current = 0.5 + 0.01 * i
        voltage = 20.0 + 0.1 * i
        rows.append([i, current, voltage, round(current * voltage, 3), f"2025-03-01 10:00:{i:02d}"])

    buffer = io.BytesIO()
    pd.DataFrame(rows).to_excel(buffer, header=False, index=False, engine='openpyxl')
    return buffer.getvalue()


def main():
    setup_logging("WARNING")

    print("=" * 70)
    print("PV Rapid Shutdown Device Test Platform - Demo")
    print("=" * 70)
    print()

    # Parse a vendor export
    print("📊 Parsing sample export...")
    content = generate_sample_export()
    parsed = parse(content, filename="sample_export.xlsx")
    print(f"   Headers: {parsed.headers}")
    print(f"   Records: {len(parsed.records)}")
    if parsed.metadata:
        print(f"   Metadata: {parsed.metadata.to_dict()}")
    print()

    print("📈 Chart series:")
    print(build_chart_frame(parsed).to_string())
    print()

    # Canonical mapping
    measurements = to_canonical_measurements(parsed, parse_time=datetime.now())
    print("\n" + "=" * 70)
    print("CANONICAL MEASUREMENTS")
    print("=" * 70)
    for m in measurements:
        print(f"  #{m.sequence_number:<3} I={m.current_a:.3f} A  V={m.voltage_v:.2f} V  "
              f"P={m.power_w:.3f} W  t={m.timestamp:%H:%M:%S}")

    exported = to_worksheet_bytes(measurements)
    reparsed = parse(exported, filename="export.xlsx")
    print(f"\nRe-export: {len(exported)} bytes, {len(reparsed.records)} records after re-parse")

    # Store in an in-memory database
    engine = create_db_engine("sqlite://")
    init_database(engine)
    factory = sessionmaker(bind=engine)
    with get_db(factory) as db:
        experiment = import_spreadsheet(db, parsed, file_name="sample_export.xlsx")
        summary = measurement_summary(fetch_measurements(db, experiment.id))
        print(f"\n💾 Stored experiment #{experiment.id}: {experiment.experiment_name}")
        print(f"   Avg voltage: {summary['avg_voltage_v']:.2f} V")
        print(f"   Avg current: {summary['avg_current_a']:.3f} A")
        print(f"   Avg power:   {summary['avg_power_w']:.2f} W")

    # Simulation
    print("\n" + "=" * 70)
    print("RSD CIRCUIT SIMULATION (overvoltage fault, 20 %)")
    print("=" * 70)
    params = SimulationParams(fault_type=FaultType.OVERVOLTAGE, fault_magnitude=20.0)
    results = run_simulation(params, seed=42)
    for key, value in summarize_simulation(results).items():
        print(f"   {key:<20} {value}")

    print("\n✅ Demo complete!")


if __name__ == "__main__":
    main()
