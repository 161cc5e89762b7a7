"""RSD Test Analysis Module.

Modules:
- charting: Series/colour/table preparation for uploads and stored measurements
- simulation: Illustrative PV module + rapid shutdown device circuit model
"""

from .charting import (
    numeric_columns,
    find_index_column,
    series_color,
    chart_colors,
    build_chart_frame,
    measurements_frame,
    measurement_summary,
    format_cell_value,
    table_frame,
)
from .simulation import (
    LoadType,
    FaultType,
    SimulationParams,
    calculate_voltage,
    calculate_current,
    run_simulation,
    summarize_simulation,
)

__all__ = [
    # Charting
    'numeric_columns',
    'find_index_column',
    'series_color',
    'chart_colors',
    'build_chart_frame',
    'measurements_frame',
    'measurement_summary',
    'format_cell_value',
    'table_frame',
    # Simulation
    'LoadType',
    'FaultType',
    'SimulationParams',
    'calculate_voltage',
    'calculate_current',
    'run_simulation',
    'summarize_simulation',
]
