"""Rapid Shutdown Device Circuit Simulation.

Illustrative time-domain model of a PV module feeding a load through a
rapid shutdown device (RSD). It is a teaching aid, not a circuit solver:

- Module voltage follows Vmp corrected for temperature and irradiance
- Load current is V/R scaled by irradiance and limited to Isc
- The RSD conducts while the module voltage is above its threshold;
  below it only the leakage current flows
- Overvoltage/overcurrent faults kick in after a fixed onset time
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Any, Optional

import numpy as np
import pandas as pd

from config.config import SIMULATION_CONFIG


class LoadType(Enum):
    """Load connected behind the RSD."""
    RESISTIVE = "resistive"
    INDUCTIVE = "inductive"
    CAPACITIVE = "capacitive"


class FaultType(Enum):
    """Injected fault condition."""
    NONE = "none"
    OVERVOLTAGE = "overvoltage"
    OVERCURRENT = "overcurrent"
    GROUND_FAULT = "ground_fault"
    ARC_FAULT = "arc_fault"


@dataclass
class SimulationParams:
    """Simulation inputs.

    Attributes:
        module_voc: Open-circuit voltage (V)
        module_isc: Short-circuit current (A)
        module_pmax: Maximum power (W)
        module_vmp: Voltage at maximum power (V)
        module_imp: Current at maximum power (A)
        irradiance: Plane irradiance (W/m²)
        temperature: Module temperature (°C)
        rsd_voltage_threshold: Voltage below which the RSD opens (V)
        rsd_response_time: RSD response time (ms)
        rsd_leakage_current: Leakage through an open RSD (mA)
        load_type: Load connected behind the RSD
        load_value: Load resistance/impedance (Ω)
        fault_type: Injected fault
        fault_magnitude: Fault magnitude (% over nominal)
    """
    module_voc: float = SIMULATION_CONFIG["module_voc"]
    module_isc: float = SIMULATION_CONFIG["module_isc"]
    module_pmax: float = SIMULATION_CONFIG["module_pmax"]
    module_vmp: float = SIMULATION_CONFIG["module_vmp"]
    module_imp: float = SIMULATION_CONFIG["module_imp"]
    irradiance: float = SIMULATION_CONFIG["irradiance"]
    temperature: float = SIMULATION_CONFIG["temperature"]
    rsd_voltage_threshold: float = SIMULATION_CONFIG["rsd_voltage_threshold"]
    rsd_response_time: float = SIMULATION_CONFIG["rsd_response_time"]
    rsd_leakage_current: float = SIMULATION_CONFIG["rsd_leakage_current"]
    load_type: LoadType = LoadType.RESISTIVE
    load_value: float = SIMULATION_CONFIG["load_value"]
    fault_type: FaultType = FaultType.NONE
    fault_magnitude: float = 0.0

    def __post_init__(self):
        if self.load_value <= 0:
            raise ValueError(f"Load value must be positive, got {self.load_value}")

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d['load_type'] = self.load_type.value
        d['fault_type'] = self.fault_type.value
        return d


def _noise(rng: Optional[np.random.Generator], amplitude: float) -> float:
    if rng is None:
        return 0.0
    return (rng.random() - 0.5) * amplitude


def calculate_voltage(params: SimulationParams, t: float, rng: Optional[np.random.Generator] = None) -> float:
    """Module voltage at time t (s).

    Pass rng=None for a noise-free value.
    """
    voltage = params.module_vmp

    # Temperature coefficient relative to 25 °C
    voltage *= 1 + SIMULATION_CONFIG["temp_coefficient"] * (params.temperature - 25.0)

    # Irradiance scaling
    voltage *= params.irradiance / 1000.0

    if params.fault_type == FaultType.OVERVOLTAGE and t > SIMULATION_CONFIG["fault_onset_s"]:
        voltage *= 1 + params.fault_magnitude / 100.0

    voltage += _noise(rng, 0.5)

    return max(0.0, voltage)


def calculate_current(
    params: SimulationParams,
    t: float,
    rng: Optional[np.random.Generator] = None,
    voltage: Optional[float] = None,
) -> float:
    """Load current at time t (s).

    Uses the given voltage, or the noise-free module voltage when omitted.
    """
    if voltage is None:
        voltage = calculate_voltage(params, t)

    current = voltage / params.load_value
    current *= params.irradiance / 1000.0

    if params.fault_type == FaultType.OVERCURRENT and t > SIMULATION_CONFIG["fault_onset_s"]:
        current *= 1 + params.fault_magnitude / 100.0

    current = min(current, params.module_isc)

    # RSD open: leakage only (mA -> A)
    if voltage <= params.rsd_voltage_threshold:
        current = params.rsd_leakage_current / 1000.0

    current += _noise(rng, 0.05)

    return max(0.0, current)


def run_simulation(
    params: Optional[SimulationParams] = None,
    duration: float = SIMULATION_CONFIG["duration_s"],
    step: float = SIMULATION_CONFIG["step_s"],
    seed: Optional[int] = None,
    noise: bool = True,
) -> pd.DataFrame:
    """Run the simulation from the first step to duration.

    Args:
        params: Simulation inputs (defaults from SIMULATION_CONFIG)
        duration: Simulated time span (s)
        step: Time step (s)
        seed: Seed for reproducible noise
        noise: Add measurement noise

    Returns:
        DataFrame with time, voltage, current, power, rsd_status,
        irradiance and temperature columns
    """
    if step <= 0:
        raise ValueError("Step must be positive")

    params = params or SimulationParams()
    rng = np.random.default_rng(seed) if noise else None

    n_steps = int(round(duration / step))
    times = np.round(np.arange(1, n_steps + 1) * step, 10)

    rows = []
    for t in times:
        voltage = calculate_voltage(params, t, rng)
        current = calculate_current(params, t, rng, voltage=voltage)
        rows.append({
            'time': float(t),
            'voltage': voltage,
            'current': current,
            'power': voltage * current,
            'rsd_status': 'on' if voltage > params.rsd_voltage_threshold else 'off',
            'irradiance': params.irradiance,
            'temperature': params.temperature,
        })

    return pd.DataFrame(rows, columns=['time', 'voltage', 'current', 'power', 'rsd_status',
                                       'irradiance', 'temperature'])


def summarize_simulation(results: pd.DataFrame) -> Dict[str, Any]:
    """Key figures of a simulation run."""
    if results.empty:
        return {'samples': 0}

    off = results[results['rsd_status'] == 'off']
    return {
        'samples': len(results),
        'max_voltage': float(results['voltage'].max()),
        'max_current': float(results['current'].max()),
        'max_power': float(results['power'].max()),
        'avg_power': float(results['power'].mean()),
        'rsd_off_ratio': len(off) / len(results),
        'first_shutdown_time': float(off['time'].iloc[0]) if not off.empty else None,
    }
