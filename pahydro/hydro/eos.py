"""pahydro.hydro.eos
Ideal-gas equation of state evaluated pointwise.
"""
import numpy as np


def ideal_gas_pressure(rho, e, gamma: float):
    """p = (gamma - 1) rho e, with negative internal energies clipped to zero."""
    return (gamma - 1.0) * rho * np.maximum(e, 0.0)


def ideal_gas_sound_speed(e, gamma: float):
    return np.sqrt(gamma * (gamma - 1.0) * np.maximum(e, 0.0))
