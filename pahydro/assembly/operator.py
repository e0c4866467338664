"""pahydro.assembly.operator
Operator capabilities, shared argument checks and backend selection.

Host and device operators are unrelated classes; callers only rely on the
capabilities below. The backend is chosen once, when the operator is built.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Tuple, runtime_checkable

import numpy as np
from scipy.sparse.linalg import LinearOperator

from pahydro.core.errors import ConfigurationError, SizeMismatchError

logger = logging.getLogger(__name__)


@runtime_checkable
class LinearAction(Protocol):
    shape: Tuple[int, int]

    def mult(self, x: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray: ...


@runtime_checkable
class TransposeAction(Protocol):
    def mult_transpose(self, y: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray: ...


# -------------------------------------------------------------------------
# argument checks
# -------------------------------------------------------------------------
def check_input(name: str, vec, size: int) -> np.ndarray:
    vec = np.asarray(vec, dtype=np.float64)
    if vec.ndim != 1 or vec.shape[0] != size:
        raise SizeMismatchError(name, size, vec.size)
    return vec


def prepare_output(out: Optional[np.ndarray], size: int, *inputs: np.ndarray) -> np.ndarray:
    """Return a zeroed output vector, reusing `out` when given; `out` may not overlap `inputs`."""
    if out is None:
        return np.zeros(size)
    if not isinstance(out, np.ndarray) or out.ndim != 1 or out.shape[0] != size:
        raise SizeMismatchError("out", size, np.size(out))
    if any(np.shares_memory(out, a) for a in inputs):
        raise ConfigurationError("output vector must not share memory with the input")
    if out.dtype != np.float64:
        raise ConfigurationError(f"output vector must be float64, got {out.dtype}")
    out[:] = 0.0
    return out


def validate_essential_dofs(dofs, size: int) -> np.ndarray:
    """Ordered set of true-dof indices in [0, size), no duplicates."""
    arr = np.asarray(dofs)
    if arr.size == 0:
        return np.zeros(0, dtype=np.int64)
    if arr.ndim != 1 or not np.issubdtype(arr.dtype, np.integer):
        raise ConfigurationError("essential dofs must be a 1D integer array")
    if arr.min() < 0 or arr.max() >= size:
        raise ConfigurationError(
            f"essential dof indices must lie in [0, {size}), got range [{arr.min()}, {arr.max()}]")
    if np.unique(arr).size != arr.size:
        raise ConfigurationError("essential dofs contain duplicates")
    return arr


def check_spaces(qdata, h1, l2, tensors) -> None:
    if h1.dim not in (2, 3):
        raise ConfigurationError(f"unsupported dimension {h1.dim}; expected 2 or 3")
    if l2 is not None and h1.vdim != h1.dim:
        raise ConfigurationError(
            f"kinematic space must have vdim={h1.dim}, got vdim={h1.vdim}")
    if l2 is not None and l2.mesh is not h1.mesh:
        raise ConfigurationError("kinematic and thermodynamic spaces must share one mesh")
    qdata.check_compatible(h1, tensors)
    if l2 is not None:
        qdata.check_compatible(l2, tensors)


# -------------------------------------------------------------------------
# scipy adapter
# -------------------------------------------------------------------------
def as_linear_operator(op: LinearAction) -> LinearOperator:
    """Wrap an operator as a scipy LinearOperator (rmatvec when it can transpose)."""
    rmatvec = op.mult_transpose if isinstance(op, TransposeAction) else None
    return LinearOperator(op.shape, matvec=op.mult, rmatvec=rmatvec, dtype=np.float64)


# -------------------------------------------------------------------------
# backend selection
# -------------------------------------------------------------------------
def _force_backends():
    from pahydro.assembly.force_pa import ForcePAOperator
    from pahydro.jit.operators import DeviceForceOperator
    return {"host": ForcePAOperator, "device": DeviceForceOperator}


def _mass_backends():
    from pahydro.assembly.mass_pa import MassPAOperator
    from pahydro.jit.operators import DeviceMassOperator
    return {"host": MassPAOperator, "device": DeviceMassOperator}


def _select(table, backend: str):
    try:
        return table[backend]
    except KeyError:
        raise ConfigurationError(f"unknown backend {backend!r}; choose from {tuple(table)}")


def build_force_operator(qdata, h1, l2, tensors, backend: str = "host", **kwargs):
    cls = _select(_force_backends(), backend)
    logger.debug("building %s force operator", backend)
    return cls(qdata, h1, l2, tensors, **kwargs)


def build_mass_operator(qdata, space, tensors, backend: str = "host", **kwargs):
    cls = _select(_mass_backends(), backend)
    logger.debug("building %s mass operator on %s space", backend, space.family)
    return cls(qdata, space, tensors, **kwargs)


def build_operators(config, qdata, h1, l2, tensors, ess_tdofs=None):
    """Force operator and kinematic mass operator for a HydroConfig."""
    device_kwargs = {}
    if config.backend == "device":
        from pahydro.jit.device import Device
        device_kwargs["device"] = Device(num_threads=config.num_threads)
    force = build_force_operator(qdata, h1, l2, tensors, config.backend, **device_kwargs)
    mass = build_mass_operator(qdata, h1, tensors, config.backend, **device_kwargs)
    if ess_tdofs is not None:
        mass.set_essential_true_dofs(ess_tdofs)
    return force, mass
