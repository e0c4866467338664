"""pahydro.core.errors
Exception types raised by the partial-assembly layer.
"""


class PAHydroError(Exception):
    """Base class for every error raised by pahydro."""


class ConfigurationError(PAHydroError, ValueError):
    """Inconsistent setup: unsupported dimension, mismatched spaces, bad dof sets."""


class SizeMismatchError(PAHydroError, ValueError):
    """An input or output vector does not have the size the operator expects."""

    def __init__(self, name: str, expected: int, got: int):
        super().__init__(f"{name}: expected size {expected}, got {got}")
        self.name = name
        self.expected = expected
        self.got = got


class DegenerateJacobianError(PAHydroError, ArithmeticError):
    """A zone is tangled: non-positive or non-finite Jacobian determinant."""

    def __init__(self, zone: int, point: int, det: float):
        super().__init__(
            f"degenerate Jacobian in zone {zone} at quadrature point {point} (det = {det!r})")
        self.zone = zone
        self.point = point
        self.det = det
