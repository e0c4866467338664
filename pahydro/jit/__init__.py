from .device import Device, DeviceQuadratureData, DeviceSpace, build_gather_map
from .operators import DeviceForceOperator, DeviceMassOperator

__all__ = ["Device", "DeviceQuadratureData", "DeviceSpace", "build_gather_map",
           "DeviceForceOperator", "DeviceMassOperator"]
