from .errors import PAHydroError, ConfigurationError, SizeMismatchError, DegenerateJacobianError
from .mesh import CartesianMesh, structured_quad, structured_hex
from .fespace import H1Space, L2Space
from .config import HydroConfig
__all__=['PAHydroError','ConfigurationError','SizeMismatchError','DegenerateJacobianError',
         'CartesianMesh','structured_quad','structured_hex','H1Space','L2Space','HydroConfig']
