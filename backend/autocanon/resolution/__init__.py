"""Attribute normalization and canonical model resolution."""

from autocanon.resolution.resolver import RESOLVER_VERSION, ModelResolutionError, ModelResolver
from autocanon.resolution.types import CanonicalModelKey, ModelResolution, NormalizedVehicleAttributes

__all__ = [
    "RESOLVER_VERSION",
    "CanonicalModelKey",
    "ModelResolution",
    "ModelResolutionError",
    "ModelResolver",
    "NormalizedVehicleAttributes",
]
