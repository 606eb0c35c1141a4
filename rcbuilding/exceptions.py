"""Exceptions raised while configuring, assembling and simulating a building
thermal model.
"""
from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    import numpy as np
    from .simulation.integrator import Trajectory


class RCBuildingError(Exception):
    pass


class ConfigurationError(RCBuildingError):
    """Raised when a material, construction, zone or boundary definition is
    malformed or incomplete. Always raised before any assembly work is done.
    """
    pass


class UnknownZoneError(ConfigurationError):
    """Raised when a boundary refers to a zone that is not declared."""

    def __init__(self, name: str, boundary_index: int | None = None) -> None:
        self.name = name
        self.boundary_index = boundary_index
        if boundary_index is None:
            msg = f"Unknown zone '{name}'."
        else:
            msg = f"Boundary {boundary_index} refers to unknown zone '{name}'."
        super().__init__(msg)


class UnknownConstructionError(ConfigurationError):
    """Raised when a boundary refers to a boundary type (construction) that is
    not declared.
    """

    def __init__(self, name: str, boundary_index: int | None = None) -> None:
        self.name = name
        self.boundary_index = boundary_index
        if boundary_index is None:
            msg = f"Unknown boundary type '{name}'."
        else:
            msg = f"Boundary {boundary_index} refers to unknown boundary type '{name}'."
        super().__init__(msg)


class NumericalInstabilityError(RCBuildingError):
    """Raised when the integrator detects divergence of the state vector.

    Attributes
    ----------
    step_index:
        Index of the time step at which divergence was detected.
    last_good_state:
        The last state vector that passed the sanity check.
    trajectory:
        The valid prefix of the trajectory up to and including the last good
        state.
    """

    def __init__(
        self,
        message: str,
        step_index: int,
        last_good_state: np.ndarray,
        trajectory: Trajectory | None = None
    ) -> None:
        super().__init__(message)
        self.step_index = step_index
        self.last_good_state = last_good_state
        self.trajectory = trajectory


class InvalidArgumentError(RCBuildingError, ValueError):
    """Raised when a caller-supplied argument (area, time span, time step,
    initial state...) violates the preconditions of an operation.
    """
    pass
