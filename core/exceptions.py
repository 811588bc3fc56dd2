"""Custom exception types for the polyhedral gravity model."""

from __future__ import annotations

from typing import Any


class GravityModelError(Exception):
    """Base class for domain-specific errors."""


class MeshTopologyError(GravityModelError):
    """Raised when a shape model is not a closed, consistently wound 2-manifold."""

    def __init__(
        self,
        message: str,
        *,
        edge: tuple[int, int] | None = None,
        face_indices: tuple[int, ...] | None = None,
        mesh: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.edge = edge
        self.face_indices = face_indices
        self.mesh = mesh


class InvalidFieldPointError(GravityModelError):
    """Raised when a field point is not a finite 3-vector."""

    def __init__(self, point: Any, message: str | None = None) -> None:
        if message is None:
            message = (
                f"Field point {point!r} is invalid. "
                "Expected three finite coordinates."
            )
        super().__init__(message)
        self.point = point


class ParameterError(GravityModelError):
    """Raised for invalid gravity parameters."""


__all__ = [
    "GravityModelError",
    "MeshTopologyError",
    "InvalidFieldPointError",
    "ParameterError",
]
