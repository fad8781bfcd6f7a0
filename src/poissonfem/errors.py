"""Error kinds raised by the assembly and solve pipeline."""

from __future__ import annotations

import numpy as np


class FEMError(Exception):
    """Base class for all poissonfem errors."""


class MeshParseError(FEMError, ValueError):
    """Mesh source could not be turned into a valid Mesh2d."""


class DegenerateElementError(FEMError, ValueError):
    """Triangle with non-positive area (collinear or coincident vertices)."""

    def __init__(self, element: int, area: float):
        self.element = element
        self.area = area
        super().__init__(
            f"Degenerate element {element}: area={area:.3e} is not positive"
        )


class UnknownBoundaryTagError(FEMError, LookupError):
    """Edge physical tag has no entry in the boundary specification."""

    def __init__(self, tag: int, edge: int):
        self.tag = tag
        self.edge = edge
        super().__init__(
            f"Boundary edge {edge} has physical tag {tag}, "
            f"which is missing from the boundary specification"
        )


class InconsistentDirichletDataError(FEMError, ValueError):
    """Dirichlet edges prescribe different values at a shared node."""


class SingularMatrixError(FEMError, np.linalg.LinAlgError):
    """Assembled system has no unique solution."""


class NumericalInstabilityError(FEMError, ArithmeticError):
    """Linear solve produced a non-finite or inaccurate solution."""
