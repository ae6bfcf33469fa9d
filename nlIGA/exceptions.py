"""
Error kinds raised by the nonlinear IGA core.

Fatal errors (geometry, basis, linear system, load stepping) propagate to
the caller and leave the last committed state untouched. NewtonDivergenceError
is recoverable: the load-stepping controller catches it and retries with a
smaller increment.
"""


class IGAError(Exception):
    """Base class for all errors raised by nlIGA."""


class GeometryDegeneracyError(IGAError):
    """
    Non-positive Jacobian determinant at a quadrature point.

    Attributes:
        element_id: Element on which the mapping degenerates
        point_index: Local quadrature point index
        det_jacobian: Offending determinant value
    """

    def __init__(self, element_id: int, point_index: int, det_jacobian: float):
        self.element_id = element_id
        self.point_index = point_index
        self.det_jacobian = det_jacobian
        super().__init__(
            f"Jacobian is not positive for element {element_id}, "
            f"quadrature point {point_index} (det J = {det_jacobian:.4e})"
        )


class BasisDegeneracyError(IGAError):
    """Weighted basis sum vanishes, so the rational basis is undefined."""


class NewtonDivergenceError(IGAError):
    """
    Newton's method did not pass the two-stage convergence test.

    Attributes:
        result: NewtonResult of the failed increment
    """

    def __init__(self, result):
        self.result = result
        super().__init__(
            f"Newton's method did not converge after {result.iterations} iterations "
            f"(increment norm {result.increment_norm:.4e}, "
            f"residual norm {result.residual_norm:.4e})"
        )


class LoadStepUnrecoverableError(IGAError):
    """Increment level fell below its floor; equilibrium could not be reached."""


class LinearSystemSingularError(IGAError):
    """The unknown-unknown block of the tangent cannot be factorized."""
