"""
Analysis-ready mesh for nonlinear IGA.

The mesh is what the solver consumes:
1. Control point coordinates (n_cp, n_dim) and weights (n_cp,)
2. An ordered, immutable tuple of elements, each carrying its
   connectivity, extraction operators and parametric sizes
3. The polynomial degrees shared by all elements

The solver never sees knot vectors. build_mesh() is the only place that
turns tensor-product knot vectors into elements; meshes coming from other
preprocessors can be created directly from arrays.

Control point numbering for tensor-product meshes (direction 1 fastest):

    A = i_1 + n_1 * (i_2 + n_2 * i_3)

Element numbering follows the same rule over knot spans.
"""

import numpy as np
from typing import List, Optional, Sequence, Tuple

from .knot_vector import KnotVector
from .element import Element
from .control_point import ControlPoint, control_points_to_arrays
from .extraction import compute_extraction_operators_1d


class Mesh:
    """
    Control points and elements of an analysis.

    Attributes:
        control_points: Coordinates, shape (n_cp, n_dim)
        weights: NURBS weights, shape (n_cp,)
        elements: Tuple of Element, in element id order
        degrees: Polynomial degree per parametric direction
    """

    def __init__(self,
                 control_points: np.ndarray,
                 weights: Optional[np.ndarray],
                 elements: Sequence[Element]):
        """
        Parameters:
            control_points: Coordinates, shape (n_cp, n_dim) or (n_cp,) in 1D
            weights: Control point weights (None for B-splines)
            elements: Elements, element i must have id i
        """
        control_points = np.array(control_points, dtype=np.float64)
        if control_points.ndim == 1:
            control_points = control_points[:, None]
        n_cp = control_points.shape[0]

        if weights is None:
            weights = np.ones(n_cp)
        weights = np.array(weights, dtype=np.float64)
        if weights.shape != (n_cp,):
            raise ValueError(f"Expected {n_cp} weights, got shape {weights.shape}")
        if np.any(weights <= 0):
            raise ValueError("All control point weights must be positive")

        elements = tuple(elements)
        if len(elements) == 0:
            raise ValueError("Mesh needs at least one element")
        for i, element in enumerate(elements):
            if element.id != i:
                raise ValueError(f"Element at position {i} has id {element.id}")
            if element.connectivity.min() < 0 or element.connectivity.max() >= n_cp:
                raise ValueError(f"Element {i} references a missing control point")

        degrees = elements[0].degrees
        if any(e.degrees != degrees for e in elements):
            raise ValueError("All elements must share the same degrees")
        if control_points.shape[1] != len(degrees):
            raise ValueError(
                f"{len(degrees)}D parametric elements need {len(degrees)}D control points, "
                f"got {control_points.shape[1]}D"
            )

        control_points.setflags(write=False)
        weights.setflags(write=False)
        self.control_points = control_points
        self.weights = weights
        self.elements = elements
        self.degrees = degrees

    @classmethod
    def from_control_points(cls, control_points: Sequence[ControlPoint],
                            elements: Sequence[Element]) -> 'Mesh':
        coordinates, weights = control_points_to_arrays(control_points)
        return cls(coordinates, weights, elements)

    @property
    def n_dim(self) -> int:
        return self.control_points.shape[1]

    @property
    def n_control_points(self) -> int:
        return self.control_points.shape[0]

    @property
    def n_elements(self) -> int:
        return len(self.elements)

    def element_control_points(self, element: Element) -> np.ndarray:
        """Coordinates of the control points of an element, (n_local, n_dim)."""
        return self.control_points[element.connectivity]

    def element_weights(self, element: Element) -> np.ndarray:
        return self.weights[element.connectivity]

    def __repr__(self) -> str:
        return (f"Mesh(n_dim={self.n_dim}, degrees={self.degrees}, "
                f"n_elements={self.n_elements}, n_control_points={self.n_control_points})")


def build_mesh(knot_vectors: Sequence[KnotVector],
               control_points: np.ndarray,
               weights: Optional[np.ndarray] = None) -> Mesh:
    """
    Build a tensor-product mesh from knot vectors and a control net.

    Parameters:
        knot_vectors: One knot vector per parametric direction (1 to 3)
        control_points: Control net, shape (n_cp, n_dim) with direction 1
                        running fastest, n_cp = prod(n_basis_d)
        weights: Control point weights, shape (n_cp,) (None for B-splines)

    Returns:
        Mesh with one element per non-zero knot span
    """
    knot_vectors = tuple(knot_vectors)
    n_dim = len(knot_vectors)
    if not 1 <= n_dim <= 3:
        raise ValueError(f"Unsupported dimension: {n_dim}")

    n_basis = [kv.n_basis for kv in knot_vectors]
    n_cp = int(np.prod(n_basis))
    control_points = np.asarray(control_points, dtype=np.float64)
    if control_points.ndim == 1:
        control_points = control_points[:, None]
    if control_points.shape[0] != n_cp:
        raise ValueError(f"Knot vectors need {n_cp} control points, got {control_points.shape[0]}")

    operators = [compute_extraction_operators_1d(kv) for kv in knot_vectors]
    sizes = [kv.element_sizes for kv in knot_vectors]
    n_elements = [kv.n_elements for kv in knot_vectors]

    elements: List[Element] = []
    for element_id, spans in enumerate(_tensor_indices(n_elements)):
        local = [kv.active_basis_indices(e) for kv, e in zip(knot_vectors, spans)]
        connectivity = _tensor_connectivity(local, n_basis)
        elements.append(Element(
            id=element_id,
            connectivity=connectivity,
            extraction_operators=tuple(operators[d][e] for d, e in enumerate(spans)),
            sizes=tuple(sizes[d][e] for d, e in enumerate(spans)),
        ))

    return Mesh(control_points, weights, elements)


def _tensor_indices(shape: Sequence[int]) -> List[Tuple[int, ...]]:
    """All index tuples of a grid, first index fastest."""
    grids = np.meshgrid(*[np.arange(n) for n in shape], indexing='ij')
    flat = [g.ravel(order='F') for g in grids]
    return [tuple(int(f[i]) for f in flat) for i in range(len(flat[0]))]


def _tensor_connectivity(local: Sequence[np.ndarray], n_basis: Sequence[int]) -> np.ndarray:
    """Global indices of the local tensor-product basis, direction 1 fastest."""
    connectivity = np.asarray(local[0])
    stride = n_basis[0]
    for indices, n in zip(local[1:], n_basis[1:]):
        connectivity = (np.asarray(indices)[:, None] * stride + connectivity[None, :]).ravel()
        stride *= n
    return connectivity
