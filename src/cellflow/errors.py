"""cellflow error hierarchy.

All cellflow errors inherit from CellGraphError for easy catching. Structural
errors are raised synchronously by registration and access calls.
ComputeError is different: it is never raised by the engine. It is stored as
the value of a cell whose computation failed, so one failing output does not
abort the cascade for unrelated cells.
"""

from __future__ import annotations

from typing import Hashable, Iterable


class CellGraphError(Exception):
    """Base error for all cellflow operations."""


class DuplicateIdError(CellGraphError):
    """A cell with this id is already registered."""

    def __init__(self, cell_id: Hashable) -> None:
        super().__init__(f"Cell {cell_id!r} is already registered")
        self.cell_id = cell_id


class UnknownDependencyError(CellGraphError):
    """A derived cell names dependencies that are not registered."""

    def __init__(self, cell_id: Hashable, missing: Iterable[Hashable]) -> None:
        self.cell_id = cell_id
        self.missing = tuple(missing)
        names = ", ".join(repr(m) for m in self.missing)
        super().__init__(f"Cell {cell_id!r} depends on unregistered cell(s): {names}")


class CycleError(CellGraphError):
    """Registering the cell would make it depend on itself, directly or transitively."""

    def __init__(self, cell_id: Hashable, path: Iterable[Hashable] = ()) -> None:
        self.cell_id = cell_id
        self.path = tuple(path)
        if self.path:
            chain = " -> ".join(repr(p) for p in self.path)
            msg = f"Cell {cell_id!r} would close a dependency cycle: {chain}"
        else:
            msg = f"Cell {cell_id!r} cannot depend on itself"
        super().__init__(msg)


class UnknownCellError(CellGraphError, KeyError):
    """No cell with this id is registered."""

    def __init__(self, cell_id: Hashable) -> None:
        super().__init__(cell_id)
        self.cell_id = cell_id

    def __str__(self) -> str:
        return f"No cell {self.cell_id!r} registered"


class NotAnInputError(CellGraphError):
    """set_input was called on a derived cell."""

    def __init__(self, cell_id: Hashable) -> None:
        super().__init__(f"Cell {cell_id!r} is derived; only input cells can be set")
        self.cell_id = cell_id


class GraphFrozenError(CellGraphError):
    """Structural registration was attempted after freeze()."""


class ComputeError(CellGraphError):
    """Error state of a derived cell.

    Attributes:
        cell_id: The cell holding this state.
        origin: The cell whose compute function raised. Equal to cell_id for
            the failing cell itself, the upstream cell for propagated errors.
        cause: The exception raised by the compute function.
    """

    def __init__(self, cell_id: Hashable, origin: Hashable, cause: BaseException) -> None:
        self.cell_id = cell_id
        self.origin = origin
        self.cause = cause
        super().__init__(f"{type(cause).__name__}: {cause}")

    @property
    def propagated(self) -> bool:
        """True if this cell failed because an upstream cell failed."""
        return self.origin != self.cell_id

    def __repr__(self) -> str:
        return f"ComputeError({self.cell_id!r}, origin={self.origin!r}, cause={self.cause!r})"
