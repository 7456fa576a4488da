"""cellflow: a reactive cell graph for dashboard-style applications."""

from importlib.metadata import version as _version

__version__ = _version("cellflow")

from cellflow.errors import (
    CellGraphError,
    ComputeError,
    CycleError,
    DuplicateIdError,
    GraphFrozenError,
    NotAnInputError,
    UnknownCellError,
    UnknownDependencyError,
)
from cellflow.graph import ReactiveGraph
from cellflow.reaction import Observer, observe
from cellflow.action import action, transaction
# textual bridge NOT auto-imported — opt-in only

__all__ = [
    "ReactiveGraph",
    "Observer",
    "observe",
    "action",
    "transaction",
    "CellGraphError",
    "ComputeError",
    "CycleError",
    "DuplicateIdError",
    "GraphFrozenError",
    "NotAnInputError",
    "UnknownCellError",
    "UnknownDependencyError",
]
