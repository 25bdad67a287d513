import itertools
import threading
from enum import Enum
from typing import (
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
)

import numpy as np

from naa.errors import InvariantViolation
from naa.parameters import SYN_PERM_CONNECTED


_synapse_ids = itertools.count()
_segment_ordinals = itertools.count()


# ===== Basic Building Blocks =====

class Synapse:
    """Weighted connection from a source cell to a segment.

    The segment owns the synapse. The source cell only indexes it in
    `receptor_synapses` under `synapse_id`.
    """

    def __init__(
        self,
        source_cell: 'Cell',
        segment: 'Segment|None' = None,
        permanence: float = 0.0,
        synapse_index: int = 0,
        area_name: str = "",
    ) -> None:
        self.synapse_id: int = next(_synapse_ids)
        self.source_cell: 'Cell' = source_cell
        self.segment: 'Segment|None' = segment
        self.permanence: float = permanence
        self.synapse_index: int = synapse_index
        self.area_name: str = area_name

    @property
    def segment_index(self) -> int:
        return self.segment.segment_index if self.segment is not None else -1

    @property
    def segment_cell_index(self) -> int:
        return self.segment.parent_cell.index if self.segment is not None else -1

    def __repr__(self) -> str:
        return f"Synapse(src={self.source_cell.index}, perm={self.permanence:.3f})"


class SegmentType(Enum):
    """Relation a segment learns: same area (distal) or cross area (apical)."""

    APICAL = "apical"
    DISTAL = "distal"


class Segment:
    """Dendritic segment owning an ordered list of synapses.

    The type tag is fixed at creation. Segments never change type.
    """

    def __init__(
        self,
        parent_cell: 'Cell',
        segment_type: SegmentType,
        segment_index: int = 0,
        last_used_iteration: int = 0,
        syn_perm_connected: float = SYN_PERM_CONNECTED,
    ) -> None:
        self.parent_cell: 'Cell' = parent_cell
        self.segment_type: SegmentType = segment_type
        self.segment_index: int = segment_index
        self.last_used_iteration: int = last_used_iteration
        self.syn_perm_connected: float = syn_perm_connected
        self.ordinal: int = next(_segment_ordinals)
        self.synapses: List[Synapse] = []

    def __repr__(self) -> str:
        return (
            f"Segment({self.segment_type.value}, cell={self.parent_cell.index}, "
            f"synapses={len(self.synapses)})"
        )

    @property
    def num_connected_synapses(self) -> int:
        """Return count of synapses with permanence at or above the connected threshold."""
        return sum(1 for syn in self.synapses if syn.permanence >= self.syn_perm_connected)

    @property
    def synaptic_energy(self) -> float:
        return sum(syn.permanence for syn in self.synapses)

    def get_min_permanence_synapse(self) -> Optional[Synapse]:
        """Return the weakest synapse; the earliest inserted one wins ties."""
        min_synapse = None
        min_permanence = float("inf")
        for syn in self.synapses:
            if syn.permanence < min_permanence:
                min_synapse = syn
                min_permanence = syn.permanence
        return min_synapse

    def is_connected_to(self, cell: 'Cell') -> bool:
        """Return whether `cell` already sources a synapse on this segment."""
        return any(syn.source_cell is cell for syn in self.synapses)

    def source_cells(self) -> List['Cell']:
        return [syn.source_cell for syn in self.synapses]


class Cell:
    """Single cell within a cortical area.

    Holds apical and distal segments, plus a non-owning index of the synapses
    on other segments that use this cell as their source.
    """

    def __init__(self, index: int = 0, area_id: int = 0) -> None:
        self.index: int = index
        self.area_id: int = area_id
        self.apical_segments: List[Segment] = []
        self.distal_segments: List[Segment] = []
        self.receptor_synapses: Dict[int, Synapse] = {}

    def __repr__(self) -> str:
        return f"Cell(area={self.area_id}, index={self.index})"

    @property
    def identity(self) -> Tuple[int, int]:
        """Total order used to sort growth candidates."""
        return (self.area_id, self.index)

    def segments_of(self, segment_type: SegmentType) -> List[Segment]:
        if segment_type is SegmentType.APICAL:
            return self.apical_segments
        if segment_type is SegmentType.DISTAL:
            return self.distal_segments
        raise InvariantViolation(f"Unsupported segment type: {segment_type!r}")

    def trace_cell(self) -> str:
        lines = []
        for segment in self.apical_segments + self.distal_segments:
            perms = ", ".join(
                f"{syn.source_cell.index}:{syn.permanence:.2f}" for syn in segment.synapses
            )
            lines.append(
                f"Cell {self.index} {segment.segment_type.value} segment "
                f"{segment.segment_index} (last used {segment.last_used_iteration}): [{perms}]"
            )
        if not lines:
            lines.append(f"Cell {self.index} has no segments")
        return "\n".join(lines) + "\n"


class CorticalArea:
    """Named, fixed-size population of cells with a sparse set of active cells.

    The active cell indices are set by an external driver every cycle. All
    mutations of the cells' segments and receptor synapses happen under `lock`.
    """

    def __init__(self, area_id: int, name: str, num_cells: int) -> None:
        if num_cells <= 0:
            raise ValueError("num_cells must be positive.")
        self.area_id: int = area_id
        self.name: str = name
        self.num_cells: int = num_cells
        self.cells: List[Cell] = [Cell(index=i, area_id=area_id) for i in range(num_cells)]
        self.lock = threading.RLock()
        self._active_cell_indices: Tuple[int, ...] = ()

    def __repr__(self) -> str:
        return f"CorticalArea(id={self.area_id}, name={self.name!r}, cells={self.num_cells})"

    def __iter__(self):
        return iter(self.cells)

    def __len__(self) -> int:
        return self.num_cells

    @property
    def active_cell_indices(self) -> Tuple[int, ...]:
        return self._active_cell_indices

    @active_cell_indices.setter
    def active_cell_indices(self, indices: Sequence[int] | np.ndarray | None) -> None:
        if indices is None:
            self._active_cell_indices = ()
            return
        indices = np.asarray(indices)
        if indices.size and not np.issubdtype(indices.dtype, np.integer):
            raise ValueError(
                f"Active cell indices must be integers for area '{self.name}', got {indices.dtype}."
            )
        unique = sorted({int(i) for i in indices.ravel()})
        if unique and (unique[0] < 0 or unique[-1] >= self.num_cells):
            raise ValueError(
                f"Active cell indices must be within [0, {self.num_cells}) for area '{self.name}'."
            )
        self._active_cell_indices = tuple(unique)

    @property
    def active_cells(self) -> List[Cell]:
        """Return list of currently active cells, ordered by index."""
        return [self.cells[i] for i in self._active_cell_indices]

    def activate(self, indices: Iterable[int]) -> None:
        self.active_cell_indices = list(indices)

    def segments(self, segment_type: SegmentType | None = None) -> List[Segment]:
        """Return all segments of the area, optionally of one type only."""
        segments = []
        for cell in self.cells:
            if segment_type in (None, SegmentType.APICAL):
                segments.extend(cell.apical_segments)
            if segment_type in (None, SegmentType.DISTAL):
                segments.extend(cell.distal_segments)
        return segments

    def synapses(self) -> List[Synapse]:
        return [syn for segment in self.segments() for syn in segment.synapses]
