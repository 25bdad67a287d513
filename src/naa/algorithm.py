"""Neural Associations Algorithm.

Associates the currently active cells of a target area with the active cells
of one or more associated (source) areas. Cross-area associations are learned
on apical segments:

1) Active segments are strengthened and topped up with new synapses.
2) Matching segments are strengthened and grown toward the growth budget.
3) Inactive segments grow synapses from every unconnected associating cell,
   and active cells without any apical segment get a new one.

Permanences only ever increase. Capacity limits are enforced by evicting the
weakest synapse of a segment or the least recently used segment of a cell.
"""
import random
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from statistics import fmean, pstdev
from typing import (
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
)

import pandas as pd

from naa.building_blocks import (
    Cell,
    CorticalArea,
    Segment,
    SegmentType,
    Synapse,
)
from naa.errors import (
    ConfigurationError,
    InvariantViolation,
    UnsupportedRelationError,
)
from naa.parameters import EPSILON, AssociationParameters

debug = False


@dataclass(frozen=True)
class SegmentActivity:
    """Snapshot of the target area's apical segments after one learning step."""

    area_name: str
    associated_area_name: str | None
    iteration: int
    active_segments: int
    matching_segments: int
    inactive_segments: int
    cells_without_segments: int
    synaptic_energy: float


@dataclass(frozen=True)
class ComputeCycle:
    """Result of one `compute` call."""

    iteration: int
    activities: Tuple[SegmentActivity, ...] = ()


def get_segment_with_highest_potential(segments: Iterable[Segment]) -> Optional[Segment]:
    """Return the segment with the most synapses; the first one wins ties."""
    best_segment = None
    best_count = -1
    for segment in segments:
        if len(segment.synapses) > best_count:
            best_segment = segment
            best_count = len(segment.synapses)
    return best_segment


class NeuralAssociationAlgorithm:
    """Learns associations from associated areas onto the cells of `area`."""

    def __init__(
        self,
        parameters: AssociationParameters,
        area: CorticalArea,
        rng: random.Random | None = None,
    ) -> None:
        self.parameters = parameters
        self.area = area
        self._random = rng if rng is not None else parameters.make_random()
        self._iteration = 0
        self.last_activity: Optional[SegmentActivity] = None

    def __repr__(self) -> str:
        return f"NeuralAssociationAlgorithm(area={self.area.name!r}, iteration={self._iteration})"

    @property
    def iteration(self) -> int:
        return self._iteration

    # ===== Segment classification =====

    def _connected_cells(self, associating_active_cells: Optional[Sequence[Cell]]) -> List[Cell]:
        """Return active cells of the area with apical synapses from the associating cells."""
        active_cells = self.area.active_cells
        if associating_active_cells is None:
            return active_cells
        active = set(active_cells)
        connected = set()
        for cell in associating_active_cells:
            for syn in cell.receptor_synapses.values():
                segment = syn.segment
                if segment.segment_type is SegmentType.APICAL and segment.parent_cell in active:
                    connected.add(segment.parent_cell)
        return [cell for cell in active_cells if cell in connected]

    def get_active_apical_segments(
        self, associating_active_cells: Optional[Sequence[Cell]] = None
    ) -> List[Segment]:
        """Return apical segments with at least `activation_threshold` connected synapses.

        If `associating_active_cells` is given, only cells connected to that
        population are scanned.
        """
        threshold = self.parameters.activation_threshold
        return [
            seg
            for cell in self._connected_cells(associating_active_cells)
            for seg in cell.apical_segments
            if seg.num_connected_synapses >= threshold
        ]

    def get_matching_apical_segments(
        self, associating_active_cells: Optional[Sequence[Cell]] = None
    ) -> List[Segment]:
        """Return non-active apical segments holding at least `min_threshold` synapses."""
        p = self.parameters
        return [
            seg
            for cell in self._connected_cells(associating_active_cells)
            for seg in cell.apical_segments
            if len(seg.synapses) >= p.min_threshold
            and seg.num_connected_synapses < p.activation_threshold
        ]

    @property
    def inactive_apical_segments(self) -> List[Segment]:
        p = self.parameters
        return [
            seg
            for cell in self.area.active_cells
            for seg in cell.apical_segments
            if len(seg.synapses) < p.min_threshold
            and seg.num_connected_synapses < p.activation_threshold
        ]

    @property
    def active_cells_without_apical_segments(self) -> List[Cell]:
        return [cell for cell in self.area.active_cells if not cell.apical_segments]

    # ===== Compute cycle =====

    def compute(
        self,
        associated_areas: CorticalArea | Sequence[CorticalArea],
        learn: bool = True,
    ) -> ComputeCycle:
        """Associate the active cells of every associated area with the active cells of `area`.

        Everything is validated before the first mutation, so a raised error
        leaves the segments and synapses untouched.

        Raises:
            ConfigurationError: If the parameters cannot represent every
                associating active cell on a single segment.
            UnsupportedRelationError: If an associated area is `area` itself.
        """
        if isinstance(associated_areas, CorticalArea):
            associated_areas = [associated_areas]
        associated_areas = list(associated_areas)

        activities = []
        with self._area_locks(associated_areas):
            self.validate(associated_areas)
            for associated_area in associated_areas:
                self.activate_cells(associated_area, learn=learn)
                activities.append(self.activity(associated_area))
                self._iteration += 1

        if activities:
            self.last_activity = activities[-1]
        return ComputeCycle(iteration=self._iteration, activities=tuple(activities))

    def validate(self, associated_areas: Sequence[CorticalArea]) -> None:
        p = self.parameters.check_parameters()
        for associated_area in associated_areas:
            # Otherwise some active cells could never be connected to one segment.
            num_active = len(associated_area.active_cell_indices)
            if p.max_synapses_per_segment < num_active:
                raise ConfigurationError(
                    f"Area '{associated_area.name}' has {num_active} active cells, "
                    f"more than max_synapses_per_segment={p.max_synapses_per_segment}."
                )
        for associated_area in associated_areas:
            self._require_apical(associated_area)

    @contextmanager
    def _area_locks(self, associated_areas: Sequence[CorticalArea]) -> Iterator[None]:
        areas = {id(area): area for area in [self.area, *associated_areas]}
        with ExitStack() as stack:
            for area in sorted(areas.values(), key=lambda a: (a.area_id, id(a))):
                stack.enter_context(area.lock)
            yield

    def _is_distal(self, associated_area: CorticalArea) -> bool:
        return associated_area.name == self.area.name

    def _require_apical(self, associated_area: CorticalArea) -> None:
        if self._is_distal(associated_area):
            raise UnsupportedRelationError(
                f"Association of area '{self.area.name}' with itself (distal segments) is not supported."
            )

    def _num_new_synapses(self, associated_area: CorticalArea) -> int:
        p = self.parameters
        return min(
            p.max_new_synapse_count,
            p.max_synapses_per_segment,
            len(associated_area.active_cell_indices),
        )

    def activate_cells(self, associated_area: CorticalArea, learn: bool = True) -> None:
        if not learn:
            return
        self.adapt_active_segments(associated_area)
        self.adapt_matching_segments(associated_area)
        self.adapt_inactive_segments(associated_area)

    def adapt_active_segments(self, associated_area: CorticalArea) -> None:
        self._require_apical(associated_area)
        p = self.parameters
        associating_cells = associated_area.active_cells
        num_synapses = self._num_new_synapses(associated_area)

        for segment in self.get_active_apical_segments(associating_cells):
            self.adapt_segment(segment, associating_cells)
            if not segment.synapses:
                continue
            # Active segments still connect associating cells they miss.
            n_grow_desired = num_synapses - len(segment.synapses)
            if n_grow_desired > 0:
                self.grow_synapses(
                    associating_cells, segment, p.initial_permanence,
                    n_grow_desired, p.max_synapses_per_segment,
                )

    def adapt_matching_segments(self, associated_area: CorticalArea) -> None:
        self._require_apical(associated_area)
        p = self.parameters
        associating_cells = associated_area.active_cells

        for segment in self.get_matching_apical_segments(associating_cells):
            self.adapt_segment(segment, associating_cells)
            if not segment.synapses:
                continue
            n_grow_desired = p.max_new_synapse_count - len(segment.synapses)
            if n_grow_desired > 0:
                self.grow_synapses(
                    associating_cells, segment, p.initial_permanence,
                    n_grow_desired, p.max_synapses_per_segment,
                )

    def adapt_inactive_segments(self, associated_area: CorticalArea) -> None:
        self._require_apical(associated_area)

        for segment in self.inactive_apical_segments:
            self.form_new_synapses(associated_area, segment)

        num_synapses = self._num_new_synapses(associated_area)
        for cell in self.active_cells_without_apical_segments:
            self.create_segment_at_cell(associated_area, cell, num_synapses)

    def form_new_synapses(self, associated_area: CorticalArea, segment: Segment) -> None:
        """Grow synapses on `segment` until every associating active cell is connected."""
        p = self.parameters
        associating_cells = associated_area.active_cells
        num_new_synapses = self._num_new_synapses(associated_area)
        for cell in associating_cells:
            if not segment.is_connected_to(cell):
                self.grow_synapses(
                    associating_cells, segment, p.initial_permanence,
                    num_new_synapses, p.max_synapses_per_segment,
                )
        segment.last_used_iteration = self._iteration

    def create_segment_at_cell(
        self, associated_area: CorticalArea, cell: Cell, num_synapses: int
    ) -> Optional[Segment]:
        if num_synapses <= 0:
            return None
        if self._is_distal(associated_area):
            segment = self.create_distal_segment(cell)
        else:
            segment = self.create_apical_segment(cell)
        self.grow_synapses(
            associated_area.active_cells, segment, self.parameters.initial_permanence,
            num_synapses, self.parameters.max_synapses_per_segment,
        )
        return segment

    # ===== Segment and synapse lifecycle =====

    @staticmethod
    def get_least_recently_used_segment(segments: Sequence[Segment]) -> Optional[Segment]:
        """Return the segment with the smallest last used iteration; the oldest wins ties."""
        if not segments:
            return None
        return min(segments, key=lambda s: (s.last_used_iteration, s.ordinal))

    def create_apical_segment(self, cell: Cell) -> Segment:
        return self._create_segment(cell, SegmentType.APICAL)

    def create_distal_segment(self, cell: Cell) -> Segment:
        return self._create_segment(cell, SegmentType.DISTAL)

    def _create_segment(self, cell: Cell, segment_type: SegmentType) -> Segment:
        segments = cell.segments_of(segment_type)
        while len(segments) >= self.parameters.max_segments_per_cell:
            lru_segment = self.get_least_recently_used_segment(segments)
            if debug:
                print(f"Evicting {lru_segment} last used at {lru_segment.last_used_iteration}")
            self.kill_segment(lru_segment)

        segment = Segment(
            parent_cell=cell,
            segment_type=segment_type,
            segment_index=len(segments),
            last_used_iteration=self._iteration,
            syn_perm_connected=self.parameters.syn_perm_connected,
        )
        segments.append(segment)
        if debug:
            print(f"Created {segment} at iteration {self._iteration}")
        return segment

    def adapt_segment(self, segment: Segment, associating_active_cells: Iterable[Cell]) -> None:
        """Strengthen synapses whose source cell is in the associating population.

        Synapses of inactive source cells are left unchanged; there is no
        forgetting. Synapses below EPSILON are destroyed, and so is the segment
        once it has no synapses left.
        """
        active = set(associating_active_cells)
        synapses_to_destroy = []

        for syn in segment.synapses:
            permanence = syn.permanence
            if syn.source_cell in active:
                permanence += self.parameters.permanence_increment

            permanence = min(1.0, max(0.0, permanence))

            if permanence < EPSILON:
                synapses_to_destroy.append(syn)
            else:
                syn.permanence = permanence

        for syn in synapses_to_destroy:
            self.destroy_synapse(syn, segment)

        segment.last_used_iteration = self._iteration

        if not segment.synapses:
            self.kill_segment(segment)

    @staticmethod
    def destroy_synapse(synapse: Synapse, segment: Segment) -> None:
        """Remove `synapse` from its segment and from its source cell's receptor index."""
        synapse.source_cell.receptor_synapses.pop(synapse.synapse_id, None)
        segment.synapses.remove(synapse)
        synapse.segment = None

    def kill_segment(self, segment: Segment) -> None:
        segments = segment.parent_cell.segments_of(segment.segment_type)
        for syn in list(segment.synapses):
            self.destroy_synapse(syn, segment)
        segments.remove(segment)

    def grow_synapses(
        self,
        associating_cells: Iterable[Cell],
        segment: Segment,
        initial_permanence: float,
        n_desired_new_synapses: int,
        max_synapses_per_segment: int,
        rng: random.Random | None = None,
    ) -> List[Synapse]:
        """Create up to `n_desired_new_synapses` synapses from randomly chosen associating cells.

        Candidates are sorted by cell identity and cells already connected to
        the segment are dropped, so the picks only depend on the generator's
        state. Each candidate is picked at most once.
        """
        rng = rng if rng is not None else self._random
        connected = set(segment.source_cells())
        candidates = [
            cell for cell in sorted(set(associating_cells), key=lambda c: c.identity)
            if cell not in connected
        ]

        num_missing_synapses = min(n_desired_new_synapses, len(candidates))

        created = []
        for _ in range(num_missing_synapses):
            rnd_index = rng.randrange(len(candidates))
            created.append(
                self.create_synapse(segment, candidates[rnd_index], initial_permanence, max_synapses_per_segment)
            )
            del candidates[rnd_index]
        return created

    def create_synapse(
        self,
        segment: Segment,
        presynaptic_cell: Cell,
        permanence: float,
        max_synapses_per_segment: int,
    ) -> Synapse:
        """Append a new synapse, evicting the weakest ones while the segment is full."""
        if segment.is_connected_to(presynaptic_cell):
            raise InvariantViolation(f"{presynaptic_cell} is already connected to {segment}.")

        while len(segment.synapses) >= max_synapses_per_segment:
            self.destroy_synapse(segment.get_min_permanence_synapse(), segment)

        synapse = Synapse(
            source_cell=presynaptic_cell,
            segment=segment,
            permanence=permanence,
            synapse_index=len(segment.synapses),
            area_name=self.area.name,
        )
        segment.synapses.append(synapse)
        presynaptic_cell.receptor_synapses[synapse.synapse_id] = synapse
        return synapse

    # ===== Introspection =====

    def get_apical_synaptic_energy(self) -> float:
        """Return the sum of permanences over all active apical segments."""
        return sum(seg.synaptic_energy for seg in self.get_active_apical_segments(None))

    def activity(self, associated_area: CorticalArea | None = None) -> SegmentActivity:
        associating_cells = associated_area.active_cells if associated_area is not None else None
        return SegmentActivity(
            area_name=self.area.name,
            associated_area_name=associated_area.name if associated_area is not None else None,
            iteration=self._iteration,
            active_segments=len(self.get_active_apical_segments(None)),
            matching_segments=len(self.get_matching_apical_segments(associating_cells)),
            inactive_segments=len(self.inactive_apical_segments),
            cells_without_segments=len(self.active_cells_without_apical_segments),
            synaptic_energy=self.get_apical_synaptic_energy(),
        )

    def trace_state(self) -> str:
        lines = [
            f"Iteration {self._iteration}",
            f"Active Apical Segments in area {self.area.name}: {len(self.get_active_apical_segments())}",
            f"Matching Apical Segments: {len(self.get_matching_apical_segments())}",
            f"Inactive Apical Segments: {len(self.inactive_apical_segments)}",
            f"Active Cells without Apical Segments: {len(self.active_cells_without_apical_segments)}.",
            f"Synaptic Energy = {self.get_apical_synaptic_energy()}",
        ]
        text = "\n".join(lines) + "\n"
        for cell in self.area.active_cells:
            text += cell.trace_cell()
        return text

    def segment_frame(self) -> pd.DataFrame:
        """Return one row per segment of the area."""
        columns = [
            "cell", "segment_type", "segment_index", "synapses",
            "connected_synapses", "synaptic_energy", "last_used_iteration",
        ]
        rows = [
            {
                "cell": seg.parent_cell.index,
                "segment_type": seg.segment_type.value,
                "segment_index": seg.segment_index,
                "synapses": len(seg.synapses),
                "connected_synapses": seg.num_connected_synapses,
                "synaptic_energy": seg.synaptic_energy,
                "last_used_iteration": seg.last_used_iteration,
            }
            for seg in self.area.segments()
        ]
        return pd.DataFrame(rows, columns=columns)

    def print_stats(self) -> None:
        """Print statistics (with stddev) of the segments and synapses in the area."""
        def describe(values: List[float]) -> Tuple[float, float, float, float]:
            if not values:
                return 0.0, 0.0, 0.0, 0.0
            std_val = pstdev(values) if len(values) > 1 else 0.0
            return fmean(values), std_val, min(values), max(values)

        def format_metric(label: str, stats: Tuple[float, float, float, float], precision: str) -> str:
            mean_val, std_val, min_val, max_val = (format(v, precision) for v in stats)
            return f"| {label:<22}| {mean_val:>8} ± {std_val:<8}| {min_val:>8} | {max_val:>8} |"

        all_segments = self.area.segments()
        segments_per_cell = [
            len(cell.apical_segments) + len(cell.distal_segments) for cell in self.area.cells
        ]
        synapses_per_segment = [len(seg.synapses) for seg in all_segments]
        permanences = [syn.permanence for seg in all_segments for syn in seg.synapses]
        connected = sum(1 for perm in permanences if perm >= self.parameters.syn_perm_connected)
        connected_ratio = (connected / len(permanences)) if permanences else 0.0

        table_lines = [
            "+------------------------+--------------------+----------+----------+",
            "| Metric                 |   Mean ± Std      |      Min |      Max |",
            "+------------------------+--------------------+----------+----------+",
            format_metric("Segments per cell", describe(segments_per_cell), ".2f"),
            format_metric("Synapses per segment", describe(synapses_per_segment), ".2f"),
            format_metric("Permanence", describe(permanences), ".3f"),
            "+------------------------+--------------------+----------+----------+",
        ]

        print(f"CorticalArea '{self.area.name}' statistics (iteration {self._iteration}):")
        print(f"  Cells: {self.area.num_cells} | Segments: {len(all_segments)} | Synapses: {len(permanences)}")
        for line in table_lines:
            print(f"  {line}")
        print(
            f"  Connected synapses (>= {self.parameters.syn_perm_connected}): {connected}"
            f" ({connected_ratio:.1%} of all synapses)"
        )
