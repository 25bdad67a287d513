"""
Unit tests for the association building blocks.

Tests cover:
- Synapse, Segment and Cell bookkeeping
- Connected-synapse counting and weakest-synapse lookup
- CorticalArea active cell handling
"""

import sys
import unittest
from pathlib import Path

import numpy as np

sys.path.append(str(Path(__file__).parent.parent / "src"))

from naa.building_blocks import (  # noqa: E402
    Cell,
    CorticalArea,
    Segment,
    SegmentType,
    Synapse,
)
from naa.errors import InvariantViolation  # noqa: E402


def _segment_with_permanences(permanences, syn_perm_connected=0.5):
    owner = Cell(index=0, area_id=2)
    segment = Segment(owner, SegmentType.APICAL, syn_perm_connected=syn_perm_connected)
    for i, permanence in enumerate(permanences):
        source = Cell(index=i, area_id=1)
        syn = Synapse(source, segment, permanence)
        segment.synapses.append(syn)
        source.receptor_synapses[syn.synapse_id] = syn
    return segment


class TestBasicBuildingBlocks(unittest.TestCase):
    """Test core building blocks: Cell, Segment, Synapse."""

    def test_cell_creation(self):
        cell = Cell(index=7, area_id=3)
        self.assertEqual(cell.identity, (3, 7))
        self.assertEqual(len(cell.apical_segments), 0)
        self.assertEqual(len(cell.distal_segments), 0)
        self.assertEqual(len(cell.receptor_synapses), 0)

    def test_synapse_creation(self):
        source_cell = Cell(index=1)
        segment = Segment(Cell(index=4), SegmentType.APICAL, segment_index=2)
        synapse = Synapse(source_cell, segment, 0.5, area_name="Y")
        self.assertIs(synapse.source_cell, source_cell)
        self.assertEqual(synapse.permanence, 0.5)
        self.assertEqual(synapse.segment_index, 2)
        self.assertEqual(synapse.segment_cell_index, 4)
        self.assertEqual(synapse.area_name, "Y")

    def test_synapse_ids_are_unique(self):
        cell = Cell()
        ids = {Synapse(cell).synapse_id for _ in range(50)}
        self.assertEqual(len(ids), 50)

    def test_segment_connected_synapses(self):
        segment = _segment_with_permanences([0.6, 0.3, 0.5, 0.49])
        self.assertEqual(segment.num_connected_synapses, 2)
        self.assertAlmostEqual(segment.synaptic_energy, 1.89)

    def test_min_permanence_synapse_prefers_first_inserted(self):
        segment = _segment_with_permanences([0.5, 0.2, 0.7, 0.2])
        weakest = segment.get_min_permanence_synapse()
        self.assertIs(weakest, segment.synapses[1])

    def test_min_permanence_synapse_of_empty_segment(self):
        segment = Segment(Cell(), SegmentType.DISTAL)
        self.assertIsNone(segment.get_min_permanence_synapse())

    def test_segment_is_connected_to(self):
        segment = _segment_with_permanences([0.3, 0.4])
        self.assertTrue(segment.is_connected_to(segment.synapses[0].source_cell))
        self.assertFalse(segment.is_connected_to(Cell(index=0, area_id=1)))

    def test_segments_of_dispatches_on_type(self):
        cell = Cell()
        self.assertIs(cell.segments_of(SegmentType.APICAL), cell.apical_segments)
        self.assertIs(cell.segments_of(SegmentType.DISTAL), cell.distal_segments)
        with self.assertRaises(InvariantViolation):
            cell.segments_of("proximal")

    def test_trace_cell(self):
        cell = Cell(index=5)
        self.assertIn("no segments", cell.trace_cell())
        segment = Segment(cell, SegmentType.APICAL)
        cell.apical_segments.append(segment)
        segment.synapses.append(Synapse(Cell(index=9), segment, 0.25))
        trace = cell.trace_cell()
        self.assertIn("apical", trace)
        self.assertIn("9:0.25", trace)


class TestCorticalArea(unittest.TestCase):
    """Test CorticalArea construction and active cells."""

    def setUp(self):
        self.area = CorticalArea(1, "X", 1024)

    def test_initialization(self):
        self.assertEqual(len(self.area.cells), 1024)
        self.assertEqual(len(self.area), 1024)
        self.assertEqual(self.area.cells[10].index, 10)
        self.assertEqual(self.area.cells[10].area_id, 1)
        self.assertEqual(self.area.active_cells, [])

    def test_active_cells_follow_indices(self):
        self.area.active_cell_indices = np.array([30, 10, 20, 10])
        self.assertEqual(self.area.active_cell_indices, (10, 20, 30))
        self.assertEqual([cell.index for cell in self.area.active_cells], [10, 20, 30])

    def test_activate_and_clear(self):
        self.area.activate(range(5))
        self.assertEqual(len(self.area.active_cells), 5)
        self.area.active_cell_indices = None
        self.assertEqual(self.area.active_cells, [])

    def test_out_of_range_indices_rejected(self):
        with self.assertRaises(ValueError):
            self.area.active_cell_indices = [1024]
        with self.assertRaises(ValueError):
            self.area.active_cell_indices = [-1]

    def test_non_integer_indices_rejected(self):
        with self.assertRaises(ValueError):
            self.area.active_cell_indices = [1.0, 2.7]
        with self.assertRaises(ValueError):
            self.area.active_cell_indices = np.array([0.5])
        self.assertEqual(self.area.active_cell_indices, ())

    def test_empty_indices_accepted(self):
        self.area.active_cell_indices = [3]
        self.area.active_cell_indices = []
        self.assertEqual(self.area.active_cell_indices, ())
        self.area.active_cell_indices = np.array([], dtype=np.int32)
        self.assertEqual(self.area.active_cell_indices, ())

    def test_invalid_size_rejected(self):
        with self.assertRaises(ValueError):
            CorticalArea(2, "Y", 0)

    def test_segments_and_synapses_listing(self):
        cell = self.area.cells[3]
        apical = Segment(cell, SegmentType.APICAL)
        distal = Segment(cell, SegmentType.DISTAL)
        cell.apical_segments.append(apical)
        cell.distal_segments.append(distal)
        apical.synapses.append(Synapse(self.area.cells[4], apical, 0.3))
        self.assertEqual(self.area.segments(), [apical, distal])
        self.assertEqual(self.area.segments(SegmentType.APICAL), [apical])
        self.assertEqual(self.area.segments(SegmentType.DISTAL), [distal])
        self.assertEqual(len(self.area.synapses()), 1)


if __name__ == "__main__":
    unittest.main()
