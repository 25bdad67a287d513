from naa.algorithm import (
    ComputeCycle,
    NeuralAssociationAlgorithm,
    SegmentActivity,
    get_segment_with_highest_potential,
)
from naa.building_blocks import Cell, CorticalArea, Segment, SegmentType, Synapse
from naa.errors import ConfigurationError, InvariantViolation, UnsupportedRelationError
from naa.parameters import EPSILON, AssociationParameters

__all__ = [
    "AssociationParameters",
    "Cell",
    "ComputeCycle",
    "ConfigurationError",
    "CorticalArea",
    "EPSILON",
    "InvariantViolation",
    "NeuralAssociationAlgorithm",
    "Segment",
    "SegmentActivity",
    "SegmentType",
    "Synapse",
    "UnsupportedRelationError",
    "get_segment_with_highest_potential",
]
