import random
from dataclasses import dataclass, field

from naa.errors import ConfigurationError


# Constants
EPSILON = 0.00001  # Permanence floor below which a synapse is destroyed
ACTIVATION_THRESHOLD = 13  # Connected synapses for a segment to be active
MIN_THRESHOLD = 10  # Synapses for a segment to be matching instead of inactive
MAX_NEW_SYNAPSE_COUNT = 20  # Growth budget per adaptation pass
MAX_SYNAPSES_PER_SEGMENT = 225  # Hard cap, triggers min-permanence eviction
MAX_SEGMENTS_PER_CELL = 225  # Hard cap per segment type, triggers LRU eviction
INITIAL_PERMANENCE = 0.21  # Initial permanence for new synapses
PERMANENCE_INC = 0.10  # Amount by which synapses are incremented during learning
SYN_PERM_CONNECTED = 0.10  # Permanence threshold for a synapse to be considered connected
RANDOM_SEED = 42  # Seed of the growth generator when none is injected


@dataclass
class AssociationParameters:

    activation_threshold: int = ACTIVATION_THRESHOLD
    """
    * Member "activation_threshold" is the minimum number of connected synapses
    * for a segment to be counted as active.
    """
    min_threshold: int = MIN_THRESHOLD
    """
    * Member "min_threshold" is the minimum number of synapses (connected or
    * not) for a non-active segment to be counted as matching. Segments below
    * it are inactive.
    """
    max_new_synapse_count: int = MAX_NEW_SYNAPSE_COUNT
    """
    * Member "max_new_synapse_count" bounds how many synapses one adaptation
    * pass grows on a segment. Must be less than "max_synapses_per_segment".
    """
    max_synapses_per_segment: int = MAX_SYNAPSES_PER_SEGMENT
    """
    * Member "max_synapses_per_segment" is the hard cap of synapses on a
    * segment. Growing past it evicts the minimum-permanence synapse.
    """
    max_segments_per_cell: int = MAX_SEGMENTS_PER_CELL
    """
    * Member "max_segments_per_cell" is the hard cap of segments of one type
    * on a cell. Creating past it evicts the least recently used segment.
    """
    initial_permanence: float = INITIAL_PERMANENCE
    """
    * Member "initial_permanence" is assigned to every newly grown synapse.
    """
    permanence_increment: float = PERMANENCE_INC
    """
    * Member "permanence_increment" is added to a synapse whose source cell is
    * active in the associating population.
    """
    syn_perm_connected: float = SYN_PERM_CONNECTED
    """
    * Member "syn_perm_connected" is the permanence at or above which a
    * synapse counts as connected.
    """
    seed: int = RANDOM_SEED
    """
    * Member "seed" seeds the generator used for synapse growth when no
    * generator is injected. Two engines with the same seed, parameters and
    * inputs grow identical synapses.
    """
    rng: random.Random | None = field(default=None, repr=False, compare=False)
    """
    * Member "rng" is an optional injected generator. When set it takes
    * precedence over "seed".
    """

    def make_random(self) -> random.Random:
        """Return the injected generator or a fresh one seeded with `seed`."""
        if self.rng is not None:
            return self.rng
        return random.Random(self.seed)

    def check_parameters(self) -> 'AssociationParameters':
        """Validate the values that do not depend on the associated areas."""
        if self.activation_threshold <= 0:
            raise ConfigurationError("activation_threshold must be positive.")
        if self.min_threshold < 0:
            raise ConfigurationError("min_threshold must not be negative.")
        if self.max_segments_per_cell <= 0:
            raise ConfigurationError("max_segments_per_cell must be positive.")
        if self.max_synapses_per_segment <= 0:
            raise ConfigurationError("max_synapses_per_segment must be positive.")
        # A grown synapse must survive the cycle it was created in.
        if not EPSILON <= self.initial_permanence <= 1.0:
            raise ConfigurationError(f"initial_permanence must be within [{EPSILON}, 1].")
        if self.permanence_increment <= 0:
            raise ConfigurationError("permanence_increment must be positive.")
        if not 0.0 <= self.syn_perm_connected <= 1.0:
            raise ConfigurationError("syn_perm_connected must be within [0, 1].")
        # Always a batch of synapses is grown until max_synapses_per_segment is reached.
        if self.max_new_synapse_count >= self.max_synapses_per_segment:
            raise ConfigurationError(
                "max_new_synapse_count must be less than max_synapses_per_segment."
            )
        return self
