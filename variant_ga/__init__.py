# variant_ga/__init__.py

"""
Variant Genetic Algorithm Package

This package evolves variants of one or more reference melodies with a
genetic algorithm. It includes:
- music_constants: The chunk alphabet (pitches, HOLD, REST) and the tunable
                   parameters of the algorithm.
- music_selection: MusicSelection, the chromosome (chunk codes + chunk size).
- music_utils: Melodic similarity, transposition and note naming.
- melody_generator: Random selections and per-chunk mutation.
- genetic_algorithm_core: Crossover, fitness aggregation and the
                          MusicGeneticAlgorithm generational loop.
- exceptions: Errors raised for invalid corpora and broken preconditions.
"""

from .exceptions import VariantGAError, InvalidCorpusError, ChromosomeError
from .music_selection import MusicSelection
from .melody_generator import MelodyGenerator
from .genetic_algorithm_core import MusicGeneticAlgorithm, crossover, make_bitmask
from .music_utils import MusicUtils

__version__ = "1.0.0"
