# variant_ga/music_constants.py
"""
Module: music_constants.py

Purpose:
This module is the central repository for the constants and type aliases used
by the variant-evolving genetic algorithm. Keeping them here makes the
algorithm easy to tune and keeps the chunk alphabet defined in one place.

Key Sections:
- Type Aliases: the chunk sequence a chromosome wraps.
- Chunk Alphabet: MIDI pitches plus the HOLD and REST symbols.
- Genetic Algorithm Parameters: population, selection and operator rates.
- Fitness Parameters: the similarity target and the aggregation modes.
- Event Trace Output: values written into the textual MIDI event trace.
"""

from typing import List, Tuple

# --- Type Aliases for Clarity ---

# ChunkSequence: the ordered chunk codes of one melody. Each entry is a MIDI
# pitch (0-127), HOLD (128) or REST (129).
ChunkSequence = List[int]

# --- Chunk Alphabet ---
MIN_PITCH: int = 0
MAX_PITCH: int = 127
HOLD: int = 128                 # Continue the previously sounding note.
REST: int = 129                 # Silence.
MAX_NOTE_VALUE: int = 129       # Largest code in the alphabet.
NUM_NOTES_PER_OCTAVE: int = 12

# Tokens used by the note-name transcription for the two silence symbols.
HOLD_TOKEN: str = "h"
REST_TOKEN: str = "r"

# --- Genetic Algorithm Parameters ---
NUM_INDIVS_PER_ORIG: int = 50           # Population size = corpus size * this value.
NUM_ELITES: int = 2                     # Fittest individuals copied unchanged into the next generation.
MUTATION_DISTANCE: int = 2              # Largest pitch step (semitones) of a note mutation (2 = whole step).
NUM_POINTS_OF_CROSSOVER: int = 2        # Toggle points placed in a crossover bitmask.
PROBABILITY_OF_MUTATION: float = 0.05   # Steady-state probability of mutating each chunk.
CROSSOVER_RATE: float = 0.9             # Probability that a selected pair is recombined.
RANDOM_INITIALIZED: float = 0.5         # Share of the initial population generated at random.
INITIAL_MUTATION_RATE: float = 0.33     # Exploration rate applied to corpus copies at initialization.

DEFAULT_SEED: int = 123456
DEFAULT_NUM_STEPS: int = 100

# --- Fitness Parameters ---
# Fitness peaks when the corpus similarity reaches this value, not at 1.0,
# so verbatim copies of a reference are not favoured.
OPTIMAL_FITNESS: float = 0.95

# Reducers that combine the per-reference similarities into one value.
AGGREGATE_AVERAGE: str = "average"
AGGREGATE_MIN: str = "min"
AGGREGATE_MAX: str = "max"
AGGREGATION_MODES: Tuple[str, ...] = (AGGREGATE_AVERAGE, AGGREGATE_MIN, AGGREGATE_MAX)

# --- Event Trace Output ---
MIDI_UNITS_PER_WHOLE: int = 25 * 16     # 25 MIDI units per 16th note.
MIDI_FILE_HEADER: str = "MFile 1 2 96"
MIDI_TIME_SIGNATURE: str = "4/4 24 8"
MIDI_KEY_SIGNATURE: str = "0 major"
MIDI_TEMPO: int = 600000
MIDI_CHANNEL: int = 1
NOTE_VELOCITY: int = 70
PIANO_TRACK_NAME: str = "Piano"
DEFAULT_SONG_NAME: str = "Invention No. 1"
DEFAULT_OUTPUT_FILE: str = "variant.txt"
DEFAULT_MANIFEST_FILE: str = "files.txt"
