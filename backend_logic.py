# backend_logic.py
"""
Module: backend_logic.py

Purpose:
This module sits between the command line (driver.py) and the genetic
algorithm components in `variant_ga`. It reads the reference corpus from
disk, runs the evolution and turns the results into text.

Key Responsibilities:
- Corpus Loading: A manifest file lists one piece file per line. Each piece
  file holds the chunk size followed by whitespace-separated chunk codes
  (0-127 pitch, 128 HOLD, 129 REST).
- Run Orchestration: Builds a MusicGeneticAlgorithm from the corpus, runs it
  and collects the best variant with its fitness values and trace.
- Output Formatting: Writes the textual MIDI event trace consumed by an
  external MIDI assembler, the per-position population table and the
  per-individual fitness report used to inspect a population.
- Logging Setup: Installs the single stdout handler used by the command line.
"""

# Standard library imports
import logging
import os
import sys
from typing import List, NamedTuple, Optional, Sequence

# Local application/library specific imports
from variant_ga.exceptions import InvalidCorpusError
from variant_ga.genetic_algorithm_core import MusicGeneticAlgorithm
from variant_ga.music_constants import (
    HOLD, REST, MAX_NOTE_VALUE, MIDI_UNITS_PER_WHOLE, MIDI_FILE_HEADER, MIDI_TIME_SIGNATURE,
    MIDI_KEY_SIGNATURE, MIDI_TEMPO, MIDI_CHANNEL, NOTE_VELOCITY, PIANO_TRACK_NAME,
    DEFAULT_SONG_NAME, DEFAULT_SEED, DEFAULT_NUM_STEPS
)
from variant_ga.music_selection import MusicSelection, is_note
from variant_ga.music_utils import MusicUtils

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def configure_logging(level: Optional[str] = None) -> None:
    """
    Sends log records to stdout. The level comes from `level`, else from the
    LOG_LEVEL environment variable, else INFO. Calling it again only updates
    the level.
    """
    root = logging.getLogger()
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if not getattr(root, "_variant_logging_configured", False):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.handlers.clear()
        root.addHandler(handler)
        root._variant_logging_configured = True  # type: ignore[attr-defined]
    root.setLevel(level_name)


# --- Corpus Loading ---

def parse_piece_text(text: str, source: str = "<string>") -> MusicSelection:
    """
    Parses one piece: the first token is the chunk size, the remaining
    tokens are chunk codes.

    Args:
        text: Contents of a piece file.
        source: Name reported in errors (usually the file path).

    Returns:
        MusicSelection: The parsed piece.

    Raises:
        InvalidCorpusError: Missing or non-positive chunk size, a token that is
                            not an integer, a code outside 0-129, or no chunks.
    """
    tokens = text.split()
    if not tokens:
        raise InvalidCorpusError("missing chunk size", source)
    try:
        values = [int(token) for token in tokens]
    except ValueError as e:
        raise InvalidCorpusError(f"non-integer token ({e})", source) from e

    chunk_size, chunks = values[0], values[1:]
    if chunk_size < 1:
        raise InvalidCorpusError(f"chunk size must be positive, got {chunk_size}", source)
    if not chunks:
        raise InvalidCorpusError("piece has no chunks", source)
    for position, value in enumerate(chunks):
        if not 0 <= value <= MAX_NOTE_VALUE:
            raise InvalidCorpusError(f"chunk {position} has code {value} outside 0-{MAX_NOTE_VALUE}", source)
    return MusicSelection(chunks, chunk_size)


def load_piece(path: str) -> MusicSelection:
    try:
        with open(path, "r") as file_handle:
            text = file_handle.read()
    except OSError as e:
        raise InvalidCorpusError(f"cannot read piece ({e.strerror})", path) from e
    return parse_piece_text(text, path)


def read_manifest(manifest_path: str) -> List[str]:
    """
    Returns the piece paths listed in a manifest, one per non-blank line.
    Relative names are resolved against the manifest's directory.
    """
    try:
        with open(manifest_path, "r") as file_handle:
            lines = file_handle.read().splitlines()
    except OSError as e:
        raise InvalidCorpusError(f"cannot read manifest ({e.strerror})", manifest_path) from e

    base_dir = os.path.dirname(os.path.abspath(manifest_path))
    paths = []
    for line in lines:
        name = line.strip()
        if name:
            paths.append(name if os.path.isabs(name) else os.path.join(base_dir, name))
    return paths


def load_corpus(manifest_path: str) -> List[MusicSelection]:
    """
    Loads every piece listed in a manifest, in manifest order.

    Raises:
        InvalidCorpusError: If the manifest lists no piece or any piece is invalid.
    """
    paths = read_manifest(manifest_path)
    if not paths:
        raise InvalidCorpusError("manifest lists no pieces", manifest_path)
    pieces = [load_piece(path) for path in paths]
    logger.info("Loaded %d reference piece(s) from %s", len(pieces), manifest_path)
    return pieces


# --- Output Formatting ---

def midi_units_per_chunk(chunk_size: int) -> int:
    return MIDI_UNITS_PER_WHOLE // chunk_size


def generate_midi_text(selection: MusicSelection, song_name: str = DEFAULT_SONG_NAME) -> str:
    """
    Renders a selection as a textual MIDI event trace.

    The trace has a tempo track (4/4, C major, 600000 us per quarter, song name)
    and a piano track with one On/Off pair per note. Every chunk lasts
    `400 // chunk_size` units and the clock starts one chunk in. A HOLD
    extends the sounding note, a REST advances the clock without events.

    Returns:
        str: The trace, newline-terminated.
    """
    units = midi_units_per_chunk(selection.chunk_size)
    lines = [
        MIDI_FILE_HEADER,
        "MTrk",
        f"0 TimeSig {MIDI_TIME_SIGNATURE}",
        f"0 KeySig {MIDI_KEY_SIGNATURE}",
        f"0 Tempo {MIDI_TEMPO}",
        f'0 Meta TrkName "{song_name}"',
        "1 Meta TrkEnd",
        "TrkEnd",
        "MTrk",
        f'0 Meta TrkName "{PIANO_TRACK_NAME}"',
    ]

    chunks = selection.chunks
    count = units
    i = 0
    while i < len(chunks):
        current = chunks[i]
        if is_note(current):
            lines.append(f"{count} On ch={MIDI_CHANNEL} n={current} v={NOTE_VELOCITY}")
        # Advance past this chunk and every HOLD extending it. A leading HOLD
        # has nothing to extend and is skipped like a REST.
        i += 1
        count += units
        while i < len(chunks) and chunks[i] == HOLD:
            i += 1
            count += units
        if is_note(current):
            lines.append(f"{count} Off ch={MIDI_CHANNEL} n={current} v={NOTE_VELOCITY}")

    lines.append(f"{count + 1} Meta TrkEnd")
    lines.append("TrkEnd")
    return "\n".join(lines) + "\n"


def write_midi_text(selection: MusicSelection, song_name: str, destination: str) -> None:
    with open(destination, "w") as file_handle:
        file_handle.write(generate_midi_text(selection, song_name))
    logger.info("Wrote event trace for '%s' to %s", song_name, destination)


def population_table(population: Sequence[MusicSelection]) -> str:
    """
    Lays a population out column-wise: one row per chunk position, starting
    with the position, then one `%3d` column per individual. Individuals
    shorter than the longest one are padded with 0.
    """
    max_length = max((selection.length() for selection in population), default=0)
    rows = []
    for j in range(max_length):
        cells = [f"{j} "]
        for selection in population:
            value = selection.get_chunk_at(j) if j < selection.length() else 0
            cells.append(f"{value:3d} ")
        rows.append("".join(cells))
    return "\n".join(rows) + ("\n" if rows else "")


def population_fitness_report(ga: MusicGeneticAlgorithm) -> str:
    """
    Lists every individual of the engine's current population, each followed
    by a line with its `fitness_orig, fitness`.
    """
    lines = []
    for individual in ga.population:
        lines.append(str(individual))
        lines.append(f"{ga.fitness_orig(individual)}, {ga.fitness(individual)}")
    return "\n".join(lines) + ("\n" if lines else "")


def write_population_table(population: Sequence[MusicSelection], directory: str, generation: int) -> str:
    """Writes `population<generation>.txt` into `directory` and returns its path."""
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, f"population{generation}.txt")
    with open(path, "w") as file_handle:
        file_handle.write(population_table(population))
    return path


# --- Run Orchestration ---

class VariantResult(NamedTuple):
    """Outcome of one evolution run."""
    best: MusicSelection
    fitness_orig: float
    fitness: float
    fitness_trace: List[float]
    note_names: str


def evolve_variant(pieces: Sequence[MusicSelection], num_steps: int = DEFAULT_NUM_STEPS,
                   seed: int = DEFAULT_SEED, population_dump_dir: Optional[str] = None,
                   **ga_options) -> VariantResult:
    """
    Runs the genetic algorithm on a loaded corpus.

    Args:
        pieces: The reference corpus.
        num_steps: Number of generations.
        seed: Seed of the run's random stream.
        population_dump_dir: If given, the population table of the first and
                             last generation is written there.
        **ga_options: Further keyword arguments for MusicGeneticAlgorithm
                      (aggregation, niching, optimal_fitness, ...).

    Returns:
        VariantResult: The best variant and its fitness values.
    """
    ga = MusicGeneticAlgorithm(pieces, seed=seed, **ga_options)
    if population_dump_dir:
        write_population_table(ga.population, population_dump_dir, ga.generation)
    best = ga.run(num_steps)
    if population_dump_dir:
        path = write_population_table(ga.population, population_dump_dir, ga.generation)
        logger.info("Wrote population tables to %s", os.path.dirname(path))
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Final population:\n%s", population_fitness_report(ga))
    return VariantResult(
        best=best,
        fitness_orig=ga.fitness_orig(best),
        fitness=ga.fitness(best),
        fitness_trace=list(ga.fitness_trace),
        note_names=MusicUtils.to_notes(best),
    )
