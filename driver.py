# driver.py
"""
Module: driver.py

Purpose:
Command-line entry point of the Melody Variant Evolver. It loads the
reference corpus named in a manifest, evolves a variant for a fixed number of
generations, prints the best result and writes it as a textual MIDI event
trace.

Example:
    python driver.py files.txt --steps 100 --output variant.txt
"""

# Standard library imports
import argparse
import sys
import time
from typing import List, Optional

# Local application/library specific imports
import backend_logic
from variant_ga.exceptions import InvalidCorpusError
from variant_ga.music_constants import (
    AGGREGATION_MODES, AGGREGATE_AVERAGE, DEFAULT_MANIFEST_FILE, DEFAULT_NUM_STEPS,
    DEFAULT_OUTPUT_FILE, DEFAULT_SEED, DEFAULT_SONG_NAME, NUM_INDIVS_PER_ORIG, OPTIMAL_FITNESS
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Evolve a variant of reference melodies with a genetic algorithm.",
    )
    parser.add_argument(
        "manifest", nargs="?", default=DEFAULT_MANIFEST_FILE,
        help=f"File listing one reference piece per line (default: {DEFAULT_MANIFEST_FILE})",
    )
    parser.add_argument(
        "--steps", type=int, default=DEFAULT_NUM_STEPS,
        help=f"Number of generations (default: {DEFAULT_NUM_STEPS})",
    )
    parser.add_argument(
        "--seed", type=int, default=DEFAULT_SEED,
        help=f"Random seed (default: {DEFAULT_SEED})",
    )

    fitness_group = parser.add_argument_group("Fitness")
    fitness_group.add_argument(
        "--aggregation", choices=AGGREGATION_MODES, default=AGGREGATE_AVERAGE,
        help="How similarities to several references are combined (default: average)",
    )
    fitness_group.add_argument(
        "--niching", action="store_true",
        help="Penalize individuals similar to the rest of the population",
    )
    fitness_group.add_argument(
        "--optimal-fitness", type=float, default=OPTIMAL_FITNESS,
        help=f"Corpus similarity at which fitness peaks (default: {OPTIMAL_FITNESS})",
    )
    fitness_group.add_argument(
        "--individuals-per-reference", type=int, default=NUM_INDIVS_PER_ORIG,
        help=f"Population members per reference piece (default: {NUM_INDIVS_PER_ORIG})",
    )

    output_group = parser.add_argument_group("Output")
    output_group.add_argument(
        "--output", "-o", default=DEFAULT_OUTPUT_FILE,
        help=f"Event trace destination (default: {DEFAULT_OUTPUT_FILE})",
    )
    output_group.add_argument(
        "--song-name", default=DEFAULT_SONG_NAME,
        help=f"Track name written into the event trace (default: {DEFAULT_SONG_NAME})",
    )
    output_group.add_argument(
        "--dump-population", metavar="DIR",
        help="Write the first and last population tables into DIR",
    )
    output_group.add_argument(
        "--log-level", type=str.upper, choices=backend_logic.LOG_LEVELS, default=None,
        help="Logging level (default: $LOG_LEVEL or INFO)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    backend_logic.configure_logging(args.log_level)
    start_time = time.perf_counter()

    try:
        pieces = backend_logic.load_corpus(args.manifest)
        result = backend_logic.evolve_variant(
            pieces,
            num_steps=args.steps,
            seed=args.seed,
            population_dump_dir=args.dump_population,
            aggregation=args.aggregation,
            niching=args.niching,
            optimal_fitness=args.optimal_fitness,
            individuals_per_reference=args.individuals_per_reference,
        )
    except InvalidCorpusError as e:
        print(f"Error: invalid corpus: {e}", file=sys.stderr)
        return 2

    print(f"Best result:\n{result.best}")
    print(f"{result.fitness_orig}, {result.fitness}")
    print(result.note_names)
    backend_logic.write_midi_text(result.best, args.song_name, args.output)

    elapsed_ms = int((time.perf_counter() - start_time) * 1000)
    print(f"total time taken: {elapsed_ms} milliseconds")
    return 0


if __name__ == "__main__":
    sys.exit(main())
