# variant_ga/genetic_algorithm_core.py
"""
Module: genetic_algorithm_core.py

Purpose:
This module implements the evolutionary engine that breeds variants of a
corpus of reference melodies. It owns the corpus and the population and runs
the generational loop: evaluate every individual, carry the two fittest over
unchanged, then fill the rest of the next generation with tournament-selected
parents that are recombined and mutated.

Fitness:
A candidate is transposed onto each reference (first sounding notes aligned)
and compared with it by melodic similarity. The per-reference similarities are
reduced to one value (average, minimum or maximum) and fitness is
`1 - |value - optimal_fitness|`, which peaks just short of a verbatim copy.
With niching enabled the fitness is further divided by the candidate's summed
similarity to the whole population.

Determinism:
Every random decision (seeding, mutation, tournament draws, crossover points)
comes from one `random.Random` stream, consumed in a fixed order, so a seed
reproduces the same run.
"""

# Standard library imports
import logging
import random
from typing import Callable, Dict, List, Optional, Sequence, Tuple

# Local application/library specific imports
from .exceptions import InvalidCorpusError
from .melody_generator import MelodyGenerator
from .music_constants import (
    NUM_INDIVS_PER_ORIG, NUM_ELITES, MUTATION_DISTANCE, NUM_POINTS_OF_CROSSOVER,
    PROBABILITY_OF_MUTATION, CROSSOVER_RATE, RANDOM_INITIALIZED, INITIAL_MUTATION_RATE,
    OPTIMAL_FITNESS, DEFAULT_SEED, AGGREGATE_AVERAGE, AGGREGATE_MIN, AGGREGATE_MAX,
    AGGREGATION_MODES
)
from .music_selection import MusicSelection
from .music_utils import MusicUtils

logger = logging.getLogger(__name__)


def _average(values: Sequence[float]) -> float:
    return sum(values) / len(values)


_AGGREGATORS: Dict[str, Callable[[Sequence[float]], float]] = {
    AGGREGATE_AVERAGE: _average,
    AGGREGATE_MIN: min,
    AGGREGATE_MAX: max,
}


def aggregate_similarities(values: Sequence[float], mode: str = AGGREGATE_AVERAGE) -> float:
    """
    Reduces the similarities of a candidate to each reference into one value.

    Args:
        values: One similarity per reference; must not be empty.
        mode: "average", "min" or "max".

    Returns:
        float: The reduced similarity.
    """
    try:
        reducer = _AGGREGATORS[mode]
    except KeyError:
        raise ValueError(f"unknown aggregation mode {mode!r}; expected one of {AGGREGATION_MODES}") from None
    return reducer(values)


def make_bitmask(selection1: MusicSelection, selection2: MusicSelection,
                 rng: random.Random, num_points: int = NUM_POINTS_OF_CROSSOVER) -> List[int]:
    """
    Builds a multi-point crossover mask over the shorter parent.

    `num_points` distinct toggle positions are drawn; a block of 1s starts at
    one toggle and ends (inclusive) at the next, so the mask alternates in
    contiguous blocks: [0, 0, 1, 1, 1, 0] for toggles at 2 and 4.

    Args:
        selection1, selection2: The two parents.
        rng: The run's random stream.
        num_points: Number of toggles; capped at the shorter parent's length.

    Returns:
        List[int]: Mask of 0/1 values, as long as the shorter parent.
    """
    min_length = min(selection1.length(), selection2.length())
    bitmask = [0] * min_length
    for _ in range(min(num_points, min_length)):
        loc = rng.randrange(min_length)
        while bitmask[loc] == 1:
            loc = rng.randrange(min_length)
        bitmask[loc] = 1

    inside_block = False
    for i in range(min_length):
        if bitmask[i] == 1:
            # A toggle opens a block, or is the last position of the open one.
            inside_block = not inside_block
        elif inside_block:
            bitmask[i] = 1
    return bitmask


def crossover(selection1: MusicSelection, selection2: MusicSelection, rng: random.Random,
              num_points: int = NUM_POINTS_OF_CROSSOVER) -> Tuple[MusicSelection, MusicSelection]:
    """
    Multi-point crossover. Where the mask is 0 each child keeps its own
    parent's chunk; where it is 1 the chunks are swapped. When the parents
    differ in length, the tail of the longer one follows the mask's last value:
    0 keeps it with the longer parent's own child, 1 hands it to the other child.

    Returns:
        Tuple[MusicSelection, MusicSelection]: Two new children; the parents
                                               are left untouched.
    """
    bitmask = make_bitmask(selection1, selection2, rng, num_points)
    chunks1 = selection1.chunks
    chunks2 = selection2.chunks
    stop = len(bitmask)

    child1 = [b if swap else a for a, b, swap in zip(chunks1[:stop], chunks2[:stop], bitmask)]
    child2 = [a if swap else b for a, b, swap in zip(chunks1[:stop], chunks2[:stop], bitmask)]

    last_swapped = bool(bitmask[-1]) if bitmask else False
    if len(chunks1) > stop:
        (child2 if last_swapped else child1).extend(chunks1[stop:])
    elif len(chunks2) > stop:
        (child1 if last_swapped else child2).extend(chunks2[stop:])

    return (MusicSelection(child1, selection1.chunk_size),
            MusicSelection(child2, selection1.chunk_size))


def validate_corpus(pieces: Sequence[MusicSelection]) -> int:
    """
    Checks that a corpus can be evolved from and returns the common chunk size
    (the largest one) every piece will be equalized to.

    Raises:
        InvalidCorpusError: Empty corpus, invalid or silent piece, or a chunk
                            size that does not divide the common one.
    """
    if not pieces:
        raise InvalidCorpusError("the reference corpus is empty")
    for index, piece in enumerate(pieces):
        source = f"reference {index}"
        if not piece.is_valid():
            raise InvalidCorpusError("piece is empty, starts with HOLD or holds codes outside 0-129", source)
        if not piece.has_notes():
            raise InvalidCorpusError("piece contains no sounding note", source)
    chunk_size = max(piece.chunk_size for piece in pieces)
    for index, piece in enumerate(pieces):
        if chunk_size % piece.chunk_size:
            raise InvalidCorpusError(
                f"chunk size {piece.chunk_size} does not divide the common chunk size {chunk_size}",
                f"reference {index}")
    return chunk_size


class MusicGeneticAlgorithm:
    """
    Evolves variants of a reference corpus with elitism and tournament selection.
    """

    def __init__(self, pieces: Sequence[MusicSelection],
                 seed: Optional[int] = DEFAULT_SEED,
                 rng: Optional[random.Random] = None,
                 individuals_per_reference: int = NUM_INDIVS_PER_ORIG,
                 aggregation: str = AGGREGATE_AVERAGE,
                 niching: bool = False,
                 optimal_fitness: float = OPTIMAL_FITNESS,
                 mutation_rate: float = PROBABILITY_OF_MUTATION,
                 initial_mutation_rate: float = INITIAL_MUTATION_RATE,
                 crossover_rate: float = CROSSOVER_RATE,
                 random_initialized: float = RANDOM_INITIALIZED,
                 num_crossover_points: int = NUM_POINTS_OF_CROSSOVER,
                 mutation_distance: int = MUTATION_DISTANCE):
        """
        Equalizes the corpus to one chunk size and seeds the initial population
        with random selections and mutated copies of the references.

        Args:
            pieces: The reference corpus. The caller's selections are copied, never modified.
            seed: Seed of the run's random stream (ignored when `rng` is given).
            rng: An explicit random stream to use instead of seeding a new one.
            individuals_per_reference: Population size is `len(pieces)` times this.
            aggregation: How per-reference similarities are combined: "average", "min" or "max".
            niching: Divide fitness by the candidate's similarity to the whole population.
            optimal_fitness: Corpus similarity at which fitness peaks.
            mutation_rate: Per-chunk mutation probability applied to offspring.
            initial_mutation_rate: Per-chunk mutation probability for seeded corpus copies.
            crossover_rate: Probability that a selected pair is recombined.
            random_initialized: Share of the initial population generated at random.
            num_crossover_points: Toggle points in each crossover mask.
            mutation_distance: Largest semitone step of a note mutation.

        Raises:
            InvalidCorpusError: If the corpus cannot be used.
            ValueError: If a tunable is out of range.
        """
        if aggregation not in AGGREGATION_MODES:
            raise ValueError(f"unknown aggregation mode {aggregation!r}; expected one of {AGGREGATION_MODES}")
        if individuals_per_reference < 1:
            raise ValueError(f"individuals_per_reference must be at least 1, got {individuals_per_reference}")
        if not 0.0 <= random_initialized <= 1.0:
            raise ValueError(f"random_initialized must be within [0, 1], got {random_initialized}")

        self.chunk_size: int = validate_corpus(pieces)
        self.rng: random.Random = rng if rng is not None else random.Random(seed)
        self.aggregation: str = aggregation
        self.niching: bool = niching
        self.optimal_fitness: float = optimal_fitness
        self.mutation_rate: float = mutation_rate
        self.initial_mutation_rate: float = initial_mutation_rate
        self.crossover_rate: float = crossover_rate
        self.random_initialized: float = random_initialized
        self.num_crossover_points: int = num_crossover_points
        self.melody_generator: MelodyGenerator = MelodyGenerator(self.rng, mutation_distance)

        self.orig_pieces: List[MusicSelection] = []
        for piece in pieces:
            equalized = piece.copy()
            equalized.equalize(self.chunk_size)
            self.orig_pieces.append(equalized)

        self.population_size: int = len(self.orig_pieces) * individuals_per_reference
        self.population: List[MusicSelection] = self._initialize_population()
        self.generation: int = 0
        self.fitness_trace: List[float] = []

        logger.info("Initialized population of %d individuals from %d reference(s), chunk size %d",
                    self.population_size, len(self.orig_pieces), self.chunk_size)

    def _random_reference(self) -> MusicSelection:
        return self.orig_pieces[self.rng.randrange(len(self.orig_pieces))]

    def _initialize_population(self) -> List[MusicSelection]:
        """
        Creates generation 0: a share of fully random selections (each as long
        as a randomly chosen reference), the rest mutated copies of references
        at the exploration mutation rate.
        """
        population: List[MusicSelection] = []
        randomly_generated = int(self.random_initialized * self.population_size)
        for _ in range(randomly_generated):
            length = self._random_reference().length()
            population.append(self.melody_generator.random_selection(length, self.chunk_size))
        for _ in range(randomly_generated, self.population_size):
            population.append(self.melody_generator.mutated_copy(self._random_reference(),
                                                                 self.initial_mutation_rate))
        return population

    # --- Fitness ---

    def fitness_orig(self, candidate: MusicSelection) -> float:
        """
        Similarity of `candidate` to the corpus: transposed onto each reference,
        compared, and reduced with the configured aggregation mode.
        """
        similarities = [
            MusicUtils.similarity(orig, MusicUtils.transpose_to_reference(candidate, orig))
            for orig in self.orig_pieces
        ]
        return aggregate_similarities(similarities, self.aggregation)

    def fitness(self, candidate: MusicSelection) -> float:
        """
        `1 - |fitness_orig - optimal_fitness|`, divided by the candidate's
        summed similarity to the current population when niching is on.
        Within [0, 1] without niching.
        """
        value = 1.0 - abs(self.fitness_orig(candidate) - self.optimal_fitness)
        if self.niching:
            total_shared = sum(MusicUtils.similarity(candidate, other) for other in self.population)
            if total_shared > 0.0:
                value /= total_shared
        return value

    def evaluate(self) -> List[float]:
        """Fitness of every individual of the current population, in population order."""
        return [self.fitness(individual) for individual in self.population]

    # --- Selection ---

    @staticmethod
    def elite_indices(scores: Sequence[float], count: int = NUM_ELITES) -> List[int]:
        """
        Indices of the `count` best scores, best first. Each pass scans with a
        `>=` comparison, so among equal scores the later individual wins.
        """
        chosen: List[int] = []
        for _ in range(min(count, len(scores))):
            best: Optional[int] = None
            for i, score in enumerate(scores):
                if i in chosen:
                    continue
                if best is None or score >= scores[best]:
                    best = i
            chosen.append(best)
        return chosen

    def tournament_select(self, scores: Sequence[float]) -> MusicSelection:
        """
        Draws two individuals uniformly and returns the fitter one (the first
        drawn on a tie). The returned individual still belongs to the current
        population; callers copy it before changing it.
        """
        first = self.rng.randrange(len(self.population))
        second = self.rng.randrange(len(self.population))
        return self.population[first] if scores[first] >= scores[second] else self.population[second]

    def better(self, selection1: MusicSelection, selection2: MusicSelection) -> MusicSelection:
        """
        Returns the selection with the higher fitness; `selection1` on a tie.
        A convenience for comparing two candidates outside the generational
        loop, which ranks by precomputed scores instead.
        """
        return selection1 if self.fitness(selection1) >= self.fitness(selection2) else selection2

    def get_best_piece(self) -> MusicSelection:
        """A copy of the fittest individual of the current population."""
        scores = self.evaluate()
        return self.population[self.elite_indices(scores, 1)[0]].copy()

    # --- Generational loop ---

    def _reproduce(self, scores: Sequence[float]) -> Tuple[MusicSelection, MusicSelection]:
        parent1 = self.tournament_select(scores).copy()
        parent2 = self.tournament_select(scores).copy()
        if self.rng.random() < self.crossover_rate:
            parent1, parent2 = crossover(parent1, parent2, self.rng, self.num_crossover_points)
        children = (parent1, parent2)
        for child in children:
            self.melody_generator.mutate(child, self.mutation_rate)
            child.check()
        return children

    def step(self, scores: Optional[Sequence[float]] = None) -> List[float]:
        """
        Runs one generation and replaces the population with the next one.

        Args:
            scores: Fitness of the current population, if already computed.

        Returns:
            List[float]: Fitness of the new population.
        """
        if scores is None:
            scores = self.evaluate()

        new_population: List[MusicSelection] = [
            self.population[i].copy() for i in self.elite_indices(scores)
        ]
        while len(new_population) < self.population_size:
            for child in self._reproduce(scores):
                if len(new_population) < self.population_size:
                    new_population.append(child)

        self.population = new_population
        self.generation += 1
        new_scores = self.evaluate()
        logger.debug("Generation %d: best fitness %.4f", self.generation, max(new_scores))
        return new_scores

    def run(self, num_steps: int) -> MusicSelection:
        """
        Evolves the population for a fixed number of generations.

        `fitness_trace` receives the best fitness of the starting population
        followed by the best fitness of every generation produced.

        Args:
            num_steps: Number of generations; 0 only evaluates the current population.

        Returns:
            MusicSelection: A copy of the fittest individual at the end of the run.
        """
        if num_steps < 0:
            raise ValueError(f"num_steps must not be negative, got {num_steps}")
        scores = self.evaluate()
        self.fitness_trace.append(max(scores))
        for _ in range(num_steps):
            scores = self.step(scores)
            self.fitness_trace.append(max(scores))

        best_index = self.elite_indices(scores, 1)[0]
        logger.info("Finished %d generation(s): best fitness %.4f", num_steps, scores[best_index])
        return self.population[best_index].copy()
