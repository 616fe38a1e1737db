import random

import pytest

from variant_ga.exceptions import InvalidCorpusError
from variant_ga.genetic_algorithm_core import (
    MusicGeneticAlgorithm, aggregate_similarities, crossover, make_bitmask, validate_corpus
)
from variant_ga.music_constants import HOLD, REST
from variant_ga.music_selection import MusicSelection
from variant_ga.music_utils import MusicUtils


# --- Aggregation ---

@pytest.mark.parametrize("mode, expected", [
    ("average", 0.5), ("min", 0.2), ("max", 0.8),
])
def test_aggregate_similarities(mode, expected):
    assert aggregate_similarities([0.2, 0.5, 0.8], mode) == pytest.approx(expected)


def test_aggregate_similarities_rejects_unknown_mode():
    with pytest.raises(ValueError):
        aggregate_similarities([0.5], "median")


# --- Crossover ---

def test_bitmask_forms_one_contiguous_block_for_two_points():
    rng = random.Random(1)
    p1 = MusicSelection(list(range(40, 60)), 1)
    p2 = MusicSelection(list(range(60, 80)), 1)
    for _ in range(100):
        mask = make_bitmask(p1, p2, rng)
        assert len(mask) == 20
        ones = [i for i, bit in enumerate(mask) if bit]
        assert len(ones) >= 2
        assert ones == list(range(ones[0], ones[-1] + 1))


def test_bitmask_spans_shorter_parent_only(rng):
    mask = make_bitmask(MusicSelection([60] * 5, 1), MusicSelection([62] * 9, 1), rng)
    assert len(mask) == 5


def test_bitmask_caps_points_at_shorter_length(rng):
    mask = make_bitmask(MusicSelection([60], 1), MusicSelection([62, 64], 1), rng, num_points=2)
    assert mask == [1]


def test_crossover_of_identical_parents_returns_copies(rng):
    parent = MusicSelection([60, HOLD, 62, REST, 64, 65, HOLD], 2)
    for _ in range(20):
        child1, child2 = crossover(parent, parent, rng)
        assert child1 == parent
        assert child2 == parent
        assert child1 is not parent and child2 is not parent


def test_crossover_swaps_inside_mask_block(rng):
    p1 = MusicSelection([1, 2, 3, 4, 5, 6], 1)
    p2 = MusicSelection([11, 12, 13, 14, 15, 16], 1)
    child1, child2 = crossover(p1, p2, rng)
    for i in range(6):
        assert {child1.get_chunk_at(i), child2.get_chunk_at(i)} == {p1.get_chunk_at(i), p2.get_chunk_at(i)}
    assert child1 != p1 and child2 != p2
    assert p1.chunks == [1, 2, 3, 4, 5, 6]


def test_crossover_appends_longer_tail_to_exactly_one_child(rng):
    short = MusicSelection([1, 2, 3, 4], 1)
    long = MusicSelection([11, 12, 13, 14, 15, 16, 17], 1)
    for _ in range(30):
        child1, child2 = crossover(short, long, rng)
        assert sorted([child1.length(), child2.length()]) == [4, 7]
        longer_child = child1 if child1.length() == 7 else child2
        assert longer_child.chunks[4:] == [15, 16, 17]


def test_crossover_tail_follows_final_mask_value():
    short = MusicSelection([1, 2, 3, 4], 1)
    long = MusicSelection([11, 12, 13, 14, 15, 16], 1)
    for seed in range(30):
        mask = make_bitmask(long, short, random.Random(seed))
        child1, child2 = crossover(long, short, random.Random(seed))
        if mask[-1] == 0:
            assert child1.length() == 6
        else:
            assert child2.length() == 6


# --- Corpus validation ---

def test_empty_corpus_fails_fast():
    with pytest.raises(InvalidCorpusError):
        MusicGeneticAlgorithm([])


def test_silent_reference_fails_fast():
    with pytest.raises(InvalidCorpusError):
        MusicGeneticAlgorithm([MusicSelection([60, 62], 1), MusicSelection([REST, HOLD, REST], 1)])


def test_reference_starting_with_hold_is_invalid():
    with pytest.raises(InvalidCorpusError):
        validate_corpus([MusicSelection([HOLD, 60], 1)])


def test_incompatible_chunk_sizes_are_invalid():
    with pytest.raises(InvalidCorpusError):
        validate_corpus([MusicSelection([60], 3), MusicSelection([62], 4)])


def test_unknown_aggregation_is_rejected(scenario_piece):
    with pytest.raises(ValueError):
        MusicGeneticAlgorithm([scenario_piece], aggregation="median")


# --- Initialization ---

def test_corpus_is_equalized_without_touching_caller_pieces(two_piece_corpus):
    ga = MusicGeneticAlgorithm(two_piece_corpus, individuals_per_reference=4)
    assert ga.chunk_size == 2
    assert [p.chunk_size for p in ga.orig_pieces] == [2, 2]
    assert ga.orig_pieces[1].chunks == [67, HOLD, 65, HOLD, 64, HOLD, 62, HOLD]
    assert two_piece_corpus[1].chunks == [67, 65, 64, 62]
    assert two_piece_corpus[1].chunk_size == 1


def test_population_size_and_validity(two_piece_corpus):
    ga = MusicGeneticAlgorithm(two_piece_corpus, individuals_per_reference=10)
    assert len(ga.population) == 20
    reference_lengths = {p.length() for p in ga.orig_pieces}
    for individual in ga.population:
        assert individual.is_valid()
        assert individual.chunk_size == 2
        assert individual.length() in reference_lengths


def test_population_members_do_not_alias_references(scenario_piece):
    ga = MusicGeneticAlgorithm([scenario_piece], individuals_per_reference=10)
    for individual in ga.population:
        assert all(individual is not ref for ref in ga.orig_pieces)


# --- Fitness ---

def test_reference_similarity_and_fitness_of_reference(scenario_piece):
    ga = MusicGeneticAlgorithm([scenario_piece], individuals_per_reference=4)
    assert ga.fitness_orig(scenario_piece) == pytest.approx(1.0)
    assert ga.fitness(scenario_piece) == pytest.approx(0.95)


def test_fitness_orig_is_transposition_invariant(scenario_piece):
    ga = MusicGeneticAlgorithm([scenario_piece], individuals_per_reference=4)
    shifted = MusicSelection([65, HOLD, 67, REST], 1)
    assert ga.fitness_orig(shifted) == pytest.approx(1.0)


def test_fitness_is_bounded_without_niching(two_piece_corpus):
    ga = MusicGeneticAlgorithm(two_piece_corpus, individuals_per_reference=10)
    rng = random.Random(8)
    candidates = list(ga.population)
    candidates += [MusicSelection.from_random(n, 2, rng) for n in (1, 3, 8, 20)]
    candidates.append(MusicSelection([REST, HOLD, REST], 2))
    for candidate in candidates:
        assert 0.0 <= ga.fitness(candidate) <= 1.0


def test_fitness_aggregation_modes(two_piece_corpus):
    candidate = MusicSelection([60, 62, 64, 65, 67, 69, 71, 72], 2)
    values = {}
    for mode in ("average", "min", "max"):
        ga = MusicGeneticAlgorithm(two_piece_corpus, individuals_per_reference=2, aggregation=mode)
        values[mode] = ga.fitness_orig(candidate)
    assert values["min"] <= values["average"] <= values["max"]


def test_niching_divides_by_population_similarity(scenario_piece):
    ga = MusicGeneticAlgorithm([scenario_piece], individuals_per_reference=6, niching=True)
    candidate = ga.population[0]
    shared = sum(MusicUtils.similarity(candidate, other) for other in ga.population)
    plain = 1.0 - abs(ga.fitness_orig(candidate) - ga.optimal_fitness)
    if shared > 0:
        assert ga.fitness(candidate) == pytest.approx(plain / shared)


# --- Selection ---

def test_elite_indices_prefers_later_on_ties():
    assert MusicGeneticAlgorithm.elite_indices([0.3, 0.9, 0.5, 0.9]) == [3, 1]
    assert MusicGeneticAlgorithm.elite_indices([0.1, 0.7, 0.7, 0.2], 1) == [2]
    assert MusicGeneticAlgorithm.elite_indices([0.4]) == [0]


def test_tournament_select_returns_fitter_of_two(scenario_piece):
    ga = MusicGeneticAlgorithm([scenario_piece], individuals_per_reference=8)
    scores = [float(i) for i in range(len(ga.population))]
    for _ in range(30):
        state = ga.rng.getstate()
        first = ga.rng.randrange(len(ga.population))
        second = ga.rng.randrange(len(ga.population))
        ga.rng.setstate(state)
        chosen = ga.tournament_select(scores)
        assert chosen is ga.population[max(first, second)]


def test_better_returns_first_on_tie(scenario_piece):
    ga = MusicGeneticAlgorithm([scenario_piece], individuals_per_reference=2)
    a = scenario_piece.copy()
    b = scenario_piece.copy()
    assert ga.better(a, b) is a


# --- Generational loop ---

def test_step_keeps_population_size_and_copies_elites(scenario_piece):
    ga = MusicGeneticAlgorithm([scenario_piece], individuals_per_reference=10)
    scores = ga.evaluate()
    elite_ids = MusicGeneticAlgorithm.elite_indices(scores)
    elites = [ga.population[i] for i in elite_ids]
    old_population = list(ga.population)

    ga.step(scores)

    assert len(ga.population) == 10
    assert ga.generation == 1
    assert ga.population[0] == elites[0] and ga.population[1] == elites[1]
    assert all(new is not old for new in ga.population for old in old_population)


def test_odd_population_size_is_respected(scenario_piece):
    ga = MusicGeneticAlgorithm([scenario_piece], individuals_per_reference=7)
    ga.run(3)
    assert len(ga.population) == 7


def test_best_fitness_never_decreases(two_piece_corpus):
    ga = MusicGeneticAlgorithm(two_piece_corpus, individuals_per_reference=10, seed=42)
    ga.run(15)
    assert len(ga.fitness_trace) == 16
    for earlier, later in zip(ga.fitness_trace, ga.fitness_trace[1:]):
        assert later >= earlier


def test_same_seed_reproduces_run(two_piece_corpus):
    runs = []
    for _ in range(2):
        ga = MusicGeneticAlgorithm(two_piece_corpus, individuals_per_reference=8, seed=77)
        best = ga.run(6)
        runs.append((best, list(ga.fitness_trace)))
    assert runs[0][0] == runs[1][0]
    assert runs[0][1] == runs[1][1]


def test_explicit_rng_is_used(scenario_piece):
    ga1 = MusicGeneticAlgorithm([scenario_piece], rng=random.Random(5), individuals_per_reference=6)
    ga2 = MusicGeneticAlgorithm([scenario_piece], seed=5, individuals_per_reference=6)
    assert ga1.population == ga2.population


def test_get_best_piece_returns_copy_of_fittest(scenario_piece):
    ga = MusicGeneticAlgorithm([scenario_piece], individuals_per_reference=6)
    scores = ga.evaluate()
    best = ga.get_best_piece()
    assert ga.fitness(best) == pytest.approx(max(scores))
    assert all(best is not individual for individual in ga.population)


def test_end_to_end_scenario(scenario_piece):
    ga = MusicGeneticAlgorithm([scenario_piece], individuals_per_reference=50)
    assert ga.orig_pieces[0].chunks == [60, HOLD, 62, REST]
    assert len(ga.population) == 50

    generation_zero_best = max(ga.evaluate())
    best = ga.run(5)

    assert ga.fitness(best) >= generation_zero_best
    assert ga.fitness_trace[0] == pytest.approx(generation_zero_best)
    assert best.is_valid()


def test_run_rejects_negative_steps(scenario_piece):
    ga = MusicGeneticAlgorithm([scenario_piece], individuals_per_reference=2)
    with pytest.raises(ValueError):
        ga.run(-1)
