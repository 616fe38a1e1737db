# variant_ga/melody_generator.py
"""
Module: melody_generator.py

Purpose:
This module creates random selections and mutates existing ones during the
evolutionary process. All randomness comes from the random stream handed to
the generator, so a run is reproducible from its seed.

Mutation rules (applied independently to each chunk with the given probability):
- A note is moved up or down by 1..MUTATION_DISTANCE semitones. A result
  outside the MIDI range is replaced by a uniformly drawn pitch.
- A HOLD or REST, with equal chance:
    - flips to the other silence symbol. Flipping a HOLD to a REST turns a
      following HOLD into the last sounded note so the music is not cut off;
      flipping a REST to a HOLD turns a following HOLD into a REST so no music
      is added. A REST at the very start is never flipped, since a selection
      must not begin with HOLD.
    - becomes a note close to the last sounded note (never at position 0).
"""

import random

from .music_constants import (
    HOLD, REST, MIN_PITCH, MAX_PITCH, MUTATION_DISTANCE, PROBABILITY_OF_MUTATION
)
from .music_selection import MusicSelection, is_note


class MelodyGenerator:
    """
    Generates and mutates selections using the run's random stream.
    """

    def __init__(self, rng: random.Random, mutation_distance: int = MUTATION_DISTANCE):
        """
        Args:
            rng (random.Random): The random stream shared by every stochastic operator of a run.
            mutation_distance (int): Largest step, in semitones, of a note mutation.
        """
        if mutation_distance < 1:
            raise ValueError(f"mutation_distance must be at least 1, got {mutation_distance}")
        self.rng = rng
        self.mutation_distance = mutation_distance

    def random_selection(self, length: int, chunk_size: int) -> MusicSelection:
        return MusicSelection.from_random(length, chunk_size, self.rng)

    def _perturbed_pitch(self, anchor: int) -> int:
        """
        Moves `anchor` up or down (equal chance) by 1..mutation_distance
        semitones. Results outside the MIDI range are redrawn uniformly
        instead of being clamped.
        """
        step = 1 + self.rng.randrange(self.mutation_distance)
        if self.rng.random() > 0.5:
            updated = anchor + step
        else:
            updated = anchor - step
        if not MIN_PITCH <= updated <= MAX_PITCH:
            updated = self.rng.randrange(MAX_PITCH + 1)
        return updated

    def mutate_from_note(self, selection: MusicSelection, position: int) -> None:
        """
        Writes a new note at `position`. A note is perturbed around its own
        pitch; a silence becomes a note near the last sounded note (or a
        random note if nothing sounded before it).
        """
        current = selection.get_chunk_at(position)
        anchor = current if is_note(current) else selection.last_note(position)
        selection.set_chunk_at(position, self._perturbed_pitch(anchor))

    def _flip_silence(self, selection: MusicSelection, position: int) -> None:
        current = selection.get_chunk_at(position)
        has_next = position + 1 < selection.length()
        if current == HOLD:
            if has_next and selection.get_chunk_at(position + 1) == HOLD:
                selection.set_chunk_at(position + 1, selection.last_note(position))
            selection.set_chunk_at(position, REST)
        elif current == REST and position > 0:
            if has_next and selection.get_chunk_at(position + 1) == HOLD:
                selection.set_chunk_at(position + 1, REST)
            selection.set_chunk_at(position, HOLD)

    def mutate(self, selection: MusicSelection, probability: float = PROBABILITY_OF_MUTATION) -> MusicSelection:
        """
        Mutates `selection` in place, visiting every chunk once.

        Args:
            selection (MusicSelection): The selection to mutate.
            probability (float): Chance that each chunk is mutated. 0.0 leaves
                                 the selection unchanged.

        Returns:
            MusicSelection: The same (mutated) selection, for chaining.
        """
        for i in range(selection.length()):
            if self.rng.random() >= probability:
                continue
            if is_note(selection.get_chunk_at(i)):
                self.mutate_from_note(selection, i)
            elif self.rng.random() > 0.5:
                self._flip_silence(selection, i)
            elif i > 0:
                self.mutate_from_note(selection, i)
        return selection

    def mutated_copy(self, selection: MusicSelection, probability: float) -> MusicSelection:
        return self.mutate(selection.copy(), probability)
