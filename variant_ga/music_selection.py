# variant_ga/music_selection.py
"""
Module: music_selection.py

Purpose:
This module defines MusicSelection, the chromosome evolved by the genetic
algorithm. A MusicSelection is an ordered, mutable list of chunk codes plus
the chunk size (number of chunks per quarter note) that fixes how long each
chunk sounds.

Chunk codes:
- 0-127: a MIDI pitch starting to sound in this chunk.
- HOLD (128): the previously sounding note continues.
- REST (129): silence.

Invariants kept by every operation in this package:
- A selection holds at least one chunk.
- The first chunk is never HOLD, since a HOLD must follow a note or a REST.
- Every chunk is inside the alphabet above.

Only the absolute representation (chunks store pitches) exists; operators
that need melodic context ask for `last_note` instead of storing deltas.
"""

import random
from typing import Iterable, Iterator, Optional

from .exceptions import ChromosomeError
from .music_constants import (
    ChunkSequence, HOLD, REST, MIN_PITCH, MAX_PITCH, MAX_NOTE_VALUE,
    NUM_NOTES_PER_OCTAVE
)


def is_note(value: int) -> bool:
    """True if the chunk code is a pitch (not HOLD, REST or out of the alphabet)."""
    return MIN_PITCH <= value <= MAX_PITCH


def is_valid_chunk(value: int) -> bool:
    return MIN_PITCH <= value <= MAX_NOTE_VALUE


class MusicSelection:
    """
    A melody chromosome: chunk codes plus their temporal resolution.

    Selections are value-like. Operators that derive a new individual from an
    existing one must go through `copy()` so that two individuals never share
    the same backing list.
    """

    def __init__(self, chunks: Iterable[int], chunk_size: int):
        """
        Wraps an explicit chunk sequence.

        Args:
            chunks: The chunk codes, kept in the given order.
            chunk_size: Chunks per quarter note; must be positive.
        """
        if chunk_size < 1:
            raise ChromosomeError(f"chunk size must be positive, got {chunk_size}")
        self._chunks: ChunkSequence = chunks if isinstance(chunks, list) else list(chunks)
        self.chunk_size: int = chunk_size

    @classmethod
    def from_random(cls, length: int, chunk_size: int, rng: random.Random) -> "MusicSelection":
        """
        Builds a selection with every chunk drawn uniformly over the whole
        alphabet. The first chunk is redrawn until it is not HOLD.

        Args:
            length: Number of chunks, at least 1.
            chunk_size: Chunks per quarter note.
            rng: The run's random stream.

        Returns:
            MusicSelection: The new random selection.
        """
        if length < 1:
            raise ChromosomeError(f"length must be at least 1, got {length}")
        first = rng.randrange(MAX_NOTE_VALUE + 1)
        while first == HOLD:
            first = rng.randrange(MAX_NOTE_VALUE + 1)
        chunks = [first]
        chunks.extend(rng.randrange(MAX_NOTE_VALUE + 1) for _ in range(length - 1))
        return cls(chunks, chunk_size)

    def copy(self) -> "MusicSelection":
        return MusicSelection(list(self._chunks), self.chunk_size)

    # --- Sequence protocol ---

    def __len__(self) -> int:
        return len(self._chunks)

    def __iter__(self) -> Iterator[int]:
        return iter(self._chunks)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MusicSelection):
            return NotImplemented
        return self.chunk_size == other.chunk_size and self._chunks == other._chunks

    __hash__ = None  # Mutable; not usable as a dict key.

    def __str__(self) -> str:
        return str(self._chunks)

    def __repr__(self) -> str:
        return f"MusicSelection({self._chunks!r}, chunk_size={self.chunk_size})"

    # --- Positional access ---

    def length(self) -> int:
        return len(self._chunks)

    @property
    def chunks(self) -> ChunkSequence:
        """A copy of the chunk codes; writes go through `set_chunk_at`."""
        return list(self._chunks)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._chunks):
            raise IndexError(f"chunk index {index} out of range for length {len(self._chunks)}")

    def get_chunk_at(self, index: int) -> int:
        self._check_index(index)
        return self._chunks[index]

    def set_chunk_at(self, index: int, value: int) -> None:
        self._check_index(index)
        self._chunks[index] = value

    # --- Melodic queries ---

    def last_note(self, index: int) -> int:
        """
        Returns the nearest note strictly before `index`, scanning backward.
        REST is returned as a sentinel when no note sounds before `index`;
        callers rely on it to anchor mutation at the start of the melody.
        """
        for j in range(min(index, len(self._chunks)) - 1, -1, -1):
            if is_note(self._chunks[j]):
                return self._chunks[j]
        return REST

    def first_note_index(self) -> Optional[int]:
        """Index of the first sounding note, or None for an all-silent selection."""
        for i, value in enumerate(self._chunks):
            if is_note(value):
                return i
        return None

    def has_notes(self) -> bool:
        return self.first_note_index() is not None

    def is_valid(self) -> bool:
        return (len(self._chunks) >= 1
                and self._chunks[0] != HOLD
                and all(is_valid_chunk(value) for value in self._chunks))

    # --- Transformations ---

    def equalize(self, target_chunk_size: int) -> None:
        """
        Stretches the selection to a finer resolution. `ratio - 1` HOLDs are
        inserted after every chunk so real durations are kept; notes are never
        removed or reordered.

        Args:
            target_chunk_size: New chunk size, a positive multiple of the current one.

        Raises:
            ChromosomeError: If the target is not a multiple of the current chunk size.
        """
        if target_chunk_size < self.chunk_size or target_chunk_size % self.chunk_size:
            raise ChromosomeError(
                f"cannot equalize chunk size {self.chunk_size} to {target_chunk_size}: "
                "target must be a multiple of the current chunk size")
        ratio = target_chunk_size // self.chunk_size
        if ratio > 1:
            stretched: ChunkSequence = []
            for value in self._chunks:
                stretched.append(value)
                stretched.extend([HOLD] * (ratio - 1))
            self._chunks = stretched
        self.chunk_size = target_chunk_size

    def transposed(self, offset: int) -> "MusicSelection":
        """
        Returns a copy with every note shifted by `offset` semitones.
        HOLD and REST are untouched. A shifted note that leaves the MIDI range
        is moved back by whole octaves, which keeps its pitch class.
        """
        shifted: ChunkSequence = []
        for value in self._chunks:
            if is_note(value):
                value += offset
                while value < MIN_PITCH:
                    value += NUM_NOTES_PER_OCTAVE
                while value > MAX_PITCH:
                    value -= NUM_NOTES_PER_OCTAVE
            shifted.append(value)
        return MusicSelection(shifted, self.chunk_size)

    def check(self) -> None:
        """
        Self-check/repair hook run on every offspring. Chunks outside the
        alphabet are clamped into it in place and a leading HOLD becomes a
        REST. Selections built by the operators are always valid already, so
        for them this leaves the chunks untouched.
        """
        for i, value in enumerate(self._chunks):
            if value < MIN_PITCH:
                self._chunks[i] = MIN_PITCH
            elif value > MAX_NOTE_VALUE:
                self._chunks[i] = MAX_NOTE_VALUE
        if self._chunks and self._chunks[0] == HOLD:
            self._chunks[0] = REST
