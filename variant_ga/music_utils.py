# variant_ga/music_utils.py
"""
Module: music_utils.py

Purpose:
This module provides the music-related helpers the genetic algorithm builds
its fitness on: the melodic similarity between two selections, the rigid
transposition that lines a candidate up with a reference before comparing
them, and the spelling of chunk codes as note names. Vector arithmetic is
done with numpy; pitch spelling is left to music21.
"""

from typing import Iterable, List

import numpy as np
from music21 import pitch as m21pitch

from .music_constants import (
    HOLD, REST, HOLD_TOKEN, REST_TOKEN, NUM_NOTES_PER_OCTAVE
)
from .music_selection import MusicSelection, is_note

# Value a silent position takes in a sounding profile. Pitch classes are
# stored shifted by one, so pitch class C still counts in the dot product.
SILENCE_VALUE: int = 0


class MusicUtils:
    """
    A utility class of static methods for comparing and naming melodies.
    """

    @staticmethod
    def sounding_profile(chunks: Iterable[int], length: int) -> np.ndarray:
        """
        Converts the first `length` chunks into the pitch class sounding at
        each position.

        A note sets the current value to its pitch class plus one (octaves are
        collapsed). HOLD and REST both keep the current value, so only the
        next note changes it. Positions before the first note are silent.

        Args:
            chunks: Chunk codes of a selection.
            length: Number of leading positions to convert.

        Returns:
            np.ndarray: Float vector of `length` profile values.
        """
        profile = np.zeros(length, dtype=float)
        current = SILENCE_VALUE
        for i, value in enumerate(chunks):
            if i >= length:
                break
            if is_note(value):
                current = value % NUM_NOTES_PER_OCTAVE + 1
            # HOLD and REST keep the last sounded pitch class.
            profile[i] = current
        return profile

    @staticmethod
    def similarity(selection_a: MusicSelection, selection_b: MusicSelection) -> float:
        """
        Cosine similarity between the sounding profiles of two selections,
        truncated to the shorter one. Holds and rests are treated as the
        last sounded note and notes an octave apart are equal.

        Returns:
            float: Similarity in [0, 1]. 0.0 when either truncated profile is
                   entirely silent.
        """
        min_length = min(len(selection_a), len(selection_b))
        if min_length == 0:
            return 0.0
        vec_a = MusicUtils.sounding_profile(selection_a, min_length)
        vec_b = MusicUtils.sounding_profile(selection_b, min_length)
        magnitude = np.sqrt(np.dot(vec_a, vec_a) * np.dot(vec_b, vec_b))
        if magnitude == 0.0:
            return 0.0
        # Rounding can push a perfect match a hair above 1.
        return float(min(1.0, np.dot(vec_a, vec_b) / magnitude))

    @staticmethod
    def transpose_to_reference(candidate: MusicSelection, reference: MusicSelection) -> MusicSelection:
        """
        Returns a copy of `candidate` transposed so that its first sounding
        note has exactly the pitch of the first sounding note of `reference`.
        Every note moves by the same offset; HOLD and REST stay in place.
        A candidate (or reference) without notes comes back as a plain copy.
        """
        first_candidate = candidate.first_note_index()
        first_reference = reference.first_note_index()
        if first_candidate is None or first_reference is None:
            return candidate.copy()
        offset = reference.get_chunk_at(first_reference) - candidate.get_chunk_at(first_candidate)
        return candidate.transposed(offset)

    @staticmethod
    def pitch_class_name(midi_value: int) -> str:
        """
        Lowercase, sharp-spelled pitch-class name of a MIDI pitch (e.g. "c#").
        music21 spells some black keys as flats; those are respelled.
        """
        p = m21pitch.Pitch(midi=midi_value)
        if p.accidental is not None and p.accidental.alter < 0:
            p = p.getEnharmonic()
        return p.name.lower()

    @staticmethod
    def note_tokens(selection: MusicSelection) -> List[str]:
        """
        Transcribes a selection chunk by chunk: "h" for HOLD, "r" for REST,
        otherwise the pitch-class name followed by `pitch // 12`.
        """
        tokens: List[str] = []
        for value in selection:
            if value == HOLD:
                tokens.append(HOLD_TOKEN)
            elif value == REST:
                tokens.append(REST_TOKEN)
            else:
                octave = (value - value % NUM_NOTES_PER_OCTAVE) // NUM_NOTES_PER_OCTAVE
                tokens.append(f"{MusicUtils.pitch_class_name(value)}{octave}")
        return tokens

    @staticmethod
    def to_notes(selection: MusicSelection) -> str:
        """Comma-separated note-name transcription of a selection."""
        return ", ".join(MusicUtils.note_tokens(selection))
