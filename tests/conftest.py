"""Shared fixtures for the variant_ga tests."""

import random
import sys
from pathlib import Path

import pytest

# Ensure the project root (backend_logic, driver, variant_ga) is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from variant_ga.music_constants import HOLD, REST
from variant_ga.music_selection import MusicSelection


@pytest.fixture
def rng():
    return random.Random(2024)


@pytest.fixture
def scenario_piece():
    """Note 60 held one extra chunk, then note 62, then silence."""
    return MusicSelection([60, HOLD, 62, REST], 1)


@pytest.fixture
def two_piece_corpus():
    return [
        MusicSelection([60, HOLD, 62, 64, REST, 65, HOLD, HOLD], 2),
        MusicSelection([67, 65, 64, 62], 1),
    ]


def write_piece(directory: Path, name: str, chunk_size: int, chunks) -> Path:
    path = directory / name
    path.write_text(f"{chunk_size}\n" + " ".join(str(c) for c in chunks) + "\n")
    return path
