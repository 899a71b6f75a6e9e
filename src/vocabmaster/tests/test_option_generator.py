"""Tests for multiple-choice option generation."""
import random
from collections import Counter

import pytest

from vocabmaster.services.option_generator import generate_options, shuffle


@pytest.fixture
def rng() -> random.Random:
    """Create a seeded random generator."""
    return random.Random(1234)


def test_correct_answer_appears_exactly_once(rng: random.Random) -> None:
    """Test that the correct answer is included once even if it is a candidate."""
    candidates = ["תפוח", "ספר", "מחשב", "חלון", "מורה", "תפוח"]
    for _ in range(50):
        options = generate_options("תפוח", candidates, 4, rng)
        assert options.count("תפוח") == 1
        assert len(options) == 4
        assert len(set(options)) == 4


def test_size_limited_by_distinct_distractors(rng: random.Random) -> None:
    """Test that a small pool gives fewer options instead of failing."""
    assert sorted(generate_options("a", ["a", "b"], 4, rng)) == ["a", "b"]
    assert generate_options("a", ["a"], 4, rng) == ["a"]
    assert generate_options("a", [], 4, rng) == ["a"]


def test_duplicate_candidates_are_not_repeated(rng: random.Random) -> None:
    """Test that duplicate candidates produce distinct options."""
    options = generate_options("a", ["b", "b", "c", "c"], 4, rng)
    assert sorted(options) == ["a", "b", "c"]


def test_single_option_is_the_correct_answer(rng: random.Random) -> None:
    """Test that count=1 yields only the correct answer."""
    assert generate_options("a", ["b", "c"], 1, rng) == ["a"]


def test_invalid_count() -> None:
    """Test that a count below one is rejected."""
    with pytest.raises(ValueError):
        generate_options("a", ["b"], 0)


def test_seeded_generation_is_deterministic() -> None:
    """Test that the same seed gives the same options."""
    candidates = [f"w{i}" for i in range(20)]
    first = generate_options("w0", candidates, 4, random.Random(7))
    second = generate_options("w0", candidates, 4, random.Random(7))
    assert first == second


def test_distractors_are_sampled_from_whole_pool(rng: random.Random) -> None:
    """Test that every distractor gets picked over many draws."""
    candidates = ["b", "c", "d", "e", "f"]
    seen = Counter()
    for _ in range(300):
        seen.update(generate_options("a", candidates, 3, rng))
    assert set(seen) == {"a", "b", "c", "d", "e", "f"}
    assert seen["a"] == 300


def test_shuffle_returns_permutation(rng: random.Random) -> None:
    """Test that shuffle keeps every item and leaves the input untouched."""
    items = list(range(10))
    shuffled = shuffle(items, rng)
    assert sorted(shuffled) == items
    assert items == list(range(10))


def test_shuffle_covers_all_positions(rng: random.Random) -> None:
    """Test that each item can land in each position."""
    positions = {item: set() for item in "abc"}
    for _ in range(200):
        for index, item in enumerate(shuffle("abc", rng)):
            positions[item].add(index)
    assert all(found == {0, 1, 2} for found in positions.values())


if __name__ == "__main__":
    pytest.main([__file__])
