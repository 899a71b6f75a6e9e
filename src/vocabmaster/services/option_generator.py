"""Multiple-choice option generation."""
import random
from typing import Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def shuffle(items: Iterable[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return a uniformly shuffled copy of items (Fisher-Yates)."""
    rng = rng or random
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randrange(i + 1)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def generate_options(
    correct_answer: str,
    candidates: Sequence[str],
    count: int = 4,
    rng: Optional[random.Random] = None,
) -> List[str]:
    """Pick up to count - 1 distinct distractors and mix in the correct answer.

    The candidate pool may contain the correct answer and duplicates; neither
    leads to repeated options. When the pool is too small the result simply
    has fewer than count entries.
    """
    if count < 1:
        raise ValueError("count must be positive")
    rng = rng or random

    distractors: List[str] = []
    seen = set()
    for candidate in candidates:
        if candidate == correct_answer or candidate in seen:
            continue
        seen.add(candidate)
        distractors.append(candidate)

    picked = rng.sample(distractors, min(count - 1, len(distractors)))
    picked.append(correct_answer)
    return shuffle(picked, rng)
