"""Tests for points, levels and badges."""
from unittest.mock import MagicMock

import pytest

from vocabmaster.config import LEVEL_THRESHOLDS
from vocabmaster.models.learning_models import UserData, UserGameState
from vocabmaster.models.session_models import LevelUpEvent, SessionStats
from vocabmaster.services.game_service import (
    BADGES,
    GameService,
    calculate_level,
    calculate_points,
    evaluate_badges,
    get_level_progress,
    xp_to_next_level,
)
from vocabmaster.services.persistence import DemoPersistenceService


class Clock:
    """Settable monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> Clock:
    """Create a settable clock."""
    return Clock()


@pytest.fixture
def game_service(persistence: DemoPersistenceService, student: UserData, clock: Clock) -> GameService:
    """Create a game service for the test student."""
    return GameService(persistence, student.id, clock=clock)


def answer_correctly(game_service: GameService, times: int, difficulty: int = 1) -> None:
    for _ in range(times):
        game_service.record_correct_answer(difficulty)


@pytest.mark.parametrize("difficulty", [1, 2, 3, 4, 5])
def test_calculate_points(difficulty: int) -> None:
    """Test base points plus the capped streak bonus."""
    for streak in range(15):
        assert calculate_points(difficulty, streak) == difficulty * 10 + min(2 * streak, 20)


def test_unknown_difficulty_gets_default_points() -> None:
    """Test points for a difficulty outside 1-5."""
    assert calculate_points(9) == 10
    assert calculate_points(0, 3) == 16


def test_calculate_level() -> None:
    """Test level boundaries and the cap."""
    assert calculate_level(0) == 1
    assert calculate_level(99) == 1
    assert calculate_level(100) == 2
    assert calculate_level(599) == 3
    assert calculate_level(5499) == 10
    assert calculate_level(5500) == 11
    assert calculate_level(1_000_000) == 11


def test_level_is_monotonic_and_below_next_threshold() -> None:
    """Test that levels never drop as xp grows."""
    previous = 1
    for xp in range(0, 6000, 7):
        level = calculate_level(xp)
        assert level >= previous
        if level < len(LEVEL_THRESHOLDS):
            assert xp < LEVEL_THRESHOLDS[level]
        assert xp >= LEVEL_THRESHOLDS[level - 1]
        previous = level


def test_level_progress_helpers() -> None:
    """Test xp to next level and percentage progress."""
    assert xp_to_next_level(0) == 100
    assert xp_to_next_level(250) == 50
    assert xp_to_next_level(5500) == 0
    assert get_level_progress(50) == 50.0
    assert get_level_progress(200) == 50.0
    assert get_level_progress(6000) == 100.0


def test_record_correct_answer_uses_streak_before_increment(game_service: GameService) -> None:
    """Test points across a streak and a miss."""
    game_service.start_session()

    assert game_service.record_correct_answer(1) == 10
    assert game_service.record_correct_answer(1) == 12
    assert game_service.record_correct_answer(3) == 34
    game_service.record_wrong_answer()
    assert game_service.record_correct_answer(1) == 10

    stats = game_service.session_stats
    assert (stats.correct, stats.wrong, stats.streak, stats.points) == (4, 1, 1, 66)
    assert game_service.state.xp == 66
    assert game_service.state.total_score == 66
    assert game_service.state.level == 1


def test_scoring_is_in_memory_until_saved(
    game_service: GameService, persistence: DemoPersistenceService, student: UserData
) -> None:
    """Test that save() persists the game state."""
    game_service.start_session()
    game_service.record_correct_answer(2)
    assert persistence.get_game_state(student.id).xp == 0

    game_service.save()
    state = persistence.get_game_state(student.id)
    assert (state.xp, state.total_score, state.level) == (20, 20, 1)


def test_level_up_event(
    persistence: DemoPersistenceService, student: UserData, clock: Clock
) -> None:
    """Test that crossing a threshold notifies listeners."""
    persistence.save_game_state(student.id, UserGameState(xp=95, level=1, total_score=95))
    game_service = GameService(persistence, student.id, clock=clock)
    listener = MagicMock()
    game_service.level_up_listeners.append(listener)

    game_service.start_session()
    game_service.record_correct_answer(1)

    assert game_service.state.level == 2
    listener.assert_called_once_with(LevelUpEvent(student.id, 1, 2))

    game_service.record_correct_answer(1)
    listener.assert_called_once()


def test_first_steps_badge(
    game_service: GameService, persistence: DemoPersistenceService, student: UserData
) -> None:
    """Test that one correct answer earns first_steps at session end."""
    listener = MagicMock()
    game_service.badge_listeners.append(listener)
    game_service.start_session()
    game_service.record_correct_answer(1)

    final = game_service.end_session()

    assert final.correct == 1
    assert game_service.session_stats == SessionStats()
    assert persistence.get_game_state(student.id).badges == ["first_steps"]
    listener.assert_called_once_with(BADGES["first_steps"])


def test_no_badge_without_correct_answers(game_service: GameService) -> None:
    """Test that an all-wrong session earns nothing."""
    game_service.start_session()
    game_service.record_wrong_answer()
    game_service.end_session()
    assert game_service.state.badges == []


def test_perfect_round_without_speed(game_service: GameService, clock: Clock) -> None:
    """Test ten correct answers with no mistakes in a slow session."""
    game_service.start_session()
    answer_correctly(game_service, 10)
    clock.now += 120

    assert game_service.check_and_award_badges() == ["first_steps", "perfect_round"]


def test_speed_demon_with_mistake(game_service: GameService, clock: Clock) -> None:
    """Test ten correct answers in under thirty seconds with one miss."""
    game_service.start_session()
    answer_correctly(game_service, 5)
    game_service.record_wrong_answer()
    answer_correctly(game_service, 5)
    clock.now += 20

    assert game_service.check_and_award_badges() == ["first_steps", "speed_demon"]


def test_badges_are_awarded_once(game_service: GameService, clock: Clock) -> None:
    """Test that qualifying again does not duplicate badges."""
    for _ in range(2):
        game_service.start_session()
        answer_correctly(game_service, 10)
        clock.now += 10
        game_service.end_session()

    assert sorted(game_service.state.badges) == ["first_steps", "perfect_round", "speed_demon"]
    assert game_service.award_badge("first_steps") is False


def test_unknown_badge(game_service: GameService) -> None:
    """Test that an unknown badge id is rejected."""
    assert game_service.award_badge("moon_walker") is False
    assert game_service.state.badges == []


def test_session_without_start_is_not_fast(game_service: GameService) -> None:
    """Test that a session without a start time never counts as fast."""
    answer_correctly(game_service, 10)
    assert "speed_demon" not in game_service.check_and_award_badges()


def test_inactive_badges_are_never_evaluated() -> None:
    """Test that declared but inactive badges have no rule."""
    inactive = {badge_id for badge_id, badge in BADGES.items() if not badge.active}
    assert inactive == {"word_master", "streak_star", "story_creator"}

    stats = SessionStats(correct=100, wrong=0, streak=100, points=5000, start_time=0.0)
    assert not inactive & set(evaluate_badges(stats, elapsed=1.0))


def test_progress_properties(game_service: GameService) -> None:
    """Test the level progress shortcuts."""
    game_service.start_session()
    game_service.record_correct_answer(5)
    assert game_service.xp_to_next == 50
    assert game_service.level_progress == 50.0


if __name__ == "__main__":
    pytest.main([__file__])
