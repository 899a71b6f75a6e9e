"""Gamification: points, XP levels, session streaks and badges."""
import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence

from vocabmaster import monitoring
from vocabmaster.config import settings
from vocabmaster.models.learning_models import UserGameState
from vocabmaster.models.session_models import LevelUpEvent, SessionStats
from vocabmaster.services.persistence import PersistenceService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Badge:
    """Badge definition."""
    id: str
    name: str
    name_he: str
    description: str
    description_he: str
    icon: str
    active: bool = True  # Inactive badges are declared but no rule awards them


BADGES: Dict[str, Badge] = {
    badge.id: badge
    for badge in (
        Badge("first_steps", "First Steps", "צעדים ראשונים",
              "Complete your first exercise", "השלם את התרגיל הראשון שלך", "🎯"),
        Badge("word_master", "Word Master", "אלוף המילים",
              "Master 50 words", "שלוט ב-50 מילים", "📚", active=False),
        Badge("streak_star", "Streak Star", "כוכב הרצף",
              "7-day practice streak", "רצף תרגול של 7 ימים", "⭐", active=False),
        Badge("story_creator", "Story Creator", "יוצר סיפורים",
              "Generate your first AI story", "צור את הסיפור הראשון שלך עם AI", "📖", active=False),
        Badge("perfect_round", "Perfect Round", "סיבוב מושלם",
              "Complete a practice session with no mistakes", "השלם סשן תרגול ללא טעויות", "💯"),
        Badge("speed_demon", "Speed Demon", "שד המהירות",
              "Answer 10 questions in under 30 seconds", "ענה על 10 שאלות בפחות מ-30 שניות", "⚡"),
    )
}


def calculate_level(xp: int, thresholds: Optional[Sequence[int]] = None) -> int:
    """Level reached with xp, starting at 1 and capped at the number of thresholds."""
    thresholds = thresholds or settings.game.level_thresholds
    for i in range(len(thresholds) - 1, -1, -1):
        if xp >= thresholds[i]:
            return i + 1
    return 1


def xp_to_next_level(xp: int, thresholds: Optional[Sequence[int]] = None) -> int:
    """XP still missing for the next level, 0 at the top level."""
    thresholds = thresholds or settings.game.level_thresholds
    level = calculate_level(xp, thresholds)
    if level >= len(thresholds):
        return 0
    return thresholds[level] - xp


def get_level_progress(xp: int, thresholds: Optional[Sequence[int]] = None) -> float:
    """Progress through the current level in percent; the top level reads 100."""
    thresholds = thresholds or settings.game.level_thresholds
    level = calculate_level(xp, thresholds)
    if level >= len(thresholds):
        return 100.0
    current = thresholds[level - 1]
    following = thresholds[level]
    progress = (xp - current) / (following - current) * 100
    return min(100.0, max(0.0, progress))


def calculate_points(difficulty: int, streak: int = 0) -> int:
    """Points for a correct answer: difficulty base plus a capped streak bonus."""
    game = settings.game
    base_points = game.points_by_difficulty.get(difficulty, game.default_points)
    streak_bonus = min(streak * game.streak_bonus_step, game.streak_bonus_cap)
    return base_points + streak_bonus


def evaluate_badges(stats: SessionStats, elapsed: float) -> List[str]:
    """Badges a finished session qualifies for, before filtering earned ones."""
    game = settings.game
    qualified = []
    if stats.correct > 0:
        qualified.append("first_steps")
    if stats.correct >= game.badge_min_correct and stats.wrong == 0:
        qualified.append("perfect_round")
    if stats.correct >= game.badge_min_correct and elapsed < game.speed_demon_seconds:
        qualified.append("speed_demon")
    return qualified


class GameService:
    """Tracks the session score of one user and their persistent game state."""

    def __init__(
        self,
        persistence: PersistenceService,
        user_id: str,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize the service for a user; the game state is loaded eagerly."""
        self.persistence = persistence
        self.user_id = user_id
        self.clock = clock or time.monotonic
        self.state: UserGameState = persistence.get_game_state(user_id)
        self.session_stats = SessionStats()
        self.level_up_listeners: List[Callable[[LevelUpEvent], None]] = []
        self.badge_listeners: List[Callable[[Badge], None]] = []

    @property
    def xp_to_next(self) -> int:
        return xp_to_next_level(self.state.xp)

    @property
    def level_progress(self) -> float:
        return get_level_progress(self.state.xp)

    def start_session(self) -> None:
        """Reset the session counters and start the session clock."""
        self.session_stats = SessionStats(start_time=self.clock())
        monitoring.sessions_started.inc()
        logger.info(f"Game session started for user {self.user_id}")

    def record_correct_answer(self, difficulty: int = 1) -> int:
        """Score a correct answer and return the points awarded.

        Only the in-memory state changes here; call save() to persist it.
        """
        points = calculate_points(difficulty, self.session_stats.streak)
        stats = self.session_stats
        stats.correct += 1
        stats.streak += 1
        stats.points += points

        old_level = self.state.level
        self.state.xp += points
        self.state.total_score += points
        self.state.level = calculate_level(self.state.xp)
        monitoring.answers_total.labels(result="correct").inc()

        if self.state.level > old_level:
            event = LevelUpEvent(self.user_id, old_level, self.state.level)
            logger.info(f"User {self.user_id} reached level {event.new_level}")
            monitoring.level_ups.inc()
            for listener in self.level_up_listeners:
                listener(event)
        return points

    def record_wrong_answer(self) -> None:
        self.session_stats.wrong += 1
        self.session_stats.streak = 0
        monitoring.answers_total.labels(result="wrong").inc()

    def award_badge(self, badge_id: str) -> bool:
        """Add a badge to the user's collection; returns False if it is unknown or owned."""
        badge = BADGES.get(badge_id)
        if not badge:
            logger.warning(f"Unknown badge {badge_id}")
            return False
        if self.state.has_badge(badge_id):
            return False

        self.state.badges.append(badge_id)
        self.persistence.save_game_state(self.user_id, self.state)
        logger.info(f"User {self.user_id} earned badge {badge_id}")
        monitoring.badges_awarded.labels(badge_id=badge_id).inc()
        for listener in self.badge_listeners:
            listener(badge)
        return True

    def check_and_award_badges(self) -> List[str]:
        """Award every badge the current session qualifies for and return the new ones."""
        stats = self.session_stats
        elapsed = self.clock() - stats.start_time if stats.start_time is not None else float("inf")
        awarded = []
        for badge_id in evaluate_badges(stats, elapsed):
            if self.state.has_badge(badge_id):
                continue
            if self.award_badge(badge_id):
                awarded.append(badge_id)
        return awarded

    def end_session(self) -> SessionStats:
        """Award badges, reset the counters and return the final session stats."""
        final_stats = replace(self.session_stats)
        if final_stats.start_time is not None:
            monitoring.session_duration.observe(self.clock() - final_stats.start_time)
        monitoring.sessions_completed.inc()
        try:
            self.check_and_award_badges()
        finally:
            self.session_stats = SessionStats()
        logger.info(
            f"Game session ended for user {self.user_id}: {final_stats.correct} correct, "
            f"{final_stats.wrong} wrong, {final_stats.points} points"
        )
        return final_stats

    def save(self) -> None:
        """Persist xp, level, score and badges."""
        self.persistence.save_game_state(self.user_id, self.state)
