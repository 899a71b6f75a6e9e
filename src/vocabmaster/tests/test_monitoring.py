"""Tests for monitoring."""
from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY

from vocabmaster import monitoring
from vocabmaster.services.game_service import GameService
from vocabmaster.services.persistence import DemoPersistenceService
from vocabmaster.models.learning_models import UserData


def test_start_monitoring() -> None:
    """Test that the exporter is started on the given port."""
    with patch("vocabmaster.monitoring.start_http_server") as start_http_server:
        monitoring.start_monitoring(9123)
    start_http_server.assert_called_once_with(9123)


def test_answers_are_counted(persistence: DemoPersistenceService, student: UserData) -> None:
    """Test that scoring updates the answer counters."""

    def answers(result: str) -> float:
        return REGISTRY.get_sample_value("vocabmaster_answers_total", {"result": result}) or 0.0

    correct_before, wrong_before = answers("correct"), answers("wrong")
    game_service = GameService(persistence, student.id)
    game_service.start_session()
    game_service.record_correct_answer(1)
    game_service.record_wrong_answer()

    assert answers("correct") == correct_before + 1
    assert answers("wrong") == wrong_before + 1


if __name__ == "__main__":
    pytest.main([__file__])
