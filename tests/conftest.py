from unittest.mock import MagicMock

import pytest


# 공통 Mock fixtures
@pytest.fixture
def mock_otel_manager():
    """OTEL Manager mock - 모든 테스트에서 사용"""
    mock = MagicMock()
    mock.tracer.start_as_current_span.return_value.__enter__.return_value = MagicMock()
    mock.joined_participants_counter = MagicMock()
    mock.evicted_participants_counter = MagicMock()
    mock.sweep_duration_histogram = MagicMock()
    return mock
