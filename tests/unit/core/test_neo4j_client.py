"""Unit tests for Neo4jClientManager retry and configuration handling."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from neo4j.exceptions import TransientError

from warmpath.core.exceptions import ConfigurationError
from warmpath.core.neo4j_client import Neo4jClientManager


@pytest.fixture(autouse=True)
def restore_client_state():
    original_settings = Neo4jClientManager._settings
    original_driver = Neo4jClientManager._driver
    yield
    Neo4jClientManager._settings = original_settings
    Neo4jClientManager._driver = original_driver


@pytest.fixture
def session():
    """Async-context-manager session double."""
    mock_session = MagicMock()
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=False)
    return mock_session


class TestNeo4jClientManager:

    @pytest.mark.asyncio
    async def test_missing_host_is_a_configuration_error(self):
        Neo4jClientManager._driver = None
        Neo4jClientManager.configure(Neo4jClientManager._settings.model_copy(update={"host": ""}))

        with pytest.raises(ConfigurationError):
            await Neo4jClientManager.get_driver()

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, session):
        """Test that a transient failure is retried and the next attempt's rows returned."""
        result = MagicMock()
        result.data = AsyncMock(return_value=[{"id": "person_jane_doe"}])
        session.run = AsyncMock(side_effect=[TransientError("database busy"), result])

        with patch.object(Neo4jClientManager, "get_session", AsyncMock(return_value=session)):
            records = await Neo4jClientManager.run_query(
                "RETURN 1", {"id": "person_jane_doe"}, max_retries=3, retry_delay=0
            )

        assert records == [{"id": "person_jane_doe"}]
        assert session.run.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self, session):
        session.run = AsyncMock(side_effect=TransientError("database busy"))

        with patch.object(Neo4jClientManager, "get_session", AsyncMock(return_value=session)):
            with pytest.raises(TransientError):
                await Neo4jClientManager.run_query("RETURN 1", max_retries=2, retry_delay=0)

        assert session.run.await_count == 2

    @pytest.mark.asyncio
    async def test_non_transient_errors_are_not_retried(self, session):
        session.run = AsyncMock(side_effect=ValueError("bad parameter"))

        with patch.object(Neo4jClientManager, "get_session", AsyncMock(return_value=session)):
            with pytest.raises(ValueError):
                await Neo4jClientManager.run_query("RETURN 1", max_retries=3, retry_delay=0)

        assert session.run.await_count == 1
