from unittest.mock import MagicMock, patch

import httpx
import pytest

from widget_factory.config.settings import Settings
from widget_factory.database.repositories.factory import JobStoreFactory
from widget_factory.database.repositories.job_repository import JobRepository
from widget_factory.database.repositories.rest_job_repository import RestJobRepository


class TestJobStoreFactory:
    def test_creates_rest_store(self) -> None:
        store = JobStoreFactory.create(Settings(job_store="rest"), MagicMock(spec=httpx.AsyncClient))

        assert isinstance(store, RestJobRepository)

    def test_creates_postgres_store_without_connecting(self) -> None:
        with patch(
            "widget_factory.database.repositories.factory.create_pool"
        ) as mock_create_pool:
            store = JobStoreFactory.create(
                Settings(job_store="Postgres"), MagicMock(spec=httpx.AsyncClient)
            )

        assert isinstance(store, JobRepository)
        mock_create_pool.assert_called_once()
        mock_create_pool.return_value.open.assert_not_called()

    def test_unknown_store_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown job store"):
            JobStoreFactory.create(Settings(job_store="redis"), MagicMock(spec=httpx.AsyncClient))
