import httpx

from widget_factory.config.settings import Settings
from widget_factory.database.connection import create_pool
from widget_factory.database.repositories.base import BaseJobStore
from widget_factory.database.repositories.job_repository import JobRepository
from widget_factory.database.repositories.rest_job_repository import RestJobRepository


class JobStoreFactory:
    """Creates the job store configured by ``settings.job_store``."""

    STORES = ("rest", "postgres")

    @classmethod
    def create(cls, settings: Settings, http_client: httpx.AsyncClient) -> BaseJobStore:
        store = settings.job_store.lower()
        if store == "rest":
            return RestJobRepository(
                http_client=http_client,
                rest_base_url=settings.rest_base_url,
                anon_key=settings.supabase_anon_key,
                table=settings.jobs_table,
            )
        if store == "postgres":
            return JobRepository(create_pool(settings), table=settings.jobs_table)
        raise ValueError(f"Unknown job store '{store}'. Choose from: {list(cls.STORES)}")
