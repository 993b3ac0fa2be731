import pytest

from widget_factory.database.models import JobStatus
from widget_factory.database.repositories.job_repository import JobRepository
from widget_factory.jobs.exceptions import JobQueryError


@pytest.mark.integration
class TestJobRepositoryListRecent:
    @pytest.mark.asyncio
    async def test_returns_newest_first(self, job_repo: JobRepository, seed_job) -> None:
        older = seed_job(age_seconds=120)
        newer = seed_job(age_seconds=5)

        jobs = await job_repo.list_recent("anon_it", "w-it", 5)

        assert [job.id for job in jobs] == [newer, older]

    @pytest.mark.asyncio
    async def test_filters_by_user_and_widget(self, job_repo: JobRepository, seed_job) -> None:
        mine = seed_job()
        seed_job(user_id="anon_other")
        seed_job(widget_id="w-other")

        jobs = await job_repo.list_recent("anon_it", "w-it", 5)

        assert [job.id for job in jobs] == [mine]

    @pytest.mark.asyncio
    async def test_respects_limit(self, job_repo: JobRepository, seed_job) -> None:
        for age in range(4):
            seed_job(age_seconds=age)

        jobs = await job_repo.list_recent("anon_it", "w-it", 2)

        assert len(jobs) == 2


@pytest.mark.integration
class TestJobRepositoryFindById:
    @pytest.mark.asyncio
    async def test_maps_completed_job(self, job_repo: JobRepository, seed_job) -> None:
        job_id = seed_job(
            status="completed",
            file_keys=["uploads/anon_it/1_a.pdf"],
            result_data={"kind": "success"},
        )

        job = await job_repo.find_by_id(job_id)

        assert job is not None
        assert job.status is JobStatus.COMPLETED
        assert job.file_keys == ["uploads/anon_it/1_a.pdf"]
        assert job.result_data == {"kind": "success"}

    @pytest.mark.asyncio
    async def test_missing_job_returns_none(self, job_repo: JobRepository, db_conn) -> None:
        job = await job_repo.find_by_id("00000000-0000-0000-0000-000000000000")

        assert job is None

    @pytest.mark.asyncio
    async def test_malformed_id_raises_query_error(
        self, job_repo: JobRepository, db_conn
    ) -> None:
        with pytest.raises(JobQueryError):
            await job_repo.find_by_id("not-a-uuid")

    @pytest.mark.asyncio
    async def test_finds_job_by_uuid_text(self, job_repo: JobRepository, seed_job) -> None:
        job_id = seed_job()

        job = await job_repo.find_by_id(job_id.upper())

        assert job is not None
        assert job.id == job_id
