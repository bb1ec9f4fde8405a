"""
Tests for job snapshot storage.
"""

import pytest

from dubstudio.models import AudioArtifact, JobState, JobStatus, LogEntry, Segment, TranscriptResult
from dubstudio.persistence import FileJobRepository, InMemoryJobRepository


def _job(job_id: str = "JOB-1") -> JobState:
    return JobState(id=job_id).update(
        status=JobStatus.DUBBING,
        progress=55.0,
        target_lang="de",
        selected_steps=(JobStatus.TRANSCRIBING, JobStatus.DUBBING),
        transcript=TranscriptResult(
            full_text="Hi.", segments=(Segment(start=0.0, end=1.0, text="Hi."),), language="en"
        ),
        dubbed_audio=AudioArtifact(path="/tmp/x.wav", duration=1.0, sample_rate=24000),
        logs=[LogEntry.create("Processing started...")],
    )


@pytest.fixture(params=["memory", "file"])
def repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryJobRepository()
    return FileJobRepository(tmp_path / "store")


def test_save_overwrites_snapshot(repo):
    job = _job()
    repo.save_job(job)
    repo.save_job(job.update(progress=60.0))

    jobs = repo.load_all_jobs()

    assert len(jobs) == 1
    assert jobs[0] == job.update(progress=60.0)


def test_delete_removes_job_and_its_blobs(repo):
    repo.save_job(_job("JOB-1"))
    repo.save_job(_job("JOB-10"))
    repo.save_blob("JOB-1_original", b"video")
    repo.save_blob("JOB-1_audio", b"audio")
    repo.save_blob("JOB-10_original", b"other")

    repo.delete_job("JOB-1")

    assert [j.id for j in repo.load_all_jobs()] == ["JOB-10"]
    assert repo.load_blob("JOB-1_original") is None
    assert repo.load_blob("JOB-1_audio") is None
    assert repo.load_blob("JOB-10_original") == b"other"


def test_missing_blob_is_none(repo):
    assert repo.load_blob("nothing") is None


def test_unreadable_snapshot_skipped(tmp_path):
    repo = FileJobRepository(tmp_path)
    repo.save_job(_job())
    (tmp_path / "jobs" / "broken.json").write_text("{not json", encoding="utf-8")

    assert [j.id for j in repo.load_all_jobs()] == ["JOB-1"]


def test_snapshot_survives_new_repository_instance(tmp_path):
    job = _job()
    FileJobRepository(tmp_path).save_job(job)

    assert FileJobRepository(tmp_path).load_all_jobs() == [job]
