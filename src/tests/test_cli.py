"""
Tests for the command-line entry point and settings.
"""

import argparse

import pytest

from dubstudio.cli import main, parse_args, parse_steps
from dubstudio.config import Settings
from dubstudio.models import JobState, JobStatus
from dubstudio.persistence import FileJobRepository


def test_parse_steps():
    assert parse_steps("transcribe, translate") == [JobStatus.TRANSCRIBING, JobStatus.TRANSLATING]
    assert parse_steps("all") == [
        JobStatus.TRANSCRIBING,
        JobStatus.TRANSLATING,
        JobStatus.DUBBING,
        JobStatus.LIPSYNCING,
    ]
    with pytest.raises(argparse.ArgumentTypeError):
        parse_steps("transcribe,mux")


def test_input_required_unless_managing_jobs():
    with pytest.raises(SystemExit):
        parse_args([])
    assert parse_args(["--list-jobs"]).list_jobs


def test_defaults():
    args = parse_args(["--input_video", "talk.mp4"])

    assert args.steps == [JobStatus.TRANSCRIBING, JobStatus.TRANSLATING, JobStatus.DUBBING]
    assert args.stt == "openai"
    assert args.lipsync == "passthrough"


def test_list_and_delete_jobs(tmp_path, capsys):
    repo = FileJobRepository(tmp_path)
    repo.save_job(JobState(id="JOB-7", status=JobStatus.COMPLETED, progress=100.0, target_lang="fr"))

    assert main(["--workdir", str(tmp_path), "--list-jobs"]) == 0
    assert "JOB-7\tCOMPLETED" in capsys.readouterr().out

    assert main(["--workdir", str(tmp_path), "--delete-job", "JOB-7"]) == 0
    assert repo.load_all_jobs() == []


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("DUBSTUDIO_SAMPLE_RATE", "16000")
    monkeypatch.setenv("DUBSTUDIO_MAX_RETRIES", "5")
    monkeypatch.setenv("DUBSTUDIO_RETRY_BASE_DELAY", "not-a-number")
    monkeypatch.setenv("DUBSTUDIO_MUX_POLICY", "video")

    settings = Settings.from_env()

    assert settings.sample_rate == 16000
    assert settings.max_retries == 5
    assert settings.retry_base_delay == 1.0
    assert settings.mux_policy == "video"
