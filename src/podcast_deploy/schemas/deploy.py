# src/podcast_deploy/schemas/deploy.py
"""Pydantic schemas exchanged with deploy callers and collaborators."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from podcast_deploy.models.deploy_run import RunStatus


class DeployEpisode(BaseModel):
    """A published episode as handed over by the episode lister."""

    id: str = Field(..., min_length=1, description="Episode identifier")
    audio_final_path: str | None = Field(None, description="Local path of the final audio file")
    audio_mime: str | None = Field(None, description="MIME type of the final audio")
    artwork_path: str | None = Field(None, description="Episode artwork override")
    transcript_srt_path: str | None = Field(None, description="SRT transcript")
    publish_at: datetime | None = Field(None, description="Scheduled publish time")

    model_config = ConfigDict(frozen=True)

    @field_validator("id")
    @classmethod
    def id_is_single_path_segment(cls, value: str) -> str:
        # The id becomes the file name under episodes/ on every destination.
        if "/" in value or "\\" in value or ".." in value:
            raise ValueError("Episode id must not contain path separators or '..'")
        return value


class DeployResult(BaseModel):
    """Tally of one destination deploy."""

    uploaded: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        """Human-readable log line used for the run record."""
        if self.errors:
            return (
                f"Uploaded {self.uploaded}, skipped {self.skipped}. "
                f"Errors: {'; '.join(self.errors)}"
            )
        return f"Uploaded {self.uploaded} file(s), skipped {self.skipped} unchanged."


class TestResult(BaseModel):
    """Outcome of a destination connectivity test."""

    __test__ = False  # not a pytest test class

    ok: bool
    error: str | None = None


class RunRecord(BaseModel):
    """Persisted deploy run as exposed to operators."""

    id: str
    destination_id: str
    podcast_id: str
    status: RunStatus
    started_at: datetime | None
    finished_at: datetime | None
    log: str | None

    model_config = ConfigDict(from_attributes=True)


class RunResult(BaseModel):
    """Result of deploying to one destination."""

    run_id: str
    destination_id: str
    status: RunStatus
    uploaded: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    log: str = ""
