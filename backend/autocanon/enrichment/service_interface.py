"""Enrichment service interface for pluggable batch backends."""

from abc import ABC, abstractmethod
from typing import Any

from autocanon.enrichment.types import BatchJobSnapshot, EnrichmentRequest


class EnrichmentServiceInterface(ABC):
    """Abstract asynchronous batch enrichment service."""

    model: str

    @abstractmethod
    def submit_batch(
        self,
        requests: list[EnrichmentRequest],
        *,
        metadata: dict[str, Any] | None = None,
        completion_window: str = "24h",
    ) -> BatchJobSnapshot:
        """Upload the requests and create a batch job."""

    @abstractmethod
    def get_job(self, job_id: str) -> BatchJobSnapshot:
        """Fetch the current state of a batch job."""

    @abstractmethod
    def download_file(self, file_id: str) -> str:
        """Return the text content of a result file."""
