"""Enrichment service contract and OpenAI Batch API client."""

from autocanon.enrichment.openai_batch_client import EnrichmentServiceError, OpenAIBatchClient
from autocanon.enrichment.service_interface import EnrichmentServiceInterface
from autocanon.enrichment.types import BatchJobSnapshot, BatchResultLine, BatchUsage, EnrichmentRequest

__all__ = [
    "BatchJobSnapshot",
    "BatchResultLine",
    "BatchUsage",
    "EnrichmentRequest",
    "EnrichmentServiceError",
    "EnrichmentServiceInterface",
    "OpenAIBatchClient",
]
