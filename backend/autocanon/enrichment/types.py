"""Typed enrichment service payloads independent of persistence."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

TERMINAL_JOB_STATUSES = frozenset({"completed", "failed", "cancelled", "expired"})
FAILED_JOB_STATUSES = frozenset({"failed", "cancelled", "expired"})

_ITEM_STATUS_BY_JOB_STATUS = {
    "validating": "submitted",
    "in_progress": "running",
    "finalizing": "running",
    "completed": "completed",
    "failed": "failed",
    "cancelled": "failed",
    "expired": "failed",
}


@dataclass(slots=True)
class EnrichmentRequest:
    """One line of a batch input file."""

    custom_id: str
    body: dict[str, Any]
    method: str = "POST"
    url: str = "/v1/responses"

    def to_jsonl(self) -> str:
        return json.dumps(
            {"custom_id": self.custom_id, "method": self.method, "url": self.url, "body": self.body},
            ensure_ascii=False,
        )


@dataclass(slots=True)
class BatchUsage:
    """Token usage reported for a job; absent counts stay None."""

    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None


@dataclass(slots=True)
class BatchJobSnapshot:
    """Service-side view of a batch job at one point in time."""

    job_id: str
    status: str
    input_file_id: str | None = None
    output_file_id: str | None = None
    error_file_id: str | None = None
    usage: BatchUsage = field(default_factory=BatchUsage)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "BatchJobSnapshot":
        return cls(
            job_id=str(payload.get("id") or ""),
            status=str(payload.get("status") or "unknown"),
            input_file_id=payload.get("input_file_id") or None,
            output_file_id=payload.get("output_file_id") or None,
            error_file_id=payload.get("error_file_id") or None,
            usage=normalize_usage(payload.get("usage")),
            raw=payload,
        )


@dataclass(slots=True)
class BatchResultLine:
    """One decoded line from a batch output or error file."""

    custom_id: str
    status_code: int | None
    body: dict[str, Any] | None
    error: dict[str, Any] | None
    raw: dict[str, Any]

    @property
    def ok(self) -> bool:
        if self.error:
            return False
        return self.status_code is not None and 200 <= self.status_code < 300

    @property
    def error_detail(self) -> str:
        if self.error:
            message = self.error.get("message")
            code = self.error.get("code")
            if message and code:
                return f"{code}: {message}"
            return str(message or code or self.error)
        return f"Batch request returned HTTP {self.status_code}"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "BatchResultLine | None":
        custom_id = payload.get("custom_id")
        if not isinstance(custom_id, str) or not custom_id:
            return None
        response = payload.get("response") if isinstance(payload.get("response"), dict) else {}
        status_code = response.get("status_code")
        body = response.get("body")
        error = payload.get("error")
        return cls(
            custom_id=custom_id,
            status_code=status_code if isinstance(status_code, int) else None,
            body=body if isinstance(body, dict) else None,
            error=error if isinstance(error, dict) else None,
            raw=payload,
        )


def map_job_status_to_item_status(status: str) -> str:
    """Map a service job status to the status of its in-flight items."""

    return _ITEM_STATUS_BY_JOB_STATUS.get(status, "submitted")


def normalize_usage(usage: Any) -> BatchUsage:
    """Read token counts, accepting both responses and chat-completions field names."""

    if not isinstance(usage, dict):
        return BatchUsage()

    def _count(*keys: str) -> int | None:
        for key in keys:
            value = usage.get(key)
            if isinstance(value, int) and not isinstance(value, bool):
                return value
        return None

    return BatchUsage(
        input_tokens=_count("input_tokens", "prompt_tokens"),
        output_tokens=_count("output_tokens", "completion_tokens"),
        total_tokens=_count("total_tokens"),
    )


def extract_output_text(body: dict[str, Any] | None) -> str | None:
    """Return the assistant text of a responses-API body."""

    if not isinstance(body, dict):
        return None
    if isinstance(body.get("output_text"), str):
        return body["output_text"]

    chunks: list[str] = []
    for item in body.get("output") or []:
        if not isinstance(item, dict):
            continue
        if item.get("type") != "message" or item.get("role") != "assistant":
            continue
        for part in item.get("content") or []:
            if isinstance(part, dict) and part.get("type") == "output_text" and isinstance(part.get("text"), str):
                chunks.append(part["text"])
    joined = "".join(chunks).strip()
    return joined or None
