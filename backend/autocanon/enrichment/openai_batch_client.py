"""OpenAI Batch API client using stdlib HTTP."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from time import perf_counter
from typing import Any
from urllib import error as urllib_error
from urllib import request as urllib_request

from autocanon.enrichment.service_interface import EnrichmentServiceInterface
from autocanon.enrichment.types import BatchJobSnapshot, EnrichmentRequest

logger = logging.getLogger(__name__)


class EnrichmentServiceError(RuntimeError):
    """Raised when the enrichment service is misconfigured, unreachable, or returns garbage."""


@dataclass(slots=True)
class OpenAIBatchClient(EnrichmentServiceInterface):
    """Files + Batches REST client for responses-API batch jobs."""

    api_key: str
    model: str
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: int = 60
    organization: str | None = None
    project: str | None = None

    def submit_batch(
        self,
        requests: list[EnrichmentRequest],
        *,
        metadata: dict[str, Any] | None = None,
        completion_window: str = "24h",
    ) -> BatchJobSnapshot:
        """Upload a JSONL input file and create a batch over it."""

        if not requests:
            raise EnrichmentServiceError("Cannot submit an empty batch")

        started = perf_counter()
        jsonl = "\n".join(request.to_jsonl() for request in requests) + "\n"
        uploaded = self._upload_batch_file(jsonl)
        input_file_id = uploaded.get("id")
        if not isinstance(input_file_id, str) or not input_file_id:
            raise EnrichmentServiceError("OpenAI file upload returned no file id")

        created = self._request_json(
            "POST",
            "/batches",
            {
                "input_file_id": input_file_id,
                "endpoint": "/v1/responses",
                "completion_window": completion_window,
                "metadata": metadata or {},
            },
        )
        snapshot = BatchJobSnapshot.from_payload(created)
        if not snapshot.job_id:
            raise EnrichmentServiceError("OpenAI batch creation returned no batch id")
        if snapshot.input_file_id is None:
            snapshot.input_file_id = input_file_id
        logger.info(
            "openai.batch_created job_id=%s input_file_id=%s requests=%d elapsed_ms=%.2f",
            snapshot.job_id,
            input_file_id,
            len(requests),
            (perf_counter() - started) * 1000.0,
        )
        return snapshot

    def get_job(self, job_id: str) -> BatchJobSnapshot:
        payload = self._request_json("GET", f"/batches/{job_id}")
        snapshot = BatchJobSnapshot.from_payload(payload)
        if not snapshot.job_id:
            raise EnrichmentServiceError(f"OpenAI returned a batch without id for {job_id}")
        return snapshot

    def download_file(self, file_id: str) -> str:
        return self._request_text("GET", f"/files/{file_id}/content")

    def _headers(self, content_type: str | None = "application/json") -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if content_type:
            headers["Content-Type"] = content_type
        if self.organization:
            headers["OpenAI-Organization"] = self.organization
        if self.project:
            headers["OpenAI-Project"] = self.project
        return headers

    def _upload_batch_file(self, jsonl: str) -> dict[str, Any]:
        boundary = f"----autocanon{uuid.uuid4().hex}"
        body = b"".join(
            [
                f"--{boundary}\r\n".encode("utf-8"),
                b'Content-Disposition: form-data; name="purpose"\r\n\r\n',
                b"batch\r\n",
                f"--{boundary}\r\n".encode("utf-8"),
                b'Content-Disposition: form-data; name="file"; filename="batch.jsonl"\r\n',
                b"Content-Type: application/jsonl\r\n\r\n",
                jsonl.encode("utf-8"),
                b"\r\n",
                f"--{boundary}--\r\n".encode("utf-8"),
            ]
        )
        raw = self._send(
            "POST",
            "/files",
            data=body,
            headers=self._headers(f"multipart/form-data; boundary={boundary}"),
        )
        return self._decode_object(raw)

    def _request_json(self, method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        raw = self._send(method, path, data=data, headers=self._headers("application/json" if data else None))
        return self._decode_object(raw)

    def _request_text(self, method: str, path: str) -> str:
        return self._send(method, path, data=None, headers=self._headers(None))

    def _send(self, method: str, path: str, *, data: bytes | None, headers: dict[str, str]) -> str:
        url = f"{self.base_url.rstrip('/')}{path}"
        req = urllib_request.Request(url=url, data=data, method=method, headers=headers)
        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                return resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise EnrichmentServiceError(f"OpenAI HTTP {exc.code} for {method} {path}: {detail}") from exc
        except urllib_error.URLError as exc:
            raise EnrichmentServiceError(f"OpenAI request failed for {method} {path}: {exc.reason}") from exc

    @staticmethod
    def _decode_object(raw: str) -> dict[str, Any]:
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise EnrichmentServiceError("OpenAI returned a non-JSON response") from exc
        if not isinstance(decoded, dict):
            raise EnrichmentServiceError("OpenAI returned an unexpected response shape")
        return decoded
