"""Tests for the OpenAI batch client HTTP exchange."""

from __future__ import annotations

import io
import json
import unittest
from unittest.mock import patch
from urllib import error as urllib_error

from autocanon.enrichment.openai_batch_client import EnrichmentServiceError, OpenAIBatchClient
from autocanon.enrichment.types import EnrichmentRequest

_URLOPEN = "autocanon.enrichment.openai_batch_client.urllib_request.urlopen"


class _FakeResponse:
    def __init__(self, body: str) -> None:
        self._body = body.encode("utf-8")

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def read(self) -> bytes:
        return self._body


class OpenAIBatchClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = OpenAIBatchClient(
            api_key="sk-test",
            model="gpt-test",
            base_url="https://api.example.test/v1/",
            organization="org-1",
        )

    def test_submit_uploads_jsonl_then_creates_batch(self) -> None:
        responses = [
            _FakeResponse(json.dumps({"id": "file-in", "purpose": "batch"})),
            _FakeResponse(json.dumps({"id": "batch_1", "status": "validating"})),
        ]
        requests = [
            EnrichmentRequest(custom_id="28car-s1", body={"model": "gpt-test"}),
            EnrichmentRequest(custom_id="28car-s2", body={"model": "gpt-test"}),
        ]

        with patch(_URLOPEN, side_effect=responses) as urlopen:
            snapshot = self.client.submit_batch(requests, metadata={"source": "create_batch"})

        self.assertEqual(snapshot.job_id, "batch_1")
        self.assertEqual(snapshot.status, "validating")
        self.assertEqual(snapshot.input_file_id, "file-in")

        upload = urlopen.call_args_list[0].args[0]
        self.assertEqual(upload.full_url, "https://api.example.test/v1/files")
        self.assertEqual(upload.get_method(), "POST")
        self.assertTrue(upload.get_header("Content-type").startswith("multipart/form-data; boundary="))
        self.assertEqual(upload.get_header("Authorization"), "Bearer sk-test")
        self.assertEqual(upload.get_header("Openai-organization"), "org-1")
        body = upload.data.decode("utf-8")
        self.assertIn('name="purpose"\r\n\r\nbatch\r\n', body)
        self.assertIn('"custom_id": "28car-s2"', body)
        self.assertIn('"url": "/v1/responses"', body)

        create = urlopen.call_args_list[1].args[0]
        self.assertEqual(create.full_url, "https://api.example.test/v1/batches")
        self.assertEqual(
            json.loads(create.data),
            {
                "input_file_id": "file-in",
                "endpoint": "/v1/responses",
                "completion_window": "24h",
                "metadata": {"source": "create_batch"},
            },
        )

    def test_get_job_reads_files_and_usage(self) -> None:
        payload = {
            "id": "batch_1",
            "status": "completed",
            "output_file_id": "file-out",
            "error_file_id": "",
            "usage": {"input_tokens": 10, "output_tokens": 4, "total_tokens": 14},
        }

        with patch(_URLOPEN, return_value=_FakeResponse(json.dumps(payload))) as urlopen:
            snapshot = self.client.get_job("batch_1")

        self.assertEqual(urlopen.call_args.args[0].get_method(), "GET")
        self.assertTrue(snapshot.is_terminal)
        self.assertEqual(snapshot.output_file_id, "file-out")
        self.assertIsNone(snapshot.error_file_id)
        self.assertEqual(snapshot.usage.total_tokens, 14)

    def test_download_returns_raw_text(self) -> None:
        with patch(_URLOPEN, return_value=_FakeResponse('{"custom_id": "a"}\n')) as urlopen:
            text = self.client.download_file("file-out")

        self.assertEqual(text, '{"custom_id": "a"}\n')
        self.assertEqual(urlopen.call_args.args[0].full_url, "https://api.example.test/v1/files/file-out/content")

    def test_http_errors_become_service_errors(self) -> None:
        http_error = urllib_error.HTTPError(
            "https://api.example.test/v1/batches/batch_1",
            429,
            "Too Many Requests",
            {},
            io.BytesIO(b'{"error": "rate limited"}'),
        )

        with patch(_URLOPEN, side_effect=http_error):
            with self.assertRaises(EnrichmentServiceError) as ctx:
                self.client.get_job("batch_1")

        self.assertIn("HTTP 429", str(ctx.exception))
        self.assertIn("rate limited", str(ctx.exception))

    def test_network_and_shape_errors_become_service_errors(self) -> None:
        with patch(_URLOPEN, side_effect=urllib_error.URLError("connection refused")):
            with self.assertRaises(EnrichmentServiceError):
                self.client.get_job("batch_1")
        with patch(_URLOPEN, return_value=_FakeResponse("<html>")):
            with self.assertRaises(EnrichmentServiceError):
                self.client.get_job("batch_1")
        with patch(_URLOPEN, return_value=_FakeResponse("[]")):
            with self.assertRaises(EnrichmentServiceError):
                self.client.get_job("batch_1")
        with patch(_URLOPEN, return_value=_FakeResponse(json.dumps({"status": "completed"}))):
            with self.assertRaises(EnrichmentServiceError):
                self.client.get_job("batch_1")

    def test_empty_submission_is_rejected(self) -> None:
        with patch(_URLOPEN) as urlopen:
            with self.assertRaises(EnrichmentServiceError):
                self.client.submit_batch([])
        urlopen.assert_not_called()


if __name__ == "__main__":
    unittest.main()
