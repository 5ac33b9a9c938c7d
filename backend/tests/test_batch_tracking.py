"""Tests for batch polling and result application."""

from __future__ import annotations

import json
import unittest
from typing import Any
from unittest.mock import patch

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from autocanon.enrichment.openai_batch_client import EnrichmentServiceError
from autocanon.enrichment.service_interface import EnrichmentServiceInterface
from autocanon.enrichment.types import BatchJobSnapshot, BatchUsage
from autocanon.models.base import Base
from autocanon.models.batch_item import BatchItem
from autocanon.models.batch_job import BatchJob
from autocanon.models.brand import Brand
from autocanon.models.listing import Listing
from autocanon.models.listing_detail import ListingOption, ListingRemark
from autocanon.models.vehicle_model import VehicleModel
from autocanon.services import batch_tracking
from autocanon.services.batch_tracking import (
    DOWNLOAD_FAILED_MESSAGE,
    NO_RESULT_LINE_MESSAGE,
    get_batch_job,
    poll_batch_job,
    poll_pending_batch_jobs,
    rerun_stored_results,
)


def _bmw_record(**overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "site": "28car",
        "id": "s123",
        "brand": "BMW",
        "model_name": "320i 2.0t",
        "engine_cc": "1998cc",
        "power": "Petrol",
        "body_type": "Sedan",
        "mileage_km": "45,000 km",
        "manu_color_name": "Alpine White",
        "gen_color_name": "white",
        "gen_color_code": "#FFFFFF",
        "options": [{"item": "Sunroof", "certainty": "visible"}],
        "remark": [{"item": "color", "remark": "photos show white paint"}],
    }
    record.update(overrides)
    return record


def _output_line(custom_id: str, record: dict[str, Any]) -> str:
    return json.dumps(
        {
            "custom_id": custom_id,
            "response": {
                "status_code": 200,
                "body": {
                    "output": [
                        {
                            "type": "message",
                            "role": "assistant",
                            "content": [{"type": "output_text", "text": json.dumps(record)}],
                        }
                    ]
                },
            },
        }
    )


class _StubPollClient(EnrichmentServiceInterface):
    model = "gpt-test"

    def __init__(
        self,
        snapshots: dict[str, BatchJobSnapshot],
        files: dict[str, str] | None = None,
        *,
        status_error: Exception | None = None,
        download_error: Exception | None = None,
    ) -> None:
        self.snapshots = snapshots
        self.files = files or {}
        self.status_error = status_error
        self.download_error = download_error
        self.status_calls: list[str] = []

    def submit_batch(self, requests, *, metadata=None, completion_window="24h"):
        raise AssertionError("not used")

    def get_job(self, job_id: str) -> BatchJobSnapshot:
        self.status_calls.append(job_id)
        if self.status_error is not None:
            raise self.status_error
        return self.snapshots[job_id]

    def download_file(self, file_id: str) -> str:
        if self.download_error is not None:
            raise self.download_error
        return self.files[file_id]


def _completed(job_id: str = "batch_1", *, error_file_id: str | None = None) -> BatchJobSnapshot:
    return BatchJobSnapshot(
        job_id=job_id,
        status="completed",
        output_file_id="file-out",
        error_file_id=error_file_id,
        usage=BatchUsage(input_tokens=1200, output_tokens=300, total_tokens=1500),
        raw={"id": job_id, "status": "completed"},
    )


class BatchTrackingTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        self._reset_tables()
        self.bmw_listing = Listing(site="28car", external_id="s123", brand="BMW", photos_json=[])
        self.unbranded_listing = Listing(site="28car", external_id="s124", photos_json=[])
        self.db.add_all([self.bmw_listing, self.unbranded_listing])
        self.db.flush()
        self.job = self._add_job("batch_1")
        self.bmw_item = self._add_item(self.job, self.bmw_listing)
        self.unbranded_item = self._add_item(self.job, self.unbranded_listing)
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def test_completed_job_resolves_listing_and_creates_model(self) -> None:
        client = _StubPollClient(
            {"batch_1": _completed()},
            {"file-out": _output_line("28car-s123", _bmw_record()) + "\n"},
        )

        result = poll_batch_job(self.db, client, "batch_1")

        assert result is not None
        self.assertTrue(result.terminal)
        self.assertTrue(result.finalized)
        self.assertEqual(result.lines_processed, 1)
        self.assertEqual(result.items_completed, 1)
        self.assertEqual(result.items_failed, 1)
        self.assertEqual(result.models_created, 1)
        self.assertEqual(result.listings_resolved, 1)

        listing = self.db.get(Listing, self.bmw_listing.id)
        self.assertEqual(listing.resolution_status, "resolved")
        self.assertIsNotNone(listing.resolved_at)
        self.assertEqual(listing.generic_color_name, "white")
        self.assertEqual(listing.manufacturer_color_name, "Alpine White")
        self.assertEqual(listing.ai_mileage_km, 45000)
        model = self.db.get(VehicleModel, listing.model_id)
        self.assertEqual(model.canonical_key, "bmw|320i||2000|petrol|sedan")
        options = self.db.scalars(select(ListingOption).where(ListingOption.listing_id == listing.id)).all()
        self.assertEqual([(option.item, option.certainty) for option in options], [("Sunroof", "visible")])
        self.assertEqual(self.db.scalar(select(func.count(ListingRemark.id))), 1)

        bmw_item = self.db.get(BatchItem, self.bmw_item.id)
        self.assertEqual(bmw_item.status, "completed")
        self.assertEqual(bmw_item.result_json["custom_id"], "28car-s123")
        missing_item = self.db.get(BatchItem, self.unbranded_item.id)
        self.assertEqual(missing_item.status, "failed")
        self.assertEqual(missing_item.error_message, NO_RESULT_LINE_MESSAGE)

        job = self.db.get(BatchJob, self.job.id)
        self.assertEqual(job.status, "completed")
        self.assertIsNotNone(job.completed_at)
        self.assertIsNone(job.failed_at)
        self.assertEqual(job.output_file_id, "file-out")
        self.assertEqual((job.usage_input_tokens, job.usage_output_tokens), (1200, 300))

    def test_finalized_job_is_not_polled_again(self) -> None:
        client = _StubPollClient({"batch_1": _completed()}, {"file-out": ""})
        poll_batch_job(self.db, client, "batch_1")

        result = poll_batch_job(self.db, client, "batch_1")

        assert result is not None
        self.assertTrue(result.finalized)
        self.assertEqual(client.status_calls, ["batch_1"])

    def test_unknown_job_returns_none(self) -> None:
        client = _StubPollClient({})

        self.assertIsNone(poll_batch_job(self.db, client, "batch_missing"))

    def test_non_terminal_status_moves_items_along(self) -> None:
        snapshot = BatchJobSnapshot(job_id="batch_1", status="in_progress", raw={"id": "batch_1"})

        result = poll_batch_job(self.db, _StubPollClient({"batch_1": snapshot}), "batch_1")

        assert result is not None
        self.assertFalse(result.terminal)
        self.assertFalse(result.finalized)
        job = self.db.get(BatchJob, self.job.id)
        self.assertEqual(job.status, "in_progress")
        self.assertIsNone(job.completed_at)
        statuses = self.db.scalars(select(BatchItem.status)).all()
        self.assertEqual(set(statuses), {"running"})

    def test_failed_job_stamps_failed_at(self) -> None:
        snapshot = BatchJobSnapshot(job_id="batch_1", status="expired", raw={"id": "batch_1"})

        result = poll_batch_job(self.db, _StubPollClient({"batch_1": snapshot}), "batch_1")

        assert result is not None
        self.assertEqual(result.items_failed, 2)
        job = self.db.get(BatchJob, self.job.id)
        self.assertIsNotNone(job.failed_at)
        self.assertIsNone(job.completed_at)

    def test_error_line_fails_item_without_touching_listing(self) -> None:
        error_line = json.dumps(
            {"custom_id": "28car-s123", "error": {"code": "rate_limit_exceeded", "message": "slow down"}}
        )
        client = _StubPollClient(
            {"batch_1": _completed(error_file_id="file-err")},
            {"file-out": "", "file-err": error_line},
        )

        poll_batch_job(self.db, client, "batch_1")

        item = self.db.get(BatchItem, self.bmw_item.id)
        self.assertEqual(item.status, "failed")
        self.assertEqual(item.error_message, "rate_limit_exceeded: slow down")
        self.assertEqual(item.result_json["error"]["code"], "rate_limit_exceeded")
        listing = self.db.get(Listing, self.bmw_listing.id)
        self.assertEqual(listing.resolution_status, "unresolved")

    def test_malformed_lines_are_skipped(self) -> None:
        output = "\n".join(
            ["not json", json.dumps({"response": {}}), "", _output_line("28car-s123", _bmw_record())]
        )
        client = _StubPollClient({"batch_1": _completed()}, {"file-out": output})

        result = poll_batch_job(self.db, client, "batch_1")

        assert result is not None
        self.assertEqual(result.lines_processed, 1)
        self.assertEqual(result.listings_resolved, 1)

    def test_correlation_mismatch_fails_item(self) -> None:
        client = _StubPollClient(
            {"batch_1": _completed()},
            {"file-out": _output_line("28car-s123", _bmw_record(id="s999"))},
        )

        poll_batch_job(self.db, client, "batch_1")

        item = self.db.get(BatchItem, self.bmw_item.id)
        self.assertEqual(item.status, "failed")
        self.assertTrue(item.error_message.startswith("Correlation mismatch"))
        self.assertEqual(self.db.scalar(select(func.count(VehicleModel.id))), 0)
        listing = self.db.get(Listing, self.bmw_listing.id)
        self.assertEqual(listing.resolution_status, "unresolved")

    def test_unparseable_output_fails_item(self) -> None:
        line = json.dumps(
            {
                "custom_id": "28car-s123",
                "response": {"status_code": 200, "body": {"output_text": "{not json"}},
            }
        )
        client = _StubPollClient({"batch_1": _completed()}, {"file-out": line})

        poll_batch_job(self.db, client, "batch_1")

        item = self.db.get(BatchItem, self.bmw_item.id)
        self.assertEqual(item.error_message, "Output text is not valid JSON")

    def test_output_without_any_brand_fails_listing(self) -> None:
        record = _bmw_record(id="s124")
        del record["brand"]
        client = _StubPollClient({"batch_1": _completed()}, {"file-out": _output_line("28car-s124", record)})

        result = poll_batch_job(self.db, client, "batch_1")

        assert result is not None
        self.assertEqual(result.models_created, 0)
        listing = self.db.get(Listing, self.unbranded_listing.id)
        self.assertEqual(listing.resolution_status, "failed")
        self.assertIsNone(listing.model_id)
        item = self.db.get(BatchItem, self.unbranded_item.id)
        self.assertEqual(item.status, "failed")
        self.assertIn("No brand", item.error_message)

    def test_listing_brand_is_used_when_output_has_none(self) -> None:
        record = _bmw_record()
        del record["brand"]
        client = _StubPollClient({"batch_1": _completed()}, {"file-out": _output_line("28car-s123", record)})

        poll_batch_job(self.db, client, "batch_1")

        listing = self.db.get(Listing, self.bmw_listing.id)
        self.assertEqual(listing.resolution_status, "resolved")
        model = self.db.get(VehicleModel, listing.model_id)
        self.assertEqual(model.brand_slug, "bmw")

    def test_download_failure_leaves_job_open_for_retry(self) -> None:
        failing = _StubPollClient(
            {"batch_1": _completed()},
            download_error=EnrichmentServiceError("OpenAI HTTP 500"),
        )

        result = poll_batch_job(self.db, failing, "batch_1")

        assert result is not None
        self.assertTrue(result.terminal)
        self.assertFalse(result.finalized)
        self.assertEqual(result.items_failed, 2)
        job = self.db.get(BatchJob, self.job.id)
        self.assertIsNone(job.completed_at)
        self.assertTrue(job.error_message.startswith(DOWNLOAD_FAILED_MESSAGE))
        item = self.db.get(BatchItem, self.bmw_item.id)
        self.assertEqual(item.error_message, DOWNLOAD_FAILED_MESSAGE)

        working = _StubPollClient(
            {"batch_1": _completed()},
            {"file-out": _output_line("28car-s123", _bmw_record())},
        )
        retried = poll_batch_job(self.db, working, "batch_1")

        assert retried is not None
        self.assertTrue(retried.finalized)
        self.assertEqual(retried.listings_resolved, 1)
        self.assertEqual(self.db.get(BatchItem, self.bmw_item.id).status, "completed")
        self.assertIsNone(self.db.get(BatchJob, self.job.id).error_message)

    def test_status_fetch_failure_fails_in_flight_items(self) -> None:
        client = _StubPollClient({}, status_error=EnrichmentServiceError("OpenAI request failed"))

        result = poll_batch_job(self.db, client, "batch_1")

        assert result is not None
        self.assertEqual(result.items_failed, 2)
        self.assertTrue(result.error_message.startswith("Failed to fetch batch status"))
        job = self.db.get(BatchJob, self.job.id)
        self.assertEqual(job.status, "in_progress")
        self.assertIsNone(job.completed_at)
        self.assertEqual(set(self.db.scalars(select(BatchItem.status)).all()), {"failed"})

    def test_one_bad_line_does_not_stop_the_rest(self) -> None:
        output = "\n".join(
            [
                _output_line("28car-s123", _bmw_record()),
                _output_line("28car-s124", _bmw_record(id="s124", body_type="Wagon")),
            ]
        )
        client = _StubPollClient({"batch_1": _completed()}, {"file-out": output})
        real_link = batch_tracking.link_listing
        bmw_listing_id = self.bmw_listing.id

        def _flaky_link(db: Session, **kwargs: Any) -> bool:
            if kwargs["listing_id"] == bmw_listing_id:
                raise RuntimeError("boom")
            return real_link(db, **kwargs)

        with patch.object(batch_tracking, "link_listing", side_effect=_flaky_link):
            result = poll_batch_job(self.db, client, "batch_1")

        assert result is not None
        self.assertTrue(result.finalized)
        self.assertEqual(result.items_failed, 1)
        self.assertEqual(result.listings_resolved, 1)
        item = self.db.get(BatchItem, self.bmw_item.id)
        self.assertEqual(item.status, "failed")
        self.assertEqual(item.error_message, "Failed to process result line: boom")
        self.assertEqual(self.db.get(Listing, self.unbranded_listing.id).resolution_status, "resolved")

    def test_rerun_applies_stored_results(self) -> None:
        line = json.loads(_output_line("28car-s123", _bmw_record()))
        error_line = {"custom_id": "28car-s124", "error": {"code": "server_error", "message": "oops"}}
        bmw_item = self.db.get(BatchItem, self.bmw_item.id)
        bmw_item.status = "failed"
        bmw_item.result_json = line
        unbranded_item = self.db.get(BatchItem, self.unbranded_item.id)
        unbranded_item.status = "failed"
        unbranded_item.result_json = error_line
        self.db.commit()

        result = rerun_stored_results(self.db, limit=10)

        self.assertEqual(result.examined, 2)
        self.assertEqual(result.resolved, 1)
        self.assertEqual(result.skipped, 1)
        self.assertEqual(result.failed, 0)
        self.assertEqual(self.db.get(Listing, self.bmw_listing.id).resolution_status, "resolved")
        self.assertEqual(self.db.get(BatchItem, self.bmw_item.id).status, "completed")

        again = rerun_stored_results(self.db, limit=10)
        self.assertEqual(again.examined, 1)
        self.assertEqual(again.resolved, 0)

    def test_poll_pending_continues_after_a_job_error(self) -> None:
        self._add_job("batch_2")
        self.db.commit()

        class _HalfBrokenClient(_StubPollClient):
            def get_job(self, job_id: str) -> BatchJobSnapshot:
                if job_id == "batch_2":
                    raise RuntimeError("unexpected payload")
                return super().get_job(job_id)

        client = _HalfBrokenClient(
            {"batch_1": _completed()},
            {"file-out": _output_line("28car-s123", _bmw_record())},
        )

        summary = poll_pending_batch_jobs(self.db, client)

        self.assertEqual(summary.jobs_polled, 2)
        self.assertEqual(summary.jobs_errored, 1)
        self.assertEqual([result.job_id for result in summary.results], ["batch_1"])
        self.assertEqual(self.db.get(Listing, self.bmw_listing.id).resolution_status, "resolved")

    def test_poll_pending_without_open_jobs(self) -> None:
        self.db.execute(delete(BatchItem))
        self.db.execute(delete(BatchJob))
        self.db.commit()

        summary = poll_pending_batch_jobs(self.db, _StubPollClient({}))

        self.assertEqual(summary.jobs_polled, 0)
        self.assertEqual(summary.results, [])

    def test_job_detail_counts_items_by_status(self) -> None:
        client = _StubPollClient(
            {"batch_1": _completed()},
            {"file-out": _output_line("28car-s123", _bmw_record())},
        )
        poll_batch_job(self.db, client, "batch_1")

        detail = get_batch_job(self.db, "batch_1")

        assert detail is not None
        self.assertEqual(detail.item_counts, {"completed": 1, "failed": 1})
        self.assertEqual([item.custom_id for item in detail.items], ["28car-s123", "28car-s124"])
        self.assertIsNone(get_batch_job(self.db, "batch_missing"))

    def _add_job(self, job_id: str) -> BatchJob:
        job = BatchJob(
            job_id=job_id,
            status="in_progress",
            model_name="gpt-test",
            request_json={},
            response_json={},
        )
        self.db.add(job)
        self.db.flush()
        return job

    def _add_item(self, job: BatchJob, listing: Listing) -> BatchItem:
        item = BatchItem(
            batch_job_id=job.id,
            listing_id=listing.id,
            site=listing.site,
            external_id=listing.external_id,
            custom_id=f"{listing.site}-{listing.external_id}",
            status="submitted",
        )
        self.db.add(item)
        self.db.flush()
        return item

    def _reset_tables(self) -> None:
        self.db.execute(delete(ListingOption))
        self.db.execute(delete(ListingRemark))
        self.db.execute(delete(BatchItem))
        self.db.execute(delete(BatchJob))
        self.db.execute(delete(Listing))
        self.db.execute(delete(VehicleModel))
        self.db.execute(delete(Brand))
        self.db.commit()


if __name__ == "__main__":
    unittest.main()
