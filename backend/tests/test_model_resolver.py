"""Persistence tests for canonical model resolution."""

from __future__ import annotations

import unittest

from sqlalchemy import Text, create_engine, delete, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from autocanon.models.base import Base
from autocanon.models.brand import Brand
from autocanon.models.vehicle_model import VehicleModel
from autocanon.resolution.normalizer import normalize_vehicle_payload
from autocanon.resolution.resolver import ModelResolutionError, ModelResolver
from autocanon.resolution.types import NormalizedVehicleAttributes


def _bmw_attributes(**overrides: object) -> NormalizedVehicleAttributes:
    payload = {
        "site": "28car",
        "id": "s123",
        "brand": "BMW",
        "model_name": "320i 2.0t",
        "engine_cc": "1998cc",
        "power": "Petrol",
        "body_type": "Sedan (4dr)",
    }
    payload.update(overrides)
    attributes = normalize_vehicle_payload(payload)
    assert attributes is not None
    return attributes


class _RacingResolver(ModelResolver):
    """Misses the first lookup as if a concurrent writer inserted in between."""

    def __init__(self) -> None:
        self._misses_left = 1

    def _find_by_key(self, db: Session, canonical_key: str) -> tuple[int, int | None] | None:
        if self._misses_left:
            self._misses_left -= 1
            return None
        return super()._find_by_key(db, canonical_key)


class ModelResolverTests(unittest.TestCase):
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

    def tearDown(self) -> None:
        self.db.close()

    def test_first_resolution_creates_model_with_normalized_key(self) -> None:
        resolution = ModelResolver().resolve(self.db, _bmw_attributes())

        self.assertTrue(resolution.created)
        self.assertFalse(resolution.redirected)
        self.assertEqual(resolution.brand_slug, "bmw")
        self.assertEqual(resolution.canonical_key, "bmw|320i||2000|petrol|sedan")
        model = self.db.get(VehicleModel, resolution.model_id)
        assert model is not None
        self.assertEqual(model.model_name, "320i")
        self.assertEqual(model.output_bucket, 2000)
        self.assertEqual(model.output_decimal, "2.0")
        self.assertEqual(model.body_type, "sedan")
        self.assertIsNone(model.manufacturer_code_slug)

    def test_resolution_is_idempotent_across_bucket_variance(self) -> None:
        resolver = ModelResolver()
        first = resolver.resolve(self.db, _bmw_attributes())
        second = resolver.resolve(self.db, _bmw_attributes(id="s124", engine_cc="2,000 cc"))
        third = resolver.resolve(self.db, _bmw_attributes(id="s125", engine_cc=1980))

        self.assertEqual(first.model_id, second.model_id)
        self.assertEqual(first.model_id, third.model_id)
        self.assertFalse(second.created)
        self.assertFalse(third.created)
        self.assertEqual(self.db.scalar(select(func.count(VehicleModel.id))), 1)

    def test_different_body_type_creates_distinct_model(self) -> None:
        resolver = ModelResolver()
        sedan = resolver.resolve(self.db, _bmw_attributes())
        touring = resolver.resolve(self.db, _bmw_attributes(id="s200", body_type="Touring"))

        self.assertNotEqual(sedan.model_id, touring.model_id)

    def test_concurrent_insert_resolves_to_existing_row(self) -> None:
        existing = ModelResolver().resolve(self.db, _bmw_attributes())

        raced = _RacingResolver().resolve(self.db, _bmw_attributes(id="s999"))

        self.assertEqual(raced.model_id, existing.model_id)
        self.assertFalse(raced.created)
        self.assertEqual(self.db.scalar(select(func.count(VehicleModel.id))), 1)

    def test_merged_model_redirects_to_target(self) -> None:
        resolver = ModelResolver()
        duplicate = resolver.resolve(self.db, _bmw_attributes())
        target = resolver.resolve(self.db, _bmw_attributes(id="s2", model_name="3 Series 320i"))
        model = self.db.get(VehicleModel, duplicate.model_id)
        assert model is not None
        model.merged_into_id = target.model_id
        self.db.commit()

        again = resolver.resolve(self.db, _bmw_attributes(id="s3"))

        self.assertEqual(again.model_id, target.model_id)
        self.assertEqual(again.matched_model_id, duplicate.model_id)
        self.assertTrue(again.redirected)
        self.assertFalse(again.created)

    def test_unknown_brand_creates_unverified_placeholder(self) -> None:
        resolution = ModelResolver().resolve(self.db, _bmw_attributes(brand="Zeekr (CN)"))

        brand = self.db.scalar(select(Brand).where(Brand.slug == "zeekr"))
        assert brand is not None
        self.assertFalse(brand.verified)
        self.assertEqual(brand.name, "Zeekr")
        self.assertEqual(resolution.brand_slug, "zeekr")

    def test_scraped_brand_is_used_when_ai_brand_missing(self) -> None:
        self.db.add(Brand(slug="toyota", name="Toyota", verified=True))
        self.db.commit()

        resolution = ModelResolver().resolve(
            self.db,
            _bmw_attributes(brand=None, model_name="Alphard"),
            fallback_brand="Toyota",
        )

        self.assertEqual(resolution.brand_slug, "toyota")
        self.assertEqual(self.db.scalar(select(func.count(Brand.id))), 1)

    def test_no_brand_at_all_is_unrecoverable(self) -> None:
        with self.assertRaises(ModelResolutionError):
            ModelResolver().resolve(self.db, _bmw_attributes(brand=None))
        self.assertEqual(self.db.scalar(select(func.count(VehicleModel.id))), 0)

    def test_long_ai_values_are_stored_whole(self) -> None:
        resolution = ModelResolver().resolve(
            self.db,
            _bmw_attributes(
                facelift="Yes, LCI facelift model",
                turbo="Twin-scroll TwinPower turbocharger with intercooler",
                gen_color_code="#F5F5F5 (alpine white, non-metallic)",
                body_type="Sedan with extended wheelbase for the Chinese market",
            ),
        )

        model = self.db.get(VehicleModel, resolution.model_id)
        assert model is not None
        self.assertEqual(model.facelift, "Yes, LCI facelift model")
        self.assertEqual(model.turbo, "Twin-scroll TwinPower turbocharger with intercooler")
        self.assertEqual(model.generic_color_code, "#F5F5F5")
        self.assertEqual(model.body_type, "sedan with extended wheelbase for the chinese market")
        for column in ("canonical_key", "facelift", "turbo", "body_type", "power_type", "generic_color_code"):
            with self.subTest(column=column):
                self.assertIsInstance(VehicleModel.__table__.c[column].type, Text)

    def _reset_tables(self) -> None:
        self.db.execute(delete(VehicleModel))
        self.db.execute(delete(Brand))
        self.db.commit()


if __name__ == "__main__":
    unittest.main()
