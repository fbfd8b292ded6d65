from __future__ import annotations

import datetime as dt
import tempfile
import unittest
from pathlib import Path

from app.pricing.cache import TimedCache
from app.pricing.store import PricingDataStore, validate_pricing_data
from app.routing.enums import Variant
from app.routing.errors import DataUnavailableError
from tests.pricing_fixtures import pricing_doc, write_pricing


class PricingDataStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)
        write_pricing(self.dir, "blue", pricing_doc("blue", 10))
        write_pricing(self.dir, "green", pricing_doc("green", 12))
        self.store = PricingDataStore(self.dir, cache_seconds=300)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_load_adds_version_and_loaded_at(self) -> None:
        data = self.store.get(Variant.green)
        self.assertEqual(data["version"], "green")
        self.assertEqual(data["title"], "green pricing")
        self.assertIn("loadedAt", data)
        self.assertEqual(data["plans"][0]["price"], 0)

    def test_second_read_is_served_from_cache(self) -> None:
        first = self.store.get(Variant.blue)
        # 文件被改动，但缓存未过期，仍返回旧内容
        write_pricing(self.dir, "blue", pricing_doc("blue", 99))
        second = self.store.get(Variant.blue)
        self.assertEqual(second["plans"][1]["price"], 10)
        self.assertEqual(second["loadedAt"], first["loadedAt"])

        stats = self.store.cache_stats()
        self.assertEqual(stats["cacheSize"], 1)
        self.assertEqual(stats["cachedVersions"], ["pricing-blue"])
        self.assertAlmostEqual(stats["cacheHitRate"], 0.5)

        self.store.clear()
        self.assertEqual(self.store.get(Variant.blue)["plans"][1]["price"], 99)

    def test_returned_data_is_a_copy(self) -> None:
        data = self.store.get(Variant.blue)
        data["routing"] = {"version": "blue"}
        data["plans"].clear()
        again = self.store.get(Variant.blue)
        self.assertNotIn("routing", again)
        self.assertEqual(len(again["plans"]), 2)

    def test_missing_file_raises(self) -> None:
        (self.dir / "green-pricing.json").unlink()
        with self.assertRaises(DataUnavailableError) as cm:
            self.store.get(Variant.green)
        self.assertEqual(cm.exception.variant, "green")
        self.assertTrue(str(cm.exception).startswith("Failed to load green pricing data"))

    def test_corrupt_file_raises_and_is_not_cached(self) -> None:
        write_pricing(self.dir, "blue", "{broken")
        with self.assertRaises(DataUnavailableError):
            self.store.get(Variant.blue)
        self.assertEqual(self.store.cache_stats()["cacheSize"], 0)

        write_pricing(self.dir, "blue", pricing_doc("blue"))
        self.assertEqual(self.store.get(Variant.blue)["version"], "blue")

    def test_undecodable_file_raises_data_unavailable(self) -> None:
        (self.dir / "green-pricing.json").write_bytes(b'{"title": "\xff\xfe"}')
        with self.assertRaises(DataUnavailableError) as cm:
            self.store.get(Variant.green)
        self.assertEqual(cm.exception.variant, "green")
        self.assertEqual(self.store.cache_stats()["cacheSize"], 0)

    def test_invalid_structure_raises(self) -> None:
        doc = pricing_doc("blue")
        doc["plans"] = []
        write_pricing(self.dir, "blue", doc)
        with self.assertRaises(DataUnavailableError):
            self.store.get(Variant.blue)

    def test_path_for(self) -> None:
        self.assertEqual(self.store.path_for(Variant.blue), self.dir / "blue-pricing.json")
        self.assertEqual(self.store.available_versions(), ["blue", "green"])


class ValidatePricingDataTestCase(unittest.TestCase):
    def test_valid(self) -> None:
        doc = pricing_doc("blue")
        doc["version"] = "blue"
        self.assertEqual(validate_pricing_data(doc), [])

    def test_problems_reported(self) -> None:
        self.assertTrue(validate_pricing_data([]))
        problems = validate_pricing_data(
            {"version": "blue", "title": "t", "plans": [{"id": "x", "name": "X", "price": 1, "features": []}]}
        )
        self.assertEqual(len(problems), 1)
        self.assertIn("features", problems[0])


class TimedCacheTestCase(unittest.TestCase):
    def test_ttl_expiry(self) -> None:
        now = [dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)]
        cache: TimedCache[int] = TimedCache(60, now=lambda: now[0])
        calls = []

        def loader() -> int:
            calls.append(1)
            return len(calls)

        self.assertEqual(cache.get("k", loader), 1)
        now[0] += dt.timedelta(seconds=59)
        self.assertEqual(cache.get("k", loader), 1)
        now[0] += dt.timedelta(seconds=2)
        self.assertEqual(cache.get("k", loader), 2)
        self.assertEqual((cache.hits, cache.misses), (1, 2))


if __name__ == "__main__":
    unittest.main()
