from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from app.core.config import Settings
from app.routing.config import (
    DEFAULT_STICKY_MAX_AGE_MS,
    build_routing_config,
    fallback_routing_config,
    load_routing_config,
)
from app.routing.enums import Variant
from app.routing.errors import ConfigurationError, InvalidVariantError


def _settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


def _raw(**rules) -> dict:
    raw = {
        "routingRules": {
            "percentage": {"enabled": True, "blue": 60, "green": 40},
            "header": {"enabled": True, "headerName": "X-Pricing", "blueValue": "b", "greenValue": "g"},
            "cookie": {"enabled": False, "cookieName": "pv", "maxAge": 3600000},
            "ip": {"enabled": True, "blueIps": ["10.1.1.1"], "greenIps": []},
        },
        "stickySession": {"enabled": True, "cookieName": "sv"},
        "priority": ["header", "ip", "percentage"],
    }
    raw["routingRules"].update(rules)
    return raw


class RoutingConfigLoaderTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _write(self, content: str) -> Path:
        path = self.dir / "routing-rules.json"
        path.write_text(content, encoding="utf-8")
        return path

    def test_load_from_file(self) -> None:
        path = self._write(json.dumps(_raw()))
        config = load_routing_config(path, _settings())
        self.assertEqual(config.priority, ("header", "ip", "percentage"))
        self.assertEqual(config.header.header_name, "X-Pricing")
        self.assertFalse(config.cookie.enabled)
        self.assertEqual(config.ip.blue_ips, ("10.1.1.1",))
        self.assertEqual(config.percentage.blue, 60)
        self.assertEqual(config.sticky_session.cookie_name, "sv")
        # sticky 未配置 maxAge 时沿用 cookie 规则的 maxAge
        self.assertEqual(config.sticky_session.max_age_ms, 3600000)

    def test_config_is_immutable(self) -> None:
        config = build_routing_config(_raw(), None)
        with self.assertRaises(Exception):
            config.percentage.blue = 10  # type: ignore[misc]

    def test_env_overrides_take_precedence(self) -> None:
        path = self._write(json.dumps(_raw()))
        config = load_routing_config(
            path,
            _settings(BLUE_PERCENTAGE=20, GREEN_PERCENTAGE=80, ENABLE_COOKIE_ROUTING=True, ENABLE_IP_ROUTING=False),
        )
        self.assertEqual((config.percentage.blue, config.percentage.green), (20, 80))
        self.assertTrue(config.cookie.enabled)
        self.assertFalse(config.ip.enabled)

    def test_missing_file_uses_fallback(self) -> None:
        config = load_routing_config(self.dir / "missing.json", _settings())
        self.assertEqual(config.priority, ("header", "cookie", "ip", "percentage"))
        self.assertTrue(config.percentage.enabled)
        self.assertEqual((config.percentage.blue, config.percentage.green), (70, 30))
        self.assertTrue(config.header.enabled)
        self.assertEqual(config.header.header_name, "X-Version")
        self.assertEqual(config.cookie.cookie_name, "pricing-version")
        self.assertEqual(config.ip.blue_ips, ())
        self.assertEqual(config.sticky_session.cookie_name, "session-version")
        self.assertEqual(config.sticky_session.max_age_ms, DEFAULT_STICKY_MAX_AGE_MS)

    def test_malformed_json_uses_fallback(self) -> None:
        path = self._write("{not json")
        config = load_routing_config(path, _settings())
        self.assertEqual(config, fallback_routing_config(_settings()))

    def test_non_object_rule_entry_uses_fallback(self) -> None:
        raw = _raw(header="on")
        with self.assertRaises(ConfigurationError):
            build_routing_config(raw, None)
        config = load_routing_config(self._write(json.dumps(raw)), _settings())
        self.assertEqual(config, fallback_routing_config(_settings()))

    def test_non_object_sticky_session_uses_fallback(self) -> None:
        raw = _raw()
        raw["stickySession"] = True
        with self.assertRaises(ConfigurationError):
            build_routing_config(raw, None)
        config = load_routing_config(self._write(json.dumps(raw)), _settings())
        self.assertEqual(config.sticky_session.cookie_name, "session-version")
        self.assertEqual(config.priority, ("header", "cookie", "ip", "percentage"))

    def test_non_object_top_level_uses_fallback(self) -> None:
        for text in ("[]", '{"routingRules": []}', '{"routingRules": {}, "priority": "header"}'):
            config = load_routing_config(self._write(text), _settings())
            self.assertEqual(config, fallback_routing_config(_settings()), text)

    def test_undecodable_file_uses_fallback(self) -> None:
        path = self.dir / "routing-rules.json"
        path.write_bytes(b'{"priority": ["\xff"]}')
        config = load_routing_config(path, _settings())
        self.assertEqual(config, fallback_routing_config(_settings()))

    def test_empty_priority_is_rejected(self) -> None:
        raw = _raw()
        raw["priority"] = []
        with self.assertRaises(ConfigurationError):
            build_routing_config(raw, None)

    def test_out_of_range_percentage_is_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            build_routing_config(_raw(percentage={"enabled": True, "blue": 120, "green": 0}), None)

    def test_split_not_summing_to_100_is_kept(self) -> None:
        config = build_routing_config(_raw(percentage={"enabled": True, "blue": 50, "green": 20}), _settings())
        self.assertEqual((config.percentage.blue, config.percentage.green), (50, 20))

    def test_strict_split_rejects_and_falls_back(self) -> None:
        path = self._write(json.dumps(_raw(percentage={"enabled": True, "blue": 50, "green": 20})))
        settings = _settings(STRICT_PERCENTAGE_SPLIT=True)
        with self.assertRaises(ConfigurationError):
            build_routing_config(json.loads(path.read_text(encoding="utf-8")), settings)
        config = load_routing_config(path, settings)
        self.assertEqual((config.percentage.blue, config.percentage.green), (70, 30))

    def test_invalid_env_override_ignored_in_fallback(self) -> None:
        config = fallback_routing_config(_settings(BLUE_PERCENTAGE=150))
        self.assertEqual(config.percentage.blue, 70)


class VariantParseTestCase(unittest.TestCase):
    def test_parse(self) -> None:
        self.assertIs(Variant.parse("blue"), Variant.blue)
        self.assertIs(Variant.parse(Variant.green), Variant.green)
        for bad in ("Blue", "purple", "", None, 1):
            with self.assertRaises(InvalidVariantError):
                Variant.parse(bad)
        self.assertIsNone(Variant.match("GREEN"))


if __name__ == "__main__":
    unittest.main()
