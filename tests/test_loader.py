import pytest

from apigate.errors import ConfigUnavailableError
from apigate.loader import EntitlementMapLoader, requires_billing
from apigate.models import DenyReason, EntitlementMap, EntitlementRule, RequestDescriptor


class TestEntitlementMapLoader:

    def test_resource_listed_under_method_requires_billing(self, entitlement_map_file):
        loader = EntitlementMapLoader(str(entitlement_map_file))

        assert loader.requires_billing(RequestDescriptor("get", "users")) is True
        assert loader.requires_billing(RequestDescriptor("post", "get")) is True

    def test_resource_under_other_method_does_not(self, entitlement_map_file):
        loader = EntitlementMapLoader(str(entitlement_map_file))

        assert loader.requires_billing(RequestDescriptor("post", "users")) is False
        assert loader.requires_billing(RequestDescriptor("get", "foobar")) is False

    def test_missing_document_is_config_unavailable(self, tmp_path):
        loader = EntitlementMapLoader(str(tmp_path / "foobar.json"))

        with pytest.raises(ConfigUnavailableError) as exc:
            loader.requires_billing(RequestDescriptor("get", "users"))
        assert exc.value.reason == DenyReason.CONFIG_UNAVAILABLE

    def test_invalid_json_is_config_unavailable(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigUnavailableError):
            EntitlementMapLoader(str(path)).load()

    def test_wrong_shape_is_config_unavailable(self, tmp_path):
        path = tmp_path / "shape.json"
        path.write_text('{"scopes": [{"method": "get"}]}', encoding="utf-8")

        with pytest.raises(ConfigUnavailableError):
            EntitlementMapLoader(str(path)).load()

    def test_document_is_read_fresh_each_call(self, tmp_path):
        path = tmp_path / "map.json"
        path.write_text('{"scopes": []}', encoding="utf-8")
        loader = EntitlementMapLoader(str(path))
        assert loader.requires_billing(RequestDescriptor("get", "users")) is False

        path.write_text('{"scopes": [{"method": "GET", "baseURL": "Users"}]}', encoding="utf-8")
        assert loader.requires_billing(RequestDescriptor("get", "users")) is True


class TestRequiresBilling:

    def test_pure_and_repeatable(self):
        entitlement_map = EntitlementMap(rules=(EntitlementRule("get", "users"),))
        request = RequestDescriptor("get", "users")

        assert requires_billing(entitlement_map, request) is True
        assert requires_billing(entitlement_map, request) is True

    def test_empty_resource_never_requires_billing(self):
        entitlement_map = EntitlementMap(rules=(EntitlementRule("get", "users"),))

        assert requires_billing(entitlement_map, RequestDescriptor("get", "")) is False
