"""Tests for cspark.config.base_url module."""

import pytest

from cspark.config.base_url import BaseUrl, Uri, UriParams, sanitize_path
from cspark.errors import ConfigurationError, ValidationError


class TestBaseUrlFromOptions:
    """Tests for BaseUrl.from_options resolution."""

    @pytest.mark.parametrize(
        "raw_url,tenant,expected_tenant",
        [
            ("https://excel.uat.us.coherent.global/my-tenant", None, "my-tenant"),
            ("https://excel.uat.us.coherent.global/my-tenant/", None, "my-tenant"),
            (
                "https://excel.uat.us.coherent.global/path-tenant",
                "other",
                "path-tenant",
            ),
            ("https://excel.uat.us.coherent.global", "explicit", "explicit"),
            ("http://localhost:8080/local", None, "local"),
            ("https://excel.prod.coherent.global/t/extra/segments", None, "t"),
        ],
    )
    def test_full_ends_with_tenant(self, raw_url, tenant, expected_tenant):
        """Full URL always ends with /tenant, inferred or explicit."""
        base = BaseUrl.from_options(url=raw_url, tenant=tenant)

        assert base.tenant == expected_tenant
        assert base.full.endswith(f"/{expected_tenant}")
        assert base.full == f"{base.value}/{expected_tenant}"

    def test_value_is_origin_only(self):
        base = BaseUrl.from_options(url="http://localhost:8080/local/api")
        assert base.value == "http://localhost:8080"

    def test_env_and_tenant(self):
        """Environment plus tenant builds the default platform host."""
        base = BaseUrl.from_options(env=" UAT.us ", tenant="My-Tenant")

        assert base.value == "https://excel.uat.us.coherent.global"
        assert base.full == "https://excel.uat.us.coherent.global/my-tenant"

    @pytest.mark.parametrize(
        "raw_url", ["not a url", "excel.uat.coherent.global/t", "ftp://host/t"]
    )
    def test_invalid_url_raises_validation_error(self, raw_url):
        with pytest.raises(ValidationError, match="valid absolute URL"):
            BaseUrl.from_options(url=raw_url, tenant="t")

    def test_validation_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            BaseUrl.from_options(url="nope")

    def test_missing_tenant_raises(self):
        with pytest.raises(ConfigurationError, match="tenant name is required"):
            BaseUrl.from_options(url="https://excel.uat.us.coherent.global")

    def test_tenant_without_url_or_env_raises(self):
        with pytest.raises(ConfigurationError, match="environment is required"):
            BaseUrl.from_options(tenant="t")

    def test_nothing_given_raises(self):
        with pytest.raises(ConfigurationError):
            BaseUrl.from_options()


class TestBaseUrlEndpoints:
    """Tests for endpoint construction."""

    @pytest.fixture
    def base(self):
        return BaseUrl.from_options(url="https://excel.uat.us.coherent.global/tenant")

    def test_concat_default_version(self, base):
        assert base.concat("folders/list") == (
            "https://excel.uat.us.coherent.global/tenant/api/v3/folders/list"
        )

    def test_concat_public(self, base):
        assert base.concat("execute", version="api/v4", public=True) == (
            "https://excel.uat.us.coherent.global/tenant/api/v4/public/execute"
        )

    def test_concat_without_version(self, base):
        assert base.concat("/odd//path/", version=None) == (
            "https://excel.uat.us.coherent.global/tenant/odd/path"
        )

    def test_concat_does_not_mutate(self, base):
        before = base.full
        base.concat("a/b")
        assert base.full == before

    def test_to_sibling_service(self, base):
        assert base.to("keycloak") == "https://keycloak.uat.us.coherent.global"
        assert base.to("utility", with_tenant=True) == (
            "https://utility.uat.us.coherent.global/tenant"
        )

    def test_to_unknown_service(self, base):
        with pytest.raises(ValidationError):
            base.to("unknown")

    def test_oauth2_and_token_url(self, base):
        assert base.oauth2 == "https://keycloak.uat.us.coherent.global/auth/realms/tenant"
        assert base.token_url == (
            "https://keycloak.uat.us.coherent.global/auth/realms/tenant"
            "/protocol/openid-connect/token"
        )

    def test_add_service_locator(self, base):
        assert base.add("my-folder/my-service", endpoint="execute") == (
            "https://excel.uat.us.coherent.global/tenant/api/v3/folders/my-folder"
            "/services/my-service/execute"
        )

    def test_equality(self, base):
        other = BaseUrl.from_options(url="https://excel.uat.us.coherent.global", tenant="tenant")
        assert base == other
        assert str(base) == base.full


class TestUri:
    """Tests for Uri locator helpers."""

    @pytest.mark.parametrize(
        "locator,expected",
        [
            ("f/s", UriParams(folder="f", service="s")),
            ("f/s[1.2.0]", UriParams(folder="f", service="s", version="1.2.0")),
            ("folders/f/services/s[2]", UriParams(folder="f", service="s", version="2")),
            ("/f/s/", UriParams(folder="f", service="s")),
            ("service/abc-123", UriParams(service_id="abc-123")),
            ("version/v-1", UriParams(version_id="v-1")),
            ("just-one-segment", UriParams()),
            ("", UriParams()),
        ],
    )
    def test_decode(self, locator, expected):
        assert Uri.decode(locator) == expected

    def test_encode(self):
        assert Uri.encode(UriParams(folder="f", service="s", version="1")) == (
            "folders/f/services/s[1]"
        )
        assert Uri.encode(UriParams(folder="f", service="s"), long=False) == "f/s"
        assert Uri.encode(UriParams(service_id="id")) == "service/id"
        assert Uri.encode(UriParams(version_id="vid")) == "version/vid"
        assert Uri.encode(UriParams()) == ""

    def test_build_priority(self):
        base = "https://host/t"
        both = UriParams(folder="f", service="s", version_id="v")
        assert Uri.build(both, base=base) == "https://host/t/api/v3/folders/f/services/s"
        assert Uri.build(UriParams(version_id="v"), base=base, endpoint="x") == (
            "https://host/t/api/v3/version/v/x"
        )

    def test_build_proxy_ignores_endpoint(self):
        uri = Uri.build(UriParams(proxy="/custom//path"), base="https://host/t", endpoint="x")
        assert uri == "https://host/t/api/v3/proxy/custom/path"

    def test_build_public(self):
        uri = Uri.build(
            UriParams(public=True), base="https://host/t", version="api/v4", endpoint="execute"
        )
        assert uri == "https://host/t/api/v4/public/execute"

    def test_build_invalid_base(self):
        with pytest.raises(ValidationError):
            Uri.build("f/s", base="not-a-url")

    def test_with_query_drops_none(self):
        url = Uri.with_query("https://host/x", {"a": 1, "b": None, "c": True})
        assert url == "https://host/x?a=1&c=true"

    def test_with_query_appends(self):
        assert Uri.with_query("https://host/x?a=1", {"b": "2"}) == "https://host/x?a=1&b=2"
        assert Uri.with_query("https://host/x", {}) == "https://host/x"

    def test_sanitize_path(self):
        assert sanitize_path("//a///b/") == "a/b"
