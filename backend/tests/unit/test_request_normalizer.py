"""
Tests for Request Normalizer Service

Tests the ordered redirect / reject / pass-through decisions for package
requests.
"""

import pytest
from unittest.mock import Mock
from pkgserve.schemas.normalization import PassThrough, Redirect, Rejection
from pkgserve.schemas.package_url import RawRequest
from pkgserve.services.request_normalizer import NORMALIZATION_RULES, RequestNormalizer
from pkgserve.utils.query import parse_query


def make_request(raw_url: str) -> RawRequest:
    path, _, query_string = raw_url.partition("?")
    return RawRequest(path=path, query=parse_query(query_string), raw_url=raw_url)


class TestLegacyRedirects:
    """Test the /_meta/ prefix and ?json redirects"""

    def test_meta_prefix_redirects_to_meta_flag(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/_meta/foo/bar?x=1"))

        assert isinstance(result, Redirect)
        assert result.status_code == 302
        assert result.location == "/foo/bar?x=1&meta"
        assert result.rule == "legacy-meta-prefix"

    def test_meta_prefix_without_query(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/_meta/react@18.2.0/"))

        assert result.location == "/react@18.2.0/?meta"

    def test_meta_prefix_keeps_existing_meta_position(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/_meta/foo?meta=1&main=x"))

        assert result.location == "/foo?meta&main=x"

    def test_meta_without_trailing_slash_is_not_legacy(self):
        normalizer = RequestNormalizer()

        assert normalizer.matching_rule(make_request("/_meta")) != "legacy-meta-prefix"

    def test_json_flag_redirects_to_meta_flag(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/foo?json"))

        assert isinstance(result, Redirect)
        assert result.status_code == 302
        assert result.location == "/foo?meta"
        assert result.rule == "legacy-json-flag"

    @pytest.mark.parametrize("raw_url", ["/foo?json=", "/foo?json=1", "/foo?json=a&json=b"])
    def test_json_flag_with_any_value(self, raw_url):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request(raw_url))

        assert result.location == "/foo?meta"

    def test_json_flag_keeps_other_params(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/foo?main=browser&json"))

        assert result.location == "/foo?main=browser&meta"


class TestNonCanonicalQuery:
    """Test stripping unknown query params"""

    def test_unknown_param_is_stripped(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/foo?evil=1"))

        assert isinstance(result, Redirect)
        assert result.status_code == 302
        assert result.location == "/foo"
        assert result.rule == "non-canonical-query"

    def test_known_params_survive(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/foo@1.0.0/?cb=123&meta&main=a&main=b"))

        assert result.location == "/foo@1.0.0/?meta&main=a&main=b"

    def test_canonical_query_is_not_redirected(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/foo?meta&module"))

        assert isinstance(result, PassThrough)


class TestRejections:
    """Test invalid URLs and invalid package names"""

    def test_invalid_url(self):
        normalizer = RequestNormalizer()
        raw_url = "not a valid url %%"
        request = RawRequest(path=raw_url, query={}, raw_url=raw_url)

        result = normalizer.normalize(request)

        assert isinstance(result, Rejection)
        assert result.status_code == 403
        assert result.media_type == "text/plain"
        assert result.body == "Invalid URL: not a valid url %%"

    def test_invalid_url_body_uses_raw_url_with_query(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/@scope?meta"))

        assert result.body == "Invalid URL: /@scope?meta"

    def test_invalid_package_name_lists_reasons(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/.Foo/index.js"))

        assert isinstance(result, Rejection)
        assert result.status_code == 403
        assert result.rule == "invalid-package-name"
        assert result.body == (
            'Invalid package name ".Foo" '
            "(name cannot start with a period, name can no longer contain capital letters)"
        )

    def test_uppercase_name(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/React@18.2.0"))

        assert result.body == 'Invalid package name "React" (name can no longer contain capital letters)'

    def test_custom_validator_errors_are_joined(self):
        validator = Mock()
        validator.validate.return_value = {"valid": False, "errors": ["first", "second"]}
        normalizer = RequestNormalizer(name_validator=validator)

        result = normalizer.normalize(make_request("/lodash"))

        assert result.body == 'Invalid package name "lodash" (first, second)'
        validator.validate.assert_called_once_with("lodash")

    @pytest.mark.parametrize("validation", [{"valid": True}, {"valid": True, "errors": None}, {"errors": []}])
    def test_absent_or_empty_errors_mean_valid(self, validation):
        validator = Mock()
        validator.validate.return_value = validation
        normalizer = RequestNormalizer(name_validator=validator)

        result = normalizer.normalize(make_request("/lodash"))

        assert isinstance(result, PassThrough)


class TestPassThrough:
    """Test the request context built for downstream handlers"""

    def test_context_fields(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/lodash@4.17.21/map.js?meta"))

        assert isinstance(result, PassThrough)
        context = result.context
        assert context.package_name == "lodash"
        assert context.package_version == "4.17.21"
        assert context.package_spec == "lodash@4.17.21"
        assert context.pathname == "/map.js"
        assert context.filename == "map.js"
        assert context.search == "?meta"
        assert context.query == {"meta": ""}

    def test_scoped_package_defaults_to_latest(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/@scope/name"))

        assert result.context.package_spec == "@scope/name@latest"
        assert result.context.pathname == ""
        assert result.context.filename == ""

    def test_context_is_immutable(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/lodash"))

        with pytest.raises(Exception):
            result.context.package_name = "other"


class TestRuleOrdering:
    """Test that exactly one rule decides each request, first match wins"""

    def test_rule_table_order(self):
        assert [rule.name for rule in NORMALIZATION_RULES] == [
            "legacy-meta-prefix",
            "legacy-json-flag",
            "non-canonical-query",
            "invalid-url",
            "invalid-package-name",
            "success",
        ]

    @pytest.mark.parametrize("raw_url,expected_rule", [
        # /_meta/ wins over json, unknown params and a bad name
        ("/_meta/Foo?json&evil=1", "legacy-meta-prefix"),
        # json wins over unknown params
        ("/Foo?json&evil=1", "legacy-json-flag"),
        # unknown params win over an invalid URL and a bad name
        ("/@scope?evil=1", "non-canonical-query"),
        ("/Foo?evil=1", "non-canonical-query"),
        # an invalid URL never reaches name validation
        ("/@scope", "invalid-url"),
        ("/Foo", "invalid-package-name"),
        ("/foo", "success"),
    ])
    def test_first_matching_rule_decides(self, raw_url, expected_rule):
        normalizer = RequestNormalizer()

        assert normalizer.matching_rule(make_request(raw_url)) == expected_rule
        assert normalizer.normalize(make_request(raw_url)).rule == expected_rule

    def test_validator_not_called_for_redirects_or_invalid_urls(self):
        validator = Mock()
        validator.validate.return_value = {"valid": True, "errors": []}
        normalizer = RequestNormalizer(name_validator=validator)

        normalizer.normalize(make_request("/_meta/foo"))
        normalizer.normalize(make_request("/foo?json"))
        normalizer.normalize(make_request("/foo?evil"))
        normalizer.normalize(make_request("/@scope"))

        validator.validate.assert_not_called()

    def test_request_is_not_modified(self):
        normalizer = RequestNormalizer()
        request = make_request("/foo?json&main=a")

        normalizer.normalize(request)

        assert request.query == {"json": "", "main": "a"}

    def test_normalization_is_deterministic(self):
        normalizer = RequestNormalizer()
        request = make_request("/foo?b=2&main=x&a=1")

        assert normalizer.normalize(request) == normalizer.normalize(request)


class TestSameOriginRedirects:
    """Test that redirect targets never point at another host"""

    def test_protocol_relative_path_with_unknown_param(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("//evil.com?x=1"))

        assert isinstance(result, Redirect)
        assert result.location == "/evil.com"

    def test_meta_prefix_followed_by_double_slash(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/_meta//evil.com/x"))

        assert result.rule == "legacy-meta-prefix"
        assert result.location == "/evil.com/x?meta"

    def test_json_flag_on_double_slash_path(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("//evil.com?json"))

        assert result.location == "/evil.com?meta"

    def test_backslash_after_leading_slash(self):
        normalizer = RequestNormalizer()

        result = normalizer.normalize(make_request("/\\evil.com?x=1"))

        assert result.location == "/evil.com"
