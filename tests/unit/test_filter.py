"""Unit tests for the stream filter predicate."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from reflowlogs.models.pods import LogFormat, StreamFilterConfig
from reflowlogs.streaming.filter import build_pattern, matches

_DEFAULT = StreamFilterConfig(target_namespace="foo", mode=LogFormat.DEFAULT)
_CUSTOM = StreamFilterConfig(target_namespace="foo", mode=LogFormat.CUSTOM)

_namespaces = st.from_regex(r"[a-z][a-z0-9\-]{0,30}", fullmatch=True)
_text = st.text(max_size=200)


class TestDefaultFormat:
    def test_matches_ingress_upstream_name(self) -> None:
        assert matches("2024 [foo-ingress] GET /", _DEFAULT)

    def test_requires_leading_space(self) -> None:
        assert not matches("2024[foo-ingress] GET /", _DEFAULT)

    def test_longer_namespace_with_same_prefix_does_not_match(self) -> None:
        assert not matches("2024 [foobar-ingress] GET /", _DEFAULT)

    def test_custom_format_line_does_not_match(self) -> None:
        assert not matches("2024 [namespace: foo] GET /", _DEFAULT)

    def test_empty_line(self) -> None:
        assert not matches("", _DEFAULT)

    def test_pattern(self) -> None:
        assert build_pattern(_DEFAULT) == " [foo-"


class TestCustomFormat:
    def test_matches_namespace_field(self) -> None:
        assert matches("2024 [namespace: foo] [service: web] GET /", _CUSTOM)

    def test_default_format_line_does_not_match(self) -> None:
        assert not matches("2024 [foo-ingress] GET /", _CUSTOM)

    def test_pattern(self) -> None:
        assert build_pattern(_CUSTOM) == " [namespace: foo"


class TestFromFlag:
    def test_default_flag_selects_default_format(self) -> None:
        assert StreamFilterConfig.from_flag("foo", True).mode is LogFormat.DEFAULT

    def test_false_flag_selects_custom_format(self) -> None:
        assert StreamFilterConfig.from_flag("foo", False).mode is LogFormat.CUSTOM


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@given(ns=_namespaces, line=_text)
def test_default_mode_is_substring_containment(ns: str, line: str) -> None:
    config = StreamFilterConfig(target_namespace=ns, mode=LogFormat.DEFAULT)
    assert matches(line, config) == (f" [{ns}-" in line)


@given(ns=_namespaces, line=_text)
def test_custom_mode_is_substring_containment(ns: str, line: str) -> None:
    config = StreamFilterConfig(target_namespace=ns, mode=LogFormat.CUSTOM)
    assert matches(line, config) == (f" [namespace: {ns}" in line)


@given(ns=_namespaces, prefix=_text, suffix=_text)
def test_embedded_pattern_always_matches(ns: str, prefix: str, suffix: str) -> None:
    config = StreamFilterConfig(target_namespace=ns, mode=LogFormat.DEFAULT)
    assert matches(f"{prefix} [{ns}-{suffix}", config)
