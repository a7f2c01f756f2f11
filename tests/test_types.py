"""Tests for configuration parsing and validation."""

import dataclasses

import pytest

from sipcheck import (
    ConfigError,
    ErrorKind,
    RequestConfig,
    RequestMethod,
    Severity,
    TransportKind,
    parse_expected_codes,
)
from sipcheck._types import ConnectTimeout, ResponseTimeout, TransportError, WrongResponse


@pytest.mark.parametrize(
    "text, expected",
    [
        ("", ()),
        (None, ()),
        ("200", ("200",)),
        ("100,200", ("100", "200")),
        ("100,180,200,", ("100", "180", "200")),
    ],
)
def test_parse_expected_codes(text, expected):
    assert parse_expected_codes(text) == expected


@pytest.mark.parametrize("text", ["20", "700", "abc", "200,,300", "200 300", "099"])
def test_parse_expected_codes_rejects(text):
    with pytest.raises(ConfigError):
        parse_expected_codes(text)


def test_from_options_applies_uri_defaults():
    config = RequestConfig.from_options("sip.example.com", server_port=5080)
    assert config.request_uri == "sip:ping@sip.example.com:5080"
    assert config.from_uri == "sip:nagios@sip.example.com"
    assert config.transport is TransportKind.UDP
    assert config.method is RequestMethod.OPTIONS
    assert config.expected_status_codes == ()
    assert config.expected_count == 1


def test_from_options_keeps_explicit_uris():
    config = RequestConfig.from_options(
        "10.0.0.1",
        request_uri="sip:alice@10.0.0.1",
        from_uri="sip:monitor@example.com",
        expected_status_codes="100,200",
    )
    assert config.request_uri == "sip:alice@10.0.0.1"
    assert config.from_uri == "sip:monitor@example.com"
    assert config.expected_status_codes == ("100", "200")
    assert config.expected_count == 2


def test_enum_fields_accept_names():
    config = RequestConfig.from_options("10.0.0.1", transport="TLS", method="invite")
    assert config.transport is TransportKind.TLS
    assert config.method is RequestMethod.INVITE


def test_config_is_immutable():
    config = RequestConfig.from_options("10.0.0.1")
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.timeout = 5


def test_wildcard_slots_are_allowed():
    config = RequestConfig.from_options("10.0.0.1", expected_status_codes=[None, "200"])
    assert config.expected_status_codes == (None, "200")
    assert config.expected_count == 2


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"transport": "sctp"}, "transport protocol"),
        ({"method": "REGISTER"}, "request_method"),
        ({"timeout": 0}, "timeout"),
        ({"timeout": -1}, "timeout"),
        ({"timeout": float("nan")}, "finite"),
        ({"timeout": float("inf")}, "finite"),
        ({"request_uri": "sip:pïng@10.0.0.1"}, "request URI"),
        ({"from_uri": "sip:nägios@10.0.0.1"}, "from URI"),
        ({"server_port": 0}, "server port"),
        ({"local_port": 70000}, "local port"),
        ({"expected_status_codes": ["2000"]}, "expected status code"),
    ],
)
def test_invalid_config(kwargs, message):
    with pytest.raises(ConfigError, match=message):
        RequestConfig.from_options("10.0.0.1", **kwargs)


def test_server_address_is_required():
    with pytest.raises(ConfigError, match="server address"):
        RequestConfig.from_options("")


def test_severity_values_are_exit_codes():
    assert [int(s) for s in (Severity.OK, Severity.WARNING, Severity.CRITICAL, Severity.UNKNOWN)] == [0, 1, 2, 3]


def test_errors_carry_their_kind():
    assert ConnectTimeout("x").kind is ErrorKind.CONNECT_TIMEOUT
    assert ResponseTimeout("x").kind is ErrorKind.RESPONSE_TIMEOUT
    assert TransportError("x").kind is ErrorKind.TRANSPORT
    assert WrongResponse("x").kind is ErrorKind.WRONG_RESPONSE
    assert isinstance(ResponseTimeout("x"), TransportError)
