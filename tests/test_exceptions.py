from validator_exporter.exceptions import (
    ApiConnectionError,
    ApiDecodeError,
    ApiError,
    ApiStatusError,
    ApiTimeoutError,
    ConfigError,
    ValidationError,
    ValidatorExporterError,
    ValidatorFetchError,
)


def test_api_error_carries_request_context() -> None:
    error = ApiStatusError(
        "unexpected status code: 404",
        status_code=404,
        validator="0xabc",
        endpoint="account",
        request_url="https://api.test/accounts/0xabc",
    )

    assert isinstance(error, ApiError)
    assert isinstance(error, ValidatorExporterError)
    assert error.context == {
        "validator": "0xabc",
        "endpoint": "account",
        "request_url": "https://api.test/accounts/0xabc",
        "status_code": 404,
    }
    assert str(error).startswith("unexpected status code: 404 (context: validator='0xabc'")


def test_error_types() -> None:
    assert ApiError("x").error_type == "api_error"
    assert ApiConnectionError("x").error_type == "connection_error"
    assert ApiTimeoutError("x").error_type == "timeout"
    assert ApiStatusError("x", status_code=500).error_type == "status_error"
    assert ApiDecodeError("x", field="tokens").error_type == "decode_error"


def test_validator_fetch_error_names_every_failed_endpoint() -> None:
    errors = {
        "validator": ApiTimeoutError("slow", endpoint="validator"),
        "account": ApiStatusError("bad", status_code=500, endpoint="account"),
        "delegators": RuntimeError("bug"),
    }

    error = ValidatorFetchError("0xabc", errors)

    assert error.message == "Failed to fetch info for validator 0xabc"
    assert error.context["failed_endpoints"] == ["account", "delegators", "validator"]
    assert error.endpoint_errors == errors
    assert error.errors == tuple(errors.values())


def test_validation_error_is_config_error() -> None:
    error = ValidationError(
        "bad value",
        config_section="validators[1]",
        config_key="account",
        value="",
        expected_type="string",
    )

    assert isinstance(error, ConfigError)
    assert error.context == {
        "config_section": "validators[1]",
        "config_key": "account",
        "value": "",
        "expected_type": "string",
    }
