"""Custom exception hierarchy for the validator exporter."""

from __future__ import annotations

from typing import Mapping


class ValidatorExporterError(Exception):
    """Base exception for all validator exporter errors.

    All custom exceptions in this module inherit from this base class so
    callers can catch exporter-specific failures while still being able to
    handle the more specific subclasses.
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, object] | None = None,
    ) -> None:
        """Initialize the exception with a message and optional context.

        Args:
            message: The error message.
            context: Optional context dictionary with additional error information.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class ApiError(ValidatorExporterError):
    """Base exception for failures while fetching from the validator API.

    Raised when a single fetch fails because of the network, an unexpected
    HTTP status or a payload that cannot be decoded.
    """

    def __init__(
        self,
        message: str,
        *,
        validator: str | None = None,
        endpoint: str | None = None,
        request_url: str | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        """Initialize the API error with context.

        Args:
            message: The error message.
            validator: The tracked validator account.
            endpoint: The logical endpoint name (account, validator, delegators).
            request_url: The full request URL.
            context: Optional additional context.
        """
        api_context: dict[str, object] = {}
        if validator:
            api_context["validator"] = validator
        if endpoint:
            api_context["endpoint"] = endpoint
        if request_url:
            api_context["request_url"] = request_url
        if context:
            api_context.update(context)

        super().__init__(message, context=api_context)
        self.validator = validator
        self.endpoint = endpoint
        self.request_url = request_url

    @property
    def error_type(self) -> str:
        """Short category used as a metric label."""
        return "api_error"


class ApiConnectionError(ApiError):
    """Raised when the API endpoint cannot be reached."""

    @property
    def error_type(self) -> str:
        return "connection_error"


class ApiTimeoutError(ApiError):
    """Raised when an API request times out."""

    @property
    def error_type(self) -> str:
        return "timeout"


class ApiStatusError(ApiError):
    """Raised when the API answers with a status other than 200."""

    def __init__(self, message: str, *, status_code: int, **kwargs: object) -> None:
        context = kwargs.pop("context", {}) or {}
        context["status_code"] = status_code
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.status_code = status_code

    @property
    def error_type(self) -> str:
        return "status_error"


class ApiDecodeError(ApiError):
    """Raised when a response body is not the expected JSON shape."""

    def __init__(self, message: str, *, field: str | None = None, **kwargs: object) -> None:
        context = kwargs.pop("context", {}) or {}
        if field:
            context["field"] = field
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.field = field

    @property
    def error_type(self) -> str:
        return "decode_error"


class ValidatorFetchError(ValidatorExporterError):
    """Raised when one or more fetches for a validator failed in a poll round."""

    def __init__(self, validator: str, errors: Mapping[str, BaseException]) -> None:
        self.validator = validator
        self.endpoint_errors = dict(errors)
        self.errors = tuple(self.endpoint_errors.values())

        failed = sorted(self.endpoint_errors)

        super().__init__(
            f"Failed to fetch info for validator {validator}",
            context={"validator": validator, "failed_endpoints": failed},
        )


class MetricError(ValidatorExporterError):
    """Base exception for metric registry misuse."""

    def __init__(
        self,
        message: str,
        *,
        metric: str | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        metric_context: dict[str, object] = {}
        if metric:
            metric_context["metric"] = metric
        if context:
            metric_context.update(context)

        super().__init__(message, context=metric_context)
        self.metric = metric


class MetricRegistrationError(MetricError):
    """Raised when a metric name is registered more than once."""

    pass


class MetricNotFoundError(MetricError):
    """Raised when writing to a metric that was never registered."""

    pass


class MetricLabelError(MetricError):
    """Raised when label values do not match the registered label names."""

    pass


class ConfigError(ValidatorExporterError):
    """Base exception for configuration-related errors.

    Raised when configuration files cannot be loaded, parsed, or validated.
    """

    def __init__(
        self,
        message: str,
        *,
        config_file: str | None = None,
        config_section: str | None = None,
        config_key: str | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        """Initialize the configuration error with context.

        Args:
            message: The error message.
            config_file: The configuration file path.
            config_section: The configuration section (e.g., "validators[1]").
            config_key: The configuration key.
            context: Optional additional context.
        """
        config_context: dict[str, object] = {}
        if config_file:
            config_context["config_file"] = config_file
        if config_section:
            config_context["config_section"] = config_section
        if config_key:
            config_context["config_key"] = config_key
        if context:
            config_context.update(context)

        super().__init__(message, context=config_context)
        self.config_file = config_file
        self.config_section = config_section
        self.config_key = config_key


class ValidationError(ConfigError):
    """Raised when configuration validation fails."""

    def __init__(
        self,
        message: str,
        *,
        value: object | None = None,
        expected_type: str | None = None,
        **kwargs: object,
    ) -> None:
        context = kwargs.pop("context", {}) or {}
        if value is not None:
            context["value"] = value
        if expected_type:
            context["expected_type"] = expected_type
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.value = value
        self.expected_type = expected_type


__all__ = [
    "ApiConnectionError",
    "ApiDecodeError",
    "ApiError",
    "ApiStatusError",
    "ApiTimeoutError",
    "ConfigError",
    "MetricError",
    "MetricLabelError",
    "MetricNotFoundError",
    "MetricRegistrationError",
    "ValidationError",
    "ValidatorExporterError",
    "ValidatorFetchError",
]
