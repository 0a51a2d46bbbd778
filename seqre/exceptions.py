class SeqreError(Exception):
    """Base exception for all application-specific errors."""

    error_code = 'app:seqre_error'


class InvalidShortcodeError(SeqreError):
    """Raised when a caller-supplied short code is malformed."""

    error_code = 'input:invalid_shortcode_error'


class ValidationError(SeqreError):
    """Raised when content submitted for storage is rejected."""

    error_code = 'input:validation_error'


class UnsafeURLError(ValidationError):
    """Raised when a link target points at a private or internal address."""

    error_code = 'input:unsafe_url_error'


class EncryptionError(SeqreError):
    """Raised when sealing or opening an envelope fails.

    Covers authentication mismatches, truncated envelopes, malformed base64
    and keys of the wrong length.
    """

    error_code = 'crypto:encryption_error'


class RateLimitedError(SeqreError):
    """Raised when a client exhausted its token bucket."""

    error_code = 'client:rate_limited_error'

    def __init__(self, message: str = 'Too many requests', retry_after: int = 1):
        super().__init__(message)
        self.retry_after = retry_after


class ConfigurationError(SeqreError):
    """Base exception for all configuration errors."""

    error_code = 'config:configuration_error'


class BadConfigurationError(ConfigurationError):
    """Raised when the application is configured with invalid parameters."""

    error_code = 'config:bad_configuration_error'
