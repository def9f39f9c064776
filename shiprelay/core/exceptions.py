"""
Ship Relay Exception Hierarchy

All exceptions carry code, message and details for logging, plus the HTTP
status the handler boundary maps them to.

Exception Hierarchy:
    RelayError
    ├── ClientInputError
    ├── NotFoundError
    ├── ShippingError
    │   ├── ShippingProviderError
    │   └── ShippingLabelError
    ├── PaymentError
    │   ├── PaymentSessionError
    │   └── WebhookVerificationError
    └── MalformedUpstreamResponse
"""
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """
    Base exception for all relay errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
        severity: P0-P3 severity level
    """

    default_code: str = "RELAY_ERROR"
    default_severity: str = "P2"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ClientInputError(RelayError):
    """Missing or invalid caller input."""
    default_code = "INVALID_INPUT"
    default_severity = "P3"
    status_code = 400


class NotFoundError(RelayError):
    """Referenced upstream resource does not exist."""
    default_code = "NOT_FOUND"
    default_severity = "P3"
    status_code = 404


# =============================================================================
# SHIPPING ERRORS
# =============================================================================

class ShippingError(RelayError):
    """Base exception for shipping-provider errors."""
    default_code = "SHIPPING_ERROR"
    default_severity = "P1"


class ShippingProviderError(ShippingError):
    """Shippo returned a non-2xx status or could not be reached."""
    default_code = "SHIPPING_PROVIDER_FAILED"

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_body: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "upstream_status": upstream_status,
            "upstream_body": upstream_body,
        })
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
        super().__init__(message, details=details, **kwargs)


class ShippingLabelError(ShippingError):
    """Label purchase completed at HTTP level but the transaction failed."""
    default_code = "SHIPPING_LABEL_FAILED"

    def __init__(
        self,
        message: str,
        rate_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "rate_id": rate_id,
            "transaction_id": transaction_id,
        })
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# PAYMENT ERRORS
# =============================================================================

class PaymentError(RelayError):
    """Base exception for payment processing errors."""
    default_code = "PAYMENT_ERROR"
    default_severity = "P0"


class PaymentSessionError(PaymentError):
    """Stripe refused or failed to create a Checkout Session."""
    default_code = "PAYMENT_SESSION_FAILED"


class WebhookVerificationError(PaymentError):
    """Webhook signature or payload could not be authenticated."""
    default_code = "WEBHOOK_VERIFICATION_FAILED"
    default_severity = "P2"
    status_code = 400


# =============================================================================
# UPSTREAM CONTRACT ERRORS
# =============================================================================

class MalformedUpstreamResponse(RelayError):
    """Upstream returned 2xx but the body does not match the expected schema."""
    default_code = "UPSTREAM_MALFORMED"
    default_severity = "P1"

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["source"] = source
        super().__init__(message, details=details, **kwargs)
