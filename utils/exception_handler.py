"""
Exception Handler Module
Provides the marketplace exception taxonomy and the HTTP mapping helper
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    """Base class for business errors surfaced to callers"""

    http_status = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(MarketplaceError):
    """Custom validation error for input validation failures"""

    http_status = 422


class MalformedRecordError(MarketplaceError):
    """Stored record could not be parsed into its typed model"""

    http_status = 500


class RecordNotFoundError(MarketplaceError):
    http_status = 404


class PermissionDeniedError(MarketplaceError):
    http_status = 403


class InsufficientBalanceError(MarketplaceError):
    http_status = 409


class AcknowledgmentRequiredError(MarketplaceError):
    """Irreversible action attempted without accepting every disclaimer"""

    http_status = 400

    def __init__(self, message: str, missing: Optional[list] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class InvalidStateTransitionError(MarketplaceError):
    """Requested status change is not allowed from the current status"""

    http_status = 409

    def __init__(self, entity: str, current_status: Optional[str], new_status: str):
        self.entity = entity
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(f"Invalid {entity} transition: {current_status} -> {new_status}")


class RequestAlreadyProcessedError(InvalidStateTransitionError):
    """Approve/reject on a deposit or withdrawal that is no longer pending"""

    def __init__(self, kind: str, request_id: int, current_status: Optional[str], new_status: str):
        self.kind = kind
        self.request_id = request_id
        MarketplaceError.__init__(
            self,
            f"{kind.capitalize()} request {request_id} already {current_status}; cannot mark {new_status}",
        )
        self.entity = f"{kind}_request"
        self.current_status = current_status
        self.new_status = new_status


def error_payload(error: MarketplaceError) -> Dict[str, Any]:
    """JSON body for a business error response"""
    payload: Dict[str, Any] = {"ok": False, "error": error.message, "type": type(error).__name__}
    if isinstance(error, AcknowledgmentRequiredError) and error.missing:
        payload["missing"] = error.missing
    if isinstance(error, MalformedRecordError):
        logger.error(f"❌ MALFORMED_RECORD: {error.message}")
    return payload
