"""
Pydantic models for API requests.
These define the contract between the API and external clients.
"""

from loyalty_cancellation.domain import CancellationRequest


class PreviewCancellationRequest(CancellationRequest):
    """Scope of a cancellation preview."""

    pass


class ConfirmCancellationRequest(CancellationRequest):
    """Scope of a cancellation; ``confirm`` must be true to proceed."""

    confirm: bool = False
