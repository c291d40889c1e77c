"""
Boundary checks for injected adapters and untrusted payloads.

Adapters (booking stores, ledger gateways) are checked structurally
against the runtime-checkable protocols in ``repositories``, so a
misconfigured worker or API process fails on construction rather than
halfway through a cancellation. Payloads arriving as plain dicts
(workflow arguments, stored JSON) are parsed into domain models here.
"""

import logging
from typing import Any, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

P = TypeVar("P")
M = TypeVar("M", bound=BaseModel)


class RepositoryValidationError(Exception):
    """An injected adapter does not satisfy its protocol"""


class DomainValidationError(Exception):
    """A payload could not be parsed into a domain model"""


def _protocol_methods(protocol: type) -> List[str]:
    return sorted(
        name
        for name, member in vars(protocol).items()
        if callable(member) and not name.startswith("_")
    )


def missing_protocol_methods(adapter: object, protocol: type) -> List[str]:
    """Names of protocol methods the adapter lacks or exposes as non-callables."""
    return [
        name
        for name in _protocol_methods(protocol)
        if not callable(getattr(adapter, name, None))
    ]


def validate_repository_protocol(adapter: object, protocol: Type[P]) -> None:
    """
    Check that ``adapter`` structurally implements ``protocol``.

    Raises:
        RepositoryValidationError: naming the adapter, the protocol and
            every missing method.
    """
    adapter_name = type(adapter).__name__
    if isinstance(adapter, protocol):
        logger.debug(
            "Adapter satisfies protocol",
            extra={"adapter": adapter_name, "protocol": protocol.__name__},
        )
        return

    missing = missing_protocol_methods(adapter, protocol)
    logger.error(
        "Adapter does not satisfy protocol",
        extra={
            "adapter": adapter_name,
            "protocol": protocol.__name__,
            "missing_methods": missing,
        },
    )
    raise RepositoryValidationError(
        f"{adapter_name} is not a {protocol.__name__}; "
        f"missing: {', '.join(missing) or 'unknown'}"
    )


def ensure_repository_protocol(adapter: object, protocol: Type[P]) -> P:
    validate_repository_protocol(adapter, protocol)
    return adapter  # type: ignore[return-value]


def validate_domain_model(data: Any, model_class: Type[M]) -> M:
    """
    Parse ``data`` into ``model_class``.

    Existing instances are returned as they are. Temporal hands workflow
    arguments over as models when the pydantic converter is configured
    and as dicts when it is not; both are accepted.
    """
    if isinstance(data, model_class):
        return data

    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        logger.error(
            "Payload rejected",
            extra={
                "model_class": model_class.__name__,
                "error_count": e.error_count(),
                "errors": e.errors(include_url=False),
            },
        )
        raise DomainValidationError(
            f"Invalid {model_class.__name__} payload: {e}"
        ) from e


def ensure_booking_repository(repo: object) -> Any:
    from loyalty_cancellation.repositories import BookingRepository

    return ensure_repository_protocol(repo, BookingRepository)  # type: ignore[type-abstract]


def ensure_ledger_gateway(gateway: object) -> Any:
    from loyalty_cancellation.repositories import LedgerGateway

    return ensure_repository_protocol(gateway, LedgerGateway)  # type: ignore[type-abstract]


def ensure_line_item_mirror(mirror: object) -> Any:
    from loyalty_cancellation.repositories import LineItemMirror

    return ensure_repository_protocol(mirror, LineItemMirror)  # type: ignore[type-abstract]
