"""
Temporal decorators for repository activities and workflow proxies.

``temporal_activity_registration`` turns the protocol methods of a concrete
repository into named activities. ``temporal_workflow_proxy`` generates the
matching workflow-side class whose methods call those activities by name.
Both walk the same protocol methods, so names always line up.
"""

import functools
import inspect
import logging
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import TypeAdapter
from temporalio import activity, workflow
from temporalio.common import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Reversals are not idempotent on the platform; one attempt only
FAIL_FAST_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=1),
    maximum_attempts=1,
    backoff_coefficient=1.0,
    maximum_interval=timedelta(seconds=1),
)


def _is_protocol(cls: type) -> bool:
    return bool(getattr(cls, "_is_protocol", False))


def _discover_protocol_methods(
    cls_hierarchy: tuple,
) -> Dict[str, Callable[..., Any]]:
    """
    Find the public async methods declared by Protocol classes in an MRO.

    Shared by both decorators so activity names and proxy methods are
    generated from the same set of methods.
    """
    methods: Dict[str, Callable[..., Any]] = {}
    for base_class in cls_hierarchy:
        if base_class is object or not _is_protocol(base_class):
            continue
        for name, member in base_class.__dict__.items():
            if name in methods or name.startswith("_"):
                continue
            if inspect.iscoroutinefunction(member):
                methods[name] = member

    logger.debug(
        "Protocol method discovery",
        extra={
            "classes": [cls.__name__ for cls in cls_hierarchy],
            "methods": sorted(methods),
        },
    )
    return methods


def temporal_activity_registration(
    activity_prefix: str,
) -> Callable[[Type[T]], Type[T]]:
    """
    Class decorator that registers a repository's protocol methods as
    Temporal activities named ``<activity_prefix>.<method>``.

    The decorated class must list the protocol among its bases so its
    methods can be discovered.

    Example:
        @temporal_activity_registration("loyalty.booking_repo.minio")
        class TemporalMinioBookingRepository(
            MinioBookingRepository, BookingRepository
        ):
            pass
    """

    def decorator(cls: Type[T]) -> Type[T]:
        wrapped: List[str] = []

        for name in _discover_protocol_methods(cls.__mro__):
            # Concrete implementation, not the protocol stub
            implementation = getattr(cls, name)
            # Inherited from an already-registered class
            if hasattr(implementation, "__temporal_activity_definition"):
                implementation = implementation.__wrapped__

            def make_activity(
                impl: Callable[..., Any], method_name: str
            ) -> Callable[..., Any]:
                @functools.wraps(impl)
                async def activity_method(*args: Any, **kwargs: Any) -> Any:
                    return await impl(*args, **kwargs)

                activity_method.__name__ = method_name
                activity_method.__qualname__ = f"{cls.__name__}.{method_name}"
                return activity.defn(name=f"{activity_prefix}.{method_name}")(
                    activity_method
                )

            setattr(cls, name, make_activity(implementation, name))
            wrapped.append(name)

        logger.debug(
            "Registered repository activities",
            extra={
                "class_name": cls.__name__,
                "activity_prefix": activity_prefix,
                "wrapped_methods": wrapped,
            },
        )
        return cls

    return decorator


def temporal_workflow_proxy(
    activity_base: str,
    default_timeout_seconds: int = 30,
    fail_fast_methods: Optional[List[str]] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> Callable[[Type[T]], Type[T]]:
    """
    Class decorator that implements every protocol method of the decorated
    class as a call to the activity ``<activity_base>.<method>``.

    Args:
        activity_base: Activity name prefix used at registration
        default_timeout_seconds: start_to_close timeout for each call
        fail_fast_methods: Methods run with a single attempt
        retry_policy: Policy for the remaining methods; None keeps
            Temporal's default

    Return values are validated against the protocol method's return
    annotation, so workflow code gets domain objects back rather than the
    decoded JSON. Proxy methods accept positional arguments only.
    """

    def decorator(cls: Type[T]) -> Type[T]:
        fail_fast = set(fail_fast_methods or [])
        timeout = timedelta(seconds=default_timeout_seconds)

        for method_name, protocol_method in _discover_protocol_methods(
            cls.__mro__
        ).items():
            return_annotation = inspect.signature(
                protocol_method
            ).return_annotation
            adapter = (
                None
                if return_annotation in (inspect.Signature.empty, None)
                else TypeAdapter(return_annotation)
            )
            policy = (
                FAIL_FAST_RETRY_POLICY
                if method_name in fail_fast
                else retry_policy
            )

            def make_proxy_method(
                method_name: str,
                protocol_method: Callable[..., Any],
                adapter: Optional[TypeAdapter],
                policy: Optional[RetryPolicy],
            ) -> Callable[..., Any]:
                activity_name = f"{activity_base}.{method_name}"

                @functools.wraps(protocol_method)
                async def proxy_method(
                    self: Any, *args: Any, **kwargs: Any
                ) -> Any:
                    if kwargs:
                        raise ValueError(
                            f"kwargs not supported in workflow proxy for "
                            f"{method_name}. Use positional args."
                        )

                    raw_result = await workflow.execute_activity(
                        activity_name,
                        args=list(args),
                        start_to_close_timeout=timeout,
                        retry_policy=policy,
                    )
                    if adapter is None:
                        return raw_result
                    return adapter.validate_python(raw_result)

                return proxy_method

            setattr(
                cls,
                method_name,
                make_proxy_method(
                    method_name, protocol_method, adapter, policy
                ),
            )

        return cls

    return decorator
