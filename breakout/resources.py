"""Ownership wrappers for shared collaborators.

A room or registry holds each of its store, swarm and pairing instances as
either ``Owned`` (constructed internally, closed on teardown) or ``Borrowed``
(supplied by the caller, never closed here).
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, TypeVar

from loguru import logger

from breakout.errors import ResourceOwnershipError

T = TypeVar("T")


@dataclass
class Resource(Generic[T]):
    value: T
    name: str = "resource"

    @property
    def owned(self) -> bool:
        return False


@dataclass
class Owned(Resource[T]):
    """A resource this component constructed and must close."""

    released: bool = field(default=False)

    @property
    def owned(self) -> bool:
        return True


@dataclass
class Borrowed(Resource[T]):
    """A resource supplied from outside; never closed by this component."""


def own_or_borrow(value: Optional[T], factory: Callable[[], T], name: str) -> Resource[T]:
    """Wrap a supplied value as Borrowed, or build one with ``factory`` as Owned."""
    if value is not None:
        return Borrowed(value=value, name=name)
    return Owned(value=factory(), name=name)


async def release(resource: Resource[Any], closer: str = "close") -> None:
    """Close an owned resource via its ``closer`` method.

    Raises:
        ResourceOwnershipError: If the resource is borrowed or already released.
    """
    if not isinstance(resource, Owned):
        raise ResourceOwnershipError(f"Refusing to close borrowed {resource.name}")
    if resource.released:
        raise ResourceOwnershipError(f"{resource.name} was already released")
    resource.released = True
    result = getattr(resource.value, closer)()
    if inspect.isawaitable(result):
        await result
    logger.debug(f"Released owned {resource.name}")


async def release_owned(resources: List[tuple[Resource[Any], str]], errors: List[BaseException]) -> None:
    """Release every owned, unreleased resource in order, best-effort.

    Borrowed resources are skipped. Failures are appended to ``errors`` and do
    not stop the remaining releases.
    """
    for resource, closer in resources:
        if not isinstance(resource, Owned) or resource.released:
            continue
        try:
            await release(resource, closer)
        except Exception as e:
            logger.warning(f"Failed to release {resource.name}: {e}")
            errors.append(e)
