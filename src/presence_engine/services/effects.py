"""Best-effort secondary effects.

Keeping the presence timeline in step with its sources is enrichment, not the
system of record. Write paths run it after their own change and must report
success even when it fails. ``run_secondary_effect`` isolates the work in a
SAVEPOINT so a failure rolls back only the secondary writes, logs it with
context, and hands back a ``SecondaryEffect`` instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models.enums import EffectStatus

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(frozen=True)
class SecondaryEffect(Generic[R]):
    """Outcome of a best-effort step that ran after a primary mutation."""

    status: EffectStatus
    result: R | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == EffectStatus.APPLIED


async def run_secondary_effect(
    session: AsyncSession,
    label: str,
    operation: Callable[[], Awaitable[R]],
    **context: Any,
) -> SecondaryEffect[R]:
    """Run ``operation`` in a savepoint; log and contain any failure.

    Args:
        session: Session that already holds the primary mutation.
        label: Short name for the effect, used in log messages.
        operation: Zero-argument coroutine factory performing the effect.
        **context: Identifiers (asset_id, entity_id, ...) included in the log.

    Returns:
        SecondaryEffect with the operation's result, or the error text.
    """
    try:
        async with session.begin_nested():
            result = await operation()
    except Exception as exc:
        logger.warning(
            "%s failed (%s): %s",
            label,
            ", ".join(f"{key}={value}" for key, value in context.items()),
            exc,
            exc_info=True,
        )
        return SecondaryEffect(status=EffectStatus.FAILED, error=str(exc))
    return SecondaryEffect(status=EffectStatus.APPLIED, result=result)
