"""Per-user usage quota with optimistic local updates.

The ledger mirrors the remote usage document (see
:mod:`brainrot.core.quota_store`) and is the only place that decides whether
a generation may start.

Lifecycle
---------
``UNCONFIGURED`` -> ``LOADING`` -> ``READY``.  :meth:`UsageLedger.configure`
is idempotent per user id; a different id tears down the live subscription
and reloads.  Without a remote store the ledger falls back to the free tier
and runs in local-only mode.

Credit Consumption
------------------
:meth:`UsageLedger.consume_credit_if_available` increments ``used`` locally
first and then asks the remote store for the matching atomic increment.  If
the remote write fails the local increment is rolled back once (floored at
zero) and the error is re-raised.  The remote document stays the source of
truth: every live-subscription update overwrites local state.

A subscription update landing between the optimistic increment and the
remote confirmation is applied as-is (last writer wins); the rollback then
subtracts from whatever value the update left behind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum

from .errors import (
    LedgerNotConfiguredError,
    LedgerSyncError,
    QuotaExceededError,
)
from .quota_store import Cancel, QuotaStoreBase
from .subscription import FREE_TIER, SubscriptionPlan

logger = logging.getLogger(__name__)


class LedgerState(str, Enum):
    UNCONFIGURED = "unconfigured"
    LOADING = "loading"
    READY = "ready"


@dataclass(frozen=True)
class UsageQuota:
    """Snapshot of a user's quota."""

    total: int
    used: int
    subscription_type: str = FREE_TIER

    @property
    def remaining(self) -> int:
        return max(self.total - self.used, 0)

    @property
    def can_generate(self) -> bool:
        return self.total > 0 and self.used < self.total

    def to_document(self) -> dict:
        return {
            "total": self.total,
            "used": self.used,
            "subscriptionType": self.subscription_type,
            "updatedAt": _timestamp(),
        }


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _int_field(data: dict, key: str, fallback: int) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    return int(value)


class UsageLedger:
    """Tracks and enforces the usage quota for one user at a time.

    Args:
        store: Remote quota store, or ``None`` when no store is reachable.
        free_tier_credits: Credits granted on the free tier.
    """

    def __init__(self, store: QuotaStoreBase | None = None, *, free_tier_credits: int = 1):
        self.store = store
        self.free_tier_credits = free_tier_credits
        self.state = LedgerState.UNCONFIGURED
        self.user_id: str | None = None
        self.last_error: Exception | None = None
        self._quota = UsageQuota(total=0, used=0, subscription_type=FREE_TIER)
        self._cancel_subscription: Cancel | None = None
        self._listeners: list[Callable[[UsageQuota], None]] = []

    # ------------------------------------------------------------------
    # Read accessors.
    # ------------------------------------------------------------------

    @property
    def quota(self) -> UsageQuota:
        return self._quota

    @property
    def remaining(self) -> int:
        return self._quota.remaining

    @property
    def can_generate(self) -> bool:
        return self._quota.can_generate

    @property
    def is_loading(self) -> bool:
        return self.state is not LedgerState.READY

    @property
    def free_tier(self) -> UsageQuota:
        return UsageQuota(total=self.free_tier_credits, used=0, subscription_type=FREE_TIER)

    def add_listener(self, callback: Callable[[UsageQuota], None]) -> Callable[[], None]:
        """Register ``callback`` to receive every new quota snapshot.

        Returns:
            A function that unregisters the callback.
        """
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    # ------------------------------------------------------------------
    # Operations.
    # ------------------------------------------------------------------

    async def configure(self, user_id: str) -> None:
        """Load (or create) the quota for ``user_id`` and start listening.

        Raises:
            LedgerSyncError: If the remote document cannot be read or created.
                The ledger is still marked ready and the live subscription is
                still opened so a later remote update can heal the state.
        """
        if self.user_id == user_id:
            return

        self._stop_listening()
        self.user_id = user_id
        # Nothing from the previous user may survive a failed load.
        self._set_quota(UsageQuota(total=0, used=0))

        if self.store is None:
            self._set_quota(self.free_tier)
            self.state = LedgerState.READY
            logger.info(f"Usage ledger configured for {user_id} in local-only mode")
            return

        self.state = LedgerState.LOADING
        error: LedgerSyncError | None = None
        try:
            document = await self.store.get(user_id)
            if document is None:
                await self.store.set(user_id, self.free_tier.to_document(), merge=False)
                self._set_quota(self.free_tier)
            else:
                self._apply_document(document)
            self.last_error = None
        except Exception as e:
            error = self._record(e)
        finally:
            self.state = LedgerState.READY

        self._cancel_subscription = self.store.subscribe(
            user_id, self._apply_document, self._on_subscription_error
        )
        logger.info(f"Usage ledger configured for {user_id}: {self._quota}")

        if error is not None:
            raise error

    async def consume_credit_if_available(self) -> None:
        """Spend one credit, optimistically.

        Raises:
            LedgerNotConfiguredError: If :meth:`configure` has not run.
            QuotaExceededError: If no credit is left; ``used`` is unchanged.
            LedgerSyncError: If the remote increment fails; the local
                increment has been rolled back.
        """
        user_id = self._require_user()
        if not self.can_generate:
            raise QuotaExceededError(
                f"Quota exhausted ({self._quota.used}/{self._quota.total})"
            )

        self._set_quota(replace(self._quota, used=self._quota.used + 1))

        if self.store is None:
            return

        try:
            await self.store.increment(user_id, "used", 1, extra={"updatedAt": _timestamp()})
            self.last_error = None
        except Exception as e:
            self._set_quota(replace(self._quota, used=max(self._quota.used - 1, 0)))
            sync_error = self._record(e)
            if sync_error is e:
                raise
            raise sync_error from e

    async def apply_subscription(self, plan: SubscriptionPlan) -> None:
        """Reset the quota to ``plan`` after a completed purchase."""
        quota = UsageQuota(total=plan.image_quota, used=0, subscription_type=plan.value)
        await self._replace_quota(quota)
        logger.info(f"Applied {plan.value} subscription for {self.user_id}")

    async def reset_to_free_tier(self) -> None:
        """Reset the quota to the free tier default."""
        await self._replace_quota(self.free_tier)
        logger.info(f"Reset {self.user_id} to the free tier")

    def close(self) -> None:
        """Stop the live subscription."""
        self._stop_listening()

    # ------------------------------------------------------------------
    # Internals.
    # ------------------------------------------------------------------

    def _require_user(self) -> str:
        if self.user_id is None:
            raise LedgerNotConfiguredError("Usage ledger is not configured")
        return self.user_id

    async def _replace_quota(self, quota: UsageQuota) -> None:
        user_id = self._require_user()
        self._set_quota(quota)
        if self.store is None:
            return
        try:
            await self.store.set(user_id, quota.to_document(), merge=True)
            self.last_error = None
        except Exception as e:
            sync_error = self._record(e)
            if sync_error is e:
                raise
            raise sync_error from e

    def _record(self, error: Exception) -> LedgerSyncError:
        sync_error = (
            error
            if isinstance(error, LedgerSyncError)
            else LedgerSyncError(f"Quota store operation failed: {error}")
        )
        self.last_error = sync_error
        logger.warning(f"Usage ledger sync failed for {self.user_id}: {error}")
        return sync_error

    def _apply_document(self, data: dict) -> None:
        subscription = data.get("subscriptionType")
        self._set_quota(
            UsageQuota(
                total=_int_field(data, "total", self._quota.total),
                used=_int_field(data, "used", self._quota.used),
                subscription_type=(
                    subscription if isinstance(subscription, str) else self._quota.subscription_type
                ),
            )
        )
        self.last_error = None
        self.state = LedgerState.READY

    def _on_subscription_error(self, error: Exception) -> None:
        self._record(error)

    def _set_quota(self, quota: UsageQuota) -> None:
        self._quota = quota
        for callback in list(self._listeners):
            callback(quota)

    def _stop_listening(self) -> None:
        if self._cancel_subscription is not None:
            self._cancel_subscription()
            self._cancel_subscription = None
