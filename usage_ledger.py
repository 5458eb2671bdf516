"""
Usage ledger for the Muse generation layer.

Tracks per-capability credit balances for the active subscription tier, gates
chargeable actions before they run, and records a signed entry for every
balance change. The cached balances and the entry log always move together.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import json_utils as json
from config import TIER_CATALOG
from interfaces import NotificationSink
from models import (
    Capability,
    Feature,
    GateDecision,
    GateReason,
    SubscriptionTier,
    TierLimits,
    UsageLedgerEntry,
)


logger = logging.getLogger(__name__)

CAPABILITY_FEATURE: Dict[Capability, Feature] = {
    Capability.VIDEO: Feature.VEO,
    Capability.VOICE_MINUTES: Feature.VOICE_ASSISTANT,
    Capability.AUDIO_CHARS: Feature.AUDIO_STUDIO,
}

CAPABILITY_LABELS: Dict[Capability, str] = {
    Capability.VIDEO: "video generation",
    Capability.IMAGE: "image generation",
    Capability.VOICE_MINUTES: "voice assistant minutes",
    Capability.AUDIO_CHARS: "audio studio characters",
}

USAGE_DESCRIPTIONS: Dict[Capability, str] = {
    Capability.VIDEO: "Video Generation ({amount}x)",
    Capability.IMAGE: "Storyboard Image Generation ({amount}x)",
    Capability.VOICE_MINUTES: "Voice Assistant Talk Time ({amount} min)",
    Capability.AUDIO_CHARS: "Audio Studio Synthesis ({amount} chars)",
}


class UsageLedger:
    """
    Per-user credit ledger bound to one subscription tier.

    History is kept most-recent-first. Balances are never clamped: gating
    through check_limit() before track_usage() is what keeps them positive.
    """

    def __init__(
        self,
        tier: SubscriptionTier,
        notification_sink: NotificationSink,
        *,
        catalog: Mapping[SubscriptionTier, TierLimits] = TIER_CATALOG,
        opening_balances: Optional[Mapping[Capability, int]] = None,
    ):
        self.tier = tier
        self.notification_sink = notification_sink
        self.catalog = catalog
        self._balances: Dict[Capability, int] = {capability: 0 for capability in Capability}
        self._history: List[UsageLedgerEntry] = []

        if opening_balances is None:
            opening_balances = self.limits.initial_balances
        for capability, amount in opening_balances.items():
            if amount:
                self._record(Capability(capability), int(amount), f"{self.limits.display_name} plan allowance")

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def limits(self) -> TierLimits:
        return self.catalog[self.tier]

    @property
    def history(self) -> List[UsageLedgerEntry]:
        return list(self._history)

    def balance(self, capability: Capability) -> int:
        return self._balances[capability]

    def balances(self) -> Dict[Capability, int]:
        return dict(self._balances)

    def consumed(self, capability: Capability) -> int:
        """Total units spent on a capability."""
        return -sum(
            entry.signed_amount
            for entry in self._history
            if entry.capability == capability and entry.signed_amount < 0
        )

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def evaluate(self, capability: Capability, requested_amount: int = 0) -> GateDecision:
        """Decide whether an action may run, without notifying anyone."""
        if requested_amount < 0:
            raise ValueError("requested_amount must be >= 0")

        limits = self.limits
        label = CAPABILITY_LABELS[capability]

        if self.tier is SubscriptionTier.FREE:
            return GateDecision(
                allowed=False,
                reason=GateReason.TIER_LOCKED,
                message=f"{label.capitalize()} is not available on the {limits.display_name} plan. Upgrade to unlock it.",
            )

        feature = CAPABILITY_FEATURE.get(capability)
        if feature is not None and not limits.has_feature(feature):
            return GateDecision(
                allowed=False,
                reason=GateReason.FEATURE_DISABLED,
                message=f"{label.capitalize()} is not included in the {limits.display_name} plan.",
            )

        if self._balances[capability] <= 0:
            return GateDecision(
                allowed=False,
                reason=GateReason.BALANCE_EXHAUSTED,
                message=f"You have no {label} credits left. Upgrade or add credits to continue.",
            )

        cap = limits.max_per_operation.get(capability)
        if cap is not None and requested_amount > cap:
            return GateDecision(
                allowed=False,
                reason=GateReason.PER_OPERATION_CAP_EXCEEDED,
                message=f"Your current tier is limited to {cap:,} characters per generation.",
            )

        return GateDecision(allowed=True)

    def check_limit(self, capability: Capability, requested_amount: int = 0) -> bool:
        """Gate a chargeable action; blocked actions prompt an upgrade via the sink."""
        decision = self.evaluate(capability, requested_amount)
        if not decision.allowed:
            logger.info(
                "Blocked %s (%d requested) on %s: %s",
                capability.value,
                requested_amount,
                self.tier.value,
                decision.reason.value,
            )
            self.notification_sink.upgrade_required(capability, decision.reason, decision.message)
        return decision.allowed

    def check_feature(self, feature: Feature) -> bool:
        """Gate a non-metered feature such as the ensemble cast or story bible."""
        limits = self.limits
        if self.tier is SubscriptionTier.FREE:
            reason = GateReason.TIER_LOCKED
        elif not limits.has_feature(feature):
            reason = GateReason.FEATURE_DISABLED
        else:
            return True
        message = f"This feature is not included in the {limits.display_name} plan."
        self.notification_sink.upgrade_required(feature, reason, message)
        return False

    # ------------------------------------------------------------------
    # Mutations (each paired with exactly one entry)
    # ------------------------------------------------------------------

    def _record(self, capability: Capability, signed_amount: int, description: str) -> UsageLedgerEntry:
        entry = UsageLedgerEntry(capability=capability, signed_amount=signed_amount, description=description)
        self._balances[capability] += signed_amount
        self._history.insert(0, entry)
        return entry

    def track_usage(self, capability: Capability, amount: int = 1) -> UsageLedgerEntry:
        """Spend credits after a chargeable operation succeeded."""
        if amount <= 0:
            raise ValueError("Usage amount must be positive")
        entry = self._record(capability, -amount, USAGE_DESCRIPTIONS[capability].format(amount=amount))
        if self._balances[capability] < 0:
            logger.warning(
                "%s balance went negative (%d); a caller skipped check_limit",
                capability.value,
                self._balances[capability],
            )
        return entry

    def grant(self, capability: Capability, amount: int, description: str) -> UsageLedgerEntry:
        """Add credits (credit packs, promotions)."""
        if amount <= 0:
            raise ValueError("Grant amount must be positive")
        return self._record(capability, amount, description)

    def change_tier(self, new_tier: SubscriptionTier) -> List[UsageLedgerEntry]:
        """
        Switch tiers, raising each balance to the new tier's allowance.

        Banked credits above the allowance are kept, so a plan change never
        reduces a balance.
        """
        previous = self.tier
        self.tier = new_tier
        limits = self.limits
        entries = []
        for capability in Capability:
            target = limits.initial_balance(capability)
            shortfall = target - self._balances[capability]
            if shortfall > 0:
                entries.append(self._record(capability, shortfall, f"{limits.display_name} plan allowance"))
        logger.info("Tier changed %s -> %s (%d balances raised)", previous.value, new_tier.value, len(entries))
        return entries

    def verify_consistency(self) -> Dict[Capability, int]:
        """Return capabilities whose cached balance differs from the entry log, with the drift."""
        totals = {capability: 0 for capability in Capability}
        for entry in self._history:
            totals[entry.capability] += entry.signed_amount
        return {
            capability: self._balances[capability] - total
            for capability, total in totals.items()
            if self._balances[capability] != total
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.value,
            "balances": {capability.value: amount for capability, amount in self._balances.items()},
            "history": [entry.model_dump(mode="json") for entry in self._history],
        }

    def to_json(self) -> str:
        return json.dumps(self.snapshot())

    @classmethod
    def from_snapshot(
        cls,
        snapshot: Mapping[str, Any],
        notification_sink: NotificationSink,
        *,
        catalog: Mapping[SubscriptionTier, TierLimits] = TIER_CATALOG,
    ) -> "UsageLedger":
        """Restore a ledger without recording any new entries."""
        ledger = cls(SubscriptionTier(snapshot["tier"]), notification_sink, catalog=catalog, opening_balances={})
        for key, amount in (snapshot.get("balances") or {}).items():
            ledger._balances[Capability(key)] = int(amount)
        ledger._history = [UsageLedgerEntry.model_validate(raw) for raw in snapshot.get("history") or []]
        drift = ledger.verify_consistency()
        if drift:
            logger.warning("Restored ledger is inconsistent with its history: %s", drift)
        return ledger
