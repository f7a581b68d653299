"""Failure evaluator: fails Preparing claims that break coexistence or capacity rules."""

from __future__ import annotations

import logging
from typing import List, Optional

from dds.inventory import configured_device_count
from dds.policy.base import CoexistencePolicy
from dds.state import (
    CONDITION_FAILED,
    FAILED,
    PREPARING,
    ComposabilityRequest,
    NodeInfo,
    ResourceClaimDevice,
    ResourceClaimInfo,
    sort_by_time,
)

logger = logging.getLogger(__name__)


class FailureEvaluator:
    def __init__(self, inventory, policy: CoexistencePolicy) -> None:
        self.inventory = inventory
        self.policy = policy

    def evaluate(self, node: NodeInfo, claims: List[ResourceClaimInfo]) -> List[str]:
        """
        Fail the claims on a node that cannot be satisfied.

        Claims are evaluated newest first. Each Preparing device goes through
        the intra-claim, request and cross-claim checks; the first violation
        fails the whole claim. A final pass fails every claim holding a model
        whose configured count across all claims exceeds the node limit.

        Args:
            node: Node and its per-model device limits
            claims: Claims bound to the node, sorted in place

        Returns:
            Names of the claims that were failed, in the order they were failed

        Raises:
            InventoryReadError: If pending requests or a claim cannot be read
            InventoryWriteError: If a claim condition cannot be persisted
        """
        requests = self.inventory.list_composability_requests()
        sort_by_time(claims)

        failed: List[str] = []
        for rc in claims:
            reason = self._veto(node, rc, claims, requests)
            if reason and self._fail_claim(rc, reason):
                failed.append(rc.name)

        device_count = configured_device_count(claims)
        for constraint in node.models:
            if device_count.get(constraint.model, 0) <= constraint.max_devices:
                continue
            logger.info(
                f"Node {node.name}: {device_count[constraint.model]} {constraint.model} devices configured, "
                f"limit is {constraint.max_devices}"
            )
            for rc in claims:
                if any(d.model == constraint.model for d in rc.devices):
                    if self._fail_claim(rc, "CapacityExceeded"):
                        failed.append(rc.name)

        return failed

    def _veto(
        self,
        node: NodeInfo,
        rc: ResourceClaimInfo,
        claims: List[ResourceClaimInfo],
        requests: List[ComposabilityRequest],
    ) -> Optional[str]:
        for i in rc.preparing_indices():
            device = rc.devices[i]
            if self._conflicts_within_claim(rc, i):
                return "IncompatibleDevicesInClaim"
            reason = self._conflicts_with_requests(node, device, requests)
            if reason:
                return reason
            if self._conflicts_with_other_claims(rc, device, claims):
                return "IncompatibleDevicesOnNode"
        return None

    def _conflicts_within_claim(self, rc: ResourceClaimInfo, index: int) -> bool:
        device = rc.devices[index]
        for j, other in enumerate(rc.devices):
            if j == index or other.model == device.model:
                continue
            if not self.policy.can_coexist(device.model, other.model):
                return True
        return False

    def _conflicts_with_requests(
        self,
        node: NodeInfo,
        device: ResourceClaimDevice,
        requests: List[ComposabilityRequest],
    ) -> Optional[str]:
        for request in requests:
            if request.model == device.model:
                limit = node.max_devices_for(device.model)
                if limit is not None and request.size > limit:
                    return "CapacityExceeded"
            elif request.size > 0 and not self.policy.can_coexist(device.model, request.model):
                return "IncompatibleRequest"
        return None

    def _conflicts_with_other_claims(
        self,
        rc: ResourceClaimInfo,
        device: ResourceClaimDevice,
        claims: List[ResourceClaimInfo],
    ) -> bool:
        for other_rc in claims:
            if other_rc.name == rc.name and other_rc.namespace == rc.namespace:
                continue
            for other in other_rc.devices:
                if other.state != PREPARING or other.model == device.model:
                    continue
                if not self.policy.can_coexist(device.model, other.model):
                    return True
        return False

    def _fail_claim(self, rc: ResourceClaimInfo, reason: str) -> bool:
        indices = rc.preparing_indices()
        if not indices:
            return False
        for i in indices:
            rc.devices[i].state = FAILED
        names = [rc.devices[i].name for i in indices]
        logger.info(f"Failing ResourceClaim {rc.namespace}/{rc.name} ({reason}): devices {names}")
        self.inventory.set_claim_condition(rc, names, CONDITION_FAILED, reason)
        return True
