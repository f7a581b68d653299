"""Reclaim/reschedule evaluator: reuse idle devices or send claims elsewhere."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from dds.state import (
    CONDITION_RESCHEDULE,
    ONLINE,
    RESCHEDULE,
    ComposableResource,
    NodeInfo,
    ResourceClaimDevice,
    ResourceClaimInfo,
    format_rfc3339,
    sort_by_time,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = timedelta(minutes=1)


@dataclass
class RescheduleResult:
    rescheduled: List[str] = field(default_factory=list)
    # resource name -> claim that reserved it
    reserved: Dict[str, str] = field(default_factory=dict)


class RescheduleEvaluator:
    def __init__(
        self,
        inventory,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.inventory = inventory
        self.cooldown = cooldown
        self.clock = clock

    def evaluate(self, node: NodeInfo, claims: List[ResourceClaimInfo]) -> RescheduleResult:
        """
        Reschedule claims that cannot be served on this node.

        A claim whose Preparing devices are all blocked on binding, and for
        which no idle device can be reclaimed, is moved to Reschedule. A claim
        with a device that is not blocked, or that reclaimed an idle device,
        is left alone for this pass.

        Args:
            node: Node the claims are bound to
            claims: Claims bound to the node, sorted in place

        Returns:
            RescheduleResult with rescheduled claim names and reserved resources

        Raises:
            InventoryReadError: If devices, slices or a claim cannot be read
            InventoryWriteError: If an annotation or claim condition cannot be persisted
        """
        resources = self.inventory.list_composable_resources()
        sort_by_time(claims)

        result = RescheduleResult()
        for rc in claims:
            if self._holds(rc, resources, result.reserved):
                continue
            self._reschedule_claim(rc)
            result.rescheduled.append(rc.name)

        if result.rescheduled or result.reserved:
            logger.info(
                f"Node {node.name}: rescheduled {len(result.rescheduled)} claims, "
                f"reserved {len(result.reserved)} devices for reuse"
            )
        return result

    def _holds(
        self,
        rc: ResourceClaimInfo,
        resources: List[ComposableResource],
        reserved: Dict[str, str],
    ) -> bool:
        for i in rc.preparing_indices():
            device = rc.devices[i]
            if not self.inventory.is_binding_pending(device.name):
                return True
            match = self._find_reusable(device, resources, reserved)
            if match is not None:
                self._reserve(match, rc, reserved)
                return True
        return False

    def _find_reusable(
        self,
        device: ResourceClaimDevice,
        resources: List[ComposableResource],
        reserved: Dict[str, str],
    ) -> Optional[ComposableResource]:
        if device.used_by_pod:
            return None
        now = self.clock()
        for resource in resources:
            if resource.name in reserved:
                continue
            if resource.model != device.model or resource.target_node != device.name:
                continue
            if resource.state == ONLINE:
                continue
            last_used = resource.last_used_time
            if last_used is None:
                logger.debug(f"ComposableResource {resource.name} has no usable last-used time, skipping")
                continue
            if now - last_used < self.cooldown:
                logger.debug(f"ComposableResource {resource.name} still cooling down")
                continue
            return resource
        return None

    def _reserve(self, resource: ComposableResource, rc: ResourceClaimInfo, reserved: Dict[str, str]) -> None:
        reserved[resource.name] = rc.name
        stamp = format_rfc3339(self.clock())
        self.inventory.set_last_used_time(resource.name, stamp)
        resource.annotations[resource.annotation_key] = stamp
        logger.info(f"Reserved ComposableResource {resource.name} for ResourceClaim {rc.namespace}/{rc.name}")

    def _reschedule_claim(self, rc: ResourceClaimInfo) -> None:
        indices = rc.preparing_indices()
        for i in indices:
            rc.devices[i].state = RESCHEDULE
        names = [rc.devices[i].name for i in indices]
        logger.info(f"Rescheduling ResourceClaim {rc.namespace}/{rc.name}: devices {names}")
        self.inventory.set_claim_condition(rc, names, CONDITION_RESCHEDULE, "NoReusableDevice")
