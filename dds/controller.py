"""Runs the evaluation passes for a node."""

from __future__ import annotations

import threading
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Iterator, List, Optional

from dds.config import Settings, load_dra_spec
from dds.failure import FailureEvaluator
from dds.labels import LabelChange, NodeLabelSynchronizer
from dds.policy.table import TableCoexistencePolicy
from dds.reschedule import RescheduleEvaluator
from dds.state import ComposableDRASpec, NodeInfo, ResourceClaimInfo

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    node_name: str
    failed: List[str] = field(default_factory=list)
    rescheduled: List[str] = field(default_factory=list)
    reserved: Dict[str, str] = field(default_factory=dict)


class DeviceScaler:
    """
    Entry point for the reconciliation driver.

    Passes for different nodes may run concurrently. Passes for the same node
    are serialized, because the failure and reschedule evaluators read and
    mutate the same claim set.
    """

    def __init__(self, inventory, settings: Optional[Settings] = None) -> None:
        self.inventory = inventory
        self.settings = settings or Settings()
        self._guard = threading.Lock()
        self._node_locks: Dict[str, threading.Lock] = {}

    @contextmanager
    def _node_lock(self, node_name: str) -> Iterator[None]:
        with self._guard:
            lock = self._node_locks.setdefault(node_name, threading.Lock())
        with lock:
            yield

    def load_dra_spec(self) -> ComposableDRASpec:
        return load_dra_spec(self.inventory.core, self.settings)

    def reconcile_node(
        self,
        node: NodeInfo,
        claims: List[ResourceClaimInfo],
        dra_spec: Optional[ComposableDRASpec] = None,
    ) -> ReconcileResult:
        """
        Run the failure pass, then the reschedule pass, for one node.

        Args:
            node: Node with its model constraints
            claims: The node's pending claims; device states are updated in place
            dra_spec: Compatibility table, loaded from the config map if omitted

        Returns:
            ReconcileResult
        """
        if dra_spec is None:
            dra_spec = self.load_dra_spec()

        with self._node_lock(node.name):
            result = ReconcileResult(node_name=node.name)
            failure = FailureEvaluator(self.inventory, TableCoexistencePolicy(dra_spec))
            result.failed = failure.evaluate(node, claims)

            reschedule = RescheduleEvaluator(
                self.inventory,
                cooldown=timedelta(seconds=self.settings.reuse_cooldown_s),
            )
            outcome = reschedule.evaluate(node, claims)
            result.rescheduled = outcome.rescheduled
            result.reserved = outcome.reserved

        logger.debug(
            f"Reconciled node {node.name}: failed={result.failed}, "
            f"rescheduled={result.rescheduled}, reserved={list(result.reserved)}"
        )
        return result

    def sync_node_labels(
        self,
        node_name: str,
        dra_spec: Optional[ComposableDRASpec] = None,
        dry_run: bool = False,
    ) -> LabelChange:
        if dra_spec is None:
            dra_spec = self.load_dra_spec()
        synchronizer = NodeLabelSynchronizer(self.inventory)
        if dry_run:
            return synchronizer.plan(dra_spec)
        with self._node_lock(node_name):
            return synchronizer.sync(node_name, dra_spec)
