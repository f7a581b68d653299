"""Node label synchronizer for admissible device families."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Set

from dds.state import ONLINE, ComposabilityRequest, ComposableDRASpec, ComposableResource

logger = logging.getLogger(__name__)


@dataclass
class LabelChange:
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)


def present_models(
    requests: List[ComposabilityRequest],
    resources: List[ComposableResource],
) -> List[str]:
    """Models with pending demand or at least one Online device, in first-seen order."""
    models: List[str] = []
    for request in requests:
        if request.size > 0 and request.model not in models:
            models.append(request.model)
    for resource in resources:
        if resource.state == ONLINE and resource.model not in models:
            models.append(resource.model)
    return models


def compute_label_change(
    requests: List[ComposabilityRequest],
    resources: List[ComposableResource],
    dra_spec: ComposableDRASpec,
) -> LabelChange:
    """
    Compute which device labels a node should carry.

    Every device family excluded by a model present on the cluster loses
    its label; every other configured family gets ``<prefix>/<name>=true``.
    """
    suppressed: Set[int] = set()
    for model in present_models(requests, resources):
        for info in dra_spec.device_infos:
            if info.model_name == model:
                suppressed.update(info.cannot_coexist_with)

    change = LabelChange()
    for info in dra_spec.device_infos:
        label = dra_spec.label_for(info)
        if info.index in suppressed:
            change.removed.append(label)
        else:
            change.added.append(label)
    return change


class NodeLabelSynchronizer:
    def __init__(self, inventory) -> None:
        self.inventory = inventory

    def plan(self, dra_spec: ComposableDRASpec) -> LabelChange:
        requests = self.inventory.list_composability_requests()
        resources = self.inventory.list_composable_resources()
        return compute_label_change(requests, resources, dra_spec)

    def sync(self, node_name: str, dra_spec: ComposableDRASpec) -> LabelChange:
        """
        Apply the admissible device labels to a node in a single update.

        Only labels that actually differ from the node's current labels are
        written; a node that already matches is not updated.

        Raises:
            InventoryReadError: If requests, devices or the node cannot be read
            InventoryWriteError: If the node labels cannot be updated
        """
        change = self.plan(dra_spec)
        current = self.inventory.get_node_labels(node_name)

        add: Dict[str, str] = {label: "true" for label in change.added if current.get(label) != "true"}
        remove = [label for label in change.removed if label in current]
        if not add and not remove:
            logger.debug(f"Node {node_name} labels already up to date")
            return LabelChange()

        self.inventory.patch_node_labels(node_name, add, remove)
        logger.info(f"Updated labels on node {node_name}: added {sorted(add)}, removed {remove}")
        return LabelChange(added=list(add), removed=remove)
