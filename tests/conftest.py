from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from dds.errors import InventoryReadError
from dds.state import (
    PREPARING,
    ComposabilityRequest,
    ComposableDRASpec,
    ComposableResource,
    DeviceInfo,
    ModelConstraint,
    NodeInfo,
    ResourceClaimDevice,
    ResourceClaimInfo,
)

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeInventory:
    """In-memory stand-in for dds.inventory.Inventory."""

    def __init__(
        self,
        requests: Optional[List[ComposabilityRequest]] = None,
        resources: Optional[List[ComposableResource]] = None,
        pending: Optional[List[str]] = None,
        node_labels: Optional[Dict[str, str]] = None,
    ) -> None:
        self.requests = requests or []
        self.resources = resources or []
        self.pending = set(pending or [])
        self.node_labels = dict(node_labels or {})
        self.conditions: List[tuple] = []
        self.stamps: Dict[str, str] = {}
        self.label_patches: List[tuple] = []
        self.fail_reads = False

    def _read(self, what):
        if self.fail_reads:
            raise InventoryReadError(what)

    def list_composability_requests(self):
        self._read("composabilityrequests")
        return list(self.requests)

    def list_composable_resources(self):
        self._read("composableresources")
        return list(self.resources)

    def is_binding_pending(self, device_name):
        self._read("resourceslices")
        return device_name in self.pending

    def set_claim_condition(self, claim, device_names, condition_type, reason, message=""):
        self.conditions.append((claim.name, condition_type, list(device_names)))

    def set_last_used_time(self, resource_name, timestamp):
        self.stamps[resource_name] = timestamp

    def get_node_labels(self, node_name):
        self._read(f"node {node_name}")
        return dict(self.node_labels)

    def patch_node_labels(self, node_name, add, remove):
        self.label_patches.append((node_name, dict(add), list(remove)))
        self.node_labels.update(add)
        for key in remove:
            self.node_labels.pop(key, None)

    def conditions_of(self, condition_type):
        return [name for name, ctype, _ in self.conditions if ctype == condition_type]


def make_claim(name, age_s, devices, namespace="default", node_name="node-1"):
    return ResourceClaimInfo(
        name=name,
        namespace=namespace,
        node_name=node_name,
        creation_timestamp=NOW - timedelta(seconds=age_s),
        devices=[
            ResourceClaimDevice(name=d[0], model=d[1], state=d[2] if len(d) > 2 else PREPARING,
                                used_by_pod=d[3] if len(d) > 3 else False)
            for d in devices
        ],
    )


def make_resource(name, model, target_node, state="", last_used_age_s=None):
    annotations = {}
    if last_used_age_s is not None:
        stamp = NOW - timedelta(seconds=last_used_age_s)
        annotations["composable.test/last-used-time"] = stamp.strftime("%Y-%m-%dT%H:%M:%SZ")
    return ComposableResource(
        name=name, model=model, target_node=target_node, state=state, annotations=annotations
    )


@pytest.fixture
def dra_spec():
    # X (1) and Y (2) exclude each other; A (3) and B (4) are free
    return ComposableDRASpec(
        label_prefix="composable.example.com",
        device_infos=[
            DeviceInfo(index=1, model_name="X", label_name="x-gpu", cannot_coexist_with=[2]),
            DeviceInfo(index=2, model_name="Y", label_name="y-gpu", cannot_coexist_with=[1]),
            DeviceInfo(index=3, model_name="A", label_name="a-gpu", cannot_coexist_with=[]),
            DeviceInfo(index=4, model_name="B", label_name="b-gpu", cannot_coexist_with=[]),
        ],
    )


@pytest.fixture
def node():
    return NodeInfo(
        name="node-1",
        models=[
            ModelConstraint(model="A", max_devices=2),
            ModelConstraint(model="X", max_devices=4),
            ModelConstraint(model="Y", max_devices=4),
        ],
    )
