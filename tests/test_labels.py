from dds.labels import NodeLabelSynchronizer, compute_label_change, present_models
from dds.state import ComposabilityRequest

from tests.conftest import FakeInventory, make_resource

PREFIX = "composable.example.com"


def test_present_models_from_demand_and_online_devices():
    requests = [
        ComposabilityRequest(name="r1", model="X", size=2),
        ComposabilityRequest(name="r2", model="B", size=0),
    ]
    resources = [
        make_resource("c1", "A", "dev-1", state="Online"),
        make_resource("c2", "Y", "dev-2", state="Attaching"),
        make_resource("c3", "X", "dev-3", state="Online"),
    ]

    assert present_models(requests, resources) == ["X", "A"]


def test_present_model_suppresses_excluded_family(dra_spec):
    requests = [ComposabilityRequest(name="r1", model="X", size=1)]

    change = compute_label_change(requests, [], dra_spec)

    assert f"{PREFIX}/y-gpu" in change.removed
    assert f"{PREFIX}/x-gpu" in change.added
    assert sorted(change.added) == sorted([f"{PREFIX}/x-gpu", f"{PREFIX}/a-gpu", f"{PREFIX}/b-gpu"])


def test_nothing_present_advertises_every_family(dra_spec):
    change = compute_label_change([], [], dra_spec)

    assert change.removed == []
    assert len(change.added) == 4


def test_sync_applies_single_update(dra_spec):
    inventory = FakeInventory(
        requests=[ComposabilityRequest(name="r1", model="X", size=1)],
        node_labels={f"{PREFIX}/y-gpu": "true", "kubernetes.io/hostname": "node-1"},
    )

    change = NodeLabelSynchronizer(inventory).sync("node-1", dra_spec)

    assert len(inventory.label_patches) == 1
    node_name, add, remove = inventory.label_patches[0]
    assert node_name == "node-1"
    assert remove == [f"{PREFIX}/y-gpu"]
    assert set(add) == {f"{PREFIX}/x-gpu", f"{PREFIX}/a-gpu", f"{PREFIX}/b-gpu"}
    assert change.removed == [f"{PREFIX}/y-gpu"]
    assert inventory.node_labels["kubernetes.io/hostname"] == "node-1"
    assert f"{PREFIX}/y-gpu" not in inventory.node_labels


def test_sync_skips_write_when_labels_match(dra_spec):
    inventory = FakeInventory(
        resources=[make_resource("c1", "Y", "dev-1", state="Online")],
        node_labels={
            f"{PREFIX}/y-gpu": "true",
            f"{PREFIX}/a-gpu": "true",
            f"{PREFIX}/b-gpu": "true",
        },
    )

    change = NodeLabelSynchronizer(inventory).sync("node-1", dra_spec)

    assert inventory.label_patches == []
    assert change.added == [] and change.removed == []
