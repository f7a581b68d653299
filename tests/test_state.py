from datetime import datetime, timezone

from dds.state import (
    PREPARING,
    claim_from_dict,
    claim_to_dict,
    format_rfc3339,
    node_from_dict,
    parse_rfc3339,
    request_from_object,
    resource_from_object,
    slice_devices_from_object,
    sort_by_time,
)

from tests.conftest import make_claim, make_resource


def test_sort_by_time_newest_first_with_ties():
    claims = [
        make_claim("old", 300, []),
        make_claim("tie-a", 100, []),
        make_claim("new", 1, []),
        make_claim("tie-b", 100, []),
    ]

    sort_by_time(claims)

    assert [rc.name for rc in claims] == ["new", "tie-a", "tie-b", "old"]
    stamps = [rc.creation_timestamp for rc in claims]
    assert all(a >= b for a, b in zip(stamps, stamps[1:]))


def test_rfc3339_parsing():
    assert parse_rfc3339("2025-06-01T12:00:00Z") == datetime(2025, 6, 1, 12, tzinfo=timezone.utc)
    assert parse_rfc3339("2025-06-01T14:00:00+02:00") == datetime(2025, 6, 1, 12, tzinfo=timezone.utc)
    assert format_rfc3339(datetime(2025, 6, 1, 12, tzinfo=timezone.utc)) == "2025-06-01T12:00:00Z"


def test_last_used_time_soft_fails():
    resource = make_resource("r1", "A", "dev-1")
    assert resource.last_used_time is None

    resource.annotations["composable.test/last-used-time"] = "not-a-time"
    assert resource.last_used_time is None

    resource.annotations["composable.test/last-used-time"] = "2025-06-01T12:00:00Z"
    assert resource.last_used_time == datetime(2025, 6, 1, 12, tzinfo=timezone.utc)


def test_custom_object_parsing():
    request = request_from_object({
        "metadata": {"name": "req-1"},
        "spec": {"resource": {"type": "gpu", "model": "A100", "size": 2}},
    })
    assert (request.name, request.model, request.size) == ("req-1", "A100", 2)

    resource = resource_from_object({
        "metadata": {"name": "res-1", "annotations": {"composable.test/last-used-time": "2025-06-01T12:00:00Z"}},
        "spec": {"model": "A100", "target_node": "node-1"},
        "status": {"state": "Online"},
    })
    assert (resource.name, resource.model, resource.target_node, resource.state) == (
        "res-1", "A100", "node-1", "Online"
    )
    assert resource.last_used_time is not None

    devices = slice_devices_from_object({
        "spec": {
            "pool": {"name": "fabric-0"},
            "devices": [
                {"name": "gpu-0", "basic": {"bindingConditions": ["FabricAttached"]}},
                {"name": "gpu-1"},
            ],
        }
    })
    assert [(d.name, d.pool, d.binding_conditions) for d in devices] == [
        ("gpu-0", "fabric-0", ["FabricAttached"]),
        ("gpu-1", "fabric-0", []),
    ]


def test_payload_parsing():
    node = node_from_dict({"name": "node-1", "models": [{"model": "A", "max_devices": "2"}]})
    assert node.max_devices_for("A") == 2
    assert node.max_devices_for("B") is None

    claim = claim_from_dict(
        {
            "name": "rc-1",
            "creation_timestamp": "2025-06-01T12:00:00Z",
            "devices": [{"name": "dev-1", "model": "A"}],
        },
        node_name="node-1",
    )
    assert claim.namespace == "default"
    assert claim.node_name == "node-1"
    assert claim.devices[0].state == PREPARING
    assert claim_to_dict(claim)["creation_timestamp"] == "2025-06-01T12:00:00Z"
