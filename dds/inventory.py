"""Read/write access to claims, composable devices, slices and nodes."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from dds.config import Settings
from dds.errors import InventoryReadError, InventoryWriteError
from dds.state import (
    ComposabilityRequest,
    ComposableResource,
    ResourceClaimInfo,
    ResourceSliceDevice,
    format_rfc3339,
    request_from_object,
    resource_from_object,
    slice_devices_from_object,
    utc_now,
)

logger = logging.getLogger(__name__)

RESOURCE_GROUP = "resource.k8s.io"


def configured_device_count(claims: Iterable[ResourceClaimInfo]) -> Dict[str, int]:
    """
    Count configured devices per model across claims.

    Every device counts regardless of its state, so overrun that built up
    across separate claims shows up here even when no single claim exceeds
    a limit on its own.
    """
    counts: Dict[str, int] = {}
    for rc in claims:
        for device in rc.devices:
            counts[device.model] = counts.get(device.model, 0) + 1
    return counts


def set_condition(
    claim_obj: Dict[str, Any],
    device_names: Iterable[str],
    condition_type: str,
    reason: str,
    message: str = "",
) -> bool:
    """
    Set a True condition on the status entries of a ResourceClaim object.

    Entries whose ``device`` is in device_names are updated; when none match,
    every entry is. An existing condition of the same type is overwritten.

    Returns:
        True if the object was modified
    """
    entries = (claim_obj.get("status") or {}).get("devices") or []
    if not entries:
        return False

    names = set(device_names)
    targets = [e for e in entries if e.get("device") in names] or entries
    condition = {
        "type": condition_type,
        "status": "True",
        "reason": reason,
        "message": message,
        "lastTransitionTime": format_rfc3339(utc_now()),
    }
    for entry in targets:
        conditions = entry.setdefault("conditions", [])
        for i, existing in enumerate(conditions):
            if existing.get("type") == condition_type:
                if existing.get("status") == "True":
                    condition["lastTransitionTime"] = existing.get(
                        "lastTransitionTime", condition["lastTransitionTime"]
                    )
                conditions[i] = dict(condition)
                break
        else:
            conditions.append(dict(condition))
    return True


class Inventory:
    """Kubernetes-backed inventory of claims, composable devices and nodes."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        core_api: Optional[client.CoreV1Api] = None,
        custom_api: Optional[client.CustomObjectsApi] = None,
    ) -> None:
        """
        Initialize the inventory with Kubernetes clients.

        Args:
            settings: Scaler settings (API groups, annotation key, flags)
            core_api: Optional CoreV1Api, built from cluster config if omitted
            custom_api: Optional CustomObjectsApi, built from cluster config if omitted
        """
        self.settings = settings or Settings()

        if core_api is None or custom_api is None:
            try:
                config.load_incluster_config()
                logger.info("Loaded in-cluster Kubernetes config")
            except config.ConfigException:
                try:
                    config.load_kube_config()
                    logger.info("Loaded kubeconfig")
                except Exception as e:
                    logger.warning(f"Could not load Kubernetes config: {e}")

        self.core = core_api or client.CoreV1Api()
        self.custom = custom_api or client.CustomObjectsApi()

    def _list_cluster_objects(self, group: str, version: str, plural: str) -> List[Dict[str, Any]]:
        try:
            result = self.custom.list_cluster_custom_object(group=group, version=version, plural=plural)
        except ApiException as e:
            logger.error(f"Failed to list {plural}: status={e.status}, reason={e.reason}")
            raise InventoryReadError(plural, e) from e
        return result.get("items", [])

    def list_composability_requests(self) -> List[ComposabilityRequest]:
        items = self._list_cluster_objects(
            self.settings.cdi_group, self.settings.cdi_version, "composabilityrequests"
        )
        return [request_from_object(obj) for obj in items]

    def list_composable_resources(self) -> List[ComposableResource]:
        items = self._list_cluster_objects(
            self.settings.cdi_group, self.settings.cdi_version, "composableresources"
        )
        return [resource_from_object(obj, self.settings.last_used_annotation) for obj in items]

    def list_resource_slice_devices(self) -> List[ResourceSliceDevice]:
        items = self._list_cluster_objects(
            RESOURCE_GROUP, self.settings.resource_api_version, "resourceslices"
        )
        devices: List[ResourceSliceDevice] = []
        for obj in items:
            devices.extend(slice_devices_from_object(obj))
        return devices

    def is_binding_pending(self, device_name: str) -> bool:
        """
        Report whether a claim device still waits on a binding precondition.

        Binding conditions on ResourceSlice devices are not served by the API
        yet, so this reports False unless ``binding_conditions_enabled`` is set,
        in which case a device carrying binding conditions counts as pending.
        The slice list is still read so that read failures abort the pass.
        """
        for device in self.list_resource_slice_devices():
            if device.name != device_name:
                continue
            if self.settings.binding_conditions_enabled and device.binding_conditions:
                return True
        return False

    def get_resource_claim(self, namespace: str, name: str) -> Dict[str, Any]:
        try:
            return self.custom.get_namespaced_custom_object(
                group=RESOURCE_GROUP,
                version=self.settings.resource_api_version,
                namespace=namespace,
                plural="resourceclaims",
                name=name,
            )
        except ApiException as e:
            logger.error(f"Failed to get ResourceClaim {namespace}/{name}: status={e.status}, reason={e.reason}")
            raise InventoryReadError(f"ResourceClaim {namespace}/{name}", e) from e

    def update_resource_claim_status(self, claim_obj: Dict[str, Any]) -> None:
        metadata = claim_obj.get("metadata", {})
        namespace = metadata.get("namespace", "default")
        name = metadata.get("name", "")
        try:
            self.custom.replace_namespaced_custom_object_status(
                group=RESOURCE_GROUP,
                version=self.settings.resource_api_version,
                namespace=namespace,
                plural="resourceclaims",
                name=name,
                body=claim_obj,
            )
        except ApiException as e:
            logger.error(f"Failed to update ResourceClaim {namespace}/{name}: status={e.status}, reason={e.reason}")
            raise InventoryWriteError(f"ResourceClaim {namespace}/{name}", e) from e

    def set_claim_condition(
        self,
        claim: ResourceClaimInfo,
        device_names: Iterable[str],
        condition_type: str,
        reason: str,
        message: str = "",
    ) -> None:
        """Re-fetch a claim and persist a True condition on its device status entries."""
        claim_obj = self.get_resource_claim(claim.namespace, claim.name)
        if not set_condition(claim_obj, device_names, condition_type, reason, message):
            logger.debug(f"ResourceClaim {claim.namespace}/{claim.name} has no device status, skipping {condition_type}")
            return
        self.update_resource_claim_status(claim_obj)

    def set_last_used_time(self, resource_name: str, timestamp: str) -> None:
        body = {"metadata": {"annotations": {self.settings.last_used_annotation: timestamp}}}
        try:
            self.custom.patch_cluster_custom_object(
                group=self.settings.cdi_group,
                version=self.settings.cdi_version,
                plural="composableresources",
                name=resource_name,
                body=body,
            )
        except ApiException as e:
            logger.error(f"Failed to update ComposableResource {resource_name}: status={e.status}, reason={e.reason}")
            raise InventoryWriteError(f"ComposableResource {resource_name}", e) from e

    def get_node_labels(self, node_name: str) -> Dict[str, str]:
        try:
            node = self.core.read_node(node_name)
        except ApiException as e:
            logger.error(f"Failed to get node {node_name}: status={e.status}, reason={e.reason}")
            raise InventoryReadError(f"node {node_name}", e) from e
        return dict(node.metadata.labels or {})

    def patch_node_labels(self, node_name: str, add: Dict[str, str], remove: Iterable[str]) -> None:
        labels: Dict[str, Optional[str]] = dict(add)
        for key in remove:
            labels[key] = None
        try:
            self.core.patch_node(node_name, {"metadata": {"labels": labels}})
        except ApiException as e:
            logger.error(f"Failed to update labels on node {node_name}: status={e.status}, reason={e.reason}")
            raise InventoryWriteError(f"node {node_name} labels", e) from e
