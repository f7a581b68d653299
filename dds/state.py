from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

# ResourceClaim device states
PREPARING = "Preparing"
FAILED = "Failed"
RESCHEDULE = "Reschedule"

# ComposableResource states
ONLINE = "Online"

CONDITION_FAILED = "FabricDeviceFailed"
CONDITION_RESCHEDULE = "FabricDeviceReschedule"

LAST_USED_ANNOTATION = "composable.test/last-used-time"


@dataclass
class ModelConstraint:
        model: str
        max_devices: int


@dataclass
class NodeInfo:
        name: str
        models: List[ModelConstraint] = field(default_factory=list)

        def max_devices_for(self, model: str) -> Optional[int]:
                for constraint in self.models:
                        if constraint.model == model:
                                return constraint.max_devices
                return None


@dataclass
class ResourceClaimDevice:
        name: str
        model: str
        state: str
        used_by_pod: bool = False


@dataclass
class ResourceClaimInfo:
        name: str
        namespace: str
        node_name: str
        creation_timestamp: datetime
        devices: List[ResourceClaimDevice] = field(default_factory=list)

        def preparing_indices(self) -> List[int]:
                return [i for i, d in enumerate(self.devices) if d.state == PREPARING]


@dataclass
class ComposabilityRequest:
        name: str
        model: str
        size: int = 0


@dataclass
class ComposableResource:
        name: str
        model: str
        target_node: str
        state: str = ""
        annotations: Dict[str, str] = field(default_factory=dict)
        annotation_key: str = LAST_USED_ANNOTATION

        @property
        def last_used_time(self) -> Optional[datetime]:
                """Last release time, or None when the annotation is absent or malformed."""
                raw = self.annotations.get(self.annotation_key)
                if not raw:
                        return None
                try:
                        return parse_rfc3339(raw)
                except ValueError:
                        logger.debug(f"Unparseable {self.annotation_key} on {self.name}: {raw!r}")
                        return None


@dataclass
class ResourceSliceDevice:
        name: str
        pool: str = ""
        binding_conditions: List[str] = field(default_factory=list)


@dataclass
class DeviceInfo:
        index: int
        model_name: str
        label_name: str
        cannot_coexist_with: List[int] = field(default_factory=list)


@dataclass
class ComposableDRASpec:
        label_prefix: str
        device_infos: List[DeviceInfo] = field(default_factory=list)

        def label_for(self, info: DeviceInfo) -> str:
                return f"{self.label_prefix}/{info.label_name}"

        def find_model(self, model: str) -> Optional[DeviceInfo]:
                for info in self.device_infos:
                        if info.model_name == model:
                                return info
                return None


def utc_now() -> datetime:
        return datetime.now(timezone.utc)


def parse_rfc3339(value: str) -> datetime:
        if value.endswith("Z"):
                value = value[:-1] + "+00:00"
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)


def format_rfc3339(value: datetime) -> str:
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def sort_by_time(claims: List[ResourceClaimInfo]) -> None:
        """Sort claims in place, newest first. Ties keep their input order."""
        claims.sort(key=lambda rc: rc.creation_timestamp, reverse=True)


# Kubernetes custom objects -> dataclasses

def request_from_object(obj: Dict[str, Any]) -> ComposabilityRequest:
        resource = obj.get("spec", {}).get("resource", {}) or {}
        return ComposabilityRequest(
                name=obj.get("metadata", {}).get("name", ""),
                model=resource.get("model", ""),
                size=int(resource.get("size", 0) or 0),
        )


def resource_from_object(obj: Dict[str, Any], annotation_key: str = LAST_USED_ANNOTATION) -> ComposableResource:
        metadata = obj.get("metadata", {}) or {}
        spec = obj.get("spec", {}) or {}
        status = obj.get("status", {}) or {}
        return ComposableResource(
                name=metadata.get("name", ""),
                model=spec.get("model", ""),
                target_node=spec.get("target_node", ""),
                state=status.get("state", ""),
                annotations=dict(metadata.get("annotations") or {}),
                annotation_key=annotation_key,
        )


def slice_devices_from_object(obj: Dict[str, Any]) -> List[ResourceSliceDevice]:
        spec = obj.get("spec", {}) or {}
        pool = (spec.get("pool") or {}).get("name", "")
        devices = []
        for device in spec.get("devices") or []:
                basic = device.get("basic") or {}
                devices.append(
                        ResourceSliceDevice(
                                name=device.get("name", ""),
                                pool=pool,
                                binding_conditions=list(basic.get("bindingConditions") or []),
                        )
                )
        return devices


# HTTP payloads -> dataclasses

def node_from_dict(data: Dict[str, Any]) -> NodeInfo:
        return NodeInfo(
                name=data["name"],
                models=[
                        ModelConstraint(model=m["model"], max_devices=int(m["max_devices"]))
                        for m in data.get("models", [])
                ],
        )


def claim_from_dict(data: Dict[str, Any], node_name: Optional[str] = None) -> ResourceClaimInfo:
        created = data.get("creation_timestamp")
        return ResourceClaimInfo(
                name=data["name"],
                namespace=data.get("namespace", "default"),
                node_name=data.get("node_name") or node_name or "",
                creation_timestamp=parse_rfc3339(created) if created else utc_now(),
                devices=[
                        ResourceClaimDevice(
                                name=d["name"],
                                model=d["model"],
                                state=d.get("state", PREPARING),
                                used_by_pod=bool(d.get("used_by_pod", False)),
                        )
                        for d in data.get("devices", [])
                ],
        )


def claim_to_dict(claim: ResourceClaimInfo) -> Dict[str, Any]:
        return {
                "name": claim.name,
                "namespace": claim.namespace,
                "node_name": claim.node_name,
                "creation_timestamp": format_rfc3339(claim.creation_timestamp),
                "devices": [
                        {
                                "name": d.name,
                                "model": d.model,
                                "state": d.state,
                                "used_by_pod": d.used_by_pod,
                        }
                        for d in claim.devices
                ],
        }
