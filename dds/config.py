"""Runtime settings and the device compatibility table."""

from __future__ import annotations

import os
import yaml
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from dds.errors import ConfigError
from dds.state import ComposableDRASpec, DeviceInfo, LAST_USED_ANNOTATION

logger = logging.getLogger(__name__)

DEVICE_INFO_KEY = "device-info"
LABEL_PREFIX_KEY = "label-prefix"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Settings for the scaler, usually built from DDS_* environment variables."""
    config_namespace: str = "composable-dra"
    config_map_name: str = "composable-dra-dds"
    cdi_group: str = "cro.hpsys.ibm.ie.com"
    cdi_version: str = "v1alpha1"
    resource_api_version: str = "v1beta1"
    last_used_annotation: str = LAST_USED_ANNOTATION
    reuse_cooldown_s: float = 60.0
    binding_conditions_enabled: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            config_namespace=os.getenv("DDS_CONFIG_NAMESPACE", defaults.config_namespace),
            config_map_name=os.getenv("DDS_CONFIG_MAP", defaults.config_map_name),
            cdi_group=os.getenv("DDS_CDI_GROUP", defaults.cdi_group),
            cdi_version=os.getenv("DDS_CDI_VERSION", defaults.cdi_version),
            resource_api_version=os.getenv("DDS_RESOURCE_API_VERSION", defaults.resource_api_version),
            last_used_annotation=os.getenv("DDS_LAST_USED_ANNOTATION", defaults.last_used_annotation),
            reuse_cooldown_s=float(os.getenv("DDS_REUSE_COOLDOWN_S", defaults.reuse_cooldown_s)),
            binding_conditions_enabled=_env_bool("DDS_BINDING_CONDITIONS", defaults.binding_conditions_enabled),
            log_level=os.getenv("DDS_LOG_LEVEL", defaults.log_level),
        )


def parse_dra_spec(data: Dict[str, str]) -> ComposableDRASpec:
    """
    Parse the compatibility table from ConfigMap data.

    Args:
        data: ConfigMap ``data`` with a ``label-prefix`` string and a
            ``device-info`` YAML list of entries carrying ``index``,
            ``cdi-model-name``, ``k8s-device-name`` and ``cannot-coexist-with``.

    Returns:
        ComposableDRASpec

    Raises:
        ConfigError: If a key is missing or the YAML is malformed
    """
    if not data or DEVICE_INFO_KEY not in data:
        raise ConfigError(f"config map has no '{DEVICE_INFO_KEY}' entry")
    label_prefix = data.get(LABEL_PREFIX_KEY)
    if not label_prefix:
        raise ConfigError(f"config map has no '{LABEL_PREFIX_KEY}' entry")

    try:
        entries = yaml.safe_load(data[DEVICE_INFO_KEY]) or []
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse '{DEVICE_INFO_KEY}': {e}") from e
    if not isinstance(entries, list):
        raise ConfigError(f"'{DEVICE_INFO_KEY}' must be a list, got {type(entries).__name__}")

    device_infos: List[DeviceInfo] = []
    for entry in entries:
        try:
            device_infos.append(_device_info_from_entry(entry))
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"invalid device-info entry {entry!r}: {e}") from e

    return ComposableDRASpec(label_prefix=label_prefix, device_infos=device_infos)


def _device_info_from_entry(entry: Dict[str, Any]) -> DeviceInfo:
    return DeviceInfo(
        index=int(entry["index"]),
        model_name=str(entry["cdi-model-name"]),
        label_name=str(entry["k8s-device-name"]),
        cannot_coexist_with=[int(i) for i in entry.get("cannot-coexist-with") or []],
    )


def load_dra_spec(core_api: client.CoreV1Api, settings: Settings) -> ComposableDRASpec:
    """Read and parse the compatibility ConfigMap named in settings."""
    try:
        config_map = core_api.read_namespaced_config_map(
            name=settings.config_map_name,
            namespace=settings.config_namespace,
        )
    except ApiException as e:
        logger.error(
            f"Failed to read config map {settings.config_namespace}/{settings.config_map_name}: "
            f"status={e.status}, reason={e.reason}"
        )
        raise ConfigError(
            f"failed to read config map {settings.config_namespace}/{settings.config_map_name}"
        ) from e

    spec = parse_dra_spec(config_map.data or {})
    logger.debug(f"Loaded {len(spec.device_infos)} device infos, label prefix {spec.label_prefix}")
    return spec
