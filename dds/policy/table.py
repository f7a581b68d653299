from __future__ import annotations

from typing import Dict

from dds.policy.base import CoexistencePolicy
from dds.state import ComposableDRASpec, DeviceInfo


class TableCoexistencePolicy(CoexistencePolicy):
	"""
	Coexistence backed by the compatibility table.

	Two models conflict when either one lists the other's index in its
	``cannot_coexist_with`` set. Models missing from the table conflict
	with nothing.
	"""

	def __init__(self, spec: ComposableDRASpec) -> None:
		self.spec = spec
		self._by_model: Dict[str, DeviceInfo] = {info.model_name: info for info in spec.device_infos}

	def can_coexist(self, model_a: str, model_b: str) -> bool:
		info_a = self._by_model.get(model_a)
		info_b = self._by_model.get(model_b)
		if info_a is None or info_b is None:
			return True
		if info_b.index in info_a.cannot_coexist_with:
			return False
		if info_a.index in info_b.cannot_coexist_with:
			return False
		return True
