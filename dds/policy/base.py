from __future__ import annotations

from abc import ABC, abstractmethod


class CoexistencePolicy(ABC):
	"""Decides whether two device models may be attached to one node at the same time."""

	@abstractmethod
	def can_coexist(self, model_a: str, model_b: str) -> bool:
		raise NotImplementedError
