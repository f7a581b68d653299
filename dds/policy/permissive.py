"""
Permissive coexistence policy.

Every pair of models is allowed. This is the behaviour of a deployment
without a compatibility table; callers that have one should use
TableCoexistencePolicy instead.
"""

from __future__ import annotations

from dds.policy.base import CoexistencePolicy


class PermissiveCoexistencePolicy(CoexistencePolicy):
	def can_coexist(self, model_a: str, model_b: str) -> bool:
		return True
