"""Device coexistence policies."""

from dds.policy.base import CoexistencePolicy
from dds.policy.table import TableCoexistencePolicy
from dds.policy.permissive import PermissiveCoexistencePolicy

__all__ = ['CoexistencePolicy', 'TableCoexistencePolicy', 'PermissiveCoexistencePolicy']
