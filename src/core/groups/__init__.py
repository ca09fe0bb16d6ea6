"""Group formation core package.

Les imports sont effectués de manière lazy pour éviter d'exécuter du code
pendant l'initialisation globale si non nécessaire.
"""
from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # aide mypy/IDE sans exécuter les imports au runtime initial
	from .manager import GroupFormationManager, InvalidGroupRequest, setup_group_formation  # noqa: F401
	from .models import PendingConfirmation, ProvisionedGroup, slugify  # noqa: F401
	from .store import DuplicateConfirmation  # noqa: F401

__all__ = [
	"GroupFormationManager", "InvalidGroupRequest", "setup_group_formation",
	"PendingConfirmation", "ProvisionedGroup", "slugify", "DuplicateConfirmation",
]


def __getattr__(name: str):  # lazy resolution
	if name in {"GroupFormationManager", "InvalidGroupRequest", "setup_group_formation"}:
		mod = import_module("core.groups.manager")
		return getattr(mod, name)
	if name in {"PendingConfirmation", "ProvisionedGroup", "slugify"}:
		mod = import_module("core.groups.models")
		return getattr(mod, name)
	if name == "DuplicateConfirmation":
		mod = import_module("core.groups.store")
		return getattr(mod, name)
	raise AttributeError(name)
