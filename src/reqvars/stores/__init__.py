"""Scope stores: Global, Environment and Session variable collections."""

from reqvars.stores.base import VariableStorePort
from reqvars.stores.environments import Environment, EnvironmentStore
from reqvars.stores.memory import GlobalVariableStore, VariableCollection
from reqvars.stores.sessions import ExtractRule, Session, SessionStore, stringify

__all__ = [
    "Environment",
    "EnvironmentStore",
    "ExtractRule",
    "GlobalVariableStore",
    "Session",
    "SessionStore",
    "VariableCollection",
    "VariableStorePort",
    "stringify",
]
