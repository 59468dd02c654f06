"""Persistência de checkpoints do Atlas Orchestrator."""

from .dag_state_store import DagStateStore, FSDagStateStore, InMemoryDagStateStore

__all__ = ["DagStateStore", "FSDagStateStore", "InMemoryDagStateStore"]
