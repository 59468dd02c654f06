"""
Control loop do Atlas Orchestrator.

Componentes principais:
    - dag_manager → DagManager (tick de cinco fases) e DagManagerView
    - context     → ManagerContext (log estruturado, warnings, timeline)
    - ports       → JobStatusRetriever / JobSubmitter
    - runner      → DagManagerRunner e build_dag_manager
    - utils       → get_next e resolução de SLAs
"""

from .context import ManagerContext
from .dag_manager import DagManager, DagManagerView
from .ports import JobStatusRetriever, JobSubmitter
from .runner import DagManagerRunner, build_dag_manager
from .utils import get_next

__all__ = [
    "DagManager",
    "DagManagerView",
    "DagManagerRunner",
    "JobStatusRetriever",
    "JobSubmitter",
    "ManagerContext",
    "build_dag_manager",
    "get_next",
]
