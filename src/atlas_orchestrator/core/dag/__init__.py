# src/atlas_orchestrator/core/dag/__init__.py
"""
Modelo de DAG do Atlas Orchestrator.

Este pacote reúne os tipos de job/flow, o grafo de um flow execution e a
fábrica que o constrói a partir de planos de execução.

Componentes principais:
    - types   → ExecutionStatus, FailureOption, JobExecutionPlan, JobStatus
    - dag     → DagNode (estado mutável por job) e Dag (grafo imutável)
    - factory → inferência de arestas e validação estrutural (Kahn determinístico)
"""

from .dag import Dag, DagNode
from .factory import (
    CycleDetectedError,
    DuplicateJobNameError,
    InconsistentFlowError,
    UnknownDependencyError,
    create_dag,
    plan_order,
)
from .types import (
    NA_KEY,
    ExecutionStatus,
    FailureOption,
    JobExecutionPlan,
    JobStatus,
    generate_dag_id,
)

__all__ = [
    "Dag",
    "DagNode",
    "create_dag",
    "plan_order",
    "CycleDetectedError",
    "DuplicateJobNameError",
    "InconsistentFlowError",
    "UnknownDependencyError",
    "NA_KEY",
    "ExecutionStatus",
    "FailureOption",
    "JobExecutionPlan",
    "JobStatus",
    "generate_dag_id",
]
