# src/atlas_orchestrator/core/manager/utils.py
"""
Funções puras de apoio ao DagManager.

- `get_next`: nós prontos para submissão (todos os pais COMPLETE)
- `resolve_flow_sla` / `resolve_job_start_sla`: SLAs efetivos a partir do
  plano, com fallback para os defaults do manager
- `latest_status`: último evento de uma sequência retornada pelo status source

Nenhuma função aqui altera estado do DAG.
"""

from __future__ import annotations

from collections import deque
from datetime import timedelta
from typing import Deque, Iterable, List, Optional, Set

from atlas_orchestrator.core.config.durations import parse_duration, parse_optional_duration
from atlas_orchestrator.core.dag.dag import Dag, DagNode
from atlas_orchestrator.core.dag.types import ExecutionStatus, FailureOption, JobStatus


def get_next(dag: Dag, failure_option: FailureOption) -> List[DagNode]:
    """
    Retorna os nós prontos para submissão, na ordem dos nós do DAG.

    Percorre o grafo em largura a partir dos nós de início:
    - nó COMPLETE → expande para os filhos
    - nó submetível (PENDING, PENDING_RETRY, PENDING_RESUME) → pronto se todos
      os pais estiverem COMPLETE
    - nó FAILED/CANCELLED → com FINISH_RUNNING nada mais é submetido; com
      FINISH_ALL_POSSIBLE apenas esse ramo é interrompido
    - nó em andamento (ORCHESTRATED, RUNNING) → não expande

    Descendentes de um nó que não completou nunca são alcançados, então um
    filho só é submetido depois que todas as dependências completaram.
    """
    ready: Set[DagNode] = set()
    visited: Set[DagNode] = set()
    queue: Deque[DagNode] = deque(dag.start_nodes)

    while queue:
        node = queue.popleft()
        if node in visited:
            continue
        visited.add(node)

        status = node.status
        if status == ExecutionStatus.COMPLETE:
            queue.extend(dag.get_children(node))
        elif status in (ExecutionStatus.FAILED, ExecutionStatus.CANCELLED):
            if failure_option == FailureOption.FINISH_RUNNING:
                return []
        elif status.is_ready_to_submit:
            parents = dag.get_parents(node)
            if all(p.status == ExecutionStatus.COMPLETE for p in parents):
                ready.add(node)

    return [n for n in dag.nodes if n in ready]


def has_failed_node(dag: Dag) -> bool:
    return any(
        n.status in (ExecutionStatus.FAILED, ExecutionStatus.CANCELLED) for n in dag.nodes
    )


def is_fully_complete(dag: Dag) -> bool:
    return all(n.status == ExecutionStatus.COMPLETE for n in dag.nodes)


def resolve_flow_sla(dag: Dag, default: Optional[timedelta]) -> Optional[timedelta]:
    """
    SLA de flow declarado no primeiro nó do DAG (ou o default do manager).

    Raises:
        MalformedDurationError: se o valor declarado for ilegível.
    """
    nodes = dag.nodes
    declared = nodes[0].plan.flow_sla if nodes else None
    if declared is None:
        return default
    return parse_optional_duration(declared)


def resolve_job_start_sla(node: DagNode, default: timedelta) -> timedelta:
    """
    SLA de início efetivo de um job.

    Raises:
        MalformedDurationError: se o override declarado no plano for ilegível.
    """
    if node.plan.job_start_sla is None:
        return default
    return parse_duration(node.plan.job_start_sla)


def latest_status(statuses: Optional[Iterable[JobStatus]]) -> Optional[JobStatus]:
    """Último evento da sequência (o status source os entrega em ordem)."""
    last: Optional[JobStatus] = None
    for status in statuses or ():
        last = status
    return last
