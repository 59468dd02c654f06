# src/atlas_orchestrator/core/traceability/flow_events.py
"""
Timeline de eventos de flow e de job — o status stream do DagManager.

Falhas de flow não são propagadas como exceções: elas se tornam visíveis
ao usuário apenas como estado terminal do DAG, registrado aqui (e no
checkpoint do store de DAGs falhos). Este módulo define o vocabulário
desses eventos e a operação explícita que os registra.

Princípios fundamentais:
    - Nenhum evento é emitido implicitamente; o DagManager chama `add_event`
    - A ordem da timeline reflete a ordem real das decisões do control loop
    - Eventos de flow também atualizam `dag.flow_event`, de modo que o
      checkpoint carregue o último estado de flow conhecido

Decisões arquiteturais:
    - UTC é o timezone canônico para todos os timestamps
    - Cada evento é um dicionário serializável em JSON
    - Eventos de job carregam o nome do job, a tentativa e o executor

Invariantes:
    - Cada chamada adiciona exatamente um evento à timeline
    - Os campos `event_type`, `dag_id` e `timestamp` estão sempre presentes

Limites explícitos:
    - Não decide transições de estado
    - Não envia eventos para sistemas externos (o consumidor lê a timeline)

Este módulo existe para garantir que o desfecho de cada flow
execution seja observável e auditável.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from atlas_orchestrator.core.dag.dag import Dag, DagNode
from atlas_orchestrator.core.timeutils import ensure_tzaware_utc, iso, ms_between


# Eventos de flow
FLOW_RUNNING = "FLOW_RUNNING"
FLOW_SUCCEEDED = "FLOW_SUCCEEDED"
FLOW_FAILED = "FLOW_FAILED"
FLOW_CANCELLED = "FLOW_CANCELLED"
FLOW_PENDING_RESUME = "FLOW_PENDING_RESUME"

# Eventos de job
JOB_ORCHESTRATED = "JOB_ORCHESTRATED"
JOB_FAILED = "JOB_FAILED"
JOB_CANCELLED = "JOB_CANCELLED"
JOB_RETRY = "JOB_RETRY"

FLOW_EVENTS = frozenset(
    {FLOW_RUNNING, FLOW_SUCCEEDED, FLOW_FAILED, FLOW_CANCELLED, FLOW_PENDING_RESUME}
)
TERMINAL_FLOW_EVENTS = frozenset({FLOW_SUCCEEDED, FLOW_FAILED, FLOW_CANCELLED})


def add_event(
    ctx: Any,
    *,
    event_type: str,
    dag: Dag,
    ts: datetime,
    node: Optional[DagNode] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Adiciona um evento explícito à timeline do contexto.

    Eventos de flow atualizam `dag.flow_event`. Eventos terminais de flow
    incluem a duração desde `dag.flow_start_time`, quando conhecido.

    Args:
        ctx: `ManagerContext` cuja timeline recebe o evento.
        event_type: Tipo do evento (FLOW_* ou JOB_*).
        dag: DAG ao qual o evento pertence.
        ts: Timestamp do evento.
        node: Nó associado (eventos de job).
        payload: Dados adicionais (ex.: mensagem, motivo do cancelamento).

    Returns:
        Dict[str, Any]: O evento registrado.
    """
    ts = ensure_tzaware_utc(ts)
    ev: Dict[str, Any] = {
        "event_type": event_type,
        "dag_id": dag.dag_id,
        "timestamp": iso(ts),
    }
    if node is not None:
        ev["job_name"] = node.job_name
        ev["job_group"] = node.plan.job_group
        ev["attempt"] = node.current_attempts
        ev["executor"] = node.plan.executor
    if event_type in FLOW_EVENTS:
        dag.flow_event = event_type
        if event_type in TERMINAL_FLOW_EVENTS and dag.flow_start_time is not None:
            ev["duration_ms"] = ms_between(dag.flow_start_time, ts)
    if payload:
        ev["payload"] = dict(payload)

    ctx.timeline.append(ev)
    return ev


def timeline_for(ctx: Any, dag_id: str) -> List[Dict[str, Any]]:
    """Eventos da timeline de um DAG, em ordem de registro."""
    return [e for e in ctx.timeline if e.get("dag_id") == dag_id]


def event_types_for(ctx: Any, dag_id: str) -> List[str]:
    return [e["event_type"] for e in timeline_for(ctx, dag_id)]
