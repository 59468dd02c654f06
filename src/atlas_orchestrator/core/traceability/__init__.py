# src/atlas_orchestrator/core/traceability/__init__.py
"""
Pacote de rastreabilidade do Atlas Orchestrator.

API pública exposta:
    - add_event      → registro explícito de eventos na timeline do contexto
    - timeline_for   → eventos de um DAG, em ordem de registro
    - event_types_for → apenas os tipos de evento de um DAG
    - FLOW_* / JOB_* → vocabulário de eventos

Decisões arquiteturais:
    - Nenhum evento é emitido implicitamente
    - A ordem da timeline reflete a ordem de chamada

Este pacote existe para garantir que o desfecho de cada
flow execution seja observável.
"""

from .flow_events import (
    FLOW_CANCELLED,
    FLOW_EVENTS,
    FLOW_FAILED,
    FLOW_PENDING_RESUME,
    FLOW_RUNNING,
    FLOW_SUCCEEDED,
    JOB_CANCELLED,
    JOB_FAILED,
    JOB_ORCHESTRATED,
    JOB_RETRY,
    TERMINAL_FLOW_EVENTS,
    add_event,
    event_types_for,
    timeline_for,
)

__all__ = [
    "FLOW_CANCELLED",
    "FLOW_EVENTS",
    "FLOW_FAILED",
    "FLOW_PENDING_RESUME",
    "FLOW_RUNNING",
    "FLOW_SUCCEEDED",
    "JOB_CANCELLED",
    "JOB_FAILED",
    "JOB_ORCHESTRATED",
    "JOB_RETRY",
    "TERMINAL_FLOW_EVENTS",
    "add_event",
    "event_types_for",
    "timeline_for",
]
