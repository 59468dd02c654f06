# src/atlas_orchestrator/core/manager/context.py
"""
ManagerContext — contexto canônico de execução de um DagManager.

O ManagerContext é o **único meio permitido** de:
- registro de logs estruturados do control loop
- coleta de warnings não fatais associados a DAGs (ou à configuração)
- registro da timeline de eventos de flow/job (status stream)
- exposição de metadados do manager (ex.: hash da configuração)

Princípios fundamentais:
- Isolamento por manager (cada DagManager possui seu próprio contexto)
- Logs, timeline e warnings são limitados em capacidade (`max_events`); o
  control loop é de longa duração e não pode crescer sem limite
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from atlas_orchestrator.core.timeutils import iso, utc_now


DEFAULT_MAX_EVENTS = 10000


@dataclass
class ManagerContext:
    """
    Contexto de execução compartilhado de um DagManager.

    Campos canônicos:
    - manager_id: identificador do manager (ex.: shard)
    - created_at: timestamp UTC de criação do contexto
    - config: configuração efetiva (defaults + local deep-merge)
    - meta: metadados (ex.: config_hash, state_store_dir)
    - warnings: warnings por dag_id (ou escopo "config"); ao exceder
      `max_events` no total, os mais antigos são descartados
    - events: log estruturado (deque limitado)
    - timeline: eventos de flow/job (deque limitado)
    """

    manager_id: str
    created_at: datetime = field(default_factory=utc_now)
    config: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)
    max_events: int = DEFAULT_MAX_EVENTS

    warnings: Dict[str, List[str]] = field(default_factory=dict)
    events: Deque[Dict[str, Any]] = field(init=False)
    timeline: Deque[Dict[str, Any]] = field(init=False)
    _warning_count: int = field(init=False, default=0, repr=False)

    def __post_init__(self) -> None:
        self.events = deque(maxlen=self.max_events)
        self.timeline = deque(maxlen=self.max_events)
        self._warning_count = sum(len(v) for v in self.warnings.values())

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, dag_id: Optional[str], level: str, message: str, **extra: Any) -> None:
        event = {
            "manager_id": self.manager_id,
            "dag_id": dag_id,
            "level": level,
            "message": message,
            "timestamp": iso(utc_now()),
        }
        event.update(extra)
        self.events.append(event)

    def add_warning(self, *, dag_id: str, message: str) -> None:
        if dag_id not in self.warnings:
            self.warnings[dag_id] = []
        self.warnings[dag_id].append(message)
        self._warning_count += 1
        while self._warning_count > self.max_events:
            oldest = next(iter(self.warnings))
            messages = self.warnings[oldest]
            messages.pop(0)
            self._warning_count -= 1
            if not messages:
                del self.warnings[oldest]

    def events_for(self, dag_id: str, *, level: Optional[str] = None) -> List[Dict[str, Any]]:
        """Eventos de log de um DAG, opcionalmente filtrados por nível."""
        return [
            e for e in self.events
            if e.get("dag_id") == dag_id and (level is None or e.get("level") == level)
        ]
