# src/atlas_orchestrator/core/dag/types.py
"""
Tipos canônicos de jobs e flows do Atlas Orchestrator.

Este módulo define as estruturas e enums fundamentais que padronizam a
comunicação entre o compilador de flows (produtor de planos), o DagManager
e o status source externo.

Componentes principais:
    - ExecutionStatus  → estados de execução de um job
    - FailureOption    → política de falha de um flow (fail-fast ou best-effort)
    - JobExecutionPlan → descrição imutável de um job dentro de um flow execution
    - JobStatus        → evento de status reportado pelo status source

Princípios fundamentais:
    - Tipos são estáveis e serializáveis (round-trip via dict)
    - Enums possuem valores textuais canônicos
    - Nenhuma lógica de execução vive neste módulo

Invariantes:
    - A identidade de um job é (flow_group, flow_name, flow_execution_id,
      job_group, job_name)
    - Dependências de um plano são sempre uma tupla de nomes de job

Limites explícitos:
    - Não constrói DAGs (ver `factory`)
    - Não decide transições de estado (ver `core.manager`)

Este módulo existe para garantir consistência e clareza semântica
entre os colaboradores do control loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from atlas_orchestrator.core.config.errors import InvalidFailureOptionError
from atlas_orchestrator.core.timeutils import ensure_tzaware_utc


# Identidade sentinela usada pelo status source para eventos de nível de flow.
NA_KEY = "NA_KEY"


class ExecutionStatus(str, Enum):
    """
    Estados possíveis de um job dentro de um flow execution.

    Tipos definidos:
        - PENDING: ainda não submetido
        - ORCHESTRATED: submetido, aguardando início (SLA de início ativo)
        - RUNNING: em execução
        - COMPLETE: terminou com sucesso
        - FAILED: terminou com falha
        - CANCELLED: cancelado (pedido do operador, SLA ou fail-fast)
        - PENDING_RETRY: o executor pediu nova tentativa
        - PENDING_RESUME: marcador de sincronização de resume

    Invariantes:
        - COMPLETE, FAILED e CANCELLED são terminais para o nó
    """

    PENDING = "PENDING"
    ORCHESTRATED = "ORCHESTRATED"
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    PENDING_RETRY = "PENDING_RETRY"
    PENDING_RESUME = "PENDING_RESUME"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @property
    def is_ready_to_submit(self) -> bool:
        return self in _SUBMITTABLE_STATUSES


_TERMINAL_STATUSES = frozenset(
    {ExecutionStatus.COMPLETE, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
)
_SUBMITTABLE_STATUSES = frozenset(
    {ExecutionStatus.PENDING, ExecutionStatus.PENDING_RETRY, ExecutionStatus.PENDING_RESUME}
)


class FailureOption(str, Enum):
    """
    Política de falha de um flow.

    - FINISH_RUNNING: fail-fast; a primeira falha cancela o restante
    - FINISH_ALL_POSSIBLE: best-effort; ramos independentes seguem até o fim

    Conjunto fechado: qualquer outro valor é erro de configuração.
    """

    FINISH_RUNNING = "FINISH_RUNNING"
    FINISH_ALL_POSSIBLE = "FINISH_ALL_POSSIBLE"

    @classmethod
    def parse(cls, value: Union[str, "FailureOption"]) -> "FailureOption":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            for option in cls:
                if option.value == key:
                    return option
        raise InvalidFailureOptionError(
            f"Opção de falha desconhecida: {value!r} "
            f"(esperado: {', '.join(o.value for o in cls)})"
        )


def _normalize_dependencies(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    else:
        items = value
    deps = []
    for item in items:
        name = str(item).strip()
        if name and name not in deps:
            deps.append(name)
    return tuple(deps)


@dataclass(frozen=True)
class JobExecutionPlan:
    """
    Plano imutável de execução de um job dentro de um flow execution.

    Campos:
    - flow_group, flow_name, flow_execution_id: coordenadas do flow execution
    - job_group, job_name: coordenadas do job
    - executor: URI do executor de destino (opaco para o core)
    - dependencies: nomes dos jobs dos quais este depende; aceita string
      separada por vírgulas ("job0,job1") ou lista
    - failure_option: opção de falha declarada (texto; None = default do manager)
    - flow_sla: SLA de flow declarado (texto/número; None = sem SLA próprio)
    - job_start_sla: override do SLA de início para este job
    - config: mapa livre repassado ao submitter
    """

    flow_group: str
    flow_name: str
    flow_execution_id: int
    job_group: str
    job_name: str
    executor: Optional[str] = None
    dependencies: Tuple[str, ...] = ()
    failure_option: Optional[str] = None
    flow_sla: Any = None
    job_start_sla: Any = None
    config: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependencies", _normalize_dependencies(self.dependencies))
        object.__setattr__(self, "flow_execution_id", int(self.flow_execution_id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flow_group": self.flow_group,
            "flow_name": self.flow_name,
            "flow_execution_id": self.flow_execution_id,
            "job_group": self.job_group,
            "job_name": self.job_name,
            "executor": self.executor,
            "dependencies": list(self.dependencies),
            "failure_option": self.failure_option,
            "flow_sla": self.flow_sla,
            "job_start_sla": self.job_start_sla,
            "config": dict(self.config),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobExecutionPlan":
        return cls(
            flow_group=data["flow_group"],
            flow_name=data["flow_name"],
            flow_execution_id=data["flow_execution_id"],
            job_group=data["job_group"],
            job_name=data["job_name"],
            executor=data.get("executor"),
            dependencies=data.get("dependencies") or (),
            failure_option=data.get("failure_option"),
            flow_sla=data.get("flow_sla"),
            job_start_sla=data.get("job_start_sla"),
            config=dict(data.get("config") or {}),
        )


def generate_dag_id(flow_group: str, flow_name: str, flow_execution_id: Union[int, str]) -> str:
    """Identificador determinístico de um flow execution: `group_name_execId`."""
    return f"{flow_group}_{flow_name}_{flow_execution_id}"


@dataclass(frozen=True)
class JobStatus:
    """
    Evento de status de um job, como reportado pelo status source.

    `should_retry` indica que o executor pede nova submissão do job.
    `orchestrated_time` é o instante em que o executor registrou a
    orquestração (usado pelo SLA de início); quando ausente, o DagManager
    usa o próprio carimbo de orquestração do nó.
    """

    flow_group: str
    flow_name: str
    flow_execution_id: int
    job_group: str
    job_name: str
    status: ExecutionStatus
    orchestrated_time: Optional[datetime] = None
    start_time: Optional[datetime] = None
    should_retry: bool = False
    message: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.status, ExecutionStatus):
            object.__setattr__(self, "status", ExecutionStatus(str(self.status).upper()))
        object.__setattr__(self, "flow_execution_id", int(self.flow_execution_id))
        if self.orchestrated_time is not None:
            object.__setattr__(self, "orchestrated_time", ensure_tzaware_utc(self.orchestrated_time))
        if self.start_time is not None:
            object.__setattr__(self, "start_time", ensure_tzaware_utc(self.start_time))

    @property
    def dag_id(self) -> str:
        return generate_dag_id(self.flow_group, self.flow_name, self.flow_execution_id)

    @property
    def is_flow_level(self) -> bool:
        return self.job_group == NA_KEY and self.job_name == NA_KEY
