# src/atlas_orchestrator/core/manager/ports.py
"""
Contratos dos colaboradores externos do DagManager.

O DagManager não sabe como um job executa nem como seu status é coletado.
Ele depende apenas de dois protocolos:

    - JobStatusRetriever → fonte de eventos de status por job
    - JobSubmitter       → sink de submissão e cancelamento de jobs

Princípios fundamentais:
    - Conformidade é garantida por duck typing (@runtime_checkable)
    - Chamadas são síncronas e ocorrem apenas na thread do control loop
    - Exceções levantadas pelos colaboradores são capturadas pelo DagManager
      (falha transitória de status = "sem evento"; falha de submissão =
      job permanece ORCHESTRATED até o SLA de início)

Limites explícitos:
    - Não define transporte (HTTP, Kafka, etc.)
    - Não define retry de chamadas; o próximo tick é o retry

Este módulo existe para garantir desacoplamento
e testabilidade do control loop.
"""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable

from atlas_orchestrator.core.dag.dag import DagNode
from atlas_orchestrator.core.dag.types import JobStatus


@runtime_checkable
class JobStatusRetriever(Protocol):
    """
    Fonte de eventos de status de jobs.

    Retorna os eventos conhecidos para o job (possivelmente vários desde o
    último poll, em ordem cronológica); o DagManager considera o último.
    Uma sequência vazia significa "nenhum evento novo".

    Eventos de nível de flow usam a identidade sentinela `NA_KEY` em
    `job_group` e `job_name`.
    """

    def get_job_statuses_for_flow_execution(
        self,
        *,
        flow_group: str,
        flow_name: str,
        flow_execution_id: int,
        job_group: str,
        job_name: str,
    ) -> Iterable[JobStatus]:
        ...


@runtime_checkable
class JobSubmitter(Protocol):
    """
    Sink de submissão de jobs.

    `submit` entrega o plano do nó ao executor de destino; `cancel` pede o
    cancelamento de um job em andamento. A confirmação de ambos chega
    depois, como evento de status.
    """

    def submit(self, node: DagNode) -> None:
        ...

    def cancel(self, node: DagNode) -> None:
        ...
