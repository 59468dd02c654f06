# src/atlas_orchestrator/core/dag/dag.py
"""
Modelo de DAG de um flow execution.

Este módulo define `DagNode` (um job dentro do flow execution, com seu
estado mutável de execução) e `Dag` (o grafo imutável de nós com mapas
de pais e filhos).

Decisões arquiteturais:
    - A estrutura do grafo (nós e arestas) nunca muda após a construção;
      apenas o estado dos nós e os campos de flow (`flow_event`, `message`,
      `flow_start_time`) são mutáveis
    - A identidade de um `DagNode` é por valor, derivada das coordenadas do
      job; isso permite usar nós como chave de índice e reencontrá-los após
      um round-trip de checkpoint
    - Pais e filhos são indexados por nó, com acesso O(grau)
    - A ordem dos nós é a ordem dos planos recebidos

Invariantes:
    - Todo nó aparece exatamente uma vez em `nodes`
    - Nós de início não têm pais; nós finais não têm filhos
    - `to_dict`/`from_dict` preservam nós, tentativas, status e carimbos

Limites explícitos:
    - Não valida estrutura (ver `factory.create_dag`)
    - Não decide transições de estado (ver `core.manager`)

Este módulo existe para que o control loop e o store de checkpoints
compartilhem uma única representação do grafo.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from atlas_orchestrator.core.timeutils import iso, parse_iso

from .types import ExecutionStatus, FailureOption, JobExecutionPlan, generate_dag_id


CHECKPOINT_VERSION = 1


class DagNode:
    """
    Um job dentro de um flow execution.

    Estado mutável:
    - current_attempts: número de submissões já realizadas (0 antes da primeira)
    - orchestrated_at: instante da última submissão (base do SLA de início)
    - status: último `ExecutionStatus` conhecido pelo DagManager
    """

    __slots__ = ("plan", "current_attempts", "orchestrated_at", "status")

    def __init__(
        self,
        plan: JobExecutionPlan,
        *,
        current_attempts: int = 0,
        orchestrated_at: Optional[datetime] = None,
        status: ExecutionStatus = ExecutionStatus.PENDING,
    ):
        self.plan = plan
        self.current_attempts = current_attempts
        self.orchestrated_at = orchestrated_at
        self.status = status

    @property
    def key(self) -> Tuple[str, str, int, str, str]:
        p = self.plan
        return (p.flow_group, p.flow_name, p.flow_execution_id, p.job_group, p.job_name)

    @property
    def job_name(self) -> str:
        return self.plan.job_name

    @property
    def dag_id(self) -> str:
        p = self.plan
        return generate_dag_id(p.flow_group, p.flow_name, p.flow_execution_id)

    @property
    def fully_qualified_job_name(self) -> str:
        p = self.plan
        return f"{p.flow_group}.{p.flow_name}.{p.flow_execution_id}.{p.job_group}.{p.job_name}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DagNode):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return (
            f"DagNode({self.fully_qualified_job_name}, status={self.status.value}, "
            f"attempts={self.current_attempts})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan": self.plan.to_dict(),
            "current_attempts": self.current_attempts,
            "orchestrated_at": iso(self.orchestrated_at),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DagNode":
        return cls(
            JobExecutionPlan.from_dict(data["plan"]),
            current_attempts=int(data.get("current_attempts", 0)),
            orchestrated_at=parse_iso(data.get("orchestrated_at")),
            status=ExecutionStatus(data.get("status", ExecutionStatus.PENDING.value)),
        )


class Dag:
    """
    Grafo imutável de `DagNode` de um flow execution.

    Campos de flow (mutáveis):
    - flow_event: último evento de flow emitido (ex.: FLOW_RUNNING, FLOW_FAILED)
    - message: mensagem humana associada ao estado terminal
    - flow_start_time: início efetivo do flow (base do SLA de flow; reiniciado no resume)

    Use `factory.create_dag` para construir a partir de planos; o construtor
    assume arestas já validadas.
    """

    def __init__(
        self,
        nodes: Sequence[DagNode],
        edges: Sequence[Tuple[DagNode, DagNode]] = (),
        *,
        flow_event: Optional[str] = None,
        message: Optional[str] = None,
        flow_start_time: Optional[datetime] = None,
    ):
        self._nodes: List[DagNode] = list(nodes)
        self._parents: Dict[DagNode, List[DagNode]] = {n: [] for n in self._nodes}
        self._children: Dict[DagNode, List[DagNode]] = {n: [] for n in self._nodes}
        for parent, child in edges:
            self._parents[child].append(parent)
            self._children[parent].append(child)
        self.flow_event = flow_event
        self.message = message
        self.flow_start_time = flow_start_time

    # ------------------------------------------------------------------
    # Estrutura
    # ------------------------------------------------------------------
    @property
    def nodes(self) -> List[DagNode]:
        return list(self._nodes)

    @property
    def start_nodes(self) -> List[DagNode]:
        return [n for n in self._nodes if not self._parents[n]]

    @property
    def end_nodes(self) -> List[DagNode]:
        return [n for n in self._nodes if not self._children[n]]

    def get_parents(self, node: DagNode) -> List[DagNode]:
        return list(self._parents.get(node, ()))

    def get_children(self, node: DagNode) -> List[DagNode]:
        return list(self._children.get(node, ()))

    def contains(self, node: DagNode) -> bool:
        return node in self._parents

    def get_node(self, job_name: str) -> DagNode:
        for n in self._nodes:
            if n.job_name == job_name:
                return n
        raise KeyError(job_name)

    def is_empty(self) -> bool:
        return not self._nodes

    # ------------------------------------------------------------------
    # Identidade / política
    # ------------------------------------------------------------------
    @property
    def dag_id(self) -> str:
        if not self._nodes:
            raise ValueError("DAG vazio não possui dag_id")
        return self._nodes[0].dag_id

    def failure_option(self, default: FailureOption = FailureOption.FINISH_RUNNING) -> FailureOption:
        """Opção de falha declarada no primeiro nó (todos os nós compartilham o flow)."""
        if not self._nodes or self._nodes[0].plan.failure_option is None:
            return default
        return FailureOption.parse(self._nodes[0].plan.failure_option)

    # ------------------------------------------------------------------
    # Checkpoint
    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": CHECKPOINT_VERSION,
            "dag_id": self.dag_id,
            "flow_event": self.flow_event,
            "message": self.message,
            "flow_start_time": iso(self.flow_start_time),
            "nodes": [n.to_dict() for n in self._nodes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Dag":
        from .factory import build_edges

        nodes = [DagNode.from_dict(n) for n in data.get("nodes", [])]
        return cls(
            nodes,
            build_edges(nodes),
            flow_event=data.get("flow_event"),
            message=data.get("message"),
            flow_start_time=parse_iso(data.get("flow_start_time")),
        )

    def __repr__(self) -> str:
        dag_id = self.dag_id if self._nodes else "<empty>"
        return f"Dag({dag_id}, nodes={len(self._nodes)})"
