# src/atlas_orchestrator/core/dag/factory.py
"""
Construção e validação estrutural de DAGs a partir de planos de execução.

Este módulo recebe os `JobExecutionPlan` de um flow execution (produzidos
pelo compilador de flows), infere as arestas a partir das dependências
declaradas em cada plano e produz um `Dag` pronto para o DagManager.

A validação opera exclusivamente em nível estrutural, analisando:
    - nomes de job
    - dependências declaradas
    - pertencimento ao mesmo flow execution
    - formação de ciclos

Decisões arquiteturais:
    - Utiliza ordenação topológica determinística (Kahn modificado)
    - Empates são resolvidos por ordem lexicográfica de `job_name`
    - Erros estruturais são tratados como falhas fatais na construção;
      um DAG inválido nunca chega à fila do DagManager

Invariantes:
    - Todo nó do DAG resultante tem pais que existem no próprio DAG
    - O grafo resultante é acíclico
    - A mesma lista de planos produz sempre o mesmo DAG

Limites explícitos:
    - Não submete jobs
    - Não interage com o DagManager nem com stores
    - Não decide políticas de falha

Este módulo existe para garantir correção estrutural
antes de qualquer submissão de job.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Set, Tuple

from .dag import Dag, DagNode
from .types import JobExecutionPlan


class UnknownDependencyError(ValueError):
    """
    Exceção levantada quando um plano referencia uma dependência inexistente.

    Indica que um job declarou em `dependencies` um `job_name` que não
    corresponde a nenhum plano do mesmo flow execution.

    Limites explícitos:
        - Não tenta inferir ou criar jobs ausentes
    """


class CycleDetectedError(ValueError):
    """
    Exceção levantada quando o grafo de dependências contém um ciclo.

    Nenhuma ordem de submissão válida existe nessa condição; o flow
    execution é rejeitado por inteiro.
    """


class DuplicateJobNameError(ValueError):
    """Dois planos do mesmo flow execution declaram o mesmo `job_name`."""


class InconsistentFlowError(ValueError):
    """Os planos recebidos pertencem a flow executions diferentes."""


def _index_by_name(nodes: Sequence[DagNode]) -> Dict[str, DagNode]:
    by_name: Dict[str, DagNode] = {}
    for n in nodes:
        name = n.plan.job_name
        if not isinstance(name, str) or not name.strip():
            raise ValueError("job_name must be a non-empty string")
        if name in by_name:
            raise DuplicateJobNameError(f"Duplicate job name: {name}")
        by_name[name] = n
    return by_name


def build_edges(nodes: Sequence[DagNode]) -> List[Tuple[DagNode, DagNode]]:
    """
    Infere as arestas (pai, filho) a partir de `plan.dependencies`.

    Raises:
        ValueError: Se algum job tiver nome vazio.
        DuplicateJobNameError: Se houver nomes de job repetidos.
        UnknownDependencyError: Se um job depender de um job inexistente.
    """
    by_name = _index_by_name(nodes)
    edges: List[Tuple[DagNode, DagNode]] = []
    for n in nodes:
        for dep in n.plan.dependencies:
            if dep not in by_name:
                raise UnknownDependencyError(
                    f"Job '{n.plan.job_name}' depends on unknown job '{dep}'"
                )
            edges.append((by_name[dep], n))
    return edges


def plan_order(plans: Iterable[JobExecutionPlan]) -> List[str]:
    """
    Produz a ordem topológica determinística dos nomes de job.

    Sempre que múltiplos jobs estiverem prontos, a escolha é feita por
    ordem lexicográfica de `job_name`.

    Returns:
        List[str]: nomes de job em ordem de submissão válida.

    Raises:
        UnknownDependencyError: Se um job declarar dependência inexistente.
        CycleDetectedError: Se houver ciclo no grafo de dependências.
    """
    plan_list = list(plans)
    names = {p.job_name for p in plan_list}

    incoming_count: Dict[str, int] = {}
    outgoing: Dict[str, Set[str]] = {p.job_name: set() for p in plan_list}
    for p in plan_list:
        for dep in p.dependencies:
            if dep not in names:
                raise UnknownDependencyError(
                    f"Job '{p.job_name}' depends on unknown job '{dep}'"
                )
            outgoing[dep].add(p.job_name)
        incoming_count[p.job_name] = len(p.dependencies)

    ready: List[str] = sorted(name for name, c in incoming_count.items() if c == 0)
    order: List[str] = []

    while ready:
        name = ready.pop(0)  # smallest lexicographic
        order.append(name)
        for child in sorted(outgoing[name]):
            incoming_count[child] -= 1
            if incoming_count[child] == 0:
                ready.append(child)
                ready.sort()

    if len(order) != len(incoming_count):
        raise CycleDetectedError("Cycle detected in job dependency graph")

    return order


def create_dag(plans: Iterable[JobExecutionPlan]) -> Dag:
    """
    Valida os planos de um flow execution e constrói o `Dag` correspondente.

    Todos os nós iniciam em PENDING, sem tentativas.

    Args:
        plans: Planos de execução de um único flow execution.

    Returns:
        Dag: DAG pronto para ser entregue ao DagManager.

    Raises:
        ValueError: Se a lista estiver vazia ou algum job tiver nome vazio.
        InconsistentFlowError: Se os planos pertencerem a flows diferentes.
        DuplicateJobNameError: Se houver nomes de job repetidos.
        UnknownDependencyError: Se um job declarar dependência inexistente.
        CycleDetectedError: Se houver ciclo no grafo de dependências.
    """
    plan_list = list(plans)
    if not plan_list:
        raise ValueError("A DAG requires at least one job execution plan")

    flows = {(p.flow_group, p.flow_name, p.flow_execution_id) for p in plan_list}
    if len(flows) != 1:
        raise InconsistentFlowError(
            f"Job plans span {len(flows)} flow executions: {sorted(flows)}"
        )

    nodes = [DagNode(p) for p in plan_list]
    edges = build_edges(nodes)
    plan_order(plan_list)

    return Dag(nodes, edges)
