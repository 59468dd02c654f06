# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas Orchestrator.

Este módulo define fixtures reutilizáveis que fornecem:
- configurações YAML mínimas e determinísticas (defaults + local)
- um relógio controlado (FakeClock) para testes de SLA
- um status source roteirizado (ScriptedRetriever)
- um submitter que apenas registra chamadas (RecordingSubmitter)
- fábricas de planos, DAGs e DagManagers

O objetivo destas fixtures é permitir testes do control loop sem depender de:
- executores reais
- tempo de parede (sleep)
- transporte de eventos (HTTP, filas externas)

Decisões arquiteturais:
    - Colaboradores usam duck typing em vez de herança (ports são Protocols)
    - O ScriptedRetriever entrega um lote de eventos por consulta, por job,
      na ordem em que foram roteirizados; sem roteiro, "nenhum evento"
    - O relógio só avança quando o teste pede explicitamente
    - Imports do core são realizados de forma lazy para melhorar a clareza
      de erros durante falhas

Invariantes:
    - Nenhuma fixture executa um tick por conta própria
    - Nenhuma fixture realiza I/O fora de `tmp_path`

Limites explícitos:
    - Não substituir testes de integração com executores reais
    - Não conter lógica de decisão do DagManager

Este módulo existe como infraestrutura de teste e não
como validação funcional do orquestrador.
"""

from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone

import pytest


FLOW_GROUP = "fg"
FLOW_NAME = "flow"
JOB_GROUP = "jg"
T0 = datetime(2026, 1, 16, 0, 0, 0, tzinfo=timezone.utc)


# =====================================================
# Config fixtures
# =====================================================

@pytest.fixture
def project_like_config_defaults_yaml() -> str:
    """
    Fixture que fornece um YAML de defaults semelhante ao `config/defaults.yaml`.

    Representa a base canônica sobre a qual overrides locais são aplicados
    via deep-merge.

    Returns:
        str: Conteúdo YAML representando configuração padrão (defaults).
    """
    return """\
dag_manager:
  job_start_sla: 15m
  max_job_attempts: 5
  poll_interval: 10s
  default_failure_option: FINISH_RUNNING
  state_store:
    dir: null
  failed_state_store:
    type: memory
"""


@pytest.fixture
def project_like_config_local_yaml() -> str:
    """
    Fixture que fornece um YAML de override local.

    Invariantes:
        - Representa apenas overrides locais
        - Não contém configuração completa do projeto

    Returns:
        str: Conteúdo YAML representando configuração local de override.
    """
    return """\
dag_manager:
  max_job_attempts: 3
  default_failure_option: FINISH_ALL_POSSIBLE
"""


# =====================================================
# Colaboradores controlados
# =====================================================

class FakeClock:
    """Relógio UTC controlado; `advance(**kwargs)` aceita os campos de timedelta."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class ScriptedRetriever:
    """
    Status source roteirizado por job.

    Cada consulta de um job consome o próximo lote roteirizado para ele
    (um lote pode conter vários eventos, ou uma exceção a ser levantada).
    Sem lote pendente, a consulta retorna uma sequência vazia.
    """

    def __init__(self):
        self._batches = defaultdict(deque)
        self.calls = []

    @staticmethod
    def _key(flow_group, flow_name, flow_execution_id, job_group, job_name):
        return (flow_group, flow_name, int(flow_execution_id), job_group, job_name)

    def push(self, node, status, **kwargs):
        self.push_batch(node, [(status, kwargs)])

    def push_batch(self, node, events):
        from atlas_orchestrator.core.dag.types import JobStatus

        p = node.plan
        batch = [
            JobStatus(
                flow_group=p.flow_group,
                flow_name=p.flow_name,
                flow_execution_id=p.flow_execution_id,
                job_group=p.job_group,
                job_name=p.job_name,
                status=status,
                **kwargs,
            )
            for status, kwargs in events
        ]
        self._batches[node.key].append(batch)

    def push_flow(self, dag, status):
        from atlas_orchestrator.core.dag.types import NA_KEY, JobStatus

        p = dag.nodes[0].plan
        key = self._key(p.flow_group, p.flow_name, p.flow_execution_id, NA_KEY, NA_KEY)
        self._batches[key].append(
            [
                JobStatus(
                    flow_group=p.flow_group,
                    flow_name=p.flow_name,
                    flow_execution_id=p.flow_execution_id,
                    job_group=NA_KEY,
                    job_name=NA_KEY,
                    status=status,
                )
            ]
        )

    def push_error(self, node, exc):
        self._batches[node.key].append(exc)

    def get_job_statuses_for_flow_execution(
        self, *, flow_group, flow_name, flow_execution_id, job_group, job_name
    ):
        key = self._key(flow_group, flow_name, flow_execution_id, job_group, job_name)
        self.calls.append(key)
        pending = self._batches.get(key)
        if not pending:
            return []
        batch = pending.popleft()
        if isinstance(batch, Exception):
            raise batch
        return batch


class RecordingSubmitter:
    """Submitter que registra submissões/cancelamentos; pode falhar por job."""

    def __init__(self):
        self.submitted = []
        self.cancelled = []
        self.fail_submit = set()
        self.fail_cancel = set()

    def submit(self, node):
        if node.job_name in self.fail_submit:
            raise ConnectionError(f"executor unavailable for {node.job_name}")
        self.submitted.append((node.job_name, node.current_attempts))

    def cancel(self, node):
        if node.job_name in self.fail_cancel:
            raise ConnectionError(f"cannot cancel {node.job_name}")
        self.cancelled.append(node.job_name)

    @property
    def submitted_names(self):
        return [name for name, _ in self.submitted]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def retriever():
    return ScriptedRetriever()


@pytest.fixture
def submitter():
    return RecordingSubmitter()


# =====================================================
# Fábricas de planos / DAGs / manager
# =====================================================

@pytest.fixture
def make_plan():
    """
    Fixture factory de `JobExecutionPlan` com coordenadas de flow fixas.

    `flow_execution_id` distingue flow executions (e portanto DAGs).
    """
    from atlas_orchestrator.core.dag.types import JobExecutionPlan

    def _make(job_name, dependencies=(), *, flow_execution_id=1, **kwargs):
        return JobExecutionPlan(
            flow_group=FLOW_GROUP,
            flow_name=FLOW_NAME,
            flow_execution_id=flow_execution_id,
            job_group=JOB_GROUP,
            job_name=job_name,
            executor=kwargs.pop("executor", "local://worker"),
            dependencies=dependencies,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_dag(make_plan):
    """
    Fixture factory de DAGs a partir de um mapa `job_name -> dependências`.

    Atributos de flow (failure_option, flow_sla) são aplicados a todos os
    planos; `job_overrides` aplica campos por job.
    """
    from atlas_orchestrator.core.dag.factory import create_dag

    def _make(spec, *, flow_execution_id=1, job_overrides=None, **flow_kwargs):
        job_overrides = job_overrides or {}
        plans = [
            make_plan(
                name,
                deps,
                flow_execution_id=flow_execution_id,
                **{**flow_kwargs, **job_overrides.get(name, {})},
            )
            for name, deps in spec.items()
        ]
        return create_dag(plans)

    return _make


@pytest.fixture
def make_manager(retriever, submitter, clock):
    """
    Fixture factory de DagManager com colaboradores controlados.

    Stores default são em memória; `settings` aceita kwargs de
    `DagManagerSettings`.
    """
    from atlas_orchestrator.core.config.settings import DagManagerSettings
    from atlas_orchestrator.core.manager.context import ManagerContext
    from atlas_orchestrator.core.manager.dag_manager import DagManager
    from atlas_orchestrator.persistence.dag_state_store import InMemoryDagStateStore

    def _make(*, dag_state_store=None, failed_dag_state_store=None, **settings_kwargs):
        return DagManager(
            job_status_retriever=retriever,
            job_submitter=submitter,
            dag_state_store=dag_state_store if dag_state_store is not None else InMemoryDagStateStore(),
            failed_dag_state_store=(
                failed_dag_state_store if failed_dag_state_store is not None else InMemoryDagStateStore()
            ),
            settings=DagManagerSettings(**settings_kwargs),
            ctx=ManagerContext(manager_id="test-manager", created_at=T0),
            clock=clock,
        )

    return _make


def assert_indexes_consistent(manager):
    """Nó rastreado em `job_to_dag` se e somente se está em `dag_to_jobs`."""
    view = manager.view
    from_jobs = {n for nodes in view.dag_to_jobs.values() for n in nodes}
    assert set(view.job_to_dag) == from_jobs
    assert set(view.dag_to_jobs) <= set(view.dags)
    for node, dag in view.job_to_dag.items():
        assert view.dags[node.dag_id] is dag
    assert not (set(view.dags) & view.failed_dag_ids)


@pytest.fixture
def check_indexes():
    return assert_indexes_consistent
