# src/atlas_orchestrator/core/manager/dag_manager.py
"""
DagManager — control loop de execução de DAGs do Atlas Orchestrator.

O DagManager recebe DAGs de flow executions já compilados e conduz cada job
da submissão ao estado terminal, respeitando dependências, aplicando a
política de falha do flow, reexecutando jobs que pedem retry, aplicando o
SLA de início de job e o SLA de flow, atendendo pedidos de cancelamento e
de resume, e gravando checkpoints suficientes para sobreviver a um restart.

Cada chamada a `run_once()` é um tick, executado em cinco fases:
    1. ingestão  → drena a fila de DAGs novos, registra e submete os nós iniciais
    2. cancel    → drena a fila de cancelamento (cancela nós rastreados, falha o DAG)
    3. resume    → drena a fila de resume (reabre DAGs falhos a partir do ponto de falha)
    4. avanço    → consulta o status de cada nó rastreado e aplica a transição
    5. limpeza   → DAGs sem nós rastreados são concluídos (sucesso) ou movidos
                   para o store de DAGs falhos

Decisões arquiteturais:
    - Escritor único: apenas a thread que chama `run_once` toca os índices
      (`dags`, `job_to_dag`, `dag_to_jobs`, `failed_dag_ids`); produtores usam
      `add_dag`/`cancel_dag`/`resume_dag`, que apenas enfileiram (`queue.Queue`)
    - Falha de job é dado, não exceção: dirige a máquina de estados
    - Exceções de colaboradores e de stores são convertidas em
      `AtlasErrorPayload`, registradas no `ManagerContext` e nunca escapam
      do tick; uma falha no processamento de um DAG não bloqueia os demais
    - DAG falho sai de `dags`, tem o checkpoint principal removido e fica
      retido no store de DAGs falhos (chave em `failed_dag_ids`) até resume
      ou purga explícita (cancel de um DAG já falho)
    - CANCELLED é sempre fail-fast, independente da opção de falha

Invariantes:
    - Um nó está em `job_to_dag` se e somente se está em `dag_to_jobs[dag_id]`
    - Todo dag_id de `dag_to_jobs` está em `dags`
    - Um filho só é submetido depois que todos os pais estão COMPLETE
    - Um DAG é concluído com sucesso apenas quando todos os nós estão COMPLETE
    - Um DAG falho é registrado uma única vez em `failed_dag_ids`

Limites explícitos:
    - Não executa jobs nem provisiona recursos
    - Não faz sharding entre vários managers
    - Não bloqueia: todas as filas são drenadas com `get_nowait`

Este módulo existe para garantir execução previsível, recuperável
e auditável de flow executions.
"""

from __future__ import annotations

import queue
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Set, Tuple

from atlas_orchestrator.core.config.errors import ConfigError
from atlas_orchestrator.core.config.settings import DEFAULT_SETTINGS, DagManagerSettings
from atlas_orchestrator.core.dag.dag import Dag, DagNode
from atlas_orchestrator.core.dag.types import (
    NA_KEY,
    ExecutionStatus,
    FailureOption,
    JobStatus,
)
from atlas_orchestrator.core.errors import (
    STATE_STORE_DELETE_ERROR,
    STATE_STORE_READ_ERROR,
    STATE_STORE_WRITE_ERROR,
    AtlasErrorPayload,
    config_malformed_value,
    dag_invariant_violation,
    engine_execution_error,
    job_cancellation_error,
    job_submission_error,
    state_store_error,
    status_retrieval_error,
)
from atlas_orchestrator.core.exceptions import AtlasException, DagInvariantViolation, StateStoreError
from atlas_orchestrator.core.timeutils import utc_now
from atlas_orchestrator.core.traceability import flow_events
from atlas_orchestrator.core.traceability.flow_events import add_event
from atlas_orchestrator.persistence.dag_state_store import DagStateStore, InMemoryDagStateStore

from .context import ManagerContext
from .ports import JobStatusRetriever, JobSubmitter
from .utils import (
    get_next,
    has_failed_node,
    is_fully_complete,
    latest_status,
    resolve_flow_sla,
    resolve_job_start_sla,
)


class DagManagerView:
    """
    Visão somente leitura dos índices do DagManager.

    Pensada para inspeção (testes, diagnósticos) a partir da thread do
    control loop; os mapas são proxies vivos, as coleções são cópias.
    """

    def __init__(self, manager: "DagManager"):
        self._m = manager

    @property
    def dags(self) -> Mapping[str, Dag]:
        return MappingProxyType(self._m._dags)

    @property
    def job_to_dag(self) -> Mapping[DagNode, Dag]:
        return MappingProxyType(self._m._job_to_dag)

    @property
    def dag_to_jobs(self) -> Dict[str, Tuple[DagNode, ...]]:
        return {k: tuple(v) for k, v in self._m._dag_to_jobs.items()}

    @property
    def failed_dag_ids(self) -> FrozenSet[str]:
        return frozenset(self._m._failed_dag_ids)

    @property
    def dag_state_store(self) -> DagStateStore:
        return self._m._dag_state_store

    @property
    def failed_dag_state_store(self) -> DagStateStore:
        return self._m._failed_dag_state_store

    @property
    def succeeded_dag_count(self) -> int:
        return self._m._succeeded_count

    @property
    def failed_dag_count(self) -> int:
        return self._m._failed_count

    def tracked_job_names(self, dag_id: str) -> List[str]:
        return [n.job_name for n in self._m._dag_to_jobs.get(dag_id, ())]


class DagManager:
    """
    Control loop canônico do Atlas Orchestrator.

    DAGs falhos saem do rastreamento; por isso um evento `PENDING_RESUME`
    vindo do status source só os alcança quando
    `settings.poll_failed_dags_for_resume` está ativo (desligado por default).
    Nesse modo o sentinela de flow (`NA_KEY`) de cada DAG falho é consultado
    a cada tick. Sem ele, o resume é explícito via `resume_dag`.

    Args:
        job_status_retriever: Fonte de eventos de status dos jobs.
        job_submitter: Sink de submissão/cancelamento de jobs.
        dag_state_store: Store de checkpoints de DAGs ativos (default: em memória).
        failed_dag_state_store: Store de DAGs falhos aguardando resume (default: em memória).
        settings: Configuração efetiva (default: `DEFAULT_SETTINGS`).
        ctx: Contexto de log/timeline (default: novo `ManagerContext`).
        clock: Fonte de tempo UTC (injetável para testes de SLA).
    """

    def __init__(
        self,
        *,
        job_status_retriever: JobStatusRetriever,
        job_submitter: JobSubmitter,
        dag_state_store: Optional[DagStateStore] = None,
        failed_dag_state_store: Optional[DagStateStore] = None,
        settings: Optional[DagManagerSettings] = None,
        ctx: Optional[ManagerContext] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings: DagManagerSettings = settings or DEFAULT_SETTINGS
        self.ctx: ManagerContext = ctx or ManagerContext(
            manager_id="dag-manager", max_events=self.settings.max_log_events
        )
        self._retriever = job_status_retriever
        self._submitter = job_submitter
        self._dag_state_store: DagStateStore = dag_state_store or InMemoryDagStateStore()
        self._failed_dag_state_store: DagStateStore = failed_dag_state_store or InMemoryDagStateStore()
        self._clock: Callable[[], datetime] = clock or utc_now

        self._dag_queue: "queue.Queue[Dag]" = queue.Queue()
        self._cancel_queue: "queue.Queue[str]" = queue.Queue()
        self._resume_queue: "queue.Queue[str]" = queue.Queue()

        # Índices do control loop (escritor único)
        self._dags: Dict[str, Dag] = {}
        self._job_to_dag: Dict[DagNode, Dag] = {}
        self._dag_to_jobs: Dict[str, List[DagNode]] = {}
        self._failed_dag_ids: Set[str] = set()

        # Estado auxiliar por DAG/nó
        self._dag_failure_option: Dict[str, FailureOption] = {}
        self._dag_flow_sla: Dict[str, Optional[timedelta]] = {}
        self._job_start_sla: Dict[DagNode, timedelta] = {}
        self._failed_pending: Set[str] = set()
        self._tick_isolated: Set[str] = set()

        self._succeeded_count = 0
        self._failed_count = 0

    # ------------------------------------------------------------------
    # API de produtores (thread-safe)
    # ------------------------------------------------------------------
    def add_dag(self, dag: Dag) -> None:
        """Enfileira um DAG novo; será registrado no próximo tick."""
        if dag.is_empty():
            raise ValueError("Cannot add an empty DAG")
        self._dag_queue.put(dag)

    def cancel_dag(self, dag_id: str) -> None:
        """Enfileira um pedido de cancelamento (ou purga, se o DAG já falhou)."""
        self._cancel_queue.put(dag_id)

    def resume_dag(self, dag_id: str) -> None:
        """Enfileira um pedido de resume de um DAG falho."""
        self._resume_queue.put(dag_id)

    @property
    def view(self) -> DagManagerView:
        return DagManagerView(self)

    # ------------------------------------------------------------------
    # Recuperação
    # ------------------------------------------------------------------
    def recover(self) -> None:
        """
        Reconstrói os índices a partir dos stores (chamar antes do primeiro tick).

        Nós em andamento (ORCHESTRATED/RUNNING) voltam a ser rastreados sem
        nova submissão; um DAG recuperado sem nó em andamento tem seus nós
        prontos submetidos. Um checkpoint ilegível é registrado e ignorado.
        """
        recovered = 0
        try:
            dag_ids = self._dag_state_store.get_dag_ids()
        except Exception as e:
            self._log_error(None, self._store_error(STATE_STORE_READ_ERROR, None, e))
            dag_ids = []

        for dag_id in dag_ids:
            try:
                dag = self._dag_state_store.get_dag(dag_id)
                if dag is None:
                    continue
                if self._initialize(dag.dag_id, dag, submit=False):
                    recovered += 1
            except Exception as e:
                self._log_error(dag_id, self._exception_to_error(e, dag_id))

        try:
            self._failed_dag_ids.update(self._failed_dag_state_store.get_dag_ids())
        except Exception as e:
            self._log_error(None, self._store_error(STATE_STORE_READ_ERROR, None, e))

        self.ctx.log(
            dag_id=None,
            level="info",
            message=f"Recovered {recovered} active DAG(s) and {len(self._failed_dag_ids)} failed DAG(s)",
        )

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------
    def run_once(self) -> None:
        """Executa um tick completo do control loop."""
        self._tick_isolated = set()
        self._ingest_new_dags()
        self._process_cancel_requests()
        self._process_resume_requests()
        self._advance_tracked_jobs()
        self._clean_up()

    @staticmethod
    def _drain(q: "queue.Queue[Any]") -> List[Any]:
        items: List[Any] = []
        while True:
            try:
                items.append(q.get_nowait())
            except queue.Empty:
                return items

    # ------------------------------------------------------------------
    # Fase 1: ingestão
    # ------------------------------------------------------------------
    def _ingest_new_dags(self) -> None:
        for dag in self._drain(self._dag_queue):
            dag_id = dag.dag_id
            try:
                self._initialize(dag_id, dag, submit=True)
            except Exception as e:
                self._isolate(dag_id, e)

    def _initialize(self, dag_id: str, dag: Dag, *, submit: bool) -> bool:
        if dag_id in self._dags or dag_id in self._failed_dag_ids:
            message = f"DAG {dag_id} is already known to this manager; ignoring"
            self.ctx.add_warning(dag_id=dag_id, message=message)
            self.ctx.log(dag_id=dag_id, level="warning", message=message)
            return False

        self._dag_failure_option[dag_id] = self._resolve_failure_option(dag_id, dag)
        self._dag_flow_sla[dag_id] = self._resolve_flow_sla(dag_id, dag)
        if dag.flow_start_time is None:
            dag.flow_start_time = self._clock()

        self._dags[dag_id] = dag
        self._dag_to_jobs[dag_id] = []

        if not submit:
            for node in dag.nodes:
                if node.status in (ExecutionStatus.ORCHESTRATED, ExecutionStatus.RUNNING):
                    self._add_job_state(dag_id, dag, node)
            if self._dag_to_jobs[dag_id]:
                self.ctx.log(
                    dag_id=dag_id,
                    level="info",
                    message=f"Recovered DAG {dag_id} tracking {len(self._dag_to_jobs[dag_id])} job(s)",
                )
                return True

        add_event(self.ctx, event_type=flow_events.FLOW_RUNNING, dag=dag, ts=self._clock())
        submitted = self._submit_next(dag_id, dag)
        self.ctx.log(
            dag_id=dag_id,
            level="info",
            message=f"Initialized DAG {dag_id}; submitted {len(submitted)} job(s)",
            jobs=[n.job_name for n in submitted],
        )
        self._checkpoint(dag_id, dag)
        return True

    # ------------------------------------------------------------------
    # Fase 2: cancelamento
    # ------------------------------------------------------------------
    def _process_cancel_requests(self) -> None:
        for dag_id in self._drain(self._cancel_queue):
            try:
                self._cancel_dag(dag_id)
            except Exception as e:
                self._isolate(dag_id, e)

    def _cancel_dag(self, dag_id: str) -> None:
        if dag_id in self._dags:
            dag = self._dags[dag_id]
            for node in list(self._dag_to_jobs.get(dag_id, ())):
                self._cancel_job(dag_id, dag, node, reason="cancel requested")
            self._fail_dag(
                dag_id,
                flow_event=flow_events.FLOW_CANCELLED,
                message="Flow cancelled by request",
            )
        elif dag_id in self._failed_dag_ids:
            self._failed_dag_ids.discard(dag_id)
            try:
                self._failed_dag_state_store.clean_up(dag_id)
            except Exception as e:
                self._log_error(dag_id, self._store_error(STATE_STORE_DELETE_ERROR, dag_id, e))
            self.ctx.log(dag_id=dag_id, level="info", message=f"Purged failed DAG {dag_id}")
        else:
            message = f"Cancel requested for unknown DAG {dag_id}"
            self.ctx.add_warning(dag_id=dag_id, message=message)
            self.ctx.log(dag_id=dag_id, level="warning", message=message)

    # ------------------------------------------------------------------
    # Fase 3: resume
    # ------------------------------------------------------------------
    def _process_resume_requests(self) -> None:
        for dag_id in self._drain(self._resume_queue):
            try:
                self._resume_dag(dag_id)
            except Exception as e:
                self._isolate(dag_id, e)

        if self.settings.poll_failed_dags_for_resume:
            for dag_id in sorted(self._failed_dag_ids):
                try:
                    status = self._poll_flow_status(dag_id)
                    if status is not None and status.status == ExecutionStatus.PENDING_RESUME:
                        self._resume_dag(dag_id)
                except Exception as e:
                    self._isolate(dag_id, e)

    def _resume_dag(self, dag_id: str) -> bool:
        if dag_id not in self._failed_dag_ids:
            message = f"Resume requested for DAG {dag_id}, which is not in failed state; ignoring"
            self.ctx.add_warning(dag_id=dag_id, message=message)
            self.ctx.log(dag_id=dag_id, level="warning", message=message)
            return False

        try:
            dag = self._failed_dag_state_store.get_dag(dag_id)
        except Exception as e:
            self._log_error(dag_id, self._store_error(STATE_STORE_READ_ERROR, dag_id, e))
            return False

        if dag is None:
            self._failed_dag_ids.discard(dag_id)
            self._log_error(
                dag_id,
                dag_invariant_violation(dag_id=dag_id, message="Failed DAG snapshot is missing; cannot resume"),
            )
            return False

        for node in dag.nodes:
            if node.status in (ExecutionStatus.FAILED, ExecutionStatus.CANCELLED):
                node.status = ExecutionStatus.PENDING_RESUME
                node.current_attempts = 0
                node.orchestrated_at = None
        dag.flow_start_time = self._clock()
        dag.message = None
        add_event(self.ctx, event_type=flow_events.FLOW_PENDING_RESUME, dag=dag, ts=self._clock())

        self._failed_dag_ids.discard(dag_id)
        try:
            self._failed_dag_state_store.clean_up(dag_id)
        except Exception as e:
            self._log_error(dag_id, self._store_error(STATE_STORE_DELETE_ERROR, dag_id, e))

        self.ctx.log(dag_id=dag_id, level="info", message=f"Resuming DAG {dag_id}")
        return self._initialize(dag_id, dag, submit=True)

    def _poll_flow_status(self, dag_id: str) -> Optional[JobStatus]:
        dag = self._failed_dag_state_store.get_dag(dag_id)
        if dag is None or dag.is_empty():
            return None
        plan = dag.nodes[0].plan
        try:
            return latest_status(
                self._retriever.get_job_statuses_for_flow_execution(
                    flow_group=plan.flow_group,
                    flow_name=plan.flow_name,
                    flow_execution_id=plan.flow_execution_id,
                    job_group=NA_KEY,
                    job_name=NA_KEY,
                )
            )
        except Exception as e:
            self._log_error(dag_id, status_retrieval_error(dag_id=dag_id, job_name=NA_KEY, exc=e))
            return None

    # ------------------------------------------------------------------
    # Fase 4: avanço
    # ------------------------------------------------------------------
    def _advance_tracked_jobs(self) -> None:
        for node in list(self._job_to_dag):
            dag = self._job_to_dag.get(node)
            if dag is None:
                continue
            dag_id = node.dag_id
            if dag_id in self._tick_isolated:
                continue
            try:
                self._advance_job(dag_id, dag, node)
            except Exception as e:
                self._isolate(dag_id, e)

    def _advance_job(self, dag_id: str, dag: Dag, node: DagNode) -> None:
        if self._dags.get(dag_id) is not dag or not dag.contains(node):
            raise DagInvariantViolation(
                message=f"Tracked job {node.fully_qualified_job_name} has no registered DAG",
                details={"dag_id": dag_id, "job_name": node.job_name},
            )

        flow_sla = self._dag_flow_sla.get(dag_id)
        if flow_sla is not None and self._clock() - dag.flow_start_time > flow_sla:
            self._kill_dag_for_flow_sla(dag_id, dag, flow_sla)
            return

        job_status = self._poll_job_status(dag_id, node)
        if job_status is None:
            if self._start_sla_exceeded(node, None):
                self._kill_job_for_start_sla(dag_id, dag, node)
            return

        status = job_status.status

        if status == ExecutionStatus.PENDING_RESUME:
            self._resume_dag(job_status.dag_id)
            return

        if status == ExecutionStatus.ORCHESTRATED and self._start_sla_exceeded(node, job_status.orchestrated_time):
            self._kill_job_for_start_sla(dag_id, dag, node)
            return

        if status == ExecutionStatus.PENDING_RETRY or (
            job_status.should_retry
            and status not in (ExecutionStatus.COMPLETE, ExecutionStatus.CANCELLED)
        ):
            if node.current_attempts < self.settings.max_job_attempts:
                self._retry_job(dag_id, dag, node, job_status)
                return
            status = ExecutionStatus.FAILED
            job_status_message = (
                f"Job {node.job_name} exhausted {self.settings.max_job_attempts} attempt(s)"
            )
        else:
            job_status_message = job_status.message

        if status == ExecutionStatus.RUNNING:
            if node.status != ExecutionStatus.RUNNING:
                node.status = ExecutionStatus.RUNNING
                self._checkpoint(dag_id, dag)
        elif status == ExecutionStatus.COMPLETE:
            self._on_job_complete(dag_id, dag, node)
        elif status == ExecutionStatus.FAILED:
            self._on_job_failed(dag_id, dag, node, job_status_message)
        elif status == ExecutionStatus.CANCELLED:
            self._on_job_cancelled(dag_id, dag, node, job_status_message or f"Job {node.job_name} was cancelled")

    def _poll_job_status(self, dag_id: str, node: DagNode) -> Optional[JobStatus]:
        plan = node.plan
        try:
            return latest_status(
                self._retriever.get_job_statuses_for_flow_execution(
                    flow_group=plan.flow_group,
                    flow_name=plan.flow_name,
                    flow_execution_id=plan.flow_execution_id,
                    job_group=plan.job_group,
                    job_name=plan.job_name,
                )
            )
        except Exception as e:
            self._log_error(dag_id, status_retrieval_error(dag_id=dag_id, job_name=node.job_name, exc=e))
            return None

    def _start_sla_exceeded(self, node: DagNode, orchestrated_time: Optional[datetime]) -> bool:
        # RUNNING já observado encerra o SLA de início
        if node.status != ExecutionStatus.ORCHESTRATED:
            return False
        ts = orchestrated_time or node.orchestrated_at
        if ts is None:
            return False
        sla = self._job_start_sla.get(node, self.settings.job_start_sla)
        return self._clock() - ts > sla

    def _retry_job(self, dag_id: str, dag: Dag, node: DagNode, job_status: JobStatus) -> None:
        add_event(
            self.ctx,
            event_type=flow_events.JOB_RETRY,
            dag=dag,
            node=node,
            ts=self._clock(),
            payload={"reported_status": job_status.status.value, "message": job_status.message},
        )
        self.ctx.log(
            dag_id=dag_id,
            level="info",
            message=f"Retrying job {node.fully_qualified_job_name} (attempt {node.current_attempts + 1})",
        )
        self._submit_job(dag_id, dag, node)
        self._checkpoint(dag_id, dag)

    def _on_job_complete(self, dag_id: str, dag: Dag, node: DagNode) -> None:
        node.status = ExecutionStatus.COMPLETE
        self._delete_job_state(dag_id, node)
        submitted = self._submit_next(dag_id, dag)
        self.ctx.log(
            dag_id=dag_id,
            level="info",
            message=f"Job {node.fully_qualified_job_name} completed",
            next_jobs=[n.job_name for n in submitted],
        )
        self._checkpoint(dag_id, dag)

    def _on_job_failed(self, dag_id: str, dag: Dag, node: DagNode, message: Optional[str]) -> None:
        node.status = ExecutionStatus.FAILED
        self._delete_job_state(dag_id, node)
        dag.message = message or f"Job {node.job_name} failed"
        self.ctx.log(dag_id=dag_id, level="warning", message=f"Job {node.fully_qualified_job_name} failed")

        if self._dag_failure_option.get(dag_id) == FailureOption.FINISH_ALL_POSSIBLE:
            self._failed_pending.add(dag_id)
            self._checkpoint(dag_id, dag)
            return

        for other in list(self._dag_to_jobs.get(dag_id, ())):
            self._cancel_job(dag_id, dag, other, reason=f"sibling job {node.job_name} failed")
        self._fail_dag(dag_id, flow_event=flow_events.FLOW_FAILED)

    def _on_job_cancelled(self, dag_id: str, dag: Dag, node: DagNode, message: str) -> None:
        node.status = ExecutionStatus.CANCELLED
        self._delete_job_state(dag_id, node)
        dag.message = message
        for other in list(self._dag_to_jobs.get(dag_id, ())):
            self._cancel_job(dag_id, dag, other, reason=f"sibling job {node.job_name} cancelled")
        self._fail_dag(dag_id, flow_event=flow_events.FLOW_CANCELLED)

    def _kill_job_for_start_sla(self, dag_id: str, dag: Dag, node: DagNode) -> None:
        sla = self._job_start_sla.get(node, self.settings.job_start_sla)
        self._cancel_job(dag_id, dag, node, reason="job start SLA exceeded")
        self._on_job_cancelled(
            dag_id, dag, node, f"Job {node.job_name} did not start within the start SLA of {sla}"
        )

    def _kill_dag_for_flow_sla(self, dag_id: str, dag: Dag, sla: timedelta) -> None:
        for node in list(self._dag_to_jobs.get(dag_id, ())):
            self._cancel_job(dag_id, dag, node, reason="flow SLA exceeded")
        self._fail_dag(
            dag_id,
            flow_event=flow_events.FLOW_CANCELLED,
            message=f"Flow killed after exceeding its SLA of {sla}",
        )

    # ------------------------------------------------------------------
    # Fase 5: limpeza
    # ------------------------------------------------------------------
    def _clean_up(self) -> None:
        for dag_id in list(self._dags):
            if self._dag_to_jobs.get(dag_id) or dag_id in self._tick_isolated:
                continue
            dag = self._dags[dag_id]
            try:
                if dag_id in self._failed_pending or has_failed_node(dag):
                    self._fail_dag(dag_id, flow_event=flow_events.FLOW_FAILED)
                elif is_fully_complete(dag):
                    self._succeed_dag(dag_id, dag)
                else:
                    message = "DAG has no running jobs but is not complete"
                    self._log_error(dag_id, dag_invariant_violation(dag_id=dag_id, message=message))
                    self._fail_dag(dag_id, flow_event=flow_events.FLOW_FAILED, message=message)
            except Exception as e:
                self._isolate(dag_id, e)

    def _succeed_dag(self, dag_id: str, dag: Dag) -> None:
        dag.message = "Flow succeeded"
        add_event(self.ctx, event_type=flow_events.FLOW_SUCCEEDED, dag=dag, ts=self._clock())
        self._remove_dag(dag_id)
        self._succeeded_count += 1
        self.ctx.log(dag_id=dag_id, level="info", message=f"DAG {dag_id} succeeded")

    def _fail_dag(self, dag_id: str, *, flow_event: str, message: Optional[str] = None) -> None:
        dag = self._dags.get(dag_id)
        if dag is None:
            return
        for node in list(self._dag_to_jobs.get(dag_id, ())):
            self._delete_job_state(dag_id, node)
        if message is not None:
            dag.message = message
        self._failed_pending.discard(dag_id)

        add_event(
            self.ctx,
            event_type=flow_event,
            dag=dag,
            ts=self._clock(),
            payload={"message": dag.message},
        )
        try:
            self._failed_dag_state_store.write_checkpoint(dag)
        except Exception as e:
            self._log_error(dag_id, self._store_error(STATE_STORE_WRITE_ERROR, dag_id, e))
        self._failed_dag_ids.add(dag_id)
        self._remove_dag(dag_id)
        self._failed_count += 1
        self.ctx.log(dag_id=dag_id, level="warning", message=f"DAG {dag_id} failed: {dag.message}")

    def _remove_dag(self, dag_id: str) -> None:
        self._dags.pop(dag_id, None)
        self._dag_to_jobs.pop(dag_id, None)
        self._dag_failure_option.pop(dag_id, None)
        self._dag_flow_sla.pop(dag_id, None)
        try:
            self._dag_state_store.clean_up(dag_id)
        except Exception as e:
            self._log_error(dag_id, self._store_error(STATE_STORE_DELETE_ERROR, dag_id, e))

    # ------------------------------------------------------------------
    # Submissão / cancelamento de jobs
    # ------------------------------------------------------------------
    def _submit_next(self, dag_id: str, dag: Dag) -> List[DagNode]:
        failure_option = self._dag_failure_option.get(dag_id, self.settings.default_failure_option)
        ready = get_next(dag, failure_option)
        for node in ready:
            self._submit_job(dag_id, dag, node)
            self._add_job_state(dag_id, dag, node)
        return ready

    def _submit_job(self, dag_id: str, dag: Dag, node: DagNode) -> None:
        node.current_attempts += 1
        node.orchestrated_at = self._clock()
        node.status = ExecutionStatus.ORCHESTRATED
        try:
            self._submitter.submit(node)
        except Exception as e:
            err = job_submission_error(
                dag_id=dag_id, job_name=node.job_name, executor=node.plan.executor, exc=e
            )
            self._log_error(dag_id, err)
            add_event(
                self.ctx,
                event_type=flow_events.JOB_FAILED,
                dag=dag,
                node=node,
                ts=self._clock(),
                payload={"message": f"{err.message} due to {e}"},
            )
            return
        add_event(self.ctx, event_type=flow_events.JOB_ORCHESTRATED, dag=dag, node=node, ts=self._clock())

    def _cancel_job(self, dag_id: str, dag: Dag, node: DagNode, *, reason: str) -> None:
        try:
            self._submitter.cancel(node)
        except Exception as e:
            self._log_error(dag_id, job_cancellation_error(dag_id=dag_id, job_name=node.job_name, exc=e))
        node.status = ExecutionStatus.CANCELLED
        add_event(
            self.ctx,
            event_type=flow_events.JOB_CANCELLED,
            dag=dag,
            node=node,
            ts=self._clock(),
            payload={"reason": reason},
        )

    # ------------------------------------------------------------------
    # Índices
    # ------------------------------------------------------------------
    def _add_job_state(self, dag_id: str, dag: Dag, node: DagNode) -> None:
        self._job_to_dag[node] = dag
        jobs = self._dag_to_jobs.setdefault(dag_id, [])
        if node not in jobs:
            jobs.append(node)
        if node not in self._job_start_sla:
            self._job_start_sla[node] = self._resolve_job_start_sla(dag_id, node)

    def _delete_job_state(self, dag_id: str, node: DagNode) -> None:
        self._job_to_dag.pop(node, None)
        self._job_start_sla.pop(node, None)
        jobs = self._dag_to_jobs.get(dag_id)
        if jobs is not None and node in jobs:
            jobs.remove(node)

    def _checkpoint(self, dag_id: str, dag: Dag) -> None:
        try:
            self._dag_state_store.write_checkpoint(dag)
        except Exception as e:
            self._log_error(dag_id, self._store_error(STATE_STORE_WRITE_ERROR, dag_id, e))

    # ------------------------------------------------------------------
    # Resolução de configuração por DAG (degrada para o default)
    # ------------------------------------------------------------------
    def _config_warning(
        self, dag_id: str, key: str, value: Any, exc: Exception, *, fallback: str = "using default"
    ) -> None:
        err = config_malformed_value(key=key, value=value, reason=str(exc), dag_id=dag_id)
        message = f"Malformed {key} {value!r} for DAG {dag_id}; {fallback}"
        self.ctx.add_warning(dag_id=dag_id, message=message)
        self.ctx.log(dag_id=dag_id, level="warning", message=message, error=err.to_dict())

    def _resolve_failure_option(self, dag_id: str, dag: Dag) -> FailureOption:
        default = self.settings.default_failure_option
        try:
            return dag.failure_option(default)
        except ConfigError as e:
            self._config_warning(dag_id, "failure_option", dag.nodes[0].plan.failure_option, e)
            return default

    def _resolve_flow_sla(self, dag_id: str, dag: Dag) -> Optional[timedelta]:
        try:
            return resolve_flow_sla(dag, self.settings.default_flow_sla)
        except ConfigError as e:
            self._config_warning(dag_id, "flow_sla", dag.nodes[0].plan.flow_sla, e, fallback="no flow SLA")
            return None

    def _resolve_job_start_sla(self, dag_id: str, node: DagNode) -> timedelta:
        default = self.settings.job_start_sla
        try:
            return resolve_job_start_sla(node, default)
        except ConfigError as e:
            self._config_warning(dag_id, "job_start_sla", node.plan.job_start_sla, e)
            return default

    # ------------------------------------------------------------------
    # Guardrails: exceção -> AtlasErrorPayload
    # ------------------------------------------------------------------
    def _exception_to_error(self, exc: Exception, dag_id: Optional[str]) -> AtlasErrorPayload:
        if isinstance(exc, DagInvariantViolation):
            return dag_invariant_violation(
                dag_id=dag_id or "", message=exc.message, details=dict(exc.details or {})
            )
        if isinstance(exc, StateStoreError):
            return self._store_error(STATE_STORE_READ_ERROR, dag_id, exc)
        if isinstance(exc, AtlasException):
            return AtlasErrorPayload(
                type=exc.__class__.__name__,
                message=exc.message,
                details=dict(exc.details or {}),
                hint=exc.hint,
            )
        return engine_execution_error(
            exc_type=exc.__class__.__name__, exc_message=str(exc), dag_id=dag_id
        )

    @staticmethod
    def _store_error(code: str, dag_id: Optional[str], exc: Exception) -> AtlasErrorPayload:
        return state_store_error(code=code, dag_id=dag_id, exc=exc)

    def _log_error(self, dag_id: Optional[str], error: AtlasErrorPayload) -> None:
        self.ctx.log(dag_id=dag_id, level="error", message=error.message, error=error.to_dict())

    def _isolate(self, dag_id: str, exc: Exception) -> None:
        """Registra a falha e isola o DAG pelo restante do tick."""
        self._tick_isolated.add(dag_id)
        self._log_error(dag_id, self._exception_to_error(exc, dag_id))
