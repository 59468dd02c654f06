# tests/core/manager/test_dag_manager_resilience.py
"""
Testes de resiliência do DagManager a falhas de colaboradores e de stores.

Nenhuma exceção de colaborador escapa de um tick:
- falha do status source → STATUS_RETRIEVAL_ERROR, tratada como "sem evento"
- falha de submissão → JOB_SUBMISSION_ERROR; o job segue ORCHESTRATED e o
  SLA de início acaba por cancelá-lo
- falha de escrita de checkpoint → STATE_STORE_WRITE_ERROR; o estado em
  memória não é revertido
- inconsistência interna em um DAG → DAG_INVARIANT_VIOLATION; os demais
  DAGs seguem no mesmo tick
"""

import pytest

try:
    from atlas_orchestrator.core.dag.types import ExecutionStatus
    from atlas_orchestrator.core.errors import (
        DAG_INVARIANT_VIOLATION,
        JOB_SUBMISSION_ERROR,
        STATE_STORE_DELETE_ERROR,
        STATE_STORE_WRITE_ERROR,
        STATUS_RETRIEVAL_ERROR,
    )
    from atlas_orchestrator.core.exceptions import StateStoreError
    from atlas_orchestrator.core.traceability.flow_events import JOB_FAILED, event_types_for
    from atlas_orchestrator.persistence.dag_state_store import InMemoryDagStateStore
except Exception as e:  # noqa: BLE001
    InMemoryDagStateStore = object
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing DagManager modules. Import error: {_IMPORT_ERR}")


class BrokenWriteStore(InMemoryDagStateStore):
    def write_checkpoint(self, dag):
        raise StateStoreError(message="disk full", details={"dag_id": dag.dag_id})


class BrokenDeleteStore(InMemoryDagStateStore):
    def clean_up(self, dag_or_id):
        raise StateStoreError(message="permission denied")


def _error_types(manager, dag_id):
    return [e["error"]["type"] for e in manager.ctx.events_for(dag_id, level="error")]


def test_status_retrieval_error_is_treated_as_no_event(make_dag, make_manager, retriever):
    _require_imports()
    dag = make_dag({"job0": ()})
    manager = make_manager()
    manager.add_dag(dag)
    manager.run_once()

    retriever.push_error(dag.get_node("job0"), TimeoutError("status source down"))
    manager.run_once()
    assert STATUS_RETRIEVAL_ERROR in _error_types(manager, dag.dag_id)
    assert dag.dag_id in manager.view.dags

    retriever.push(dag.get_node("job0"), ExecutionStatus.COMPLETE)
    manager.run_once()
    assert manager.view.succeeded_dag_count == 1


def test_submission_error_keeps_job_tracked_until_start_sla(make_dag, make_manager, submitter, clock):
    """
    Verifica o tratamento de falha de submissão.

    Invariantes:
        - O job permanece rastreado, ORCHESTRATED, com a tentativa contabilizada
        - A timeline registra JOB_FAILED para a tentativa
        - Após o SLA de início o DAG é cancelado
    """
    _require_imports()
    submitter.fail_submit.add("job0")
    dag = make_dag({"job0": ()})
    manager = make_manager()
    manager.add_dag(dag)
    manager.run_once()

    node = dag.get_node("job0")
    assert node.status == ExecutionStatus.ORCHESTRATED
    assert node.current_attempts == 1
    assert manager.view.tracked_job_names(dag.dag_id) == ["job0"]
    assert JOB_SUBMISSION_ERROR in _error_types(manager, dag.dag_id)
    assert JOB_FAILED in event_types_for(manager.ctx, dag.dag_id)

    clock.advance(minutes=16)
    manager.run_once()
    assert dag.dag_id in manager.view.failed_dag_ids


def test_checkpoint_write_failure_does_not_roll_back(make_dag, make_manager, retriever):
    """
    Verifica que falhas de persistência são registradas e o DAG segue normalmente.
    """
    _require_imports()
    dag = make_dag({"job0": (), "job1": ("job0",)})
    manager = make_manager(dag_state_store=BrokenWriteStore())
    manager.add_dag(dag)
    manager.run_once()

    assert STATE_STORE_WRITE_ERROR in _error_types(manager, dag.dag_id)
    assert manager.view.tracked_job_names(dag.dag_id) == ["job0"]

    retriever.push(dag.get_node("job0"), ExecutionStatus.COMPLETE)
    manager.run_once()
    retriever.push(dag.get_node("job1"), ExecutionStatus.COMPLETE)
    manager.run_once()

    assert manager.view.succeeded_dag_count == 1


def test_checkpoint_delete_failure_is_logged(make_dag, make_manager, retriever):
    _require_imports()
    dag = make_dag({"job0": ()})
    manager = make_manager(dag_state_store=BrokenDeleteStore())
    manager.add_dag(dag)
    manager.run_once()
    retriever.push(dag.get_node("job0"), ExecutionStatus.COMPLETE)
    manager.run_once()

    assert STATE_STORE_DELETE_ERROR in _error_types(manager, dag.dag_id)
    assert manager.view.succeeded_dag_count == 1
    assert dag.dag_id not in manager.view.dags


def test_failed_store_write_failure_still_records_failed_dag(make_dag, make_manager, retriever):
    _require_imports()
    dag = make_dag({"job0": ()})
    manager = make_manager(failed_dag_state_store=BrokenWriteStore())
    manager.add_dag(dag)
    manager.run_once()
    retriever.push(dag.get_node("job0"), ExecutionStatus.FAILED)
    manager.run_once()

    assert STATE_STORE_WRITE_ERROR in _error_types(manager, dag.dag_id)
    assert dag.dag_id in manager.view.failed_dag_ids


def test_invariant_violation_isolates_only_the_broken_dag(make_dag, make_manager, retriever):
    """
    Verifica que uma inconsistência de índice em um DAG não bloqueia os demais.

    O DAG "quebrado" tem o nó rastreado, mas é removido de `dags` à força.
    """
    _require_imports()
    broken = make_dag({"job0": ()}, flow_execution_id=1)
    healthy = make_dag({"job0": ()}, flow_execution_id=2)
    manager = make_manager()
    manager.add_dag(broken)
    manager.add_dag(healthy)
    manager.run_once()

    del manager._dags[broken.dag_id]
    retriever.push(broken.get_node("job0"), ExecutionStatus.COMPLETE)
    retriever.push(healthy.get_node("job0"), ExecutionStatus.COMPLETE)
    manager.run_once()

    assert DAG_INVARIANT_VIOLATION in _error_types(manager, broken.dag_id)
    assert manager.view.succeeded_dag_count == 1
    assert healthy.dag_id not in manager.view.dags
