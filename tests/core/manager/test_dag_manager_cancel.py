# tests/core/manager/test_dag_manager_cancel.py
"""
Testes de cancelamento de DAGs pelo DagManager.

- DAG ativo: todos os jobs rastreados recebem cancelamento e o DAG falha
  com FLOW_CANCELLED no mesmo tick
- DAG já falho: o cancelamento purga o snapshot do store de DAGs falhos
- DAG desconhecido: apenas warning
"""

import pytest

try:
    from atlas_orchestrator.core.dag.types import ExecutionStatus
    from atlas_orchestrator.core.errors import JOB_CANCELLATION_ERROR
    from atlas_orchestrator.core.traceability.flow_events import FLOW_CANCELLED
except Exception as e:  # noqa: BLE001
    ExecutionStatus = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing DagManager modules. Import error: {_IMPORT_ERR}")


def _running_dag(make_dag, make_manager, retriever):
    dag = make_dag({"job0": (), "job1": ("job0",)})
    manager = make_manager()
    manager.add_dag(dag)
    manager.run_once()
    retriever.push(dag.get_node("job0"), ExecutionStatus.RUNNING)
    manager.run_once()
    return dag, manager


def test_cancel_active_dag(make_dag, make_manager, retriever, submitter, check_indexes):
    """
    Verifica que cancelar um DAG ativo cancela seus jobs e o move para falhos.

    Invariantes:
        - job0 recebe cancelamento; job1 nunca é submetido
        - O DAG sai de `dags` e entra em `failed_dag_ids`
        - O evento terminal é FLOW_CANCELLED
    """
    _require_imports()
    dag, manager = _running_dag(make_dag, make_manager, retriever)

    manager.cancel_dag(dag.dag_id)
    manager.run_once()

    assert submitter.cancelled == ["job0"]
    assert submitter.submitted_names == ["job0"]
    assert dag.get_node("job0").status == ExecutionStatus.CANCELLED
    assert dag.get_node("job1").status == ExecutionStatus.PENDING
    assert dag.dag_id not in manager.view.dags
    assert dag.dag_id in manager.view.failed_dag_ids
    assert dag.flow_event == FLOW_CANCELLED
    assert dag.message == "Flow cancelled by request"
    check_indexes(manager)


def test_cancel_failed_dag_purges_it(make_dag, make_manager, retriever):
    _require_imports()
    dag, manager = _running_dag(make_dag, make_manager, retriever)
    manager.cancel_dag(dag.dag_id)
    manager.run_once()

    manager.cancel_dag(dag.dag_id)
    manager.run_once()

    assert manager.view.failed_dag_ids == frozenset()
    assert manager.view.failed_dag_state_store.get_dag_ids() == []

    manager.resume_dag(dag.dag_id)
    manager.run_once()
    assert dag.dag_id not in manager.view.dags


def test_cancel_unknown_dag_warns(make_manager):
    _require_imports()
    manager = make_manager()
    manager.cancel_dag("fg_flow_999")
    manager.run_once()

    assert manager.ctx.warnings["fg_flow_999"]
    assert manager.view.failed_dag_ids == frozenset()


def test_cancellation_error_is_logged_and_job_marked_cancelled(make_dag, make_manager, retriever, submitter):
    _require_imports()
    dag, manager = _running_dag(make_dag, make_manager, retriever)
    submitter.fail_cancel.add("job0")

    manager.cancel_dag(dag.dag_id)
    manager.run_once()

    errors = [e["error"]["type"] for e in manager.ctx.events_for(dag.dag_id, level="error")]
    assert JOB_CANCELLATION_ERROR in errors
    assert dag.get_node("job0").status == ExecutionStatus.CANCELLED
    assert dag.dag_id in manager.view.failed_dag_ids
