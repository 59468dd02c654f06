# src/atlas_orchestrator/core/manager/runner.py
"""
Runner e fábrica do DagManager.

- `build_dag_manager`: monta um DagManager a partir da configuração resolvida
  (settings, stores de checkpoint e contexto com hash da configuração)
- `DagManagerRunner`: executa `recover()` uma vez e depois ticks com atraso
  fixo (`poll_interval`) em uma thread daemon dedicada

Decisões arquiteturais:
    - O runner é a única thread que chama `run_once`; produtores usam as
      filas do DagManager
    - Uma exceção escapando de um tick é registrada como
      ENGINE_EXECUTION_ERROR e o loop segue no próximo intervalo
    - `stop()` interrompe a espera entre ticks imediatamente (threading.Event)

Limites explícitos:
    - Não implementa eleição de líder nem sharding
"""

from __future__ import annotations

import threading
from datetime import timedelta
from typing import Any, Dict, Optional, Union

from atlas_orchestrator.core.config.hashing import compute_config_hash
from atlas_orchestrator.core.config.settings import FAILED_STORE_FS, load_settings
from atlas_orchestrator.core.errors import engine_execution_error
from atlas_orchestrator.persistence.dag_state_store import (
    DagStateStore,
    FSDagStateStore,
    InMemoryDagStateStore,
)

from .context import ManagerContext
from .dag_manager import DagManager
from .ports import JobStatusRetriever, JobSubmitter


def build_dag_manager(
    config: Optional[Dict[str, Any]],
    *,
    job_status_retriever: JobStatusRetriever,
    job_submitter: JobSubmitter,
    ctx: Optional[ManagerContext] = None,
    manager_id: str = "dag-manager",
    **manager_kwargs: Any,
) -> DagManager:
    """
    Cria um DagManager a partir da configuração efetiva.

    Args:
        config: Configuração resolvida (ver `load_config`).
        job_status_retriever: Fonte de eventos de status.
        job_submitter: Sink de submissão/cancelamento.
        ctx: Contexto opcional; se ausente, é criado com `max_log_events`.
        manager_id: Identificador do manager no contexto criado.
        **manager_kwargs: Repassados ao DagManager (ex.: `clock`).

    Returns:
        DagManager: Manager pronto para `recover()` e `run_once()`.
    """
    config = dict(config or {})
    settings = load_settings(config)
    if ctx is None:
        ctx = ManagerContext(manager_id=manager_id, config=config, max_events=settings.max_log_events)
    # Segunda passada registra no contexto os warnings de degradação
    settings = load_settings(config, ctx=ctx)

    ctx.meta["config_hash"] = compute_config_hash(config)
    ctx.meta["state_store_dir"] = settings.state_store_dir
    ctx.meta["failed_state_store_type"] = settings.failed_state_store_type

    dag_state_store: DagStateStore
    if settings.state_store_dir:
        dag_state_store = FSDagStateStore(state_dir=settings.state_store_dir)
    else:
        dag_state_store = InMemoryDagStateStore()

    failed_dag_state_store: DagStateStore
    if settings.failed_state_store_type == FAILED_STORE_FS and settings.failed_state_store_dir:
        failed_dag_state_store = FSDagStateStore(state_dir=settings.failed_state_store_dir)
    else:
        failed_dag_state_store = InMemoryDagStateStore()

    return DagManager(
        job_status_retriever=job_status_retriever,
        job_submitter=job_submitter,
        dag_state_store=dag_state_store,
        failed_dag_state_store=failed_dag_state_store,
        settings=settings,
        ctx=ctx,
        **manager_kwargs,
    )


class DagManagerRunner:
    """Executa o DagManager com atraso fixo entre ticks."""

    def __init__(self, manager: DagManager, *, interval: Optional[Union[timedelta, float]] = None):
        self.manager = manager
        if interval is None:
            interval = manager.settings.poll_interval
        if isinstance(interval, timedelta):
            interval = interval.total_seconds()
        self.interval = float(interval)
        self.ticks = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._recovered = False

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> bool:
        """Executa um tick; retorna False se o tick levantou exceção."""
        try:
            self.manager.run_once()
            return True
        except Exception as e:
            err = engine_execution_error(exc_type=e.__class__.__name__, exc_message=str(e))
            self.manager.ctx.log(dag_id=None, level="error", message=err.message, error=err.to_dict())
            return False
        finally:
            self.ticks += 1

    def _recover_once(self) -> None:
        if not self._recovered:
            self.manager.recover()
            self._recovered = True

    def run_forever(self) -> None:
        """Loop bloqueante; termina quando `stop()` é chamado."""
        self._recover_once()
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self.interval)

    def start(self) -> None:
        if self.is_running:
            raise RuntimeError("DagManagerRunner já está em execução")
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run_forever,
            name=f"{self.manager.ctx.manager_id}-loop",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
