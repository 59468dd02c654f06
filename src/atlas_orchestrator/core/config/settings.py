# src/atlas_orchestrator/core/config/settings.py
"""
Settings tipados do DagManager.

Este módulo converte a seção `dag_manager` da configuração resolvida
(dict vindo de `load_config`) em uma estrutura imutável e tipada,
consumida pelo control loop e pela fábrica de stores.

Decisões arquiteturais:
    - Valores malformados (duração ilegível, inteiro inválido, opção de
      falha desconhecida) são capturados aqui, registrados como warning no
      contexto e substituídos pelo default; nunca abortam o processo
    - Ausência da seção `dag_manager` equivale aos defaults
    - O SLA de início padrão é 15 minutos e o limite de tentativas é 5

Invariantes:
    - `load_settings` sempre retorna um `DagManagerSettings` válido
    - `max_job_attempts >= 1`
    - Durações são `timedelta` não negativos

Limites explícitos:
    - Não carrega arquivos (ver `loader`)
    - Não cria stores nem o DagManager (ver `core.manager.runner`)

Este módulo existe para garantir que configuração malformada degrade
de forma explícita e auditável, em vez de derrubar o control loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional

from atlas_orchestrator.core.dag.types import FailureOption
from atlas_orchestrator.core.errors import config_malformed_value

from .durations import parse_duration, parse_optional_duration
from .errors import ConfigError


# Escopo usado no contexto para warnings que não pertencem a um DAG.
CONFIG_SCOPE = "config"

FAILED_STORE_MEMORY = "memory"
FAILED_STORE_FS = "fs"


@dataclass(frozen=True)
class DagManagerSettings:
    """
    Configuração efetiva do DagManager.

    Campos:
    - job_start_sla: tempo máximo entre orquestração e primeiro RUNNING
    - max_job_attempts: número máximo de submissões de um mesmo job
    - poll_interval: atraso fixo entre ticks (usado pelo runner)
    - default_failure_option: opção de falha quando o plano não declara
    - default_flow_sla: SLA de flow quando o plano não declara (None = sem SLA)
    - poll_failed_dags_for_resume: consulta o status sentinela de DAGs falhos
    - state_store_dir: diretório dos checkpoints (None = store em memória)
    - failed_state_store_type: "memory" ou "fs"
    - failed_state_store_dir: diretório do store de DAGs falhos (tipo "fs")
    - max_log_events: capacidade do log estruturado do contexto
    """

    job_start_sla: timedelta = timedelta(minutes=15)
    max_job_attempts: int = 5
    poll_interval: timedelta = timedelta(seconds=10)
    default_failure_option: FailureOption = FailureOption.FINISH_RUNNING
    default_flow_sla: Optional[timedelta] = None
    poll_failed_dags_for_resume: bool = False
    state_store_dir: Optional[str] = None
    failed_state_store_type: str = FAILED_STORE_MEMORY
    failed_state_store_dir: Optional[str] = None
    max_log_events: int = 10000


DEFAULT_SETTINGS = DagManagerSettings()


def _warn(ctx: Any, warnings: List[str], key: str, value: Any, reason: str) -> None:
    message = f"dag_manager.{key} inválido ({value!r}): {reason}; usando default"
    warnings.append(message)
    if ctx is not None:
        ctx.add_warning(dag_id=CONFIG_SCOPE, message=message)
        ctx.log(
            dag_id=None,
            level="warning",
            message=message,
            error=config_malformed_value(key=f"dag_manager.{key}", value=value, reason=reason).to_dict(),
        )


def _positive_int(section: Dict[str, Any], key: str, default: int, ctx: Any, warnings: List[str]) -> int:
    if key not in section or section[key] is None:
        return default
    value = section[key]
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        _warn(ctx, warnings, key, value, "esperado inteiro >= 1")
        return default
    return value


def load_settings(config: Optional[Dict[str, Any]], *, ctx: Any = None) -> DagManagerSettings:
    """
    Interpreta a seção `dag_manager` de uma configuração resolvida.

    Args:
        config: Configuração efetiva (pode ser None ou vazia).
        ctx: `ManagerContext` opcional para registrar warnings de degradação.

    Returns:
        DagManagerSettings: Settings válidos (defaults onde houve erro).
    """
    warnings: List[str] = []
    section = (config or {}).get("dag_manager") or {}
    if not isinstance(section, dict):
        _warn(ctx, warnings, "<root>", section, "seção deve ser um mapa")
        return DEFAULT_SETTINGS

    d = DEFAULT_SETTINGS

    def duration(key: str, default: timedelta) -> timedelta:
        if section.get(key) is None:
            return default
        try:
            return parse_duration(section[key])
        except ConfigError as e:
            _warn(ctx, warnings, key, section[key], str(e))
            return default

    default_flow_sla: Optional[timedelta] = d.default_flow_sla
    try:
        default_flow_sla = parse_optional_duration(section.get("default_flow_sla"))
    except ConfigError as e:
        _warn(ctx, warnings, "default_flow_sla", section.get("default_flow_sla"), str(e))

    failure_option = d.default_failure_option
    if section.get("default_failure_option") is not None:
        try:
            failure_option = FailureOption.parse(section["default_failure_option"])
        except ConfigError as e:
            _warn(ctx, warnings, "default_failure_option", section["default_failure_option"], str(e))

    state_store = section.get("state_store") or {}
    failed_store = section.get("failed_state_store") or {}
    if not isinstance(state_store, dict):
        _warn(ctx, warnings, "state_store", state_store, "seção deve ser um mapa")
        state_store = {}
    if not isinstance(failed_store, dict):
        _warn(ctx, warnings, "failed_state_store", failed_store, "seção deve ser um mapa")
        failed_store = {}

    failed_type = str(failed_store.get("type") or FAILED_STORE_MEMORY).lower()
    if failed_type not in {FAILED_STORE_MEMORY, FAILED_STORE_FS}:
        _warn(ctx, warnings, "failed_state_store.type", failed_type, "esperado 'memory' ou 'fs'")
        failed_type = FAILED_STORE_MEMORY
    failed_dir = failed_store.get("dir")
    if failed_type == FAILED_STORE_FS and not failed_dir:
        _warn(ctx, warnings, "failed_state_store.dir", failed_dir, "obrigatório para o tipo 'fs'")
        failed_type = FAILED_STORE_MEMORY

    poll_failed = section.get("poll_failed_dags_for_resume", d.poll_failed_dags_for_resume)
    if not isinstance(poll_failed, bool):
        _warn(ctx, warnings, "poll_failed_dags_for_resume", poll_failed, "esperado booleano")
        poll_failed = d.poll_failed_dags_for_resume

    return DagManagerSettings(
        job_start_sla=duration("job_start_sla", d.job_start_sla),
        max_job_attempts=_positive_int(section, "max_job_attempts", d.max_job_attempts, ctx, warnings),
        poll_interval=duration("poll_interval", d.poll_interval),
        default_failure_option=failure_option,
        default_flow_sla=default_flow_sla,
        poll_failed_dags_for_resume=poll_failed,
        state_store_dir=state_store.get("dir") or None,
        failed_state_store_type=failed_type,
        failed_state_store_dir=failed_dir or None,
        max_log_events=_positive_int(section, "max_log_events", d.max_log_events, ctx, warnings),
    )
