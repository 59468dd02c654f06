"""
Atlas Orchestrator — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do Atlas Orchestrator.

O control loop do DagManager nunca propaga exceções para fora de um tick:
toda falha (configuração malformada, falha transitória do status source,
falha de persistência de checkpoint, violação de invariante de DAG) é
convertida em um `AtlasErrorPayload` e registrada no log estruturado do
`ManagerContext`. Falhas de jobs, por sua vez, não são erros: são dados que
dirigem a máquina de estados.

Erros devem ser:
- explícitos
- serializáveis
- rastreáveis
- acionáveis
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AtlasErrorPayload:
    """
    Payload canônico de erro do Atlas Orchestrator.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Configuração
CONFIG_MALFORMED_VALUE = "CONFIG_MALFORMED_VALUE"

# Colaboradores externos
STATUS_RETRIEVAL_ERROR = "STATUS_RETRIEVAL_ERROR"
JOB_SUBMISSION_ERROR = "JOB_SUBMISSION_ERROR"
JOB_CANCELLATION_ERROR = "JOB_CANCELLATION_ERROR"

# Persistência de checkpoints
STATE_STORE_WRITE_ERROR = "STATE_STORE_WRITE_ERROR"
STATE_STORE_DELETE_ERROR = "STATE_STORE_DELETE_ERROR"
STATE_STORE_READ_ERROR = "STATE_STORE_READ_ERROR"

# Engine / Execução
DAG_INVARIANT_VIOLATION = "DAG_INVARIANT_VIOLATION"
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def config_malformed_value(
    *,
    key: str,
    value: Any,
    reason: str,
    dag_id: Optional[str] = None,
    hint: str = "Corrija o valor na configuração; o default foi aplicado até lá.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=CONFIG_MALFORMED_VALUE,
        message="Valor de configuração malformado",
        details={"key": key, "value": repr(value), "reason": reason, "dag_id": dag_id},
        hint=hint,
    )


def status_retrieval_error(
    *,
    dag_id: str,
    job_name: str,
    exc: Exception,
    hint: str = "Verifique a disponibilidade do status source; o job será consultado novamente no próximo tick.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=STATUS_RETRIEVAL_ERROR,
        message="Falha ao consultar status do job",
        details={
            "dag_id": dag_id,
            "job_name": job_name,
            "exc_type": exc.__class__.__name__,
            "exc_message": str(exc),
        },
        hint=hint,
    )


def job_submission_error(
    *,
    dag_id: str,
    job_name: str,
    executor: Optional[str],
    exc: Exception,
    hint: str = "Verifique o executor de destino; o SLA de início cancelará o job se ele nunca iniciar.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=JOB_SUBMISSION_ERROR,
        message=f"Não foi possível submeter o job {job_name}",
        details={
            "dag_id": dag_id,
            "job_name": job_name,
            "executor": executor,
            "exc_type": exc.__class__.__name__,
            "exc_message": str(exc),
        },
        hint=hint,
    )


def job_cancellation_error(
    *,
    dag_id: str,
    job_name: str,
    exc: Exception,
    hint: str = "O job foi marcado como CANCELLED localmente; confirme o cancelamento no executor.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=JOB_CANCELLATION_ERROR,
        message=f"Falha ao cancelar o job {job_name}",
        details={
            "dag_id": dag_id,
            "job_name": job_name,
            "exc_type": exc.__class__.__name__,
            "exc_message": str(exc),
        },
        hint=hint,
    )


def state_store_error(
    *,
    code: str,
    dag_id: Optional[str],
    exc: Exception,
    hint: str = "O estado em memória foi mantido; verifique o backend de checkpoints antes de um restart.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=code,
        message="Falha de persistência de checkpoint",
        details={
            "dag_id": dag_id,
            "exc_type": exc.__class__.__name__,
            "exc_message": str(exc),
        },
        hint=hint,
    )


def dag_invariant_violation(
    *,
    dag_id: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    hint: str = "O DAG foi isolado neste tick; inspecione o checkpoint e o plano de execução.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=DAG_INVARIANT_VIOLATION,
        message=message,
        details={"dag_id": dag_id, **(details or {})},
        hint=hint,
    )


def engine_execution_error(
    *,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    dag_id: Optional[str] = None,
    hint: str = "Verifique o log estruturado do contexto; o control loop seguirá no próximo tick.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message="Falha inesperada durante o tick do DagManager",
        details={
            "dag_id": dag_id,
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint=hint,
    )
