"""
Atlas Orchestrator — Canonical Exceptions (v1)

Este módulo define exceções tipadas internas do Atlas Orchestrator.

Objetivo:
- Permitir que stores e o DagManager levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para AtlasErrorPayload
- Evitar OSError/ValueError genéricos escapando de fronteiras de persistência

Regras:
- Exceções carregam apenas dados estruturados (serializáveis).
- Nenhuma exceção representa falha de job (isso é estado, não erro).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AtlasException(Exception):
    """Base class para exceções internas do Atlas.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Mensagem deve ser curta e humana
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover
        return self.message


@dataclass(frozen=True)
class DagInvariantViolation(AtlasException):
    """Estado interno inconsistente detectado para um DAG (ex.: nó rastreado sem DAG)."""


@dataclass(frozen=True)
class StateStoreError(AtlasException):
    """Falha de leitura, escrita ou remoção de checkpoint no backend de estado."""
