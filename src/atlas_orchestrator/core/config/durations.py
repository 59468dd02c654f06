# src/atlas_orchestrator/core/config/durations.py
"""
Interpretação de durações declaradas em configuração.

Usado para o SLA de início de job, o SLA de flow e o intervalo de poll.

Formatos aceitos:
- int/float → segundos
- string numérica ("90") → segundos
- string "<n><unidade>" com unidade em ms, s, m, h, d ("15m", "1.5h")

Valores negativos, não finitos (nan, inf), fora do alcance de `timedelta`,
booleanos, vazios ou com unidade desconhecida levantam `MalformedDurationError`.
"""

from __future__ import annotations

import math
import re
from datetime import timedelta
from typing import Any, Optional

from .errors import MalformedDurationError


_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$", re.IGNORECASE)


def parse_duration(value: Any) -> timedelta:
    """Converte um valor de configuração em `timedelta`.

    Raises:
        MalformedDurationError: se o valor não puder ser interpretado.
    """
    if isinstance(value, timedelta):
        if value < timedelta(0):
            raise MalformedDurationError(f"Duração negativa: {value!r}")
        return value

    if isinstance(value, bool) or value is None:
        raise MalformedDurationError(f"Duração inválida: {value!r}")

    if isinstance(value, (int, float)):
        return _scaled(value, timedelta(seconds=1), value)

    if isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match is None:
            raise MalformedDurationError(f"Duração malformada: {value!r}")
        unit = (match.group(2) or "s").lower()
        return _scaled(float(match.group(1)), _UNITS[unit], value)

    raise MalformedDurationError(
        f"Duração deve ser número ou string, recebido: {type(value).__name__}"
    )


def _scaled(amount: float, unit: timedelta, raw: Any) -> timedelta:
    try:
        finite = math.isfinite(amount)
    except OverflowError as e:
        raise MalformedDurationError(f"Duração fora do alcance: {raw!r}") from e
    if not finite:
        raise MalformedDurationError(f"Duração não finita: {raw!r}")
    if amount < 0:
        raise MalformedDurationError(f"Duração negativa: {raw!r}")
    try:
        return unit * amount
    except (OverflowError, ValueError) as e:
        raise MalformedDurationError(f"Duração fora do alcance: {raw!r}") from e


def parse_optional_duration(value: Any) -> Optional[timedelta]:
    """Como `parse_duration`, mas `None` (ausente) retorna `None`."""
    if value is None:
        return None
    return parse_duration(value)
