# src/atlas_orchestrator/core/timeutils.py
"""
Utilitários de tempo do Atlas Orchestrator.

- UTC é o timezone canônico para todos os timestamps (checkpoints, eventos, SLAs)
- Timestamps timezone-naive são assumidos como UTC
- Persistência usa ISO 8601
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_tzaware_utc(dt: datetime) -> datetime:
    """Normaliza um timestamp para timezone-aware em UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso(dt: Optional[datetime]) -> Optional[str]:
    """Representação ISO 8601 em UTC (None é preservado)."""
    if dt is None:
        return None
    return ensure_tzaware_utc(dt).isoformat()


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return ensure_tzaware_utc(datetime.fromisoformat(value))


def ms_between(start: datetime, end: datetime) -> int:
    """Duração não negativa em milissegundos entre dois timestamps."""
    s = ensure_tzaware_utc(start)
    e = ensure_tzaware_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))
