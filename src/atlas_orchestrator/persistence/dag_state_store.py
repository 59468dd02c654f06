"""Persistência de checkpoints de DAG (v1).

O DagManager grava um checkpoint do `Dag` após toda mutação estrutural
(submissão, conclusão, retry, resume) e o remove quando o DAG termina.
No restart, `get_dags` é a fonte da recuperação.

Backends:
- `FSDagStateStore`: um arquivo JSON por dag id, sobrevive a crash do processo
- `InMemoryDagStateStore`: dicionário em memória; usado como store de DAGs
  falhos aguardando resume (não precisa sobreviver a restart)

Decisões (v1):
- Formato: JSON determinístico (indent=2, sort_keys, ensure_ascii=False)
- Nome do arquivo: dag id com quoting de URL + ".json" (ids contêm grupos
  e nomes de flow arbitrários)
- Escrita atômica: arquivo temporário no mesmo diretório + `os.replace`
- `clean_up` de um checkpoint inexistente não é erro

Limites explícitos:
- Não decide quando gravar (responsabilidade do DagManager)
- Não versiona nem migra checkpoints antigos
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable
from urllib.parse import quote, unquote

from atlas_orchestrator.core.dag.dag import Dag
from atlas_orchestrator.core.exceptions import StateStoreError


CHECKPOINT_SUFFIX = ".json"

DagOrId = Union[Dag, str]


def _dag_id_of(dag_or_id: DagOrId) -> str:
    return dag_or_id if isinstance(dag_or_id, str) else dag_or_id.dag_id


@runtime_checkable
class DagStateStore(Protocol):
    """Contrato de um backend de checkpoints de DAG."""

    def write_checkpoint(self, dag: Dag) -> None:
        ...

    def clean_up(self, dag_or_id: DagOrId) -> None:
        ...

    def get_dags(self) -> List[Dag]:
        ...

    def get_dag(self, dag_id: str) -> Optional[Dag]:
        ...

    def get_dag_ids(self) -> List[str]:
        ...


class InMemoryDagStateStore:
    """Store em memória; guarda a própria instância do `Dag` (sem cópia)."""

    def __init__(self) -> None:
        self._dags: Dict[str, Dag] = {}

    def write_checkpoint(self, dag: Dag) -> None:
        self._dags[dag.dag_id] = dag

    def clean_up(self, dag_or_id: DagOrId) -> None:
        self._dags.pop(_dag_id_of(dag_or_id), None)

    def get_dags(self) -> List[Dag]:
        return [self._dags[k] for k in sorted(self._dags)]

    def get_dag(self, dag_id: str) -> Optional[Dag]:
        return self._dags.get(dag_id)

    def get_dag_ids(self) -> List[str]:
        return sorted(self._dags)


class FSDagStateStore:
    """Store em filesystem; um checkpoint JSON por dag id em `state_dir`."""

    def __init__(self, *, state_dir: Union[str, Path]):
        self.state_dir = Path(state_dir)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    def checkpoint_path(self, dag_id: str) -> Path:
        """Retorna o caminho determinístico do checkpoint de um dag id."""
        return self.state_dir / (quote(dag_id, safe="") + CHECKPOINT_SUFFIX)

    # ------------------------------------------------------------------
    # Persist / Load
    # ------------------------------------------------------------------
    def write_checkpoint(self, dag: Dag) -> None:
        """Grava o checkpoint de forma atômica.

        Raises:
            StateStoreError: falha de I/O ou de serialização.
        """
        dag_id = dag.dag_id
        path = self.checkpoint_path(dag_id)
        try:
            payload = json.dumps(dag.to_dict(), indent=2, sort_keys=True, ensure_ascii=False)
            self.state_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=".tmp-", suffix=CHECKPOINT_SUFFIX, dir=str(self.state_dir))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp, path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StateStoreError(
                message=f"Falha ao gravar checkpoint do DAG {dag_id}",
                details={"dag_id": dag_id, "path": str(path), "reason": str(e)},
            ) from e

    def clean_up(self, dag_or_id: DagOrId) -> None:
        dag_id = _dag_id_of(dag_or_id)
        path = self.checkpoint_path(dag_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StateStoreError(
                message=f"Falha ao remover checkpoint do DAG {dag_id}",
                details={"dag_id": dag_id, "path": str(path), "reason": str(e)},
            ) from e

    def get_dag(self, dag_id: str) -> Optional[Dag]:
        """Carrega um checkpoint; None se não existir.

        Raises:
            StateStoreError: arquivo ilegível ou JSON inválido.
        """
        path = self.checkpoint_path(dag_id)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                data: Dict[str, Any] = json.load(f)
            return Dag.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise StateStoreError(
                message=f"Checkpoint ilegível para o DAG {dag_id}",
                details={"dag_id": dag_id, "path": str(path), "reason": str(e)},
            ) from e

    def get_dag_ids(self) -> List[str]:
        if not self.state_dir.exists():
            return []
        ids = []
        for p in self.state_dir.iterdir():
            if p.is_file() and p.name.endswith(CHECKPOINT_SUFFIX) and not p.name.startswith(".tmp-"):
                ids.append(unquote(p.name[: -len(CHECKPOINT_SUFFIX)]))
        return sorted(ids)

    def get_dags(self) -> List[Dag]:
        dags = []
        for dag_id in self.get_dag_ids():
            dag = self.get_dag(dag_id)
            if dag is not None:
                dags.append(dag)
        return dags


__all__ = ["DagStateStore", "FSDagStateStore", "InMemoryDagStateStore", "StateStoreError"]
