# tests/core/config/test_loader.py
"""
Testes do carregador de configuração (load_config).

Este módulo valida o comportamento do loader responsável por:
- carregar o arquivo de defaults do DagManager
- aplicar o arquivo local de overrides, quando presente
- rejeitar formatos e estruturas inválidas

Os testes asseguram que:
- o arquivo defaults é obrigatório
- o arquivo local é opcional
- formatos não suportados são rejeitados
- a configuração final é corretamente resolvida

Decisões arquiteturais:
    - Defaults representam a base canônica
    - Configuração local atua apenas como override explícito
    - Erros estruturais são tratados como falhas fatais

Limites explícitos:
    - Não valida interpretação de valores (ver test_settings)
"""

import pytest
from pathlib import Path

try:
    from atlas_orchestrator.core.config.loader import load_config
    from atlas_orchestrator.core.config.errors import (
        DefaultsNotFoundError,
        InvalidConfigRootTypeError,
        UnsupportedConfigFormatError,
    )
except Exception as e:  # noqa: BLE001
    load_config = None
    DefaultsNotFoundError = None
    InvalidConfigRootTypeError = None
    UnsupportedConfigFormatError = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


REPO_DEFAULTS = Path(__file__).resolve().parents[3] / "config" / "defaults.yaml"


def _require_imports():
    """
    Garante que o loader de configuração e suas exceções tipadas estejam disponíveis.

    Decisões arquiteturais:
        - Falha antecipada e explícita quando contratos do loader estão ausentes
        - Evita falhas indiretas ou mensagens pouco informativas nos testes
    """
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing loader/errors modules. Implement:\n"
            "- src/atlas_orchestrator/core/config/loader.py (load_config)\n"
            "- src/atlas_orchestrator/core/config/errors.py (typed exceptions)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_missing_defaults_raises(tmp_path: Path):
    """
    Verifica que a ausência do arquivo de defaults é tratada como erro fatal.

    Invariantes:
        - A exceção utilizada é específica (`DefaultsNotFoundError`)
        - Nenhuma configuração parcial é retornada
    """
    _require_imports()
    missing = tmp_path / "defaults.yaml"
    with pytest.raises(DefaultsNotFoundError):
        load_config(defaults_path=str(missing), local_path=None)


def test_missing_local_is_ok(tmp_path: Path, project_like_config_defaults_yaml):
    _require_imports()
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")

    out = load_config(defaults_path=str(defaults), local_path=str(tmp_path / "local.yaml"))

    assert out["dag_manager"]["max_job_attempts"] == 5
    assert out["dag_manager"]["job_start_sla"] == "15m"


def test_load_defaults_and_local(tmp_path: Path, project_like_config_defaults_yaml, project_like_config_local_yaml):
    """
    Verifica que overrides locais substituem apenas as chaves declaradas.

    Invariantes:
        - Chaves sobrescritas assumem o valor local
        - Chaves não declaradas no local preservam o default
        - Seções aninhadas (`state_store`) são preservadas
    """
    _require_imports()
    defaults = tmp_path / "defaults.yaml"
    local = tmp_path / "local.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")
    local.write_text(project_like_config_local_yaml, encoding="utf-8")

    out = load_config(defaults_path=str(defaults), local_path=str(local))

    section = out["dag_manager"]
    assert section["max_job_attempts"] == 3
    assert section["default_failure_option"] == "FINISH_ALL_POSSIBLE"
    assert section["job_start_sla"] == "15m"
    assert section["failed_state_store"] == {"type": "memory"}


def test_load_json_local(tmp_path: Path, project_like_config_defaults_yaml):
    _require_imports()
    defaults = tmp_path / "defaults.yaml"
    local = tmp_path / "local.json"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")
    local.write_text('{"dag_manager": {"poll_interval": 2}}', encoding="utf-8")

    out = load_config(defaults_path=defaults, local_path=local)
    assert out["dag_manager"]["poll_interval"] == 2


def test_empty_file_is_empty_config(tmp_path: Path):
    _require_imports()
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text("", encoding="utf-8")
    assert load_config(defaults_path=defaults) == {}


def test_invalid_root_type_raises(tmp_path: Path):
    _require_imports()
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(InvalidConfigRootTypeError):
        load_config(defaults_path=str(defaults), local_path=None)


def test_unsupported_extension_raises(tmp_path: Path):
    _require_imports()
    defaults = tmp_path / "defaults.toml"
    defaults.write_text("a = 1\n", encoding="utf-8")
    with pytest.raises(UnsupportedConfigFormatError):
        load_config(defaults_path=str(defaults), local_path=None)


def test_repository_defaults_file_is_loadable():
    _require_imports()
    out = load_config(defaults_path=REPO_DEFAULTS)
    assert out["dag_manager"]["max_job_attempts"] == 5
    assert out["dag_manager"]["failed_state_store"]["type"] == "memory"
