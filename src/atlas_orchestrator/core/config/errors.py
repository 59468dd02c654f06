# src/atlas_orchestrator/core/config/errors.py
"""
Exceções canônicas da camada de configuração do Atlas Orchestrator.

Este módulo define a hierarquia oficial de exceções utilizadas durante
o carregamento de arquivos de configuração, a resolução via deep-merge
e a interpretação de valores consumidos pelo DagManager (durações de SLA,
opções de falha de flow).

Princípios fundamentais:
    - Exceções são tipadas e semânticas
    - Erros estruturais de arquivo são fatais no carregamento
    - Valores malformados consumidos em runtime são capturados no ponto
      de uso e degradados para o default (nunca abortam um tick)

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa falha de job ou de flow

Limites explícitos:
    - Não executa o control loop
    - Não realiza fallback por conta própria (quem captura decide)

Este módulo existe para garantir clareza e previsibilidade
no tratamento de erros de configuração.
"""

from __future__ import annotations


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Atlas Orchestrator.

    Permite captura genérica de falhas de configuração, separando-as de
    falhas de execução de jobs e de persistência de checkpoints.
    """


class DefaultsNotFoundError(ConfigError):
    """
    Exceção levantada quando o arquivo de configuração base (defaults)
    não é encontrado no caminho especificado.

    Decisões arquiteturais:
        - O arquivo de defaults é obrigatório
        - Sem defaults não existe configuração efetiva válida
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Exceção levantada quando o formato do arquivo de configuração
    não é suportado pelo loader.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """
    Exceção levantada quando o conteúdo raiz da configuração
    não é um dicionário (`dict`).
    """


class ConfigTypeConflictError(ConfigError):
    """
    Exceção levantada quando ocorre conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"dag_manager": {"max_job_attempts": 5}}
        - override: {"dag_manager": "off"}

    Invariantes:
        - Nenhum merge parcial é produzido em caso de conflito
    """


class MalformedDurationError(ConfigError):
    """
    Exceção levantada quando um valor de duração (SLA, intervalo de poll)
    não pode ser interpretado.

    Formatos aceitos:
        - int/float → segundos
        - string "<n><unidade>" com unidade em {ms, s, m, h, d}

    Limites explícitos:
        - Não decide o default; o chamador captura e degrada
    """


class InvalidFailureOptionError(ConfigError):
    """
    Exceção levantada quando a opção de falha declarada para um flow
    não pertence ao conjunto fechado {FINISH_RUNNING, FINISH_ALL_POSSIBLE}.
    """
