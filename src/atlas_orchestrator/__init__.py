# src/atlas_orchestrator/__init__.py
"""
Atlas Orchestrator — control loop de execução de DAGs de flow executions.

Este pacote raiz define o namespace público do Atlas Orchestrator, o
componente de um serviço de orquestração de pipelines de dados que conduz
os jobs de cada flow execution da submissão ao estado terminal.

Princípios centrais:
    - Cada flow execution é um DAG explícito de jobs
    - O control loop é single-writer e avança por ticks determinísticos
    - Falha de job é dado (estado), nunca exceção
    - Todo estado relevante é checkpointado e recuperável após restart

Arquitetura em alto nível:
    - core.config       → carregamento, merge, hashing e settings tipados
    - core.dag          → tipos de job/flow, grafo e fábrica de DAGs
    - core.manager      → DagManager, contexto, ports e runner
    - core.traceability → timeline de eventos de flow e de job
    - persistence       → stores de checkpoint (memória e filesystem)

Limites explícitos:
    - Não executa jobs (o submitter entrega ao executor)
    - Não compila especificações de flow em planos de execução
    - Não expõe API HTTP/CLI

Este módulo existe para estabelecer o namespace
do Atlas Orchestrator.
"""

__version__ = "0.1.0"
