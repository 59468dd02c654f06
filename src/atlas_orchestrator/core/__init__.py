# src/atlas_orchestrator/core/__init__.py
"""
Core do Atlas Orchestrator.

Este pacote contém a implementação canônica do control loop e de suas
estruturas de apoio, independente de transporte (status source e executores
são injetados via protocolos).

O core é projetado para ser:
    - determinístico por tick
    - testável de forma isolada (relógio e colaboradores injetáveis)
    - tolerante a falhas de colaboradores e de persistência

Componentes principais:
    - config       → resolução de configuração e settings do DagManager
    - dag          → modelo de DAG e validação estrutural
    - manager      → DagManager, ManagerContext, ports e runner
    - traceability → vocabulário e registro de eventos de flow/job

Limites explícitos:
    - Não contém adapters concretos de executores
    - Não depende de CLI ou serviços externos

Este pacote existe como a fonte de verdade operacional do Atlas Orchestrator.
"""
