# src/atlas_orchestrator/core/config/__init__.py

"""
Camada de configuração do Atlas Orchestrator.

Este pacote contém as estruturas e utilitários responsáveis por carregar,
mesclar, identificar e interpretar a configuração do DagManager.

Responsabilidades do pacote:
    - Carregamento de arquivos de configuração (defaults + overrides locais)
    - Resolução de configuração final via deep-merge determinístico
    - Geração de hash canônico para rastreabilidade
    - Interpretação tipada da seção `dag_manager` (durações, limites, stores)

Princípios fundamentais:
    - Overrides são sempre explícitos
    - Erros estruturais de arquivo são fatais no carregamento
    - Valores malformados são degradados para o default com warning

Limites explícitos:
    - Não executa o control loop
    - Não acessa o status de jobs

Este pacote existe para garantir previsibilidade
e rastreabilidade na resolução de configuração.
"""
