import pytest

from services.rules_loader import get_rules


@pytest.fixture(scope="session")
def rules():
    return get_rules("pt-BR")


@pytest.fixture
def pdca_candidate():
    """Plan/Do/Check/Act cluster with a single "padronizar" exit."""
    return {
        "processName": "Melhoria contínua",
        "nodes": [
            {"id": "start", "type": "start", "label": "Problema identificado"},
            {"id": "plan", "type": "task", "label": "Planejar melhoria"},
            {"id": "do", "type": "task", "label": "Executar melhoria"},
            {"id": "check", "type": "task", "label": "Verificar resultados"},
            {"id": "act", "type": "task", "label": "Corrigir desvios"},
            {"id": "std", "type": "task", "label": "Padronizar processo"},
            {"id": "end", "type": "end", "label": "Melhoria concluída"},
        ],
        "flows": [
            {"id": "f1", "source": "start", "target": "plan"},
            {"id": "f2", "source": "plan", "target": "do"},
            {"id": "f3", "source": "do", "target": "check"},
            {"id": "f4", "source": "check", "target": "act"},
            {"id": "f5", "source": "check", "target": "std"},
            {"id": "f6", "source": "std", "target": "end"},
            {"id": "f7", "source": "act", "target": "plan"},
        ],
    }
