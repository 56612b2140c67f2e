# test_imports.py
import importlib

import pytest

MODULES = [
    "note_forge.api.app",
    "note_forge.cli.main",
    "note_forge.config.loader",
    "note_forge.config.logging_config",
    "note_forge.core.billing",
    "note_forge.core.orchestrator",
    "note_forge.demo.seed_demo_data",
    "note_forge.render",
    "note_forge.sdk",
    "note_forge.storage.repository",
]


@pytest.mark.parametrize("name", MODULES)
def test_module_imports(name):
    assert importlib.import_module(name) is not None


def test_public_sdk_exports():
    from note_forge.sdk import GenerationClient, GenerationResult

    assert GenerationClient.__name__ == "GenerationClient"
    assert GenerationResult.__name__ == "GenerationResult"
