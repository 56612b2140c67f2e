"""
Core modules for Note Forge.

This package contains the generation pipeline: template catalog, prompt
building, coin pricing, the billing ledger protocol and the orchestrator.
"""
