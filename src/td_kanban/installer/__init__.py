"""Installer components.

- Settings loaded from .env
- Structured logging
- Preflight checks, template emission, idempotent resource resolution
- Placeholder substitution in the emitted workflow
"""
