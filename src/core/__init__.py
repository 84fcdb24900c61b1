"""
Core Module - cross-cutting helpers shared by the API and CLI entry points.

Components:
- logging_config: loguru sink setup
"""
