"""
workforce_core

Top-level package for the workforce identity provisioning and payment ledger service.

Responsibilities:
- Expose package version metadata.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
