"""
workforce_core.stores

Identity Store / Document Store contracts and their SQL-backed implementations.
"""

# Package marker; import contracts from `stores.base`, implementations from their modules.
