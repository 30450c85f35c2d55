"""
Module registry and dependency resolution.

Holds the static graph of deployable modules and derives a safe,
deterministic deployment order from it.
"""
