"""
License binding management.
"""

from .bindings import BindingManager, BindingStatus, binding_key

__all__ = ["BindingManager", "BindingStatus", "binding_key"]
