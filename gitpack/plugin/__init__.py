"""
gitpack Plugin System - Plugin specs and their reconciliation with disk.

This module handles:
- Plugin spec normalization
- Git command construction
- Lifecycle hooks execution
- Install, update and checkout pipeline
- Update reports and confirmation
"""

__all__ = []
