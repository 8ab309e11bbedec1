"""
gitpack Core - Execution primitives independent of plugins.

This module contains:
- Runner: Bounded-parallel external process execution
- Scheduler: Two-stage (now/later) callback execution
- Notify: User notification channel
- Utils: Helper functions
"""

__all__ = []
