"""
Cross-entity synchronisation.

- binding.py: keeps a task and its calendar slot consistent
- promotion.py: follow-ups of a project creation (count, promote, close lead tasks)
"""
