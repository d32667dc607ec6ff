"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskKind, OperationalStatus)
- taxonomy.py: status labels per task kind and the label -> status rules
- titles.py: generated titles for automatic tasks
- ordering.py: per-collaborator queue ordering
- task_api.py: high-level operations used by the console and forms
"""
