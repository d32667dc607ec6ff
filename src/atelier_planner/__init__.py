"""
Atelier planner: task lifecycle and scheduling engine for a small showroom team.

Subpackages:
- tasks: task model, status taxonomy, title synthesis, queue ordering
- agenda: appointments and conflict detection
- crm: clients and projects
- lifecycle: task/appointment binding and the project creation saga
- store: SQLite-backed entity store
- cli / connectors: console entrypoint and slash commands
"""

__version__ = "0.1.0"
