"""
Task subsystem.

Components:
- task_models.py: data structures (Task, AgentConfig, StatusUpdate, work queue types)
- task_store.py: SQLite-backed storage with per-row version stamps and bounded history
- overdue.py: immediate and monitoring overdue policies
- work_queue.py / agent_context.py: per-agent pull views and their rendered text
- task_manager.py: WorkManager, the operations the rest of the app calls
"""
