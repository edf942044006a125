"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskList, Note, enums)
- task_status.py: status state machine side effects
- task_store.py: in-memory TaskGraph persisted through a storage gateway
- task_scheduler.py: next-task selection + asyncio runner loop
- task_breakdown.py: goal decomposition with an approval gate
- task_codec.py: JSON / markdown checklist import-export
- task_api.py: small high-level helpers used by the rest of the app
"""
