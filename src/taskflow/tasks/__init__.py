"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, TimeTracking, TaskNode)
- task_tree.py: flat list -> tree (depth, children), cycle prevention
- task_guard.py: rules for moving a task to Done
- time_account.py: start / pause / elapsed per task
- time_stats.py: time totals per task and status over a window
- task_csv.py: CSV export / import with time tracking
- task_board.py: immutable snapshot with validated mutations
- task_store.py: SQLite-backed storage
- attachments.py: attachment lines embedded in descriptions
"""
