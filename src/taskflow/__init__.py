"""Taskflow — kanban boards and Scrum planning for users and guests.

The HTTP backend behind the boards and Scrum UI: every board, task,
sprint, story, and setting is owned by either a registered user or an
anonymous guest tracked by a cookie.
"""

__version__ = "0.1.0"
