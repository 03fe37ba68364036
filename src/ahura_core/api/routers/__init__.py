"""API routers for Ahurasense Core."""

from . import board, issues, projects, sprints, users, workspaces

__all__ = ["board", "issues", "projects", "sprints", "users", "workspaces"]
