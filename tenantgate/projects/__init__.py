"""Projects module."""

from tenantgate.projects.service import ProjectService, get_project_service

__all__ = ["ProjectService", "get_project_service"]
