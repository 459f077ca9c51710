"""Workspaces module."""

from tenantgate.workspaces.service import WorkspaceService, get_workspace_service

__all__ = ["WorkspaceService", "get_workspace_service"]
