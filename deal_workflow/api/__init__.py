"""
API module for Deal Workflow.

Versioned in-memory/JSON record storage, the workflow service on top of
it, and the FastAPI application (``deal_workflow.api.server:app``).
"""

from .service import WorkflowService, get_service
from .storage import RecordKind, WorkflowStorage

__all__ = ["WorkflowService", "get_service", "RecordKind", "WorkflowStorage"]
