"""
Deal Workflow

Multi-party approval workflow for startup investment deals.

Modules:
  core    Offer models, approval gates, stage transitions, mandate
          filtering, contact reconciliation, recommendation fan-out
  api     Record store, workflow service and FastAPI application

Usage:
    from deal_workflow.core import Offer, ActingRole, Decision, apply_decision
    from deal_workflow.api import WorkflowService, WorkflowStorage
"""

__version__ = "0.3.0"
