"""
expense_workflow -- approval workflow engine for expense reports.

Routes submitted reports through manager, sequential or parallel approval
chains and moves them to APPROVED or REJECTED, consistently under
concurrent approvers.  ``ApprovalWorkflowEngine`` in
``expense_workflow.services`` is the entry point.
"""

__version__ = "0.1.0"
