"""
Workflow Module
===============

Responsibility:
- Sequencing of the data, split, baseline, search, training, evaluation
  and interpretation stages for one run.
"""

from .workflow_runner import WorkflowRunner, WorkflowResult

__all__ = ['WorkflowRunner', 'WorkflowResult']
