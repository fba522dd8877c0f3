"""
Custom exception hierarchy for the Forest Tuning Workflow.
"""

class WorkflowException(Exception):
    """Base exception for all workflow errors."""
    pass

class ConfigurationError(WorkflowException):
    """Configuration validation failed."""
    pass

class DataValidationError(WorkflowException):
    """Dataset or input sequence validation failed."""
    pass

class ModelTrainingError(WorkflowException):
    """Model training failed."""
    pass

class PredictionError(WorkflowException):
    """Prediction generation failed."""
    pass
