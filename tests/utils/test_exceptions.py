import pytest

from utils.exceptions import (
    WorkflowException,
    ConfigurationError,
    DataValidationError,
    ModelTrainingError,
    PredictionError,
)

@pytest.mark.parametrize("exc_class", [
    ConfigurationError,
    DataValidationError,
    ModelTrainingError,
    PredictionError,
])
def test_exception_hierarchy(exc_class):
    assert issubclass(exc_class, WorkflowException)
    with pytest.raises(WorkflowException, match="boom"):
        raise exc_class("boom")
