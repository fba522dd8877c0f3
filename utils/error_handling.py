import functools
import logging
from utils.exceptions import WorkflowException

def handle_engine_errors(operation_name: str):
    """
    Decorator for consistent error reporting in engines.

    Workflow exceptions are re-raised as they are. Anything else (typically an
    error from scikit-learn or pandas) is logged with its traceback and then
    re-raised unchanged so callers see the original exception type.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except WorkflowException:
                raise
            except Exception as e:
                logger = args[0].logger if args and hasattr(args[0], 'logger') else logging.getLogger()
                logger.error(f"{operation_name} failed: {e}", exc_info=True)
                raise
        return wrapper
    return decorator
