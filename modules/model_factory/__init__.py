from .model_factory import ModelFactory

__all__ = ['ModelFactory']
