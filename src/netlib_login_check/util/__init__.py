from .naming import safe_name

__all__ = ["safe_name"]
