from .iris_client import IrisClient


__all__ = [
    "IrisClient",
]
