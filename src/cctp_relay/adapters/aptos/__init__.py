from .adapter import AptosDestinationAdapter

__all__ = [
    "AptosDestinationAdapter",
]
