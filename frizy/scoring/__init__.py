from .compactor import compact
from .scorer import score

__all__ = ["compact", "score"]
