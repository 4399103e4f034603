# Infrastructure Adapters Package
from .codeforces import CodeforcesClient

__all__ = ["CodeforcesClient"]
