from .base import CandidateGenerator
from .collaborative import CollaborativeGenerator
from .content_based import ContentBasedGenerator
from .trending import TrendingGenerator

__all__ = [
    "CandidateGenerator",
    "CollaborativeGenerator",
    "ContentBasedGenerator",
    "TrendingGenerator",
]
