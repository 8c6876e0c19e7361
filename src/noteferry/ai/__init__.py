from .cache import AIResultCache
from .client import LLMClient
from .schemas import AIResult, Categorization, RawExtraction

__all__ = ["AIResult", "AIResultCache", "Categorization", "LLMClient", "RawExtraction"]
