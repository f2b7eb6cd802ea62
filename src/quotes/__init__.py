from .models import QuoteRecord
from .service import QuoteService, QuoteServiceConfig
from .store import InMemoryQuoteStore, QuoteStore

__all__ = [
    "QuoteRecord",
    "QuoteService",
    "QuoteServiceConfig",
    "QuoteStore",
    "InMemoryQuoteStore",
]
