"""Marketing repositories package."""

from modules.marketing.repositories.django_repository import MarketingDjangoRepository
from modules.marketing.repositories.interfaces import IMarketingRepository

__all__ = ["IMarketingRepository", "MarketingDjangoRepository"]
