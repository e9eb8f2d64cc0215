from finhub.models.api_cache import ApiCache
from finhub.models.base import Base
from finhub.models.stock_peer import StockPeer
from finhub.models.waitlist import WaitlistEmail

__all__ = ["ApiCache", "Base", "StockPeer", "WaitlistEmail"]
