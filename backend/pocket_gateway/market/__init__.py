"""Market data core for the gateway.

Public API:
    MarketCache         - Latest candles, prices and balance per asset
    BroadcastHub        - Fans cache changes out to WebSocket subscribers
    UpstreamSession     - The single reconnecting broker connection
    AssetSelector       - Applies a SelectionPolicy to the broker asset list
    MarketGateway       - Aggregate of the above plus the event dispatch table
    create_gateway      - Factory that assembles a gateway from settings
    create_stream_router - FastAPI router factory for the WebSocket endpoint
"""

from .cache import CacheSnapshot, MarketCache
from .factory import create_gateway, create_selection_policy
from .gateway import MarketGateway
from .hub import BroadcastHub, Subscriber
from .interface import SelectionPolicy
from .models import AssetDescriptor, Candle, ConnectionState, Credentials, PriceUpdate
from .selector import AllowListPolicy, AssetSelector, RankedPolicy
from .session import AuthenticationError, UpstreamSession
from .stream import create_stream_router

__all__ = [
    "AllowListPolicy",
    "AssetDescriptor",
    "AssetSelector",
    "AuthenticationError",
    "BroadcastHub",
    "CacheSnapshot",
    "Candle",
    "ConnectionState",
    "Credentials",
    "MarketCache",
    "MarketGateway",
    "PriceUpdate",
    "RankedPolicy",
    "SelectionPolicy",
    "Subscriber",
    "UpstreamSession",
    "create_gateway",
    "create_selection_policy",
    "create_stream_router",
]
