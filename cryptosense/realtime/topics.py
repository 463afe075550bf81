"""Topic keys and subscription resolution for the realtime channel."""
from typing import Iterable, List, Optional, Sequence, Tuple

# Broad category topics
PRICES = "prices"
FUNDING = "funding"
LIQUIDATIONS = "liquidations"
SENTIMENT = "sentiment"
STABLECOINS = "stablecoins"
CORRELATIONS = "correlations"

SUBSCRIPTION_TYPES = (PRICES, FUNDING, LIQUIDATIONS, SENTIMENT, STABLECOINS, CORRELATIONS)

# Categories with per-symbol rooms, and the room prefix for each
_SYMBOL_PREFIX = {
    PRICES: "price",
    FUNDING: "funding",
    STABLECOINS: "stablecoin",
}


def price_topic(symbol: str) -> str:
    return f"price:{symbol.upper()}"


def funding_topic(symbol: str) -> str:
    return f"funding:{symbol.upper()}"


def stablecoin_topic(symbol: str) -> str:
    return f"stablecoin:{symbol.upper()}"


class TopicResolver:
    """Maps a subscription request onto allow-listed topic keys."""

    def __init__(self, price_symbols: Sequence[str], stablecoins: Sequence[str]):
        self.price_symbols = [s.upper() for s in price_symbols]
        self.stablecoins = [s.upper() for s in stablecoins]

    def allowed(self, sub_type: str) -> Optional[List[str]]:
        if sub_type in (PRICES, FUNDING):
            return self.price_symbols
        if sub_type == STABLECOINS:
            return self.stablecoins
        return None

    def filter_assets(self, sub_type: str, assets: Optional[Iterable]) -> List[str]:
        """Upper-cased, de-duplicated, allow-listed assets in request order."""
        allowed = self.allowed(sub_type)
        if allowed is None:
            return []
        valid: List[str] = []
        for asset in assets or []:
            if not isinstance(asset, str):
                continue
            symbol = asset.upper()
            if symbol in allowed and symbol not in valid:
                valid.append(symbol)
        return valid

    def resolve(self, sub_type: str, assets: Optional[Iterable] = None) -> Tuple[List[str], List[str]]:
        """Resolve ``(valid_assets, topics)`` for a subscription type.

        An empty or missing asset list selects the broad category topic.
        A non-empty list whose assets are all rejected selects nothing.

        Raises:
            ValueError: unknown subscription type
        """
        if sub_type not in SUBSCRIPTION_TYPES:
            raise ValueError(f"Unknown subscription type: {sub_type}")

        prefix = _SYMBOL_PREFIX.get(sub_type)
        if prefix is None:
            return [], [sub_type]

        requested = list(assets or [])
        if not requested:
            return [], [sub_type]

        valid = self.filter_assets(sub_type, requested)
        return valid, [f"{prefix}:{symbol}" for symbol in valid]
