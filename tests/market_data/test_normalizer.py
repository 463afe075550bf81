"""Unit tests for DataNormalizer."""
import pytest

from cryptosense.core.exceptions import FeedMessageError
from cryptosense.core.models.enums import LiquidationSide
from cryptosense.market_data.normalizer import DataNormalizer


class TestDataNormalizer:
    """Test suite for DataNormalizer."""

    @pytest.fixture
    def normalizer(self):
        return DataNormalizer()

    def test_base_asset(self, normalizer):
        """Test quote suffix stripping."""
        assert normalizer.base_asset('BTCUSDT') == 'BTC'
        assert normalizer.base_asset('ethbusd') == 'ETH'
        assert normalizer.base_asset('SOL-USD') == 'SOL'
        assert normalizer.base_asset('USDT') == 'USDT'

    def test_binance_ticker_from_combined_stream(self, normalizer):
        message = {
            "stream": "btcusdt@ticker",
            "data": {"s": "BTCUSDT", "c": "43250.10", "p": "512.3", "P": "1.20",
                     "v": "12000.5", "h": "43800", "l": "42100", "E": 1709294400000},
        }

        update = normalizer.parse_binance_ticker(message)

        assert update.symbol == 'BTC'
        assert update.price == 43250.10
        assert update.change_percent_24h == 1.2
        assert update.timestamp == 1709294400000
        assert update.source == 'binance'

    def test_binance_ticker_missing_field(self, normalizer):
        with pytest.raises(FeedMessageError):
            normalizer.parse_binance_ticker({"s": "BTCUSDT", "c": "1"})

    def test_binance_ticker_non_numeric(self, normalizer):
        with pytest.raises(FeedMessageError):
            normalizer.parse_binance_ticker({"s": "BTCUSDT", "c": "n/a", "p": "0", "P": "0",
                                             "v": "0", "h": "0", "l": "0"})

    def test_mark_price(self, normalizer):
        update = normalizer.parse_binance_mark_price(
            {"s": "ETHUSDT", "r": "0.00010000", "T": 1709308800000, "p": "3401.2", "E": 1709294400000}
        )
        assert update.symbol == 'ETH'
        assert update.funding_rate == 0.0001
        assert update.next_funding_time == 1709308800000

    def test_force_order_side(self, normalizer):
        buy = normalizer.parse_binance_force_order(
            {"o": {"s": "BTCUSDT", "S": "BUY", "p": "40000", "q": "50", "T": 1}}
        )
        sell = normalizer.parse_binance_force_order(
            {"o": {"s": "BTCUSDT", "S": "SELL", "p": "40000", "q": "2", "T": 1}}
        )

        assert buy.side == LiquidationSide.LONG
        assert buy.total_value == 2_000_000
        assert sell.side == LiquidationSide.SHORT

    def test_coinbase_ticker(self, normalizer):
        update = normalizer.parse_coinbase_ticker({
            "type": "ticker", "product_id": "BTC-USD", "price": "44000", "open_24h": "40000",
            "volume_24h": "1500", "high_24h": "44500", "low_24h": "39800",
            "time": "2024-03-01T12:00:00.000000Z",
        })

        assert update.symbol == 'BTC'
        assert update.change_24h == 4000
        assert update.change_percent_24h == 10
        assert update.timestamp == 1709294400000
        assert update.source == 'coinbase'

    def test_coinbase_non_ticker_messages(self, normalizer):
        assert normalizer.parse_coinbase_ticker({"type": "subscriptions", "channels": []}) is None
        assert normalizer.parse_coinbase_ticker({"type": "heartbeat"}) is None

    def test_stablecoin(self, normalizer):
        update = normalizer.parse_stablecoin('usdc', {
            "lastPrice": "0.9990", "bidPrice": "0.9989", "askPrice": "0.9991",
            "bidQty": "100000", "askQty": "50000", "volume": "2500000",
        })

        assert update.symbol == 'USDC'
        assert update.deviation == pytest.approx(-0.1)
        assert update.liquidity == 150000
        assert update.spread == pytest.approx(0.02002, rel=1e-3)

    def test_fear_greed_timestamp_in_ms(self, normalizer):
        update = normalizer.parse_fear_greed(
            {"value": "25", "value_classification": "Extreme Fear", "timestamp": "1709251200"}
        )
        assert update.fear_greed_index == 25
        assert update.timestamp == 1709251200000

    def test_open_interest(self, normalizer):
        update = normalizer.parse_open_interest({"symbol": "SOLUSDT", "openInterest": "1234.5", "time": 7})
        assert update.symbol == 'SOL'
        assert update.open_interest == 1234.5
