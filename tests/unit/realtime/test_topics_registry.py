"""Unit tests for topic resolution and the connection registry."""
import pytest

from cryptosense.realtime.registry import ConnectionRegistry
from cryptosense.realtime.topics import TopicResolver
from fakes import FakeConnection


@pytest.fixture
def resolver():
    return TopicResolver(["BTC", "ETH", "SOL"], ["USDT", "USDC"])


class TestTopicResolver:

    def test_assets_are_normalized_and_deduplicated(self, resolver):
        assert resolver.resolve("prices", ["BTC", "btc", "XYZ"]) == (["BTC"], ["price:BTC"])

    def test_empty_list_selects_broad_topic(self, resolver):
        assert resolver.resolve("prices", []) == ([], ["prices"])
        assert resolver.resolve("funding", None) == ([], ["funding"])

    def test_all_invalid_selects_nothing(self, resolver):
        assert resolver.resolve("prices", ["XYZ", "DOGE"]) == ([], [])

    def test_stablecoins_use_their_own_allow_list(self, resolver):
        assert resolver.resolve("stablecoins", ["usdt", "BTC"]) == (["USDT"], ["stablecoin:USDT"])

    def test_room_only_types(self, resolver):
        assert resolver.resolve("liquidations", ["BTC"]) == ([], ["liquidations"])
        assert resolver.resolve("sentiment") == ([], ["sentiment"])
        assert resolver.resolve("correlations", ["BTC"]) == ([], ["correlations"])

    def test_unknown_type(self, resolver):
        with pytest.raises(ValueError):
            resolver.resolve("orderbooks", ["BTC"])


class TestConnectionRegistry:

    def test_subscribe_is_idempotent(self):
        registry = ConnectionRegistry()
        conn = FakeConnection("c1")
        registry.register(conn)

        assert registry.subscribe("c1", ["price:BTC", "prices"]) == ["price:BTC", "prices"]
        assert registry.subscribe("c1", ["price:BTC"]) == []
        assert registry.topics_for("c1") == {"price:BTC", "prices"}

    def test_subscribers_are_unique_across_topics(self):
        registry = ConnectionRegistry()
        both, only_symbol = FakeConnection("both"), FakeConnection("symbol")
        registry.register(both)
        registry.register(only_symbol)
        registry.subscribe("both", ["prices", "price:BTC"])
        registry.subscribe("symbol", ["price:BTC"])

        members = registry.subscribers(["prices", "price:BTC"])

        assert sorted(conn.id for conn in members) == ["both", "symbol"]

    def test_disconnect_cleans_every_room(self):
        registry = ConnectionRegistry()
        registry.register(FakeConnection("c1"))
        registry.subscribe("c1", ["prices", "funding:ETH"])

        assert registry.disconnect("c1") == {"prices", "funding:ETH"}
        assert "c1" not in registry
        assert registry.subscribers(["prices", "funding:ETH"]) == []
        assert registry.stats() == {"connections": 0, "topics": {}}

    def test_unsubscribe_removes_empty_rooms(self):
        registry = ConnectionRegistry()
        registry.register(FakeConnection("c1"))
        registry.subscribe("c1", ["price:BTC", "price:ETH"])

        assert registry.unsubscribe("c1", ["price:BTC", "price:SOL"]) == ["price:BTC"]
        assert registry.stats()["topics"] == {"price:ETH": 1}

    def test_subscribe_unknown_connection(self):
        registry = ConnectionRegistry()
        assert registry.subscribe("ghost", ["prices"]) == []
        assert len(registry) == 0
