"""Tests for market data models."""

from pocket_gateway.market.models import (
    AssetDescriptor,
    AuthMode,
    Candle,
    Credentials,
    PriceUpdate,
)


class TestCandle:
    def test_long_form(self):
        candle = Candle.from_payload(
            {"asset": "EURUSD_otc", "timestamp": 100, "open": 1.1, "high": 1.3,
             "low": 1.0, "close": 1.2, "volume": 5}
        )
        assert candle == Candle("EURUSD_otc", 100.0, 1.1, 1.3, 1.0, 1.2, 5.0)

    def test_short_form(self):
        candle = Candle.from_payload({"asset": "BTCUSD_otc", "t": 5, "o": 1, "h": 3, "l": 0.5, "c": 2})
        assert candle.close == 2.0
        assert candle.timestamp == 5.0
        assert candle.volume is None

    def test_missing_close_is_rejected(self):
        assert Candle.from_payload({"asset": "EURUSD_otc", "open": 1.0}) is None

    def test_missing_asset_is_rejected(self):
        assert Candle.from_payload({"close": 1.0}) is None

    def test_asset_fallback(self):
        candle = Candle.from_payload({"close": 1.0}, asset="GBPUSD_otc")
        assert candle.asset == "GBPUSD_otc"

    def test_non_numeric_is_rejected(self):
        assert Candle.from_payload({"asset": "X", "close": "abc"}) is None

    def test_to_dict_omits_missing_volume(self):
        data = Candle("X", 1.0, 1.0, 1.0, 1.0, 1.0).to_dict()
        assert "volume" not in data
        assert data["close"] == 1.0


class TestAssetDescriptor:
    def test_parse(self):
        asset = AssetDescriptor.from_payload(
            {"symbol": "EURUSD", "enabled": False, "payout": 0.9, "otc": False}
        )
        assert asset == AssetDescriptor("EURUSD", enabled=False, payout=0.9, otc=False)

    def test_percentage_payout_normalized(self):
        asset = AssetDescriptor.from_payload({"symbol": "EURUSD", "payout": 85})
        assert asset.payout == 0.85

    def test_otc_inferred_from_symbol(self):
        assert AssetDescriptor.from_payload({"symbol": "EURUSD_otc"}).otc is True
        assert AssetDescriptor.from_payload({"symbol": "EURUSD"}).otc is False

    def test_explicit_kind_wins(self):
        assert AssetDescriptor.from_payload({"symbol": "EURUSD_otc", "otc": False}).otc is False

    def test_without_symbol(self):
        assert AssetDescriptor.from_payload({"payout": 0.9}) is None
        assert AssetDescriptor.from_payload("EURUSD") is None


class TestCredentials:
    def test_none(self):
        creds = Credentials()
        assert creds.mode is AuthMode.NONE
        assert not creds.authenticated
        assert creds.login_payload() is None

    def test_ssid_wins_over_password(self):
        creds = Credentials(ssid="abc", email="a@b.c", password="pw")
        assert creds.mode is AuthMode.SSID
        assert creds.login_payload() == {"ssid": "abc"}

    def test_password_needs_both_fields(self):
        assert Credentials(email="a@b.c").mode is AuthMode.NONE
        creds = Credentials(email="a@b.c", password="pw")
        assert creds.mode is AuthMode.PASSWORD
        assert creds.login_payload() == {"email": "a@b.c", "password": "pw"}


class TestPriceUpdate:
    def test_timestamp_ms(self):
        assert PriceUpdate("X", 1.0, timestamp=1707580800.5).timestamp_ms == 1707580800500
