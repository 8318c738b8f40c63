"""Tests for settings and the gateway factory."""

import pytest

from pocket_gateway.config import DEFAULT_MAIN_ASSETS, GatewaySettings
from pocket_gateway.market.factory import create_gateway, create_selection_policy
from pocket_gateway.market.models import AuthMode
from pocket_gateway.market.selector import AllowListPolicy, RankedPolicy


class TestSettingsFromEnv:
    def test_defaults(self):
        settings = GatewaySettings.from_env({})
        assert settings.asset_policy == "allowlist"
        assert settings.main_assets == DEFAULT_MAIN_ASSETS
        assert settings.reconnect_delay == 5.0
        assert settings.heartbeat_interval == 25.0
        assert settings.refresh_interval == 60.0
        assert settings.port == 3000
        assert settings.credentials.mode is AuthMode.NONE

    def test_ssid_takes_precedence(self):
        settings = GatewaySettings.from_env(
            {"POCKET_SSID": "abc", "POCKET_EMAIL": "a@b.c", "POCKET_PASSWORD": "pw"}
        )
        assert settings.credentials.mode is AuthMode.SSID

    def test_email_and_password(self):
        settings = GatewaySettings.from_env({"POCKET_EMAIL": "a@b.c", "POCKET_PASSWORD": "pw"})
        assert settings.credentials.mode is AuthMode.PASSWORD

    def test_blank_values_use_defaults(self):
        settings = GatewaySettings.from_env({"POCKET_SSID": "  ", "PORT": ""})
        assert settings.ssid is None
        assert settings.port == 3000

    def test_asset_list_and_numbers(self):
        settings = GatewaySettings.from_env({
            "MAIN_ASSETS": "EURUSD_otc, BTCUSD_otc,,",
            "ASSET_POLICY": "Ranked",
            "MIN_PAYOUT": "0.9",
            "CANDLE_COUNT": "10",
        })
        assert settings.main_assets == ("EURUSD_otc", "BTCUSD_otc")
        assert settings.asset_policy == "ranked"
        assert settings.min_payout == 0.9
        assert settings.candle_count == 10

    def test_bad_number_raises(self):
        with pytest.raises(ValueError, match="PORT"):
            GatewaySettings.from_env({"PORT": "http"})

    def test_empty_subscribe_event_disables_ticks(self):
        settings = GatewaySettings.from_env({"SUBSCRIBE_EVENT": ""})
        assert create_selection_policy(settings).subscribe_event is None


class TestFactory:
    def test_allowlist_policy(self):
        policy = create_selection_policy(GatewaySettings(main_assets=("EURUSD_otc",)))
        assert isinstance(policy, AllowListPolicy)
        assert policy.symbols == {"EURUSD_otc"}
        assert policy.subscribe_event == "subscribe"

    def test_ranked_policy(self):
        policy = create_selection_policy(
            GatewaySettings(asset_policy="ranked", otc_limit=3, standard_limit=2, min_payout=0.8)
        )
        assert isinstance(policy, RankedPolicy)
        assert (policy.otc_limit, policy.standard_limit, policy.min_payout) == (3, 2, 0.8)
        assert policy.subscribe_event is None

    def test_tick_subscribe_event_override(self):
        policy = create_selection_policy(
            GatewaySettings(asset_policy="ranked", subscribe_event="tick-subscribe")
        )
        assert policy.subscribe_event == "tick-subscribe"

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            create_selection_policy(GatewaySettings(asset_policy="random"))

    def test_gateway_wiring(self, settings, connector):
        gateway = create_gateway(settings, connect=connector)
        assert gateway.session.credentials.mode is AuthMode.NONE
        assert set(gateway.dispatch_table()) == {
            "assets_status", "candles", "tick", "balance_get", "balance", "balance_update",
        }
        assert not gateway.connected
        assert len(gateway.hub) == 0
