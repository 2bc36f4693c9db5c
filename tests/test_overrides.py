from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from dispatch_engine.overrides import GatewayOverride, GatewayOverrideStore, OverrideSetting


def test_default_store_has_no_override():
    store = GatewayOverrideStore()
    assert store.current() == GatewayOverride.NONE
    assert store.snapshot().override_type == GatewayOverride.NONE


def test_set_replaces_the_whole_setting():
    store = GatewayOverrideStore()
    first = store.set(GatewayOverride.FORCE_BULKGATE, reason="BulkSMS outage")
    assert store.current() == GatewayOverride.FORCE_BULKGATE
    assert first.reason == "BulkSMS outage"
    assert first.updated_at is not None

    store.set(GatewayOverride.NONE)
    assert store.current() == GatewayOverride.NONE
    assert store.snapshot().reason is None


def test_expired_override_reads_as_none():
    now = datetime.now(timezone.utc)
    store = GatewayOverrideStore(
        OverrideSetting(override_type=GatewayOverride.FORCE_BULKSMS, expires_at=now - timedelta(minutes=1))
    )
    assert store.current() == GatewayOverride.NONE
    # The stored value is kept for inspection.
    assert store.snapshot().override_type == GatewayOverride.FORCE_BULKSMS


def test_override_before_expiry_is_effective():
    now = datetime.now(timezone.utc)
    store = GatewayOverrideStore()
    store.set(GatewayOverride.FORCE_BULKSMS, expires_at=now + timedelta(hours=1))
    assert store.current() == GatewayOverride.FORCE_BULKSMS
    assert store.current(now + timedelta(hours=2)) == GatewayOverride.NONE


def test_naive_expiry_is_read_as_utc():
    setting = OverrideSetting(
        override_type=GatewayOverride.FORCE_BULKGATE,
        expires_at=datetime(2000, 1, 1, 12, 0, 0),
    )
    assert setting.is_expired(datetime(2000, 1, 1, 12, 0, 1, tzinfo=timezone.utc))
    assert not setting.is_expired(datetime(2000, 1, 1, 11, 59, 59, tzinfo=timezone.utc))


def test_from_settings():
    settings = SimpleNamespace(gateway_override=" FORCE_BULKGATE ", gateway_override_expires_at=None)
    store = GatewayOverrideStore.from_settings(settings)
    assert store.current() == GatewayOverride.FORCE_BULKGATE
    assert store.snapshot().reason == "configured"
