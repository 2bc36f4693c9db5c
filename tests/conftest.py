import pytest

from dispatch_engine.config import GatewayCredentials, Settings
from mock_provider import app as mock_provider
from mock_provider.app import MOCK_BASE_URL


@pytest.fixture(autouse=True)
def reset_mock_provider():
    mock_provider.reset()
    yield
    mock_provider.reset()


@pytest.fixture
def credentials() -> GatewayCredentials:
    return GatewayCredentials(
        bulksms_token_id="token-id",
        bulksms_token_secret="token-secret",
        bulkgate_api_key="bearer-token",
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        service_name="sms-dispatch-engine-test",
        log_level="WARNING",
        bulksms_token_id="token-id",
        bulksms_token_secret="token-secret",
        bulksms_base_url=MOCK_BASE_URL,
        bulkgate_api_key="bearer-token",
        bulkgate_v2_base_url=f"{MOCK_BASE_URL}/v2.0",
        bulkgate_v1_base_url=f"{MOCK_BASE_URL}/api/1.0",
        bulkgate_info_url=f"{MOCK_BASE_URL}/api/2.0/advanced/info",
        provider_timeout_seconds=2.0,
        gateway_override="none",
        gateway_override_expires_at=None,
        angola_local_heuristic=True,
        admin_token="admin-secret",
        allowed_origins=[],
    )
