import pytest

from app_config import load_config
from app_logging import clear_current_copy

TEST_CONFIG = """
trading:
  default_platform: hyperliquid
  scaling_mode: proportional
  order_timeout_seconds: 1
platforms:
  hyperliquid:
    default_minimum_notional: 12
  moonlander:
    default_minimum_notional: 12
    minimums:
      btc: 15
      "*": 14
  bare: {}
fallback_minimum_notional: 11
rebalance:
  delta_threshold_percent: 5.0
  poll_interval_seconds: 30
hyperliquid:
  api_url: http://hyperliquid.test/info
  price_cache_ttl_seconds: 3
  price_stale_after_seconds: 60
logging:
  level: DEBUG
"""


@pytest.fixture(autouse=True)
def app_config(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(TEST_CONFIG)
    config = load_config(config_path)
    yield config
    clear_current_copy()
