"""Unit tests for data models and connector config."""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from hubspot_sync.errors import ConfigError
from hubspot_sync.models.config import ConnectorConfig
from hubspot_sync.models.raw import MISSING_TIMESTAMP, RawRecord, is_engagement_type
from tests.conftest import api_item


class TestRawRecord:
    """Tests for RawRecord model."""

    def test_from_api(self) -> None:
        """from_api keeps property strings and parses the record timestamps."""
        item = api_item("42", {"dealname": "Acme", "amount": 100, "blank": None}, archived=True)
        item["associations"] = {"contacts": {"results": [{"id": "c1", "type": "deal_to_contact"}]}}
        raw = RawRecord.from_api(item, "deals")
        assert raw.id == "42"
        assert raw.object_type == "deals"
        assert raw.properties == {"dealname": "Acme", "amount": "100", "blank": None}
        assert raw.created_at == datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)
        assert raw.archived is True
        assert raw.associations.contacts == ["c1"]
        assert raw.associations.companies == []

    def test_from_api_missing_id(self) -> None:
        raw = RawRecord.from_api(api_item(None), "deals")
        assert raw.id is None

    def test_from_api_single_timestamp_used_for_both(self) -> None:
        item = {"id": "1", "properties": {}, "updatedAt": "2024-02-01T00:00:00Z"}
        raw = RawRecord.from_api(item, "contacts")
        assert raw.created_at == raw.updated_at

    def test_from_api_without_timestamps_uses_epoch(self) -> None:
        raw = RawRecord.from_api({"id": "1", "properties": {}}, "deals")
        assert raw.created_at == MISSING_TIMESTAMP
        assert raw.updated_at == MISSING_TIMESTAMP

    def test_clean_properties_and_get(self) -> None:
        raw = RawRecord.from_api(api_item("1", {"a": "x", "b": "", "c": None}), "deals")
        assert raw.clean_properties() == {"a": "x"}
        assert raw.get("a") == "x"
        assert raw.get("b") is None
        assert raw.get("missing") is None

    def test_record_key(self) -> None:
        """Standard objects key by id; engagements by (id, object type)."""
        assert RawRecord.from_api(api_item("1"), "deals").record_key == "1"
        assert RawRecord.from_api(api_item("1"), "emails").record_key == ("1", "emails")

    def test_is_frozen(self) -> None:
        raw = RawRecord.from_api(api_item("1"), "deals")
        with pytest.raises(ValueError):
            raw.id = "2"

    def test_accepts_camel_case_aliases(self) -> None:
        raw = RawRecord.model_validate(
            {"id": "1", "objectType": "tickets", "createdAt": "2024-01-01T00:00:00Z", "updatedAt": "2024-01-02T00:00:00Z"}
        )
        assert raw.object_type == "tickets"

    def test_is_engagement_type(self) -> None:
        assert is_engagement_type("calls")
        assert is_engagement_type("engagements")
        assert not is_engagement_type("deals")


class TestConnectorConfig:
    """Tests for ConnectorConfig parsing and loaders."""

    def test_defaults(self) -> None:
        config = ConnectorConfig.parse({"auth": {"type": "bearer", "token": "abc"}})
        assert config.base_url == "https://api.hubapi.com"
        assert config.page_size == 100
        assert config.rate_limit.requests_per_second == 10
        assert config.rate_limit.burst_capacity == 10
        assert config.retry.max_attempts == 5

    def test_snake_case_names_accepted(self) -> None:
        config = ConnectorConfig.parse(
            {"auth": {"token": "abc"}, "rate_limit": {"requests_per_second": 4, "burst_capacity": 2}, "page_size": 50}
        )
        assert config.rate_limit.requests_per_second == 4
        assert config.page_size == 50

    def test_base_url_trailing_slash_stripped(self) -> None:
        config = ConnectorConfig.parse({"auth": {"token": "abc"}, "baseUrl": "https://eu1.hubapi.test/"})
        assert config.base_url == "https://eu1.hubapi.test"

    def test_base_url_must_be_http(self) -> None:
        with pytest.raises(ConfigError):
            ConnectorConfig.parse({"auth": {"token": "abc"}, "baseUrl": "ftp://x"})

    def test_token_with_whitespace_rejected(self) -> None:
        with pytest.raises(ConfigError):
            ConnectorConfig.parse({"auth": {"token": "pat na1"}})

    def test_from_env(self) -> None:
        env = {
            "HUBSPOT_TOKEN": "pat-env",
            "HUBSPOT_REQUESTS_PER_SECOND": "5",
            "HUBSPOT_BURST_CAPACITY": "3",
            "HUBSPOT_PAGE_SIZE": "25",
        }
        config = ConnectorConfig.from_env(env)
        assert config.auth.token == "pat-env"
        assert config.rate_limit.requests_per_second == 5
        assert config.rate_limit.burst_capacity == 3
        assert config.page_size == 25

    def test_from_env_requires_token(self) -> None:
        with pytest.raises(ConfigError, match="HUBSPOT_TOKEN"):
            ConnectorConfig.from_env({})

    def test_from_yaml(self) -> None:
        """from_yaml accepts a top-level hubspot: key."""
        yaml_content = """
hubspot:
  auth:
    type: bearer
    token: pat-yaml
  rateLimit:
    requestsPerSecond: 2
    burstCapacity: 4
  pageSize: 10
"""
        with tempfile.NamedTemporaryFile(suffix=".yaml", delete=False) as f:
            Path(f.name).write_text(yaml_content)
            config = ConnectorConfig.from_yaml(f.name)
            Path(f.name).unlink()
        assert config.auth.token == "pat-yaml"
        assert config.rate_limit.burst_capacity == 4
        assert config.page_size == 10

    def test_from_yaml_token_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A token omitted from the file is read from HUBSPOT_TOKEN."""
        monkeypatch.setenv("HUBSPOT_TOKEN", "pat-from-env")
        yaml_content = """
auth:
  type: bearer
pageSize: 20
"""
        with tempfile.NamedTemporaryFile(suffix=".yaml", delete=False) as f:
            Path(f.name).write_text(yaml_content)
            config = ConnectorConfig.from_yaml(f.name)
            Path(f.name).unlink()
        assert config.auth.token == "pat-from-env"
        assert config.page_size == 20

    def test_from_yaml_without_token_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("HUBSPOT_TOKEN", raising=False)
        with tempfile.NamedTemporaryFile(suffix=".yaml", delete=False) as f:
            Path(f.name).write_text("auth:\n  type: bearer\n")
            with pytest.raises(ConfigError):
                ConnectorConfig.from_yaml(f.name)
            Path(f.name).unlink()
