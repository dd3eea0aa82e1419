"""
Tests for the availability gate and for the store's behavior while it is closed.
"""

from unittest.mock import MagicMock

import pytest

from conversation_store.configs import StoreSettings
from conversation_store.models import AvailabilityGate, DocumentStoreError
from conversation_store.services import ConversationStore


class TestAvailabilityGate:

    def test_missing_configuration_closes_gate(self):
        factory = MagicMock()
        gate = AvailabilityGate(StoreSettings(endpoint="mongodb://host", key="k"), store_factory=factory)

        assert gate.initialize() is False
        assert gate.is_available() is False
        assert "COSMOS_DB_DATABASE_ID" in gate.error
        assert "COSMOS_DB_CONTAINER_ID" in gate.error
        assert "COSMOS_DB_ENDPOINT" not in gate.error
        factory.assert_not_called()

    def test_closed_gate_is_permanent(self):
        factory = MagicMock()
        gate = AvailabilityGate(StoreSettings(), store_factory=factory)
        gate.initialize()

        assert gate.initialize() is False
        factory.assert_not_called()

    def test_configured_gate_opens(self, settings, document_store):
        gate = AvailabilityGate(settings, store_factory=lambda _: document_store)

        assert gate.initialize() is True
        assert gate.is_available() is True
        assert gate.store is document_store
        assert gate.config_info() == {
            "available": True,
            "initialized": True,
            "database": "nova",
            "container": "conversations",
            "partitionKey": "/userId",
            "error": None,
        }

    def test_config_info_has_no_secrets(self, settings, document_store):
        gate = AvailabilityGate(settings, store_factory=lambda _: document_store)
        gate.initialize()

        assert "secret-key" not in str(gate.config_info())

    def test_client_construction_failure_closes_gate(self, settings):
        def broken_factory(_):
            raise ValueError("invalid URI")

        gate = AvailabilityGate(settings, store_factory=broken_factory)

        assert gate.initialize() is False
        assert gate.is_available() is False
        assert "invalid URI" in gate.error

    @pytest.mark.asyncio
    async def test_probe_failure_closes_gate(self, settings, document_store):
        document_store.fail("probe", DocumentStoreError("unauthorized"))
        gate = AvailabilityGate(settings, store_factory=lambda _: document_store)
        gate.initialize()

        assert await gate.probe() is False
        assert gate.is_available() is False
        assert gate.config_info()["error"] == "Connectivity error: unauthorized"

    @pytest.mark.asyncio
    async def test_probe_runs_in_background(self, settings, document_store):
        gate = AvailabilityGate(settings, store_factory=lambda _: document_store)
        gate.initialize()

        task = gate.schedule_probe()
        assert gate.is_available() is True
        assert await task is True
        assert gate.schedule_probe() is task

    @pytest.mark.asyncio
    async def test_close_releases_client(self, settings, document_store):
        gate = AvailabilityGate(settings, store_factory=lambda _: document_store)
        gate.initialize()

        await gate.close()

        assert document_store.closed is True
        assert gate.is_available() is False


class TestDegradedMode:

    @pytest.fixture
    async def closed_store(self, clock):
        factory = MagicMock()
        conversation_store = ConversationStore(StoreSettings(), store_factory=factory, clock=clock)
        await conversation_store.open()
        yield conversation_store
        await conversation_store.close()
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_every_operation_returns_degraded_value(self, closed_store):
        assert closed_store.is_available() is False
        assert await closed_store.append("hola", "conv-1", "user-1") is None
        assert await closed_store.history("conv-1", "user-1") == []
        assert await closed_store.save_metadata("conv-1", "user-1", "Ana") is None
        assert await closed_store.get_metadata("conv-1", "user-1") is None
        assert await closed_store.record_activity("conv-1", "user-1") is False
        assert await closed_store.trim_messages("conv-1", "user-1", keep_last=1) == 0
        assert await closed_store.delete_conversation("conv-1", "user-1") is False

        stats = await closed_store.stats()
        assert stats.available is False
        assert stats.error.startswith("Missing store configuration")

        info = closed_store.config_info()
        assert info["available"] is False
        assert info["initialized"] is False

    @pytest.mark.asyncio
    async def test_failed_probe_degrades_without_store_calls(self, settings, document_store, clock):
        document_store.fail("probe")
        conversation_store = ConversationStore(settings, store_factory=lambda _: document_store, clock=clock)
        await conversation_store.open()
        await conversation_store.gate.probe()

        assert await conversation_store.append("hola", "conv-1", "user-1") is None
        assert await conversation_store.history("conv-1", "user-1") == []
        assert await conversation_store.record_activity("conv-1", "user-1") is False
        assert (await conversation_store.stats()).available is False
        assert set(document_store.calls) == {"probe"}

        await conversation_store.close()
