"""Shared fixtures: a small inventory, in-memory store, and fake agents."""
from datetime import date, timedelta

import pytest

from warehouse_ai.protocol import AgentResponse, HealthStatus, Manifest, ToolDescriptor
from warehouse_ai.registry import AgentSource, CapabilityRegistry, DiscoveryConfig
from warehouse_ai.store import InventoryRow, MemoryInventoryStore


def _days(n: int) -> str:
    return (date.today() + timedelta(days=n)).isoformat()


def sample_rows():
    return [
        InventoryRow(product_number="1263755", area_id="F", aisle=1, bay=2, level_number=1,
                     warehouse_locn="F-01-02-1", prod_desc="FROZEN PEAS 12/2LB", license_plate="LP100001",
                     pallet_id="P900001", pallet_status="OK", qty_avail_units=120, qty_avail_eaches=0,
                     invy_status="A", slot_status="ACTIVE", slot_cube=100.0, avail_cube_remaining=20.0,
                     date_received=_days(-30), expiration_date=_days(5)),
        InventoryRow(product_number="1263755", area_id="F", aisle=1, bay=3, level_number=2,
                     warehouse_locn="F-01-03-2", prod_desc="FROZEN PEAS 12/2LB", license_plate="LP100002",
                     pallet_id="P900002", pallet_status="OK", qty_avail_units=40, qty_avail_eaches=10,
                     invy_status="A", slot_status="ACTIVE", slot_cube=100.0, avail_cube_remaining=50.0,
                     date_received=_days(-10), expiration_date=_days(40)),
        InventoryRow(product_number="2045511", area_id="D", aisle=5, bay=1, level_number=1,
                     warehouse_locn="D-05-01-1", prod_desc="ALL PURPOSE FLOUR 25LB", license_plate="LP200001",
                     pallet_id="P910001", pallet_status="OK", qty_avail_units=300, qty_avail_eaches=0,
                     invy_status="A", slot_status="ACTIVE", slot_cube=80.0, avail_cube_remaining=10.0,
                     date_received=_days(-60)),
        InventoryRow(product_number="2045511", area_id="D", aisle=5, bay=2, level_number=1,
                     warehouse_locn="D-05-02-1", prod_desc="ALL PURPOSE FLOUR 25LB", license_plate="LP200002",
                     pallet_id="P910002", pallet_status="OK", qty_avail_units=60, qty_avail_eaches=0,
                     invy_status="A", slot_status="ACTIVE", slot_cube=80.0, avail_cube_remaining=40.0,
                     date_received=_days(-20), expiration_date=_days(200)),
        InventoryRow(product_number="3300120", area_id="R", aisle=9, bay=1, level_number=1,
                     warehouse_locn="R-09-01-1", prod_desc="WHOLE MILK 4/1GAL", license_plate="LP300001",
                     pallet_id="P920001", pallet_status="HOLD", qty_avail_units=8, qty_avail_eaches=3,
                     invy_status="H", slot_status="DAMAGED", slot_cube=50.0, avail_cube_remaining=45.0,
                     date_received=_days(-5), expiration_date=_days(10)),
        InventoryRow(product_number="3300999", area_id="R", aisle=9, bay=2, level_number=1,
                     warehouse_locn="R-09-02-1", prod_desc="GREEK YOGURT 12/32OZ", license_plate="LP300002",
                     pallet_id="P920002", pallet_status="OK", qty_avail_units=0, qty_avail_eaches=0,
                     invy_status="A", slot_status="ACTIVE", slot_cube=50.0, avail_cube_remaining=50.0,
                     date_received=_days(-40), expiration_date=_days(-2)),
    ]


@pytest.fixture
def rows():
    return sample_rows()


@pytest.fixture
def store(rows):
    return MemoryInventoryStore(rows)


class FakeAgent:
    """Minimal in-process agent with a configurable manifest and health."""

    def __init__(self, agent_id="fake-agent", tools=(), capabilities=(), expertise=(),
                 healthy=True, manifest_error=None, reply="ok"):
        self.agent_id = agent_id
        self.tools = tuple(tools)
        self.capabilities = tuple(capabilities)
        self.expertise = tuple(expertise)
        self.healthy = healthy
        self.manifest_error = manifest_error
        self.health_error = None
        self.reply = reply
        self.messages = []

    def get_manifest(self):
        if self.manifest_error:
            raise self.manifest_error
        return Manifest(
            agent_id=self.agent_id,
            name=f"{self.agent_id} name",
            description=f"{self.agent_id} description",
            version="1.0.0",
            tools=self.tools,
            capabilities=self.capabilities,
            expertise=self.expertise,
        )

    async def health_check(self):
        if self.health_error:
            raise self.health_error
        return HealthStatus(status="healthy" if self.healthy else "unhealthy")

    async def process_message(self, message):
        self.messages.append(message)
        return AgentResponse(session_id=message.session_id, agent_id=self.agent_id, content=self.reply,
                             reasoning=[f"{self.agent_id} handled it"])


def tool(name, tags=(), description=""):
    return ToolDescriptor(name=name, description=description or f"{name} tool", intent_tags=tuple(tags))


async def start_registry(*agents) -> CapabilityRegistry:
    """Registry discovered from in-process agents, with refresh effectively disabled."""
    registry = CapabilityRegistry()
    await registry.start(DiscoveryConfig(sources=[AgentSource.local(a) for a in agents],
                                         refresh_interval_s=3600))
    return registry


class FailingStore(MemoryInventoryStore):
    """Fails any fetch with a top-level condition on ``field`` (and ``value``, when given)."""

    def __init__(self, rows, field, value=None):
        super().__init__(rows)
        self.field = field
        self.value = value

    async def fetch(self, conditions=(), order_by=(), limit=None):
        for c in conditions:
            if getattr(c, "field", None) == self.field and (self.value is None or c.value == self.value):
                raise RuntimeError(f"{self.field} index unavailable")
        return await super().fetch(conditions, order_by, limit)
