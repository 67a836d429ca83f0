"""SQLAlchemy ORM model for warehouse inventory locations."""
import datetime
from sqlalchemy import Column, Integer, String, Float, DateTime
from .database import Base


class InventoryLocation(Base):
    """One pallet placement in one slot (area/aisle/bay/level)."""
    __tablename__ = "inventory_locations"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Slot coordinates
    area_id = Column(String(4), nullable=False, index=True)  # F / D / R
    aisle = Column(Integer, nullable=False, default=0)
    bay = Column(Integer, nullable=False, default=0)
    level_number = Column(Integer, nullable=False, default=0)
    zone = Column(String(16), nullable=True)
    warehouse_locn = Column(String(32), default="")

    # Pallet and product
    product_number = Column(String(32), nullable=False, index=True)
    prod_desc = Column(String(256), nullable=True)
    license_plate = Column(String(32), default="", index=True)
    pallet_id = Column(String(32), default="", index=True)
    pallet_status = Column(String(16), default="")

    # Quantities and statuses
    qty_avail_units = Column(Integer, default=0)
    qty_avail_eaches = Column(Integer, default=0)
    invy_status = Column(String(16), default="")
    slot_status = Column(String(16), default="")
    rack_type = Column(String(16), default="")
    slot_type = Column(String(16), default="")

    # Capacity
    slot_cube = Column(Float, default=0.0)
    avail_cube_remaining = Column(Float, default=0.0)

    # ISO dates (YYYY-MM-DD) kept as text so range filters compare lexically
    date_received = Column(String(10), nullable=True)
    expiration_date = Column(String(10), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)
