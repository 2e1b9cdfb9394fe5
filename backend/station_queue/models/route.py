from sqlalchemy import Boolean, Column, Numeric, String

from station_queue.db.base import Base, TimestampMixin


class Route(Base, TimestampMixin):
    """Destination reference table: display name and per-seat base price."""

    __tablename__ = "routes"

    station_id = Column(String(100), primary_key=True)
    station_name = Column(String(255), nullable=False)
    base_price = Column(Numeric(10, 3), nullable=False)
    governorate = Column(String(100), nullable=True)
    delegation = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Route(id={self.station_id}, name={self.station_name}, price={self.base_price})>"
