from sqlalchemy import Boolean, Column, String

from station_queue.db.base import Base, TimestampMixin, new_id


class Staff(Base, TimestampMixin):
    __tablename__ = "staff"

    id = Column(String(36), primary_key=True, default=new_id)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(String(30), nullable=False, default="WORKER")
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Staff(id={self.id}, name={self.display_name})>"
