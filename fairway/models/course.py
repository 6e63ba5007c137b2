"""
Fairway Orders: course layout (hole coordinates for the nearest-hole lookup)
"""
import uuid
from sqlalchemy import Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from fairway.db.database import Base


class Hole(Base):
    __tablename__ = "holes"
    __table_args__ = (UniqueConstraint("course_id", "hole_number", name="uq_holes_course_hole"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    hole_number: Mapped[int] = mapped_column(Integer, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
