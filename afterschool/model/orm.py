from sqlalchemy.orm import declarative_base
from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Float,
    Integer,
    String,
    UniqueConstraint,
)


Base = declarative_base()


# ----------------------------
# ORM models
# ----------------------------
class Lesson(Base):
    __tablename__ = "lessons"
    __table_args__ = (
        UniqueConstraint("subject", "location", name="lessons_subject_location"),
        CheckConstraint("spaces >= 0", name="lessons_spaces_nonnegative"),
        CheckConstraint("price >= 0", name="lessons_price_nonnegative"),
    )
    id = Column(String, primary_key=True)
    subject = Column(String, nullable=False)
    location = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    # authoritative seat count for the sql ledger; initial value for redis
    spaces = Column(Integer, nullable=False, default=0)
    image = Column(String, nullable=False, default="")


class Order(Base):
    __tablename__ = "orders"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    # lesson ids in submission order, duplicates kept
    lesson_ids = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False, index=True)
