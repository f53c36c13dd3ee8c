from sqlalchemy import Column, String, Integer, Text, ForeignKey, DateTime, Table, UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from app.db.base import Base

car_variant_complectations = Table(
    "car_variant_complectations",
    Base.metadata,
    Column("variant_id", UUID(as_uuid=True), ForeignKey("car_variants.id", ondelete="CASCADE"), primary_key=True),
    Column("complectation_id", UUID(as_uuid=True), ForeignKey("car_complectations.id", ondelete="CASCADE"), primary_key=True),
)

class CarBrand(Base):
    __tablename__ = "car_brands"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code = Column(String, unique=True, nullable=True)
    name = Column(String, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    models = relationship("CarModel", back_populates="brand", cascade="all, delete-orphan")

class CarModel(Base):
    __tablename__ = "car_models"
    __table_args__ = (UniqueConstraint("brand_id", "name"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    brand_id = Column(UUID(as_uuid=True), ForeignKey("car_brands.id"), nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    slug = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    brand = relationship("CarBrand", back_populates="models")
    variants = relationship("CarVariant", back_populates="model", cascade="all, delete-orphan")

class CarVariant(Base):
    __tablename__ = "car_variants"
    __table_args__ = (
        UniqueConstraint("model_id", "name", "year_from", "year_to"),
        Index("ix_car_variants_years", "year_from", "year_to"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    model_id = Column(UUID(as_uuid=True), ForeignKey("car_models.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    body_type = Column(String, nullable=True)
    year_from = Column(Integer, nullable=True)
    year_to = Column(Integer, nullable=True)  # NULL: still in production
    power_text = Column(String, nullable=True)  # e.g. "181 л.с."
    kpp_text = Column(String, nullable=True)  # AT | MT | CVT | Robot | AMT
    description = Column(Text, nullable=True)
    meta = Column(JSONB, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    model = relationship("CarModel", back_populates="variants")
    complectations = relationship("CarComplectation", secondary=car_variant_complectations)

class CarComplectation(Base):
    __tablename__ = "car_complectations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ext_id = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
