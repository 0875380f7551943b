"""
Canonical provider and model entities.

Rows are created by model discovery and curation; the merge pipeline only
reads them.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, ForeignKey, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from modelboard.db.database import Base


class Provider(Base):
    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    color = Column(String(20), nullable=False, default="#888888")

    models = relationship("Model", back_populates="provider")

    def __repr__(self):
        return f"<Provider(slug='{self.slug}', name='{self.name}')>"


class Model(Base):
    __tablename__ = "models"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)

    context_window_input = Column(Integer, nullable=True)
    context_window_output = Column(Integer, nullable=True)
    is_open_source = Column(Boolean, nullable=False, default=False)
    is_reasoning_model = Column(Boolean, nullable=False, default=False)
    release_date = Column(Date, nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    provider = relationship("Provider", back_populates="models")
    scores = relationship("BenchmarkScore", back_populates="model")
    price = relationship("Price", back_populates="model", uselist=False)

    def __repr__(self):
        return f"<Model(slug='{self.slug}', name='{self.name}')>"
