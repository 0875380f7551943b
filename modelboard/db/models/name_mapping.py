"""
Source-scoped external name to model mappings.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from modelboard.db.database import Base


class ModelNameMapping(Base):
    __tablename__ = "model_name_mappings"

    id = Column(Integer, primary_key=True, index=True)
    source_key = Column(String(100), nullable=False, index=True)
    external_name = Column(String(255), nullable=False)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    origin = Column(String(20), nullable=False, default="manual")  # manual, resolver
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    model = relationship("Model")

    __table_args__ = (
        UniqueConstraint("source_key", "external_name", name="uq_model_name_mappings_source_name"),
    )

    def __repr__(self):
        return f"<ModelNameMapping(source='{self.source_key}', external_name='{self.external_name}', model_id={self.model_id})>"
