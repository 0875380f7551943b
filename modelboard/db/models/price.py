"""
Canonical price record, one per model.
"""
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from modelboard.db.database import Base


class Price(Base):
    __tablename__ = "prices"

    id = Column(Integer, primary_key=True, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, unique=True, index=True)
    input_price_per_1m = Column(Float, nullable=False)
    output_price_per_1m = Column(Float, nullable=False)
    confirmed = Column(Boolean, nullable=False, default=False)
    source = Column(String(100), nullable=True)
    recorded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    model = relationship("Model", back_populates="price")

    def __repr__(self):
        return (f"<Price(model_id={self.model_id}, input={self.input_price_per_1m}, "
                f"output={self.output_price_per_1m})>")
