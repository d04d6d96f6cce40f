from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from db.base import Base


class Equipment(Base):
    __tablename__ = "Equipment"

    EquipmentID = Column(String(50), primary_key=True)
    EquipmentName = Column(String(255), nullable=False)
    Category = Column(String(100), nullable=False)
    Status = Column(String(20), default="AVAILABLE")
    DailyRentalCost = Column(Numeric(10, 2))
    CreatedDate = Column(DateTime, server_default=func.now())
    UpdatedDate = Column(DateTime, server_default=func.now())

    Reservations = relationship("Reservation", back_populates="Equipment")


class Reservation(Base):
    __tablename__ = "Reservations"
    __table_args__ = (Index("IX_Reservations_Equipment_Dates", "EquipmentID", "StartDate", "EndDate"),)

    ReservationID = Column(String(50), primary_key=True)
    EquipmentID = Column(String(50), ForeignKey("Equipment.EquipmentID"), nullable=False)
    UserID = Column(String(50))
    StartDate = Column(DateTime, nullable=False)
    EndDate = Column(DateTime, nullable=False)
    Status = Column(String(20), default="PENDING")
    CreatedDate = Column(DateTime, server_default=func.now())
    UpdatedDate = Column(DateTime, server_default=func.now())

    Equipment = relationship("Equipment", back_populates="Reservations")
