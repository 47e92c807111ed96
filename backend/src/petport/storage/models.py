"""Database models for pet profiles and their contacts."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def new_uuid() -> str:
    """Primary key factory for string ids."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class ContactType(str, Enum):
    """Structured contact slots, in display order."""
    EMERGENCY = "emergency"
    EMERGENCY_SECONDARY = "emergency_secondary"
    VETERINARY = "veterinary"
    CARETAKER = "caretaker"


class Pet(Base):
    """Pet profile owned by a single user."""

    __tablename__ = "pets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    owner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("user_accounts.id"), nullable=False, index=True
    )

    # Identity
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    species: Mapped[str | None] = mapped_column(String(100), nullable=True)
    breed: Mapped[str | None] = mapped_column(String(255), nullable=True)
    age: Mapped[str | None] = mapped_column(String(50), nullable=True)
    weight: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Visibility
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Medical alerts
    medical_alert: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    medical_conditions: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Free text
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Legacy free-text contacts (pre pet_contacts table)
    emergency_contact: Mapped[str | None] = mapped_column(String(500), nullable=True)
    second_emergency_contact: Mapped[str | None] = mapped_column(String(500), nullable=True)
    vet_contact: Mapped[str | None] = mapped_column(String(500), nullable=True)
    pet_caretaker: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    contacts: Mapped[list["PetContact"]] = relationship(
        "PetContact", back_populates="pet", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Pet(id={self.id}, name='{self.name}', public={self.is_public})>"


class PetContact(Base):
    """Structured contact attached to exactly one pet."""

    __tablename__ = "pet_contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    pet_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("pets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contact_type: Mapped[str] = mapped_column(String(30), nullable=False)
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    # Relationships
    pet: Mapped["Pet"] = relationship("Pet", back_populates="contacts")

    def __repr__(self) -> str:
        return f"<PetContact(pet={self.pet_id}, type={self.contact_type})>"
