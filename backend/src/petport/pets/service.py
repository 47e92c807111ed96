"""Pet profile service with pet-slot gating."""

from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import selectinload

from petport.auth.models import UserAccount
from petport.errors import NotFoundError, PermissionDeniedError
from petport.logging_config import get_logger
from petport.pets.contacts import get_ordered_contacts
from petport.storage.db import db
from petport.storage.models import ContactType, Pet, PetContact
from petport.subscriptions.service import get_pet_capacity

logger = get_logger(__name__)


class ContactInput(BaseModel):
    """Structured contact submitted with a pet."""
    contact_type: ContactType
    contact_name: str | None = None
    contact_phone: str | None = None


class PetCreate(BaseModel):
    """Create pet request."""
    name: str = Field(..., min_length=1, max_length=255)
    species: str | None = None
    breed: str | None = None
    age: str | None = None
    weight: str | None = None
    is_public: bool = False
    medical_alert: bool = False
    medical_conditions: str | None = None
    bio: str | None = None
    notes: str | None = None
    emergency_contact: str | None = None
    second_emergency_contact: str | None = None
    vet_contact: str | None = None
    pet_caretaker: str | None = None
    contacts: list[ContactInput] = []


def serialize_pet(pet: Pet, include_contacts: bool = True) -> dict[str, Any]:
    """API view of a pet; must be called while the pet is attached."""
    data = {
        "id": pet.id,
        "owner_id": pet.owner_id,
        "name": pet.name,
        "species": pet.species,
        "breed": pet.breed,
        "age": pet.age,
        "weight": pet.weight,
        "is_public": pet.is_public,
        "medical_alert": pet.medical_alert,
        "medical_conditions": pet.medical_conditions,
        "bio": pet.bio,
        "notes": pet.notes,
        "created_at": pet.created_at.isoformat() if pet.created_at else None,
    }
    if include_contacts:
        data["contacts"] = [c.model_dump() for c in get_ordered_contacts(pet)]
    return data


class PetService:
    """Service for owner-scoped pet profiles."""

    def __init__(self):
        self.logger = get_logger(__name__)

    def count_pets(self, owner_id: str) -> int:
        with db.session() as session:
            return session.query(func.count(Pet.id)).filter(Pet.owner_id == owner_id).scalar() or 0

    def create_pet(self, owner: UserAccount, data: PetCreate) -> dict[str, Any]:
        """Create a pet if the owner has a free pet slot.

        Raises:
            PermissionDeniedError: All pet slots are in use
        """
        capacity = get_pet_capacity(owner.id)
        current = self.count_pets(owner.id)
        if current >= capacity:
            self.logger.info("pet_limit_reached", user_id=owner.id, current=current, capacity=capacity)
            raise PermissionDeniedError(
                f"Pet limit reached ({current}/{capacity}). Purchase additional pet slots to add more pets."
            )

        with db.session() as session:
            pet = Pet(owner_id=owner.id, **data.model_dump(exclude={"contacts"}))
            for contact in data.contacts:
                pet.contacts.append(PetContact(
                    contact_type=contact.contact_type.value,
                    contact_name=contact.contact_name,
                    contact_phone=contact.contact_phone,
                ))
            session.add(pet)
            session.flush()
            session.refresh(pet)

            self.logger.info("pet_created", pet_id=pet.id, user_id=owner.id)
            return serialize_pet(pet)

    def list_pets(self, owner: UserAccount) -> list[dict[str, Any]]:
        """All pets of the owner, oldest first."""
        with db.session() as session:
            pets = (
                session.query(Pet)
                .options(selectinload(Pet.contacts))
                .filter(Pet.owner_id == owner.id)
                .order_by(Pet.created_at)
                .all()
            )
            return [serialize_pet(p) for p in pets]

    def get_pet(self, pet_id: str, viewer: UserAccount | None = None) -> dict[str, Any]:
        """Public pets are visible to anyone, private ones to their owner only.

        Raises:
            NotFoundError: Missing pet or not visible to the viewer
        """
        with db.session() as session:
            pet = (
                session.query(Pet)
                .options(selectinload(Pet.contacts))
                .filter(Pet.id == pet_id)
                .first()
            )
            if pet is None or not (pet.is_public or (viewer and pet.owner_id == viewer.id)):
                raise NotFoundError("Pet not found")
            return serialize_pet(pet)

    def delete_pet(self, owner: UserAccount, pet_id: str) -> None:
        """Delete the owner's pet together with its contacts.

        Raises:
            NotFoundError: Pet missing or owned by someone else
        """
        with db.session() as session:
            pet = session.query(Pet).filter(Pet.id == pet_id, Pet.owner_id == owner.id).first()
            if pet is None:
                raise NotFoundError("Pet not found")
            session.delete(pet)

        self.logger.info("pet_deleted", pet_id=pet_id, user_id=owner.id)


# Singleton instance
pet_service = PetService()
