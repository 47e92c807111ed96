"""Pet profiles and their emergency contacts."""

from petport.pets.contacts import (
    ContactInfo,
    extract_phone_number,
    format_phone_for_tel,
    get_ordered_contacts,
)
from petport.pets.service import PetCreate, PetService, pet_service

__all__ = [
    "ContactInfo",
    "extract_phone_number",
    "format_phone_for_tel",
    "get_ordered_contacts",
    "PetCreate",
    "PetService",
    "pet_service",
]
