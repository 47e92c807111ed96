"""Pets API v1 endpoints."""

from fastapi import APIRouter, Depends, Response

from petport.auth.middleware import get_current_user, require_auth
from petport.auth.models import UserAccount
from petport.logging_config import get_logger
from petport.pets.service import PetCreate, pet_service

logger = get_logger(__name__)

router = APIRouter(prefix="/pets", tags=["pets"])


@router.get("")
async def list_pets(user: UserAccount = Depends(require_auth)):
    """Get the current user's pets."""
    return {"items": pet_service.list_pets(user)}


@router.post("", status_code=201)
async def create_pet(body: PetCreate, user: UserAccount = Depends(require_auth)):
    """Create a pet; rejected with 403 when all pet slots are used."""
    return pet_service.create_pet(user, body)


@router.get("/{pet_id}")
async def get_pet(pet_id: str, user: UserAccount | None = Depends(get_current_user)):
    """Get a public pet, or a private one owned by the caller."""
    return pet_service.get_pet(pet_id, viewer=user)


@router.get("/{pet_id}/contacts")
async def get_pet_contacts(pet_id: str, user: UserAccount | None = Depends(get_current_user)):
    """The pet's four contact slots in display order."""
    return {"contacts": pet_service.get_pet(pet_id, viewer=user)["contacts"]}


@router.delete("/{pet_id}", status_code=204)
async def delete_pet(pet_id: str, user: UserAccount = Depends(require_auth)):
    """Delete a pet with its contacts."""
    pet_service.delete_pet(user, pet_id)
    return Response(status_code=204)
