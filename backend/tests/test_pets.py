"""
Pet Profile Tests

Contact ordering with legacy fallbacks, phone helpers and pet-slot gating.
"""

import pytest

from conftest import make_subscriber, make_user
from petport.errors import NotFoundError, PermissionDeniedError
from petport.pets.contacts import (
    extract_phone_number,
    format_phone_for_tel,
    get_ordered_contacts,
    parse_legacy_contact,
)
from petport.pets.service import ContactInput, PetCreate, PetService
from petport.storage.db import db
from petport.storage.models import ContactType, Pet, PetContact


@pytest.fixture
def service() -> PetService:
    return PetService()


class TestPhoneHelpers:
    def test_extract_digits(self):
        assert extract_phone_number("Jane Doe (555) 123-4567") == "5551234567"
        assert extract_phone_number("call 555.123.4567 anytime") == "5551234567"
        assert extract_phone_number("no number here") is None
        assert extract_phone_number(None) is None

    def test_format_for_tel(self):
        assert format_phone_for_tel("(555) 123-4567") == "+15551234567"
        assert format_phone_for_tel("1-555-123-4567") == "+15551234567"

    def test_format_keeps_explicit_country_code(self):
        assert format_phone_for_tel("+44 20 7946 0958") == "+442079460958"


class TestLegacyParsing:
    """Free-text contacts from before structured contacts existed"""

    def test_name_and_phone(self):
        assert parse_legacy_contact(ContactType.EMERGENCY, "Jane Doe 555-123-4567") == ("Jane Doe", "555-123-4567")

    def test_vet_name_before_parenthesis(self):
        name, phone = parse_legacy_contact(ContactType.VETERINARY, "Happy Paws Clinic (555) 987-6543")
        assert name == "Happy Paws Clinic"
        assert phone == "(555) 987-6543"

    def test_vet_without_parenthesis(self):
        assert parse_legacy_contact(ContactType.VETERINARY, "Happy Paws Clinic") == ("Happy Paws Clinic", "")

    def test_empty(self):
        assert parse_legacy_contact(ContactType.CARETAKER, None) == ("", "")


class TestOrderedContacts:
    """Always four slots in a fixed order"""

    def test_order_and_precedence(self):
        pet = Pet(
            name="Rex",
            owner_id="user-1",
            emergency_contact="Old Name 555-000-0000",
            vet_contact="Happy Paws Clinic (555) 987-6543",
        )
        pet.contacts = [
            PetContact(contact_type="emergency", contact_name="Jane Doe", contact_phone="555-123-4567"),
            PetContact(contact_type="caretaker", contact_name="Sitter", contact_phone=None),
        ]

        contacts = get_ordered_contacts(pet)

        assert [c.type for c in contacts] == ["emergency", "emergency_secondary", "veterinary", "caretaker"]
        assert contacts[0].name == "Jane Doe"
        assert contacts[0].phone == "555-123-4567"
        assert contacts[0].tel == "+15551234567"
        assert contacts[1].is_empty is True
        assert contacts[1].name == "Not provided"
        assert contacts[2].name == "Happy Paws Clinic"
        assert contacts[2].label == "Veterinary Contact"
        # structured row without a phone is ignored; no legacy text either
        assert contacts[3].is_empty is True

    def test_legacy_phone_only(self):
        pet = Pet(name="Rex", owner_id="user-1", pet_caretaker="555-222-3333")
        pet.contacts = []

        caretaker = get_ordered_contacts(pet)[3]

        assert caretaker.name == "Contact"
        assert caretaker.phone == "555-222-3333"
        assert caretaker.is_empty is False


class TestPetService:
    """Owner-scoped CRUD with pet-slot gating"""

    def test_no_subscription_no_pets(self, service, user):
        with pytest.raises(PermissionDeniedError, match=r"Pet limit reached \(0/0\)"):
            service.create_pet(user, PetCreate(name="Rex"))

    def test_capacity_includes_addons(self, service, user):
        make_subscriber(user.email, user_id=user.id, additional_pets=1)

        service.create_pet(user, PetCreate(name="Rex"))
        service.create_pet(user, PetCreate(name="Luna"))
        with pytest.raises(PermissionDeniedError, match=r"\(2/2\)"):
            service.create_pet(user, PetCreate(name="Milo"))

        assert service.count_pets(user.id) == 2

    def test_create_with_contacts(self, service, user):
        make_subscriber(user.email, user_id=user.id)

        pet = service.create_pet(user, PetCreate(
            name="Rex",
            species="dog",
            is_public=True,
            contacts=[ContactInput(
                contact_type=ContactType.EMERGENCY,
                contact_name="Jane Doe",
                contact_phone="555-123-4567",
            )],
        ))

        assert pet["owner_id"] == user.id
        assert pet["contacts"][0]["name"] == "Jane Doe"
        assert len(pet["contacts"]) == 4

    def test_private_pet_visibility(self, service, user):
        make_subscriber(user.email, user_id=user.id)
        stranger = make_user(user_id="user-2", email="stranger@example.com")
        pet = service.create_pet(user, PetCreate(name="Rex"))

        assert service.get_pet(pet["id"], viewer=user)["name"] == "Rex"
        with pytest.raises(NotFoundError):
            service.get_pet(pet["id"], viewer=stranger)
        with pytest.raises(NotFoundError):
            service.get_pet(pet["id"])

    def test_list_only_own_pets(self, service, user):
        make_subscriber(user.email, user_id=user.id)
        other = make_user(user_id="user-2", email="other@example.com")
        make_subscriber(other.email, user_id=other.id)
        service.create_pet(user, PetCreate(name="Rex"))
        service.create_pet(other, PetCreate(name="Luna"))

        assert [p["name"] for p in service.list_pets(user)] == ["Rex"]

    def test_delete_cascades_contacts(self, service, user):
        make_subscriber(user.email, user_id=user.id)
        pet = service.create_pet(user, PetCreate(
            name="Rex",
            contacts=[ContactInput(contact_type=ContactType.VETERINARY, contact_name="Vet", contact_phone="555")],
        ))

        service.delete_pet(user, pet["id"])

        with db.session() as session:
            assert session.query(Pet).count() == 0
            assert session.query(PetContact).count() == 0

    def test_delete_someone_elses_pet(self, service, user):
        make_subscriber(user.email, user_id=user.id)
        other = make_user(user_id="user-2", email="other@example.com")
        pet = service.create_pet(user, PetCreate(name="Rex"))

        with pytest.raises(NotFoundError):
            service.delete_pet(other, pet["id"])
