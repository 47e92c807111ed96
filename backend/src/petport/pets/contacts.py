"""Pet contact ordering and legacy contact parsing."""

import re

import phonenumbers
from phonenumbers import NumberParseException
from pydantic import BaseModel

from petport.logging_config import get_logger
from petport.storage.models import ContactType, Pet

logger = get_logger(__name__)

DEFAULT_REGION = "US"

# North American number, optionally with area-code parentheses and separators
PHONE_PATTERN = re.compile(r"\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")

EMPTY_NAME = "Not provided"

CONTACT_ORDER = (
    ContactType.EMERGENCY,
    ContactType.EMERGENCY_SECONDARY,
    ContactType.VETERINARY,
    ContactType.CARETAKER,
)

CONTACT_LABELS = {
    ContactType.EMERGENCY: "Emergency Contact",
    ContactType.EMERGENCY_SECONDARY: "Secondary Emergency Contact",
    ContactType.VETERINARY: "Veterinary Contact",
    ContactType.CARETAKER: "Pet Caretaker",
}

LEGACY_FIELDS = {
    ContactType.EMERGENCY: "emergency_contact",
    ContactType.EMERGENCY_SECONDARY: "second_emergency_contact",
    ContactType.VETERINARY: "vet_contact",
    ContactType.CARETAKER: "pet_caretaker",
}


class ContactInfo(BaseModel):
    """One of the four contact slots of a pet."""
    label: str
    name: str
    phone: str = ""
    tel: str = ""
    type: str
    is_empty: bool = False


def find_phone(text: str | None) -> str:
    """First phone number in text as written, or empty string."""
    if not text:
        return ""
    match = PHONE_PATTERN.search(text)
    return match.group(0) if match else ""


def extract_phone_number(text: str | None) -> str | None:
    """Digits of the first phone number in text."""
    phone = find_phone(text)
    if not phone:
        return None
    return re.sub(r"\D", "", phone)


def format_phone_for_tel(phone: str) -> str:
    """E.164 number for tel: links, assuming +1 when no country code."""
    try:
        parsed = phonenumbers.parse(phone, DEFAULT_REGION)
        if phonenumbers.is_possible_number(parsed):
            return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    except NumberParseException as e:
        logger.debug("phone_parse_error", phone=phone, error=str(e))

    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("1"):
        return f"+{digits}"
    return f"+1{digits}"


def parse_legacy_contact(contact_type: ContactType, text: str | None) -> tuple[str, str]:
    """Split a free-text contact into (name, phone).

    Vet entries are written as ``Clinic Name (555) 123-4567``, so the name is
    whatever precedes the first parenthesis.
    """
    if not text:
        return "", ""

    if contact_type == ContactType.VETERINARY:
        if "(" in text:
            return text.split("(", 1)[0].strip(), find_phone(text)
        return text.strip(), ""

    phone = find_phone(text)
    name = text.replace(phone, "", 1).strip() if phone else text.strip()
    return name, phone


def get_ordered_contacts(pet: Pet) -> list[ContactInfo]:
    """Return the pet's four contact slots in display order.

    A structured contact with both name and phone wins; otherwise the legacy
    free-text field is parsed; otherwise the slot is empty.
    """
    structured = {c.contact_type: c for c in pet.contacts}
    result = []

    for contact_type in CONTACT_ORDER:
        label = CONTACT_LABELS[contact_type]
        contact = structured.get(contact_type.value)

        if contact and contact.contact_name and contact.contact_phone:
            result.append(ContactInfo(
                label=label,
                name=contact.contact_name,
                phone=contact.contact_phone,
                tel=format_phone_for_tel(contact.contact_phone),
                type=contact_type.value,
            ))
            continue

        name, phone = parse_legacy_contact(contact_type, getattr(pet, LEGACY_FIELDS[contact_type]))
        if name or phone:
            result.append(ContactInfo(
                label=label,
                name=name or "Contact",
                phone=phone,
                tel=format_phone_for_tel(phone) if phone else "",
                type=contact_type.value,
            ))
        else:
            result.append(ContactInfo(label=label, name=EMPTY_NAME, type=contact_type.value, is_empty=True))

    return result
