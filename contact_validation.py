"""
Form parsing and uniqueness checks for contacts.

The checks here are advisory: they give the user early feedback (the
live validation endpoint, and a friendlier error list before a write is
attempted). The UNIQUE constraints in the contacts table stay the final
authority, see ContactStore.create() / update().
"""

from dataclasses import dataclass, field

from contact_store import IN_USE_MESSAGES, UNIQUE_FIELDS, required_field_errors


@dataclass
class ContactForm:
    """View model behind the new / edit forms."""

    first_name: str = ""
    last_name: str = ""
    phone_number: str = ""
    email: str = ""
    errors: dict = field(default_factory=dict)

    @classmethod
    def from_form(cls, form):
        # Surrounding whitespace is never meaningful in these fields.
        return cls(
            first_name=(form.get("first_name") or "").strip(),
            last_name=(form.get("last_name") or "").strip(),
            phone_number=(form.get("phone_number") or "").strip(),
            email=(form.get("email") or "").strip(),
        )

    @classmethod
    def from_contact(cls, contact):
        return cls(
            first_name=contact.first_name,
            last_name=contact.last_name,
            phone_number=contact.phone_number,
            email=contact.email,
        )

    def values(self):
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone_number": self.phone_number,
            "email": self.email,
        }


class ContactValidator:
    """Uniqueness lookups against the contact store."""

    def __init__(self, store):
        self.store = store

    def is_email_available(self, email, exclude_id=None):
        return not self.store.field_in_use("email", email, exclude_id)

    def is_phone_available(self, phone, exclude_id=None):
        return not self.store.field_in_use("phone", phone, exclude_id)

    def check(self, form, exclude_id=None):
        """
        All field errors for ``form``: required fields first, then
        email / phone collisions with contacts other than ``exclude_id``.
        """
        errors = required_field_errors(form.values())
        if "email" not in errors and not self.is_email_available(form.email, exclude_id):
            errors["email"] = IN_USE_MESSAGES["email"]
        if "phone_number" not in errors and not self.is_phone_available(
            form.phone_number, exclude_id
        ):
            errors["phone_number"] = IN_USE_MESSAGES["phone_number"]
        return errors

    def availability_message(self, field_name, value, exclude_id=None):
        """
        (available, message) for the live validation fragment.
        An empty value has nothing to collide with and counts as available.
        """
        column = UNIQUE_FIELDS.get(field_name)
        if column is None:
            raise ValueError(f"Unknown field: {field_name!r}")

        value = (value or "").strip()
        if not value:
            return True, ""

        if self.store.field_in_use(field_name, value, exclude_id):
            return False, IN_USE_MESSAGES[column]
        if column == "email":
            return True, "Email is available."
        return True, "Phone number is available."

    def fields_available(self, email, phone, exclude_id=None):
        """
        True when neither value is taken by another contact. Blank values
        are skipped; the required-field check reports those on submit.
        """
        email = (email or "").strip()
        phone = (phone or "").strip()
        if email and not self.is_email_available(email, exclude_id):
            return False
        if phone and not self.is_phone_available(phone, exclude_id):
            return False
        return True
