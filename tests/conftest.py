"""
Pytest fixtures: a contact store on a throwaway SQLite file and a Flask
app wired to it.
"""
import pytest

from app import create_app
from contact_store import ContactStore
from contact_validation import ContactValidator


@pytest.fixture
def store(tmp_path):
    contact_store = ContactStore(tmp_path / "contacts.db")
    contact_store.init_schema()
    return contact_store


@pytest.fixture
def validator(store):
    return ContactValidator(store)


@pytest.fixture
def app(store):
    return create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "PAGE_SIZE": 10,
        },
        store=store,
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_contact(store):
    """Create contacts with unique phone/email unless given explicitly."""
    counter = {"n": 0}

    def _make(first_name="Ada", last_name="Lovelace", phone_number=None, email=None):
        counter["n"] += 1
        n = counter["n"]
        return store.create(
            first_name,
            last_name,
            phone_number or f"555-01{n:02d}",
            email or f"person{n}@example.com",
        )

    return _make
