"""
Tests for the SQLite-backed contact store.
"""
import sqlite3

import pytest

from contact_store import (
    ConstraintViolation,
    Contact,
    ContactNotFound,
    ContactStore,
    StoreUnavailable,
    ValidationError,
)


class TestCreateAndFind:
    def test_create_assigns_id_and_created_at(self, store):
        contact = store.create("Ada", "Lovelace", "555-0100", "ada@example.com")

        assert isinstance(contact, Contact)
        assert contact.id is not None
        assert contact.created_at
        assert contact.first_name == "Ada"
        assert contact.last_name == "Lovelace"
        assert contact.phone_number == "555-0100"
        assert contact.email == "ada@example.com"

    def test_find_by_id_returns_created_contact(self, store):
        created = store.create("Ada", "Lovelace", "555-0100", "ada@example.com")

        assert store.find_by_id(created.id) == created

    def test_find_by_id_missing_returns_none(self, store):
        assert store.find_by_id(9999) is None

    def test_create_strips_whitespace(self, store):
        contact = store.create("  Ada ", " Lovelace", "555-0100 ", " ada@example.com ")

        assert contact.first_name == "Ada"
        assert contact.email == "ada@example.com"

    @pytest.mark.parametrize("field", ["first_name", "last_name", "phone_number", "email"])
    def test_create_rejects_empty_field(self, store, field):
        values = {
            "first_name": "Ada",
            "last_name": "Lovelace",
            "phone_number": "555-0100",
            "email": "ada@example.com",
        }
        values[field] = "   "

        with pytest.raises(ConstraintViolation) as excinfo:
            store.create(**values)

        assert field in excinfo.value.errors
        assert store.count() == 0

    def test_duplicate_email_rejected(self, store):
        store.create("Ada", "Lovelace", "555-0100", "ada@example.com")

        with pytest.raises(ConstraintViolation) as excinfo:
            store.create("Other", "Person", "555-0199", "ada@example.com")

        assert set(excinfo.value.errors) == {"email"}
        assert store.count() == 1

    def test_duplicate_phone_rejected(self, store):
        store.create("Ada", "Lovelace", "555-0100", "ada@example.com")

        with pytest.raises(ConstraintViolation) as excinfo:
            store.create("Other", "Person", "555-0100", "other@example.com")

        assert set(excinfo.value.errors) == {"phone_number"}

    def test_duplicate_email_and_phone_both_reported(self, store):
        store.create("Ada", "Lovelace", "555-0100", "ada@example.com")

        with pytest.raises(ConstraintViolation) as excinfo:
            store.create("Other", "Person", "555-0100", "ada@example.com")

        assert set(excinfo.value.errors) == {"email", "phone_number"}

    def test_constraint_violation_is_a_validation_error(self, store):
        with pytest.raises(ValidationError):
            store.create("", "", "", "")

    def test_exactly_one_of_two_same_email_creations_succeeds(self, tmp_path):
        # Two store handles on the same file behave like two workers.
        path = tmp_path / "shared.db"
        first = ContactStore(path)
        first.init_schema()
        second = ContactStore(path)

        outcomes = []
        for handle, phone in ((second, "555-0001"), (first, "555-0002")):
            try:
                handle.create("Same", "Email", phone, "same@example.com")
                outcomes.append("ok")
            except ConstraintViolation:
                outcomes.append("rejected")

        assert sorted(outcomes) == ["ok", "rejected"]
        assert first.count() == 1

    def test_uniqueness_is_enforced_by_the_schema(self, store):
        store.create("Ada", "Lovelace", "555-0100", "ada@example.com")

        conn = sqlite3.connect(store.db_path)
        try:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO contacts (first_name, last_name, phone_number, email) "
                    "VALUES ('x', 'y', '555-0999', 'ada@example.com')"
                )
        finally:
            conn.close()


class TestPaging:
    def test_get_page_orders_by_id(self, store, make_contact):
        created = [make_contact() for _ in range(5)]

        page = store.get_page(1, 10)

        assert [c.id for c in page] == [c.id for c in created]

    def test_get_page_default_size_is_ten(self, store, make_contact):
        for _ in range(12):
            make_contact()

        assert len(store.get_page(1)) == 10
        assert len(store.get_page(2)) == 2

    def test_consecutive_pages_have_no_gap_or_overlap(self, store, make_contact):
        created = [make_contact() for _ in range(7)]

        pages = [store.get_page(n, 3) for n in (1, 2, 3)]

        assert [len(p) for p in pages] == [3, 3, 1]
        ids = [c.id for p in pages for c in p]
        assert ids == [c.id for c in created]
        assert ids == sorted(ids)

    def test_page_past_end_is_empty(self, store, make_contact):
        make_contact()

        assert store.get_page(5, 10) == []

    @pytest.mark.parametrize("page,size", [(0, 10), (-1, 10), (1, 0), (1, -5), ("1", 10)])
    def test_invalid_page_arguments(self, store, page, size):
        with pytest.raises(ValueError):
            store.get_page(page, size)


class TestSearch:
    def test_search_matches_first_or_last_name(self, store, make_contact):
        ada = make_contact("Ada", "Lovelace")
        grace = make_contact("Grace", "Hopper")
        make_contact("Linus", "Torvalds")

        assert store.search("Lovelace", 1) == [ada]
        assert store.search("Grace", 1) == [grace]

    def test_search_is_case_insensitive(self, store, make_contact):
        ada = make_contact("Ada", "Lovelace")

        assert store.search("ada", 1) == [ada]
        assert store.search("LOVE", 1) == [ada]

    def test_search_substring(self, store, make_contact):
        grace = make_contact("Grace", "Hopper")

        assert store.search("opp", 1) == [grace]

    def test_empty_fragment_behaves_like_get_page(self, store, make_contact):
        for _ in range(3):
            make_contact()

        assert store.search("", 1, 2) == store.get_page(1, 2)
        assert store.search("   ", 2, 2) == store.get_page(2, 2)

    def test_wildcards_match_literally(self, store, make_contact):
        make_contact("Ada", "Lovelace")
        percent = make_contact("100%", "Real")

        assert store.search("%", 1) == [percent]
        assert store.search("_", 1) == []

    def test_search_paginates(self, store, make_contact):
        matches = [make_contact("Sam", f"Smith{i}") for i in range(4)]
        make_contact("Other", "Person")

        assert store.search("Sam", 1, 3) == matches[:3]
        assert store.search("Sam", 2, 3) == matches[3:]
        assert store.count("Sam") == 4
        assert store.count() == 5


class TestUpdate:
    def test_update_changes_fields_and_keeps_created_at(self, store, make_contact):
        original = make_contact()

        updated = store.update(original.id, "Grace", "Hopper", "555-0900", "grace@example.com")

        assert updated.id == original.id
        assert updated.created_at == original.created_at
        assert updated.first_name == "Grace"
        assert store.find_by_id(original.id) == updated

    def test_update_missing_id_raises_not_found_and_creates_nothing(self, store):
        with pytest.raises(ContactNotFound):
            store.update(42, "Ghost", "Writer", "555-0000", "ghost@example.com")

        assert store.count() == 0

    def test_update_may_keep_its_own_email_and_phone(self, store, make_contact):
        contact = make_contact()

        updated = store.update(
            contact.id, "Renamed", contact.last_name, contact.phone_number, contact.email
        )

        assert updated.first_name == "Renamed"

    def test_update_colliding_with_other_contact(self, store, make_contact):
        first = make_contact()
        second = make_contact()

        with pytest.raises(ConstraintViolation) as excinfo:
            store.update(second.id, "X", "Y", second.phone_number, first.email)

        assert set(excinfo.value.errors) == {"email"}
        assert store.find_by_id(second.id) == second

    def test_update_rejects_empty_field(self, store, make_contact):
        contact = make_contact()

        with pytest.raises(ConstraintViolation):
            store.update(contact.id, "", contact.last_name, contact.phone_number, contact.email)


class TestDelete:
    def test_delete_reports_removal(self, store, make_contact):
        contact = make_contact()

        assert store.delete(contact.id) is True
        assert store.find_by_id(contact.id) is None

    def test_delete_is_idempotent(self, store, make_contact):
        contact = make_contact()

        assert store.delete(contact.id) is True
        assert store.delete(contact.id) is False

    def test_delete_missing_id(self, store):
        assert store.delete(12345) is False


class TestScenario:
    def test_search_duplicate_and_delete(self, store):
        a = store.create("Alice", "Archer", "555-1000", "a@x.com")
        b = store.create("Bob", "Brown", "555-2000", "b@x.com")

        found = store.search("A", 1)
        assert found == [a]

        with pytest.raises(ConstraintViolation):
            store.create("Another", "Alice", "555-3000", "a@x.com")

        assert store.delete(b.id) is True
        assert store.get_page(1, 10) == [a]


class TestStoreUnavailable:
    def test_unopenable_database(self, tmp_path):
        # A directory cannot be opened as a database file.
        broken = ContactStore(tmp_path)

        with pytest.raises(StoreUnavailable) as excinfo:
            broken.get_page(1)

        assert excinfo.value.operation == "get_page"

    def test_missing_table(self, tmp_path):
        bare = ContactStore(tmp_path / "empty.db")

        with pytest.raises(StoreUnavailable):
            bare.find_by_id(1)

    def test_init_schema_is_idempotent(self, store, make_contact):
        make_contact()
        store.init_schema()

        assert store.count() == 1


class TestOutOfRangeIntegers:
    HUGE_ID = 99999999999999999999

    def test_page_with_offset_past_sqlite_range_is_empty(self, store, make_contact):
        make_contact()

        assert store.get_page(2**62, 10) == []
        assert store.search("Ada", 2**62, 10) == []

    def test_huge_page_size_on_first_page(self, store, make_contact):
        contact = make_contact()

        assert store.get_page(1, 2**64) == [contact]

    def test_find_by_huge_id_is_none(self, store):
        assert store.find_by_id(self.HUGE_ID) is None

    def test_update_huge_id_is_not_found(self, store):
        with pytest.raises(ContactNotFound):
            store.update(self.HUGE_ID, "Ghost", "Writer", "555-0000", "ghost@example.com")

        assert store.count() == 0

    def test_delete_huge_id_reports_nothing_removed(self, store):
        assert store.delete(self.HUGE_ID) is False

    def test_huge_exclude_id_excludes_nothing(self, store, make_contact):
        contact = make_contact()

        assert store.field_in_use("email", contact.email, exclude_id=self.HUGE_ID) is True
