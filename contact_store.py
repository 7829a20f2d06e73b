import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from app_logging import get_logger, log_with_context

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 10

# SQLite INTEGER is a signed 64-bit value; larger Python ints cannot be bound.
SQLITE_MAX_INT = 2**63 - 1
SQLITE_MIN_INT = -(2**63)

# Form field name -> column. The live validation endpoint says "phone".
UNIQUE_FIELDS = {
    "email": "email",
    "phone": "phone_number",
    "phone_number": "phone_number",
}

REQUIRED_FIELDS = ("first_name", "last_name", "phone_number", "email")

FIELD_LABELS = {
    "first_name": "First name",
    "last_name": "Last name",
    "phone_number": "Phone number",
    "email": "Email",
}

IN_USE_MESSAGES = {
    "email": "This email already exists in your contacts.",
    "phone_number": "This phone number already exists in your contacts.",
}


# =============================================================
# Errors
# =============================================================
class ContactStoreError(Exception):
    """Base class for everything the contact store raises."""


class ValidationError(ContactStoreError):
    """One or more fields are invalid. ``errors`` maps field -> message."""

    def __init__(self, errors):
        self.errors = dict(errors)
        super().__init__("; ".join(self.errors.values()) or "Invalid contact.")


class ConstraintViolation(ValidationError):
    """The store refused a write (empty field or uniqueness conflict)."""


class ContactNotFound(ContactStoreError):
    def __init__(self, contact_id):
        self.contact_id = contact_id
        super().__init__(f"Contact {contact_id} not found.")


class StoreUnavailable(ContactStoreError):
    """The database could not be reached or failed mid-operation."""

    def __init__(self, operation, contact_id=None):
        self.operation = operation
        self.contact_id = contact_id
        super().__init__(f"Contact store unavailable during {operation}.")


# =============================================================
# Model
# =============================================================
@dataclass(frozen=True)
class Contact:
    id: int
    first_name: str
    last_name: str
    phone_number: str
    email: str
    created_at: str

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row["id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            phone_number=row["phone_number"],
            email=row["email"],
            created_at=row["created_at"],
        )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


def required_field_errors(values):
    """Messages for every required field that is missing or blank."""
    errors = {}
    for field in REQUIRED_FIELDS:
        if not (values.get(field) or "").strip():
            errors[field] = f"{FIELD_LABELS[field]} is required."
    return errors


def _like_pattern(fragment):
    # % and _ are wildcards for LIKE; match them literally.
    escaped = (
        fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )
    return f"%{escaped}%"


def _check_page_args(page, page_size):
    for name, value in (("page", page), ("page_size", page_size)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError(f"{name} must be a positive integer, got {value!r}")


def _fits_sqlite_int(value):
    return SQLITE_MIN_INT <= value <= SQLITE_MAX_INT


def _limit_offset(page, page_size):
    """
    LIMIT / OFFSET for a page, or None when the offset lies beyond any
    row SQLite could hold.
    """
    offset = (page - 1) * page_size
    if offset > SQLITE_MAX_INT:
        return None
    return min(page_size, SQLITE_MAX_INT), offset


# =============================================================
# Record store
# =============================================================
class ContactStore:
    """
    Thin repository over the ``contacts`` table.

    Every public call opens its own connection and closes it before
    returning, so one store instance can be shared by all request
    threads. All SQL uses '?' placeholders with a separate args tuple.
    """

    def __init__(self, db_path, timeout=5.0):
        self.db_path = Path(db_path)
        self.timeout = timeout

    def __repr__(self):
        return f"ContactStore({str(self.db_path)!r})"

    # ---------------------------------------------------------
    # Connection helpers
    # ---------------------------------------------------------
    def get_connection(self):
        """
        New SQLite connection in autocommit mode with
        row_factory = sqlite3.Row so columns are addressable by name.
        """
        conn = sqlite3.connect(
            self.db_path,
            timeout=self.timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(self, operation, contact_id=None):
        """
        Yield a connection; translate infrastructure failures into
        StoreUnavailable. IntegrityError is left for the caller.
        """
        conn = None
        try:
            conn = self.get_connection()
            yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as exc:
            log_with_context(
                logger,
                logging.ERROR,
                "Contact store operation failed",
                exc_info=True,
                operation=operation,
                contact_id=contact_id,
                db_path=str(self.db_path),
            )
            raise StoreUnavailable(operation, contact_id) from exc
        finally:
            if conn is not None:
                conn.close()

    def _query(self, operation, query, args=(), one=False, contact_id=None):
        with self._connection(operation, contact_id) as conn:
            rows = conn.execute(query, args).fetchall()
        if one:
            return rows[0] if rows else None
        return rows

    def _in_transaction(self, operation, work, contact_id=None):
        """
        Run ``work(conn)`` inside BEGIN IMMEDIATE ... COMMIT.

        IMMEDIATE takes the write lock up front, so the statements in
        ``work`` see no interleaved writers. Any failure rolls back.
        """
        with self._connection(operation, contact_id) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                result = work(conn)
            except Exception:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
            return result

    # ---------------------------------------------------------
    # Schema
    # ---------------------------------------------------------
    def init_schema(self):
        """Create the contacts table. Safe to call repeatedly."""
        with self._connection("init_schema") as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS contacts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    phone_number TEXT NOT NULL UNIQUE,
                    email TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
        logger.debug("Contacts schema ready at %s", self.db_path)

    # ---------------------------------------------------------
    # Reads
    # ---------------------------------------------------------
    def get_page(self, page, page_size=DEFAULT_PAGE_SIZE):
        """Contacts ordered by id, ``page`` is 1-based."""
        _check_page_args(page, page_size)
        window = _limit_offset(page, page_size)
        if window is None:
            return []
        rows = self._query(
            "get_page",
            "SELECT * FROM contacts ORDER BY id LIMIT ? OFFSET ?",
            window,
        )
        return [Contact.from_row(r) for r in rows]

    def search(self, name_fragment, page, page_size=DEFAULT_PAGE_SIZE):
        """
        Same paging contract as get_page(), limited to contacts whose first
        or last name contains ``name_fragment``. Matching is
        case-insensitive for ASCII letters (SQLite LIKE semantics).
        """
        fragment = (name_fragment or "").strip()
        if not fragment:
            return self.get_page(page, page_size)
        _check_page_args(page, page_size)
        window = _limit_offset(page, page_size)
        if window is None:
            return []

        pattern = _like_pattern(fragment)
        rows = self._query(
            "search",
            """
            SELECT * FROM contacts
            WHERE first_name LIKE ? ESCAPE '\\' OR last_name LIKE ? ESCAPE '\\'
            ORDER BY id
            LIMIT ? OFFSET ?
            """,
            (pattern, pattern, *window),
        )
        return [Contact.from_row(r) for r in rows]

    def count(self, name_fragment=""):
        """Number of contacts the matching search() would page through."""
        fragment = (name_fragment or "").strip()
        if not fragment:
            row = self._query("count", "SELECT COUNT(*) AS cnt FROM contacts", one=True)
        else:
            pattern = _like_pattern(fragment)
            row = self._query(
                "count",
                """
                SELECT COUNT(*) AS cnt FROM contacts
                WHERE first_name LIKE ? ESCAPE '\\' OR last_name LIKE ? ESCAPE '\\'
                """,
                (pattern, pattern),
                one=True,
            )
        return row["cnt"]

    def find_by_id(self, contact_id):
        if not _fits_sqlite_int(contact_id):
            return None
        row = self._query(
            "find_by_id",
            "SELECT * FROM contacts WHERE id = ?",
            (contact_id,),
            one=True,
            contact_id=contact_id,
        )
        return Contact.from_row(row) if row else None

    def field_in_use(self, field, value, exclude_id=None):
        """
        True when a contact other than ``exclude_id`` holds ``value``
        in the unique column behind ``field`` (email or phone).
        """
        column = UNIQUE_FIELDS.get(field)
        if column is None:
            raise ValueError(f"Unknown unique field: {field!r}")
        if exclude_id is not None and not _fits_sqlite_int(exclude_id):
            # No stored contact can have that id.
            exclude_id = None

        # column comes from the whitelist above, never from the request
        row = self._query(
            "field_in_use",
            f"SELECT 1 FROM contacts WHERE {column} = ? AND (? IS NULL OR id != ?) LIMIT 1",
            (value, exclude_id, exclude_id),
            one=True,
        )
        return row is not None

    # ---------------------------------------------------------
    # Writes
    # ---------------------------------------------------------
    def _conflicts(self, conn, values, exclude_id=None):
        """Which unique columns of ``values`` are held by another row."""
        errors = {}
        for column in ("email", "phone_number"):
            row = conn.execute(
                f"SELECT 1 FROM contacts WHERE {column} = ? AND (? IS NULL OR id != ?)",
                (values[column], exclude_id, exclude_id),
            ).fetchone()
            if row is not None:
                errors[column] = IN_USE_MESSAGES[column]
        return errors

    def _write(self, operation, work, values, contact_id=None):
        """
        Run a single-row write. A UNIQUE failure from SQLite is the final
        word on uniqueness; it is reported per field.
        """
        try:
            return self._in_transaction(operation, work, contact_id)
        except sqlite3.IntegrityError as exc:
            with self._connection(operation, contact_id) as conn:
                errors = self._conflicts(conn, values, exclude_id=contact_id)
            if not errors:
                # Conflicting row vanished since; fall back on SQLite's message.
                message = str(exc)
                column = "phone_number" if "phone_number" in message else "email"
                errors = {column: IN_USE_MESSAGES[column]}
            log_with_context(
                logger,
                logging.INFO,
                "Contact write rejected by unique constraint",
                operation=operation,
                contact_id=contact_id,
                fields=sorted(errors),
            )
            raise ConstraintViolation(errors) from exc

    def create(self, first_name, last_name, phone_number, email):
        """Insert a contact and return it with its id and created_at."""
        values = {
            "first_name": (first_name or "").strip(),
            "last_name": (last_name or "").strip(),
            "phone_number": (phone_number or "").strip(),
            "email": (email or "").strip(),
        }
        errors = required_field_errors(values)
        if errors:
            raise ConstraintViolation(errors)

        def work(conn):
            cur = conn.execute(
                """
                INSERT INTO contacts (first_name, last_name, phone_number, email)
                VALUES (?, ?, ?, ?)
                """,
                (
                    values["first_name"],
                    values["last_name"],
                    values["phone_number"],
                    values["email"],
                ),
            )
            row = conn.execute(
                "SELECT * FROM contacts WHERE id = ?", (cur.lastrowid,)
            ).fetchone()
            return Contact.from_row(row)

        contact = self._write("create", work, values)
        log_with_context(
            logger, logging.INFO, "Contact created", operation="create", contact_id=contact.id
        )
        return contact

    def update(self, contact_id, first_name, last_name, phone_number, email):
        """
        Overwrite the editable fields of an existing contact.
        id and created_at never change.
        """
        if not _fits_sqlite_int(contact_id):
            raise ContactNotFound(contact_id)

        values = {
            "first_name": (first_name or "").strip(),
            "last_name": (last_name or "").strip(),
            "phone_number": (phone_number or "").strip(),
            "email": (email or "").strip(),
        }
        errors = required_field_errors(values)
        if errors:
            raise ConstraintViolation(errors)

        def work(conn):
            cur = conn.execute(
                """
                UPDATE contacts
                SET first_name = ?, last_name = ?, phone_number = ?, email = ?
                WHERE id = ?
                """,
                (
                    values["first_name"],
                    values["last_name"],
                    values["phone_number"],
                    values["email"],
                    contact_id,
                ),
            )
            if cur.rowcount == 0:
                raise ContactNotFound(contact_id)
            row = conn.execute(
                "SELECT * FROM contacts WHERE id = ?", (contact_id,)
            ).fetchone()
            return Contact.from_row(row)

        contact = self._write("update", work, values, contact_id=contact_id)
        log_with_context(
            logger, logging.INFO, "Contact updated", operation="update", contact_id=contact_id
        )
        return contact

    def delete(self, contact_id):
        """
        Hard-delete a contact. Returns True if a row was removed and
        False if there was nothing to delete; neither case is an error.
        """
        if not _fits_sqlite_int(contact_id):
            log_with_context(
                logger,
                logging.INFO,
                "Contact already absent",
                operation="delete",
                contact_id=contact_id,
            )
            return False

        def work(conn):
            cur = conn.execute("DELETE FROM contacts WHERE id = ?", (contact_id,))
            return cur.rowcount > 0

        removed = self._in_transaction("delete", work, contact_id)
        log_with_context(
            logger,
            logging.INFO,
            "Contact deleted" if removed else "Contact already absent",
            operation="delete",
            contact_id=contact_id,
        )
        return removed
