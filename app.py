import logging
import os
from dataclasses import dataclass, field

from flask import (
    Flask,
    abort,
    flash,
    make_response,
    redirect,
    render_template_string,
    request,
    url_for,
)
from werkzeug.exceptions import HTTPException

from app_logging import configure_logging, get_logger, log_with_context
from contact_store import (
    DEFAULT_PAGE_SIZE,
    ConstraintViolation,
    ContactNotFound,
    ContactStore,
    StoreUnavailable,
)
from contact_templates import (
    CONTACT_FORM_TEMPLATE,
    CONTACT_ROWS_TEMPLATE,
    CONTACT_TEMPLATE,
    CONTACTS_TEMPLATE,
    ERROR_TEMPLATE,
    VALIDATION_FRAGMENT_TEMPLATE,
)
from contact_validation import ContactForm, ContactValidator

logger = get_logger(__name__)


# =============================================================
# Configuration
# =============================================================
def _sqlite_path(url):
    """
    Accept either a bare path or a sqlite URL
    (sqlite:contacts.db, sqlite://contacts.db, sqlite:///tmp/contacts.db).
    """
    path = url.split("?", 1)[0]
    if path.startswith("sqlite://"):
        return path[len("sqlite://"):]
    if path.startswith("sqlite:"):
        return path[len("sqlite:"):]
    return path


def load_config():
    """Settings read from the environment; create_app() may override them."""
    # On App Engine standard /tmp is the only writable place.
    if os.environ.get("GAE_ENV") == "standard":
        default_db = "/tmp/contacts.db"
    else:
        default_db = "contacts.db"

    return {
        "SECRET_KEY": os.environ.get("SECRET_KEY", "dev-secret-key"),
        "DATABASE": _sqlite_path(os.environ.get("DATABASE_URL", default_db)),
        "DATABASE_TIMEOUT": float(os.environ.get("DATABASE_TIMEOUT", "5.0")),
        "PAGE_SIZE": int(os.environ.get("PAGE_SIZE", str(DEFAULT_PAGE_SIZE))),
        "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO"),
    }


# =============================================================
# View models
# =============================================================
@dataclass
class ContactPage:
    contacts: list = field(default_factory=list)
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total: int = 0
    q: str = ""

    @property
    def has_next(self):
        return self.page * self.page_size < self.total

    @property
    def has_previous(self):
        return self.page > 1

    @property
    def next_page(self):
        return self.page + 1

    @property
    def previous_page(self):
        return max(1, self.page - 1)


def _page_arg():
    # Anything that is not a positive integer means the first page.
    page = request.args.get("page", 1, type=int)
    return page if page and page > 0 else 1


def _exclude_id_arg():
    return request.args.get("id", None, type=int)


def render_error(status, heading, message):
    html = render_template_string(
        ERROR_TEMPLATE,
        title=heading,
        status=status,
        heading=heading,
        message=message,
    )
    return html, status


# =============================================================
# Application factory
# =============================================================
def create_app(test_config=None, store=None):
    """
    Build the Flask app. The contact store is created here (or passed in)
    and handed to the routes; nothing else holds on to it.
    """
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    if test_config is not None:
        app.config.from_mapping(test_config)

    if not app.testing:
        configure_logging(app.config["LOG_LEVEL"])

    if store is None:
        store = ContactStore(app.config["DATABASE"], timeout=app.config["DATABASE_TIMEOUT"])
    store.init_schema()

    app.extensions["contact_store"] = store
    register_routes(app, store, ContactValidator(store))
    register_error_handlers(app)

    logger.info("Contacts app ready, database at %s", store.db_path)
    return app


def register_routes(app, store, validator):
    page_size = app.config["PAGE_SIZE"]

    @app.route("/")
    def index():
        return redirect(url_for("list_contacts"))

    @app.route("/contacts")
    def list_contacts():
        q = (request.args.get("q") or "").strip()
        page = _page_arg()

        if q:
            contacts = store.search(q, page, page_size)
        else:
            contacts = store.get_page(page, page_size)
        contact_page = ContactPage(
            contacts=contacts,
            page=page,
            page_size=page_size,
            total=store.count(q),
            q=q,
        )

        # Active search only needs the table body.
        if request.headers.get("HX-Trigger") == "search":
            return render_template_string(CONTACT_ROWS_TEMPLATE, page=contact_page)
        return render_template_string(CONTACTS_TEMPLATE, page=contact_page, title="Contacts")

    @app.route("/contacts/new", methods=["GET", "POST"])
    def new_contact():
        form = ContactForm()

        if request.method == "POST":
            form = ContactForm.from_form(request.form)
            form.errors = validator.check(form)
            if not form.errors:
                try:
                    store.create(**form.values())
                except ConstraintViolation as exc:
                    # Lost a race with a concurrent write; the table decides.
                    form.errors = exc.errors
                else:
                    flash("Created New Contact!")
                    return redirect(url_for("list_contacts"))

        return render_template_string(
            CONTACT_FORM_TEMPLATE,
            form=form,
            contact_id=None,
            title="New Contact",
        )

    @app.route("/contacts/validate")
    def validate_contact():
        field_name = request.args.get("field", "")
        if field_name not in ("email", "phone"):
            abort(400, description="field must be 'email' or 'phone'.")

        # htmx sends the input under its own name; plain callers use ?value=
        form_name = "email" if field_name == "email" else "phone_number"
        value = request.args.get("value")
        if value is None:
            value = request.args.get(form_name, "")

        exclude_id = _exclude_id_arg()
        available, message = validator.availability_message(
            field_name, value, exclude_id=exclude_id
        )

        # The submit button covers both fields; the other one arrives via hx-include.
        if field_name == "email":
            email, phone = value, request.args.get("phone_number", "")
        else:
            email, phone = request.args.get("email", ""), value
        can_save = validator.fields_available(email, phone, exclude_id=exclude_id)

        return render_template_string(
            VALIDATION_FRAGMENT_TEMPLATE,
            available=available,
            message=message,
            can_save=can_save,
        )

    @app.route("/contacts/<int:contact_id>")
    def show_contact(contact_id):
        contact = store.find_by_id(contact_id)
        if contact is None:
            raise ContactNotFound(contact_id)
        return render_template_string(CONTACT_TEMPLATE, contact=contact, title=contact.full_name)

    @app.route("/contacts/<int:contact_id>/edit", methods=["GET", "POST"])
    def edit_contact(contact_id):
        contact = store.find_by_id(contact_id)
        if contact is None:
            raise ContactNotFound(contact_id)

        form = ContactForm.from_contact(contact)

        if request.method == "POST":
            form = ContactForm.from_form(request.form)
            form.errors = validator.check(form, exclude_id=contact_id)
            if not form.errors:
                try:
                    store.update(contact_id, **form.values())
                except ConstraintViolation as exc:
                    form.errors = exc.errors
                else:
                    flash("Updated Contact!")
                    return redirect(url_for("show_contact", contact_id=contact_id))

        return render_template_string(
            CONTACT_FORM_TEMPLATE,
            form=form,
            contact_id=contact_id,
            title="Edit Contact",
        )

    @app.route("/contacts/<int:contact_id>", methods=["DELETE"])
    def delete_contact(contact_id):
        removed = store.delete(contact_id)
        message = "Deleted Contact!" if removed else "Contact was already deleted."

        # From the contact's own page: go back to the list.
        if request.headers.get("HX-Trigger") == "delete-btn":
            flash(message)
            response = make_response("", 200)
            response.headers["HX-Redirect"] = url_for("list_contacts")
            return response

        # From a table row: an empty body makes htmx drop the row.
        if request.headers.get("HX-Request"):
            return ""

        return message


def register_error_handlers(app):
    @app.errorhandler(ContactNotFound)
    def contact_not_found(error):
        return render_error(404, "Not Found", "That contact does not exist.")

    @app.errorhandler(StoreUnavailable)
    def store_unavailable(error):
        log_with_context(
            logger,
            logging.ERROR,
            "Request failed, contact store unavailable",
            operation=error.operation,
            contact_id=error.contact_id,
            method=request.method,
            path=request.path,
        )
        return render_error(503, "Service Unavailable", "Contacts are unavailable right now. Please try again.")

    @app.errorhandler(Exception)
    def unhandled(error):
        if isinstance(error, HTTPException):
            return render_error(error.code, error.name, error.description)

        log_with_context(
            logger,
            logging.ERROR,
            "Unhandled error",
            exc_info=True,
            method=request.method,
            path=request.path,
        )
        return render_error(500, "Internal Server Error", "Something went wrong on our side.")


if __name__ == "__main__":
    # Local dev only – production runs gunicorn with wsgi:app
    port = int(os.environ.get("PORT", "2911"))
    create_app().run(host=os.environ.get("HOST", "0.0.0.0"), port=port, debug=True)
