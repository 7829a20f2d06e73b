# -------------------------------------------------------------
# TEMPLATES – Bootstrap pages rendered with render_template_string.
# htmx attributes drive the partial updates (active search, row
# delete, live email/phone validation).
# -------------------------------------------------------------

PAGE_HEAD = """
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <title>{{ title }} · Contacts</title>
    <link href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.2/dist/css/bootstrap.min.css" rel="stylesheet">
    <script src="https://unpkg.com/htmx.org@1.9.12"></script>
  </head>
  <body class="bg-light">
"""

BASE_NAV = """
<nav class="navbar navbar-expand-lg navbar-dark bg-primary mb-4">
  <div class="container-fluid">
    <a class="navbar-brand" href="{{ url_for('list_contacts') }}">Contacts</a>
    <div class="navbar-nav">
      <a class="nav-link" href="{{ url_for('list_contacts') }}">All contacts</a>
      <a class="nav-link" href="{{ url_for('new_contact') }}">Add contact</a>
    </div>
  </div>
</nav>
"""

FLASHES = """
      {% with messages = get_flashed_messages() %}
        {% if messages %}
          <div class="alert alert-info">
            {% for m in messages %}<div>{{ m }}</div>{% endfor %}
          </div>
        {% endif %}
      {% endwith %}
"""

PAGE_FOOT = """
    </div>
  </body>
</html>
"""

# Table body rows; also returned alone for active search requests.
CONTACT_ROWS_TEMPLATE = """
{% for c in page.contacts %}
<tr>
  <td>{{ c.first_name }}</td>
  <td>{{ c.last_name }}</td>
  <td>{{ c.phone_number }}</td>
  <td>{{ c.email }}</td>
  <td class="text-end">
    <a class="btn btn-sm btn-outline-primary" href="{{ url_for('show_contact', contact_id=c.id) }}">View</a>
    <a class="btn btn-sm btn-outline-secondary" href="{{ url_for('edit_contact', contact_id=c.id) }}">Edit</a>
    <button class="btn btn-sm btn-outline-danger"
            hx-delete="{{ url_for('delete_contact', contact_id=c.id) }}"
            hx-confirm="Are you sure you want to delete this contact?"
            hx-target="closest tr"
            hx-swap="outerHTML">Delete</button>
  </td>
</tr>
{% else %}
<tr><td colspan="5" class="text-center text-muted">No contacts found.</td></tr>
{% endfor %}
{% if page.has_next %}
<tr>
  <td colspan="5" class="text-center">
    <a class="btn btn-sm btn-link"
       href="{{ url_for('list_contacts', page=page.next_page, q=page.q or None) }}">Load more</a>
  </td>
</tr>
{% endif %}
"""

CONTACTS_TEMPLATE = (
    PAGE_HEAD
    + BASE_NAV
    + """
    <div class="container">
"""
    + FLASHES
    + """
      <div class="d-flex justify-content-between align-items-center mb-3">
        <h1 class="h3 mb-0">Contacts</h1>
        <a class="btn btn-primary" href="{{ url_for('new_contact') }}">+ Add Contact</a>
      </div>

      <form action="{{ url_for('list_contacts') }}" method="get" class="mb-3">
        <input class="form-control" id="search" type="search" name="q" value="{{ page.q }}"
               placeholder="Search by first or last name"
               hx-get="{{ url_for('list_contacts') }}"
               hx-trigger="search, keyup delay:200ms changed"
               hx-target="#contact-rows"
               hx-push-url="true">
      </form>

      <table class="table table-striped table-hover align-middle bg-white shadow-sm">
        <thead class="table-light">
          <tr>
            <th>First</th>
            <th>Last</th>
            <th>Phone</th>
            <th>Email</th>
            <th></th>
          </tr>
        </thead>
        <tbody id="contact-rows">
"""
    + CONTACT_ROWS_TEMPLATE
    + """
        </tbody>
      </table>

      <nav class="d-flex justify-content-between">
        {% if page.has_previous %}
          <a class="btn btn-outline-secondary"
             href="{{ url_for('list_contacts', page=page.previous_page, q=page.q or None) }}">&larr; Previous</a>
        {% else %}<span></span>{% endif %}
        <span class="text-muted small">Page {{ page.page }} · {{ page.total }} contact{{ '' if page.total == 1 else 's' }}</span>
        {% if page.has_next %}
          <a class="btn btn-outline-secondary"
             href="{{ url_for('list_contacts', page=page.next_page, q=page.q or None) }}">Next &rarr;</a>
        {% else %}<span></span>{% endif %}
      </nav>
"""
    + PAGE_FOOT
)

CONTACT_FORM_TEMPLATE = (
    PAGE_HEAD
    + BASE_NAV
    + """
    <div class="container">
"""
    + FLASHES
    + """
      <h1 class="h3 mb-3">
        {% if contact_id %}Edit Contact{% else %}New Contact{% endif %}
      </h1>

      <form method="post" class="card p-3 shadow-sm bg-white" novalidate>
        {% if form.errors %}
          <div class="alert alert-danger" id="form-errors">Contact NOT saved. Please fix the fields below.</div>
        {% endif %}
        <div class="row mb-3">
          <div class="col-md-6">
            <label class="form-label" for="first_name">First name</label>
            <input class="form-control {% if form.errors.first_name %}is-invalid{% endif %}"
                   type="text" id="first_name" name="first_name" value="{{ form.first_name }}" required>
            <div class="invalid-feedback">{{ form.errors.first_name }}</div>
          </div>
          <div class="col-md-6">
            <label class="form-label" for="last_name">Last name</label>
            <input class="form-control {% if form.errors.last_name %}is-invalid{% endif %}"
                   type="text" id="last_name" name="last_name" value="{{ form.last_name }}" required>
            <div class="invalid-feedback">{{ form.errors.last_name }}</div>
          </div>
        </div>
        <div class="row mb-3">
          <div class="col-md-6">
            <label class="form-label" for="phone_number">Phone</label>
            <input class="form-control {% if form.errors.phone_number %}is-invalid{% endif %}"
                   type="tel" id="phone_number" name="phone_number" value="{{ form.phone_number }}" required
                   hx-get="{{ url_for('validate_contact', field='phone', id=contact_id) }}"
                   hx-include="[name='email']"
                   hx-trigger="change, keyup delay:300ms changed"
                   hx-target="#phone-error">
            <div class="small text-danger" id="phone-error">{{ form.errors.phone_number }}</div>
          </div>
          <div class="col-md-6">
            <label class="form-label" for="email">Email</label>
            <input class="form-control {% if form.errors.email %}is-invalid{% endif %}"
                   type="email" id="email" name="email" value="{{ form.email }}" required
                   hx-get="{{ url_for('validate_contact', field='email', id=contact_id) }}"
                   hx-include="[name='phone_number']"
                   hx-trigger="change, keyup delay:300ms changed"
                   hx-target="#email-error">
            <div class="small text-danger" id="email-error">{{ form.errors.email }}</div>
          </div>
        </div>

        <div class="d-flex justify-content-between">
          <a class="btn btn-outline-secondary"
             href="{{ url_for('show_contact', contact_id=contact_id) if contact_id else url_for('list_contacts') }}">Cancel</a>
          <button class="btn btn-success" id="submit-btn" type="submit">Save</button>
        </div>
      </form>
"""
    + PAGE_FOOT
)

CONTACT_TEMPLATE = (
    PAGE_HEAD
    + BASE_NAV
    + """
    <div class="container">
"""
    + FLASHES
    + """
      <div class="card shadow-sm bg-white">
        <div class="card-header d-flex justify-content-between align-items-center">
          <h1 class="h4 mb-0">{{ contact.full_name }}</h1>
          <span class="text-muted small">Added {{ contact.created_at }}</span>
        </div>
        <div class="card-body">
          <p class="mb-1"><strong>Phone:</strong> {{ contact.phone_number }}</p>
          <p class="mb-0"><strong>Email:</strong> {{ contact.email }}</p>
        </div>
        <div class="card-footer d-flex justify-content-between">
          <a class="btn btn-outline-secondary" href="{{ url_for('list_contacts') }}">Back</a>
          <div>
            <a class="btn btn-outline-primary" href="{{ url_for('edit_contact', contact_id=contact.id) }}">Edit</a>
            <button class="btn btn-outline-danger" id="delete-btn"
                    hx-delete="{{ url_for('delete_contact', contact_id=contact.id) }}"
                    hx-confirm="Are you sure you want to delete this contact?"
                    hx-target="body">Delete</button>
          </div>
        </div>
      </div>
"""
    + PAGE_FOOT
)

# Live validation answer: message for the checked field plus an
# out-of-band swap of the submit button, enabled only when neither
# email nor phone is taken.
VALIDATION_FRAGMENT_TEMPLATE = """
<span class="{{ 'text-success' if available else 'text-danger' }}">{{ message }}</span>
{% if can_save %}
<button class="btn btn-success" id="submit-btn" type="submit" hx-swap-oob="true">Save</button>
{% else %}
<button class="btn btn-secondary" id="submit-btn" type="submit" hx-swap-oob="true" disabled>Cannot save</button>
{% endif %}
"""

ERROR_TEMPLATE = (
    PAGE_HEAD
    + BASE_NAV
    + """
    <div class="container">
      <div class="card shadow-sm bg-white">
        <div class="card-body text-center">
          <h1 class="h3">{{ status }} · {{ heading }}</h1>
          <p class="text-muted">{{ message }}</p>
          <a class="btn btn-primary" href="{{ url_for('list_contacts') }}">Back to contacts</a>
        </div>
      </div>
"""
    + PAGE_FOOT
)
