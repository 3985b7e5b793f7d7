"""Flask back-office for medical service prices.

- ``GET /records`` and ``PATCH /records/<id>`` expose the JSON records store.
  Only ``price`` and ``on_sale`` can change; records are never created or
  deleted here.
- ``/dashboard/prices`` renders the records table server-side. Filters,
  sorting and paging live in the query string, and each editable cell posts
  back through the same optimistic-update logic a remote client would use.
- The whole store is rewritten on every patch. Writes are atomic with
  rotating backups, and patches inside one process are serialized.
"""

from __future__ import annotations

from dataclasses import replace
import logging
from pathlib import Path
from urllib.parse import parse_qsl, urlencode

import click
from flask import (
    Flask,
    request,
    jsonify,
    render_template,
    redirect,
    url_for,
    flash,
)
from flask_cors import CORS
from flask_talisman import Talisman
from pydantic import ValidationError
from werkzeug.datastructures import MultiDict

from desklib.config import load_dashboard_config
from desklib.logging_config import setup_logging
from desklib.storage import StoreError

from .cells import CELL_TYPES, cell_for
from .models import ON_SALE_VALUES, format_price
from .navigation import sidebar_groups
from .services.record_store import RecordCatalog, RecordNotFound
from .table import COLUMNS, COLUMNS_BY_ID, MULTI, RecordsTable, TableState

BASE_DIR = Path(__file__).resolve().parent
TEMPLATE_DIR = BASE_DIR / "templates"

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
CONFIG = load_dashboard_config(BASE_DIR)
setup_logging(CONFIG.log_level, CONFIG.log_file)
logger = logging.getLogger(__name__)

RECORDS_FILE = CONFIG.records_file
RECORD_BACKUPS = CONFIG.record_backups
PAGE_SIZE = CONFIG.page_size

_RECORD_CATALOG: RecordCatalog | None = None


def record_catalog() -> RecordCatalog:
    """Return the catalog for ``RECORDS_FILE``, rebuilding it if the path moved."""

    global _RECORD_CATALOG
    if _RECORD_CATALOG is None or Path(_RECORD_CATALOG.path) != Path(RECORDS_FILE):
        _RECORD_CATALOG = RecordCatalog(RECORDS_FILE, backups=RECORD_BACKUPS)
    return _RECORD_CATALOG


# ---------------------------------------------------------------------------
# Flask app
# ---------------------------------------------------------------------------
app = Flask(__name__, template_folder=str(TEMPLATE_DIR))
app.config.update(
    SECRET_KEY=CONFIG.secret_key,
    SESSION_COOKIE_SAMESITE="Lax",
    SESSION_COOKIE_SECURE=CONFIG.force_tls,
    PREFERRED_URL_SCHEME=CONFIG.scheme,
)
# Records are returned in store order with their keys as written.
app.json.sort_keys = False

CORS(app, resources={r"/records*": {"origins": list(CONFIG.allowed_origins)}})
Talisman(
    app,
    content_security_policy=None,
    force_https=CONFIG.force_tls,
    session_cookie_secure=CONFIG.force_tls,
)


@app.context_processor
def inject_template_globals():
    return {
        "sidebar": sidebar_groups(request.path),
        "format_price": format_price,
    }


def _validation_message(err: ValidationError) -> str:
    fields = sorted({str(e["loc"][0]) for e in err.errors() if e.get("loc")})
    return f"Invalid {', '.join(fields)}" if fields else "Invalid payload"


# ---------------------------------------------------------------------------
# Routes — Records API
# ---------------------------------------------------------------------------
@app.route("/records", methods=["GET"])
def list_records():
    try:
        records = record_catalog().all()
    except StoreError as exc:
        logger.exception("Could not read records store")
        return jsonify({"error": str(exc)}), 500
    return jsonify(records)


@app.route("/records/<record_id>", methods=["PATCH"])
def patch_record(record_id):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Expected a JSON object"}), 400
    try:
        updated = record_catalog().patch(record_id, payload)
    except ValidationError as err:
        message = _validation_message(err)
        logger.info("Rejected patch for %s: %s", record_id, message)
        details = err.errors(include_url=False, include_context=False)
        return jsonify({"error": message, "details": details}), 400
    except RecordNotFound:
        return jsonify({"error": "Not found"}), 404
    except StoreError as exc:
        logger.exception("Could not write records store")
        return jsonify({"error": str(exc)}), 500
    return jsonify(updated)


# ---------------------------------------------------------------------------
# Dashboard pages (SSR)
# ---------------------------------------------------------------------------
def _prices_url(pairs) -> str:
    query = urlencode(list(pairs))
    base = url_for("prices_page")
    return f"{base}?{query}" if query else base


def _sort_pairs(state: TableState, column_id: str):
    probe = RecordsTable([], replace(state, column_filters=dict(state.column_filters)))
    probe.toggle_sorting(column_id)
    return probe.state.to_query()


@app.route("/")
def index():
    return redirect(url_for("dashboard_home"))


@app.route("/dashboard")
def dashboard_home():
    try:
        records = record_catalog().all()
    except StoreError as exc:
        logger.exception("Could not read records store")
        flash(f"Records unavailable: {exc}", "danger")
        records = []
    on_sale = sum(1 for record in records if record.get("on_sale") == "SI")
    return render_template(
        "dashboard/home.html",
        record_count=len(records),
        on_sale_count=on_sale,
    )


@app.route("/dashboard/prices")
def prices_page():
    state = TableState.from_query(request.args, page_size=PAGE_SIZE)
    try:
        rows = record_catalog().all()
    except StoreError as exc:
        logger.exception("Could not read records store")
        flash(f"Records unavailable: {exc}", "danger")
        rows = []
    table = RecordsTable(rows, state)
    page_rows = table.page_rows()
    return render_template(
        "dashboard/prices.html",
        table=table,
        rows=page_rows,
        columns=COLUMNS,
        facets={c.id: table.facets(c.id) for c in COLUMNS if c.filter_kind == MULTI},
        on_sale_values=ON_SALE_VALUES,
        current_query=urlencode(state.to_query()),
        sort_url=lambda column_id: _prices_url(_sort_pairs(state, column_id)),
        prev_url=_prices_url(state.to_query(page_index=max(0, state.page_index - 1))),
        next_url=_prices_url(state.to_query(page_index=state.page_index + 1)),
    )


@app.route("/dashboard/prices/<record_id>", methods=["POST"])
def prices_edit(record_id: str):
    column_id = request.form.get("column", "")
    query = parse_qsl(request.form.get("query", ""))
    back = _prices_url(TableState.from_query(MultiDict(query), page_size=PAGE_SIZE).to_query())

    if column_id not in CELL_TYPES:
        flash("That column cannot be edited", "warning")
        return redirect(back)
    try:
        record = record_catalog().get(record_id)
    except StoreError as exc:
        logger.exception("Could not read records store")
        flash(f"Records unavailable: {exc}", "danger")
        return redirect(back)
    if record is None:
        flash("Record not found", "warning")
        return redirect(back)

    cell = cell_for(RecordsTable([record]), record_id, column_id, record_catalog().patch)
    cell.edit(request.form.get("value", ""))
    changed = cell.commit()
    header = COLUMNS_BY_ID[column_id].header
    if cell.error:
        flash(f"{header}: {cell.error}", "danger")
    elif changed:
        flash(f"{header} saved for {record_id}", "success")
    return redirect(back)


@app.route("/dashboard/slots")
def slots_page():
    return render_template("dashboard/slots.html")


# ---------------------------------------------------------------------------
# Security headers
# ---------------------------------------------------------------------------
@app.after_request
def secure_headers(resp):
    resp.headers["X-Content-Type-Options"] = "nosniff"
    resp.headers["X-Frame-Options"] = "DENY"
    return resp


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
@app.cli.command("check-records")
def check_records_command():
    """Validate the records store and list any problems."""

    problems = record_catalog().check()
    for problem in problems:
        click.echo(problem)
    if problems:
        raise SystemExit(1)
    click.echo(f"{RECORDS_FILE}: OK")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app.run(host=CONFIG.api_host, port=CONFIG.api_port)
