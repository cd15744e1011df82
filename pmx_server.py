#!/usr/bin/env python3
"""
PMX API Server
--------------
JSON API for the PMX planner: LLM proxy endpoints plus project storage.

Usage:
    python pmx_server.py --port 3000 --db ~/.local/share/pmx/pmx.db

API:
    POST /api/assistant         → { reply }          body: { message, history }
    POST /api/extract-pdf       → extracted form     body: { fileBase64, mimeType }
    POST /api/generate-charter  → { charter, risks, wbs, tasks }   body: form fields

    GET    /api/projects                       → { projects, count }
    GET    /api/projects/<id>                  → { project }
    POST   /api/projects                       → { project }   body: { id?, fields }
    DELETE /api/projects/<id>                  → { deleted }
    GET    /api/projects/<id>/budget           → ledger summary
    GET    /api/projects/<id>/gantt            → Gantt bar layout
    POST   /api/projects/<id>/tasks            → { task, kanban }      body: { title, ownerEmail? }
    POST   /api/projects/<id>/tasks/<tid>/move → { kanban }            body: { from, to } | { from, direction }
    DELETE /api/projects/<id>/tasks/<tid>?column=todo → { kanban }
    POST   /api/projects/<id>/events           → { event }             body: { date, title, color?, startTime?, endTime? }
    DELETE /api/projects/<id>/events/<eid>     → { schedule }
    POST   /api/projects/<id>/budget-items     → { item }              body: { category, description, planned, actual }
    PUT    /api/projects/<id>/budget-items/<bid> → { item }
    DELETE /api/projects/<id>/budget-items/<bid> → { budget_items }
    POST   /api/projects/<id>/wbs-items        → { added, kanban }     body: { item }
    DELETE /api/projects/<id>/wbs-items        → { reset }
    GET    /api/projects/<id>/calendar?year=&month=&date= → month grid + events
    GET    /api/calendar?year=&month=          → month grid
    GET    /api/dashboard                      → portfolio stats
    GET/PUT /api/notes                         → { content }
    GET/PUT /api/prefs                         → { theme }             body: { theme } | { toggle: true }
    GET    /health

The session owner comes from the X-User-Id header (set by the auth proxy).
Writes also require X-API-Key.
"""

import hmac
import logging
import os
from datetime import datetime
from functools import wraps

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from pmx.calendar import build_grid, date_key, grid_rows, is_today, month_label, WEEKDAY_LABELS
from pmx.clock import SYSTEM_CLOCK
from pmx.config import Config
from pmx.dashboard import portfolio_stats, project_progress
from pmx.generator import assistant_reply, extract_project, generate_charter
from pmx.llm import GeminiClient, LLMError
from pmx.prefs import LocalStateStore
from pmx.schema import Column
from pmx.session import ProjectSession
from pmx.store import PersistenceError, ProjectStore
from pmx.wbs import gantt_layout, wbs_added_key

app = Flask(__name__)
logger = logging.getLogger(__name__)

# ── Wiring ───────────────────────────────────────────────────────────────────

_config = None
_store = None
_llm = None
_state = None


def configure(cfg: Config) -> None:
    """Install a config and drop cached collaborators built from the old one."""
    global _config, _store, _llm, _state
    _config = cfg
    _store = None
    _llm = None
    _state = None
    app.config["MAX_CONTENT_LENGTH"] = int(cfg.max_upload_mb) * 1024 * 1024


def get_config() -> Config:
    if _config is None:
        configure(Config.load(os.environ.get("PMX_CONFIG")))
    return _config


def get_store() -> ProjectStore:
    global _store
    if _store is None:
        _store = ProjectStore(get_config().db_path)
    return _store


def get_llm() -> GeminiClient:
    global _llm
    if _llm is None:
        _llm = GeminiClient.from_config(get_config())
    return _llm


def get_state() -> LocalStateStore:
    global _state
    if _state is None:
        _state = LocalStateStore(get_config().state_path)
    return _state


# ── Auth ─────────────────────────────────────────────────────────────────────


def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = get_config().api_secret
        if not secret:
            return jsonify({"error": "API_SECRET not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return f(*args, **kwargs)
    return decorated


def require_owner(f):
    """Decorator: pass the session owner (X-User-Id) as `owner_id`."""
    @wraps(f)
    def decorated(*args, **kwargs):
        owner_id = request.headers.get("X-User-Id", "").strip()
        if not owner_id:
            return jsonify({"error": "X-User-Id header required"}), 401
        return f(*args, owner_id=owner_id, **kwargs)
    return decorated


# ── Errors ───────────────────────────────────────────────────────────────────


@app.errorhandler(HTTPException)
def http_error(e):
    messages = {
        404: "Not found",
        405: "Method not allowed",
        413: "Request body too large",
    }
    response = jsonify({"error": messages.get(e.code, e.description)})
    response.status_code = e.code
    if e.code == 405 and getattr(e, "valid_methods", None):
        response.headers["Allow"] = ", ".join(e.valid_methods)
    return response


@app.errorhandler(LLMError)
def llm_error(e):
    app.logger.error(f"LLM error ({e.status}): {e.message}")
    return jsonify({"error": e.message or "Failed to generate. Please try again shortly."}), e.http_status


@app.errorhandler(PersistenceError)
def persistence_error(e):
    app.logger.error(f"Persistence error: {e}")
    return jsonify({"error": str(e)}), 500


def _body() -> dict:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


# ── LLM proxy routes ─────────────────────────────────────────────────────────


@app.route("/api/assistant", methods=["POST"])
def api_assistant():
    data = _body()
    message = str(data.get("message") or "").strip()
    if not message:
        return jsonify({"error": "No message provided"}), 400
    history = data.get("history") if isinstance(data.get("history"), list) else []
    reply = assistant_reply(get_llm(), message, history)
    return jsonify({"reply": reply})


@app.route("/api/extract-pdf", methods=["POST"])
def api_extract_pdf():
    data = _body()
    file_b64 = data.get("fileBase64")
    if not file_b64:
        return jsonify({"error": "No file data provided"}), 400
    fields = extract_project(get_llm(), file_b64, data.get("mimeType") or "application/pdf")
    return jsonify(fields)


@app.route("/api/generate-charter", methods=["POST"])
def api_generate_charter():
    result = generate_charter(get_llm(), _body())
    return jsonify(result)


# ── Projects ─────────────────────────────────────────────────────────────────


@app.route("/api/projects", methods=["GET"])
@require_owner
def api_projects(owner_id):
    projects = [p.to_dict() for p in get_store().list(owner_id)]
    return jsonify({"projects": projects, "count": len(projects)})


@app.route("/api/projects/<project_id>", methods=["GET"])
@require_owner
def api_project(project_id, owner_id):
    record = get_store().get(owner_id, project_id)
    if not record:
        return jsonify({"error": "Project not found"}), 404
    return jsonify({"project": record.to_dict()})


@app.route("/api/projects", methods=["POST"])
@require_api_key
@require_owner
def api_save_project(owner_id):
    """Create or overwrite a project (whole-blob save)."""
    data = _body()
    project_id = data.get("id") or None
    fields = data.get("fields")
    if not isinstance(fields, dict):
        return jsonify({"error": "fields must be an object"}), 400

    store = get_store()
    if project_id and store.get(owner_id, project_id) is None:
        return jsonify({"error": "Project not found"}), 404
    record = store.save(owner_id, project_id, fields)
    return jsonify({"project": record.to_dict()}), (200 if project_id else 201)


@app.route("/api/projects/<project_id>", methods=["DELETE"])
@require_api_key
@require_owner
def api_delete_project(project_id, owner_id):
    if not get_store().delete(owner_id, project_id):
        return jsonify({"error": "Project not found"}), 404
    get_state().remove(wbs_added_key(owner_id, project_id))
    return jsonify({"deleted": True, "id": project_id})


@app.route("/api/projects/<project_id>/budget", methods=["GET"])
@require_owner
def api_project_budget(project_id, owner_id):
    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    return jsonify(session.budget_summary())


@app.route("/api/projects/<project_id>/gantt", methods=["GET"])
@require_owner
def api_project_gantt(project_id, owner_id):
    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    try:
        total_weeks = int(session.form.get("duration") or 0) or None
    except ValueError:
        total_weeks = None
    return jsonify(gantt_layout(session.wbs, total_weeks, session.form.get("project_type", "")))


# ── Board / schedule / budget edits ──────────────────────────────────────────
#
# Each request loads the project into a session, applies one edit, and
# saves the whole snapshot straight away (no debounce server-side).


def _open_session(owner_id: str, project_id: str):
    return ProjectSession.open(
        get_store(), owner_id, project_id,
        state=get_state(),
        autosave_delay=float(get_config().autosave_delay_secs),
    )


def _commit(session: ProjectSession) -> None:
    """Flush the session; a failed save surfaces as a 500."""
    session.close()
    if session.error:
        raise PersistenceError(session.error)


def _column_arg(value):
    col = Column.from_str(value)
    if col is None:
        raise ValueError(f"Invalid column: {value}")
    return col


@app.route("/api/projects/<project_id>/tasks", methods=["POST"])
@require_api_key
@require_owner
def api_add_task(project_id, owner_id):
    data = _body()
    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    task = session.board.add(str(data.get("title") or ""), data.get("ownerEmail"))
    if task is None:
        return jsonify({"error": "title is required"}), 400
    _commit(session)
    return jsonify({"task": task.to_dict(), "kanban": session.board.to_payload()}), 201


@app.route("/api/projects/<project_id>/tasks/<task_id>/move", methods=["POST"])
@require_api_key
@require_owner
def api_move_task(project_id, task_id, owner_id):
    data = _body()
    try:
        from_col = _column_arg(data.get("from"))
        if "direction" in data:
            direction = int(data["direction"])
            if direction not in (-1, 1):
                raise ValueError("direction must be -1 or 1")
            to_col = None
        else:
            to_col = _column_arg(data.get("to"))
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    if to_col is None:
        moved = session.board.move_step(task_id, from_col, direction)
    else:
        moved = session.board.move(task_id, from_col, to_col)
    _commit(session)
    return jsonify({"moved": moved, "kanban": session.board.to_payload()})


@app.route("/api/projects/<project_id>/tasks/<task_id>", methods=["DELETE"])
@require_api_key
@require_owner
def api_delete_task(project_id, task_id, owner_id):
    try:
        col = _column_arg(request.args.get("column"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    removed = session.board.remove(task_id, col)
    _commit(session)
    return jsonify({"removed": removed, "kanban": session.board.to_payload()})


@app.route("/api/projects/<project_id>/events", methods=["POST"])
@require_api_key
@require_owner
def api_add_event(project_id, owner_id):
    data = _body()
    date = str(data.get("date") or "")
    try:
        datetime.strptime(date, "%Y-%m-%d")
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400
    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    event = session.schedule.add_event(
        date,
        str(data.get("title") or ""),
        data.get("color", "accent"),
        str(data.get("startTime") or ""),
        str(data.get("endTime") or ""),
    )
    if event is None:
        return jsonify({"error": "title is required"}), 400
    _commit(session)
    return jsonify({"event": event.to_dict()}), 201


@app.route("/api/projects/<project_id>/events/<event_id>", methods=["DELETE"])
@require_api_key
@require_owner
def api_delete_event(project_id, event_id, owner_id):
    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    removed = session.schedule.delete_event(event_id)
    _commit(session)
    return jsonify({"removed": removed, "schedule": session.schedule.to_payload()})


@app.route("/api/projects/<project_id>/budget-items", methods=["POST"])
@require_api_key
@require_owner
def api_add_budget_item(project_id, owner_id):
    data = _body()
    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    item = session.budget.add_item(
        data.get("category", "Other"),
        str(data.get("description") or ""),
        data.get("planned", 0),
        data.get("actual", 0),
    )
    if item is None:
        return jsonify({"error": "description is required"}), 400
    _commit(session)
    return jsonify({"item": item.to_dict()}), 201


@app.route("/api/projects/<project_id>/budget-items/<item_id>", methods=["PUT"])
@require_api_key
@require_owner
def api_update_budget_item(project_id, item_id, owner_id):
    data = _body()
    allowed = {k: data[k] for k in ("category", "description", "planned", "actual") if k in data}
    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    if session.budget.get(item_id) is None:
        return jsonify({"error": "Budget item not found"}), 404
    if not session.budget.update_item(item_id, **allowed):
        return jsonify({"error": "description must not be blank"}), 400
    _commit(session)
    return jsonify({"item": session.budget.get(item_id).to_dict()})


@app.route("/api/projects/<project_id>/budget-items/<item_id>", methods=["DELETE"])
@require_api_key
@require_owner
def api_delete_budget_item(project_id, item_id, owner_id):
    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    removed = session.budget.delete_item(item_id)
    _commit(session)
    return jsonify({"removed": removed, "budget_items": session.budget.to_payload()})


@app.route("/api/projects/<project_id>/wbs-items", methods=["POST"])
@require_api_key
@require_owner
def api_send_wbs_item(project_id, owner_id):
    """Copy a WBS deliverable onto the board (once per item)."""
    item = str(_body().get("item") or "").strip()
    if not item:
        return jsonify({"error": "item is required"}), 400
    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    added = session.send_wbs_item_to_board(item)
    _commit(session)
    return jsonify({"added": added, "kanban": session.board.to_payload()})


@app.route("/api/projects/<project_id>/wbs-items", methods=["DELETE"])
@require_api_key
@require_owner
def api_reset_wbs_items(project_id, owner_id):
    """Forget which WBS items were sent, so they can be sent again."""
    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    session.wbs_added.reset()
    return jsonify({"reset": True})


# ── Calendar / dashboard / notes / prefs ─────────────────────────────────────


def _year_month_args(now):
    """(year, month) from the query string, defaulting to now. Raises ValueError."""
    try:
        year = int(request.args.get("year", now.year))
        month = int(request.args.get("month", now.month))
    except ValueError:
        raise ValueError("year and month must be integers")
    if not 1 <= month <= 12 or not 1 <= year <= 9999:
        raise ValueError("month must be 1-12")
    return year, month


def _month_view(year: int, month: int, now) -> dict:
    return {
        "year": year,
        "month": month,
        "label": f"{month_label(month)} {year}",
        "weekdays": WEEKDAY_LABELS,
        "cells": build_grid(year, month),
        "rows": grid_rows(year, month),
        "today": now.day if (now.year, now.month) == (year, month) else None,
    }


@app.route("/api/calendar")
def api_calendar():
    now = SYSTEM_CLOCK.now()
    try:
        year, month = _year_month_args(now)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(_month_view(year, month, now))


@app.route("/api/projects/<project_id>/calendar")
@require_owner
def api_project_calendar(project_id, owner_id):
    """Month grid with the project's events; ?date= also returns that day's list."""
    now = SYSTEM_CLOCK.now()
    try:
        year, month = _year_month_args(now)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    selected = request.args.get("date")
    if selected is not None:
        try:
            datetime.strptime(selected, "%Y-%m-%d")
        except ValueError:
            return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    session = _open_session(owner_id, project_id)
    if session is None:
        return jsonify({"error": "Project not found"}), 404
    schedule = session.schedule

    view = _month_view(year, month, now)
    view["events"] = {
        key: [e.to_dict() for e in schedule.events_for_date(key)]
        for key in sorted(schedule.events_in_month(year, month))
    }
    view["days"] = [
        {
            "day": day,
            "date": date_key(year, month, day),
            "today": is_today(day, year, month, now),
            "event_count": len(view["events"].get(date_key(year, month, day), [])),
        }
        for day in view["cells"] if day is not None
    ]
    if selected is not None:
        view["selected"] = {
            "date": selected,
            "events": [e.to_dict() for e in schedule.events_for_date(selected)],
        }
    return jsonify(view)


@app.route("/api/dashboard")
@require_owner
def api_dashboard(owner_id):
    records = get_store().list(owner_id)
    return jsonify({
        "stats": portfolio_stats(records),
        "projects": [project_progress(r) for r in records],
    })


@app.route("/api/notes", methods=["GET"])
@require_owner
def api_notes_get(owner_id):
    return jsonify({"content": get_store().fetch_note(owner_id)})


@app.route("/api/notes", methods=["PUT"])
@require_api_key
@require_owner
def api_notes_put(owner_id):
    content = _body().get("content", "")
    if not isinstance(content, str):
        return jsonify({"error": "content must be a string"}), 400
    get_store().save_note(owner_id, content)
    return jsonify({"content": content})


@app.route("/api/prefs", methods=["GET"])
@require_owner
def api_prefs_get(owner_id):
    return jsonify({"theme": get_state().theme_for(owner_id)})


@app.route("/api/prefs", methods=["PUT"])
@require_api_key
@require_owner
def api_prefs_put(owner_id):
    data = _body()
    state = get_state()
    if data.get("toggle"):
        state.toggle_theme(owner_id)
    elif "theme" in data and not state.set_theme(data["theme"], owner_id):
        return jsonify({"error": "theme must be 'dark' or 'light'"}), 400
    return jsonify({"theme": state.theme_for(owner_id)})


@app.route("/health")
def health():
    cfg = get_config()
    return jsonify({
        "status": "ok",
        "db": cfg.db_path,
        "model": cfg.model,
        "llm_configured": bool(cfg.gemini_api_key),
    })


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="PMX API Server")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--db", help="Path to pmx.db (overrides PMX_DB env var)")
    parser.add_argument("--config", help="Path to pmx.yaml")
    args = parser.parse_args()

    if args.db:
        os.environ["PMX_DB"] = args.db

    cfg = Config.load(args.config)
    configure(cfg)

    logging.basicConfig(
        level=getattr(logging, cfg.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info(f"PMX server on http://{args.host}:{args.port} (db={cfg.db_path}, model={cfg.model})")
    if not cfg.gemini_api_key:
        logger.warning("GEMINI_API_KEY not set; AI endpoints will return 500")

    app.run(host=args.host, port=args.port, debug=False, threaded=True)
