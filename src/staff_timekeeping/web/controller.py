from __future__ import annotations

import csv
import io
from datetime import date
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, request, session

from ..attendance.debounce import StaleResultError
from ..attendance.model import SessionRef
from ..attendance.mutation_service import MutationResult
from ..attendance.query_service import DateRange, HistoryView
from ..common.datetime_utils import now_local, parse_iso_date
from ..core.enums import Role, SortDirection, SortField
from ..core.exceptions import (
    ConcurrentUpdateError,
    DomainError,
    ForbiddenError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from ..container import Container
from ..policies.edit_window import compute_editable_window
from ..policies.permissions import authorize

HISTORY_CSV_FIELDS = ["date", "checkInStr", "checkOutStr", "worked", "checkInEdited", "checkOutEdited"]

_SORT_ALIASES = {
    "date": SortField.DATE,
    "checkin": SortField.CHECK_IN,
    "check_in": SortField.CHECK_IN,
    "checkout": SortField.CHECK_OUT,
    "check_out": SortField.CHECK_OUT,
    "duration": SortField.DURATION,
}


def _error_status(e: DomainError) -> int:
    if isinstance(e, ValidationError):
        return 400
    if isinstance(e, ForbiddenError):
        return 403
    if isinstance(e, NotFoundError):
        return 404
    if isinstance(e, ConcurrentUpdateError):
        return 409
    if isinstance(e, StoreError):
        return 503
    return 400


def _error_body(e: DomainError) -> dict:
    body = {"success": False, "message": str(e)}
    reason = getattr(e, "reason", None)
    if reason is not None:
        body["reason"] = getattr(reason, "value", reason)
    return body


def register(app: Flask, container: Container) -> None:
    def login_required(view):
        """Identity (employee_id, role) is put in the session by the login service."""

        @wraps(view)
        async def wrapper(*args, **kwargs):
            if "employee_id" not in session or "role" not in session:
                return jsonify({"success": False, "message": "Please sign in to continue"}), 401
            try:
                return await view(*args, **kwargs)
            except ConcurrentUpdateError as e:
                return jsonify({"success": False, "message": "Attendance changed meanwhile, reload and retry"}), _error_status(e)
            except StoreError as e:
                # Store details are already logged at the repository boundary.
                return jsonify({"success": False, "message": "Attendance store unavailable, try again later"}), _error_status(e)
            except DomainError as e:
                return jsonify(_error_body(e)), _error_status(e)

        return wrapper

    def _caller() -> tuple[str, Role]:
        return str(session["employee_id"]), Role.parse(session["role"])

    def _date_arg(name: str, default: Optional[date] = None) -> Optional[date]:
        value = request.args.get(name)
        return parse_iso_date(value) if value else default

    def _body() -> dict:
        return request.get_json(silent=True) or {}

    def _mutation_json(result: MutationResult, status: int = 200):
        payload = {
            "success": True,
            "sessionRef": str(result.ref),
            "sessionId": result.ref.session_id,
            "version": result.version,
        }
        if result.session is not None:
            payload["session"] = result.session.to_document()
        return jsonify(payload), status

    async def _history_for_request() -> HistoryView:
        employee_id, role = _caller()
        target = request.args.get("employee") or employee_id
        if role is Role.TEAMMEMBER and target != employee_id:
            raise ForbiddenError("Team members can only view their own attendance")

        start = _date_arg("start")
        end = _date_arg("end")
        date_range = None
        if start or end:
            date_range = DateRange(start=start or date.min, end=end or date.max)

        sort_field = _SORT_ALIASES.get((request.args.get("sort") or "date").lower())
        if sort_field is None:
            raise ValidationError(f"Unknown sort field: {request.args.get('sort')!r}")
        direction = (request.args.get("direction") or SortDirection.DESC.value).lower()

        return await container.query_service.self_history_view(
            target,
            date_range=date_range,
            sort_field=sort_field,
            sort_direction=direction,
        )

    @app.route("/api/attendance/window", methods=["GET"], endpoint="attendance_window")
    @login_required
    async def attendance_window():
        _, role = _caller()
        now = now_local()
        target = _date_arg("date", now.date())
        window = compute_editable_window(now)
        permissions = authorize(role, target, now, window=window)
        return jsonify(
            {
                "success": True,
                "today": now.date().strftime("%Y-%m-%d"),
                "date": target.strftime("%Y-%m-%d"),
                "window": window.to_dict(),
                "dateEditable": window.contains(target),
                "permissions": permissions.to_dict(),
            }
        )

    @app.route("/api/attendance/roster", methods=["GET"], endpoint="attendance_roster")
    @login_required
    async def attendance_roster():
        employee_id, role = _caller()
        now = now_local()
        target = _date_arg("date", now.date())
        loader = container.roster_loader_for(employee_id)
        try:
            rows = await loader.request(target, role, caller_employee_id=employee_id)
        except StaleResultError as e:
            return jsonify({"success": False, "message": str(e), "reason": "superseded"}), 409
        return jsonify(
            {
                "success": True,
                "date": target.strftime("%Y-%m-%d"),
                "permissions": authorize(role, target, now).to_dict(),
                "rows": [r.to_dict() for r in rows],
            }
        )

    @app.route("/api/attendance/history", methods=["GET"], endpoint="attendance_history")
    @login_required
    async def attendance_history():
        view = await _history_for_request()
        return jsonify(
            {
                "success": True,
                "rows": [r.to_dict() for r in view.rows],
                "totalWorkedMinutes": view.total_worked_minutes,
                "totalWorked": view.total_worked,
            }
        )

    @app.route("/api/attendance/history.csv", methods=["GET"], endpoint="attendance_history_csv")
    @login_required
    async def attendance_history_csv():
        view = await _history_for_request()

        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=HISTORY_CSV_FIELDS)
        writer.writeheader()
        for row in view.rows:
            writer.writerow(row.to_dict())

        filename = f"attendance_history_{now_local():%Y%m%d}.csv"
        return app.response_class(
            out.getvalue().encode("utf-8-sig"),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.route("/api/attendance/sessions", methods=["POST"], endpoint="attendance_add_session")
    @login_required
    async def attendance_add_session():
        _, role = _caller()
        data = _body()
        start_s = data.get("shiftStartDate")
        end_s = data.get("shiftEndDate")
        result = await container.mutation_service.add(
            data.get("employeeId"),
            parse_iso_date(start_s) if start_s else None,
            data.get("checkIn"),
            parse_iso_date(end_s) if end_s else None,
            data.get("checkOut"),
            role,
        )
        return _mutation_json(result, 201)

    @app.route(
        "/api/attendance/sessions/<employee_id>/<session_ref>",
        methods=["PATCH"],
        endpoint="attendance_edit_session",
    )
    @login_required
    async def attendance_edit_session(employee_id: str, session_ref: str):
        _, role = _caller()
        data = _body()
        ref = SessionRef.parse(employee_id, session_ref, data.get("sessionId"))
        result = await container.mutation_service.edit(ref, data.get("checkIn"), data.get("checkOut"), role)
        return _mutation_json(result)

    @app.route(
        "/api/attendance/sessions/<employee_id>/<session_ref>",
        methods=["DELETE"],
        endpoint="attendance_delete_session",
    )
    @login_required
    async def attendance_delete_session(employee_id: str, session_ref: str):
        _, role = _caller()
        session_id = request.args.get("sessionId") or _body().get("sessionId")
        ref = SessionRef.parse(employee_id, session_ref, session_id)
        result = await container.mutation_service.delete(ref, role)
        return _mutation_json(result)

    @app.route("/api/attendance/clock-in", methods=["POST"], endpoint="attendance_clock_in")
    @login_required
    async def attendance_clock_in():
        employee_id, _ = _caller()
        result = await container.mutation_service.clock_in(employee_id)
        return _mutation_json(result, 201)

    @app.route("/api/attendance/clock-out", methods=["POST"], endpoint="attendance_clock_out")
    @login_required
    async def attendance_clock_out():
        employee_id, _ = _caller()
        result = await container.mutation_service.clock_out(employee_id)
        return _mutation_json(result)
