"""
Admin account upload endpoints: preview, import, list and revert CSV uploads.

The browser parses the file and posts ``data`` as a list of row objects
(column -> cell text) together with the operator's ``columnMapping``.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from clinic_tools.errors import ValidationError
from clinic_tools.importer.contracts import ACCOUNT_CSV_FIELDS, suggest_column_mapping
from clinic_tools.importer.csv_accounts import rows_from_records
from clinic_tools.importer.loader import list_uploads, load_import_plans, revert_upload
from clinic_tools.importer.planning import ColumnMapping, plan_import, summarize_plans
from clinic_tools.utils.permissions import admin_required

accounts_blueprint = Blueprint("accounts", __name__, url_prefix="/api/admin/accounts")


def _upload_request(*, require_names: bool):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")

    list_name = payload.get("listName")
    file_name = payload.get("fileName")
    data = payload.get("data")
    if require_names and (not list_name or not file_name):
        raise ValidationError("Missing required fields: listName and fileName")
    if payload.get("columnMapping") is None or data is None:
        raise ValidationError("Missing required fields: columnMapping and data")
    if not isinstance(data, list):
        raise ValidationError("data must be a list of row objects.")

    max_rows = current_app.config.get("DATA_TOOLS_MAX_UPLOAD_ROWS", 5000)
    if len(data) > max_rows:
        raise ValidationError(f"CSV upload exceeds the maximum of {max_rows} rows.")

    mapping = ColumnMapping.from_dict(payload.get("columnMapping"))
    rows = rows_from_records(data)
    return list_name, file_name, mapping, rows


@accounts_blueprint.get("/upload-csv/fields")
@admin_required
def upload_fields():
    headers = request.args.getlist("header")
    return jsonify(
        {
            "fields": [spec.as_dict() for spec in ACCOUNT_CSV_FIELDS],
            "suggestedMapping": suggest_column_mapping(headers) if headers else {},
        }
    )


@accounts_blueprint.post("/upload-csv/preview")
@admin_required
def upload_csv_preview():
    _, _, mapping, rows = _upload_request(require_names=False)
    plans = plan_import(rows, mapping)
    return jsonify({"summary": summarize_plans(plans), "plans": [plan.as_dict() for plan in plans]})


@accounts_blueprint.post("/upload-csv")
@admin_required
def upload_csv():
    list_name, file_name, mapping, rows = _upload_request(require_names=True)
    plans = plan_import(rows, mapping)
    summary = load_import_plans(
        plans,
        list_name=list_name,
        file_name=file_name,
        mapping=mapping,
        user_id=current_user.id,
    )
    current_app.logger.info(
        f"{current_user.email} uploaded {file_name}: {summary.account_count} accounts, "
        f"{summary.location_count} locations"
    )
    payload = summary.as_dict()
    payload.update({"success": True, "created": summary.account_count})
    return jsonify(payload), HTTPStatus.CREATED


@accounts_blueprint.get("/uploads")
@admin_required
def uploads():
    return jsonify({"uploads": [upload.to_dict() for upload in list_uploads()]})


@accounts_blueprint.post("/uploads/<upload_id>/revert")
@admin_required
def revert(upload_id: str):
    summary = revert_upload(upload_id, user_id=current_user.id)
    current_app.logger.info(f"{current_user.email} reverted upload {upload_id}")
    payload = summary.as_dict()
    payload["success"] = True
    return jsonify(payload)
