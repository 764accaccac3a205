"""
Admin data-tools endpoints: duplicate search, account merge, location moves
and the change log.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from clinic_tools.errors import ValidationError
from clinic_tools.matching.grouping import find_similar_accounts
from clinic_tools.models import db
from clinic_tools.services.change_log import get_change_logs, serialize_change_log
from clinic_tools.services.location_service import LocationService, serialize_location
from clinic_tools.services.merge_service import MergeService
from clinic_tools.utils.permissions import admin_required

data_tools_blueprint = Blueprint("data_tools", __name__, url_prefix="/api/admin/data-tools")
_merge_service = MergeService()
_location_service = LocationService()


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _float_arg(name: str, default: float) -> float:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number.") from None


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer.") from None


def _account_ids(payload: dict) -> list:
    account_ids = payload.get("accountIds")
    if not isinstance(account_ids, list):
        raise ValidationError("accountIds must be a list of account IDs.")
    return account_ids


@data_tools_blueprint.get("/find-similar-accounts")
@admin_required
def find_similar_accounts_view():
    mode = request.args.get("mode") or current_app.config.get("DATA_TOOLS_DEFAULT_MODE", "name")
    min_score = _float_arg("min_score", current_app.config.get("DATA_TOOLS_MIN_SIMILARITY", 0.7))

    groups = find_similar_accounts(db.session, mode=mode, min_score=min_score)
    current_app.logger.info(
        f"Similar account search by {current_user.email}: {len(groups)} groups (mode={mode}, min_score={min_score})"
    )
    return jsonify(
        {
            "groups": [group.as_dict() for group in groups],
            "totalGroups": len(groups),
            "totalAccounts": sum(group.size for group in groups),
            "mode": mode,
            "minScore": min_score,
        }
    )


@data_tools_blueprint.post("/merge-accounts/preview")
@admin_required
def merge_accounts_preview():
    plan = _merge_service.plan_merge(_account_ids(_json_body()))
    return jsonify(plan.as_dict())


@data_tools_blueprint.post("/merge-accounts")
@admin_required
def merge_accounts():
    plan = _merge_service.plan_merge(_account_ids(_json_body()))
    result = _merge_service.execute_merge(plan, user_id=current_user.id)
    current_app.logger.info(
        f"{current_user.email} merged {len(result.donor_ids)} accounts into {result.survivor_id}"
    )
    payload = result.as_dict()
    payload["success"] = True
    return jsonify(payload), HTTPStatus.OK


@data_tools_blueprint.post("/merge-locations")
@admin_required
def merge_locations():
    payload = _json_body()
    result = _location_service.merge_locations(
        payload.get("sourceLocationId"),
        payload.get("targetLocationId"),
        user_id=current_user.id,
    )
    response = result.as_dict()
    response.update({"success": True, "message": "Locations merged successfully"})
    return jsonify(response)


@data_tools_blueprint.post("/add-location-to-multi")
@admin_required
def add_location_to_multi():
    payload = _json_body()
    result = _location_service.add_location_to_multi(
        payload.get("locationId"),
        payload.get("targetAccountId"),
        user_id=current_user.id,
    )
    return jsonify(result)


@data_tools_blueprint.post("/remove-location-from-multi")
@admin_required
def remove_location_from_multi():
    payload = _json_body()
    account = _location_service.remove_location_from_multi(payload.get("locationId"), user_id=current_user.id)
    return jsonify({"success": True, "accountId": account.id, "accountName": account.name})


@data_tools_blueprint.get("/multi-location-accounts")
@admin_required
def multi_location_accounts():
    accounts = _location_service.list_multi_location_accounts()
    return jsonify(
        {
            "accounts": [
                {
                    "id": account.id,
                    "name": account.name,
                    "account_type": account.account_type.value,
                    "location_count": len(account.locations),
                }
                for account in accounts
            ]
        }
    )


@data_tools_blueprint.get("/search-single-locations")
@admin_required
def search_single_locations():
    locations = _location_service.search_single_locations(
        request.args.get("q"),
        limit=_int_arg("limit", 100),
    )
    return jsonify({"locations": [serialize_location(location) for location in locations]})


@data_tools_blueprint.get("/change-log")
@admin_required
def change_log():
    limit = _int_arg("limit", current_app.config.get("DATA_TOOLS_CHANGE_LOG_LIMIT", 100))
    entries = get_change_logs(
        limit=limit,
        action_type=request.args.get("action_type") or None,
        entity_type=request.args.get("entity_type") or None,
        entity_id=request.args.get("entity_id") or None,
    )
    return jsonify({"changeLogs": [serialize_change_log(entry) for entry in entries]})
