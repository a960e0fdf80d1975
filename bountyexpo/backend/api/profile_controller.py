from flask import Blueprint, request, jsonify, session as http_session

from bountyexpo.backend.factories.service_factory import ServiceFactory
from bountyexpo.shared.modules.bounty.models.profile import Session
from bountyexpo.shared.modules.cache.cache_keys import CacheKeys
from bountyexpo.shared.modules.errors import BackendError, BackendErrorCode, OfflineCacheMissError
from bountyexpo.shared.modules.log.logger import get_logger

bp = Blueprint("profile_controller", __name__)
logger = get_logger("profile_controller")


@bp.route("/profiles/<user_id>", methods=["GET"])
def get_profile(user_id):
    """Public profile, served stale-while-revalidate from the data cache."""
    try:
        cache = ServiceFactory.get_cached_data_service()
        backend = ServiceFactory.create_bounty_backend()
        profile = cache.fetch_with_cache(
            CacheKeys.user_profile(user_id),
            lambda: backend.get_profile(user_id).model_dump(mode="json"),
        )
        return jsonify(profile), 200
    except OfflineCacheMissError as e:
        return jsonify({"error": str(e)}), 503
    except BackendError as e:
        if e.code == BackendErrorCode.NOT_FOUND:
            return jsonify({"error": e.message}), 404
        logger.error(f"Failed to load profile {user_id}: {e!r}")
        return jsonify({"error": e.message}), 502
    except Exception as e:
        logger.error(f"Failed to load profile {user_id}: {e}")
        return jsonify({"error": str(e)}), 500


def _caller_profiles():
    """
    Profile store bound to the caller's own session, taken from the signed
    session cookie. Returns the store and whether a caller is signed in.
    """
    service = ServiceFactory.create_auth_profile_service()
    user_id = http_session.get("user_id")
    if user_id:
        service.resume_session(Session(user_id=user_id, email=http_session.get("email")))
    return service, bool(user_id)


@bp.route("/session", methods=["POST"])
def set_session():
    """
    Sign the caller in and sync their profile, creating a minimal one on
    first sign-in.

    payload = {"user_id": "u-1", "email": "hunter@example.com"}
    An empty payload signs the caller out.
    """
    try:
        payload = request.get_json(force=True, silent=True) or {}
        service, _ = _caller_profiles()
        session = Session(**payload) if payload.get("user_id") else None
        profile = service.set_session(session)

        http_session.clear()
        if session is not None:
            http_session["user_id"] = session.user_id
            http_session["email"] = session.email
        return jsonify({"profile": profile.model_dump(mode="json") if profile else None}), 200
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Failed to set session: {e}")
        return jsonify({"error": str(e)}), 500


@bp.route("/session/profile", methods=["GET"])
def get_session_profile():
    service, signed_in = _caller_profiles()
    if not signed_in:
        return jsonify({"error": "Not signed in"}), 401
    profile = service.refresh_profile()
    if profile is None:
        return jsonify({"error": "No profile for the current session"}), 404
    return jsonify(profile.model_dump(mode="json")), 200


@bp.route("/session/profile", methods=["PATCH"])
def update_session_profile():
    try:
        updates = request.get_json(force=True) or {}
        if not isinstance(updates, dict):
            return jsonify({"error": "Expected a JSON object"}), 400
        service, signed_in = _caller_profiles()
        if not signed_in:
            return jsonify({"error": "Not signed in"}), 401
        profile = service.update_profile(updates)
        if profile is None:
            return jsonify({"error": "No profile for the current session"}), 404
        return jsonify(profile.model_dump(mode="json")), 200
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Failed to update profile: {e}")
        return jsonify({"error": str(e)}), 500
