from flask import Blueprint, request, jsonify

from bountyexpo.backend.factories.service_factory import ServiceFactory
from bountyexpo.backend.modules.bounty.enums.acceptance_status_enum import AcceptanceErrorCode, AcceptanceStatus
from bountyexpo.shared.modules.errors import BackendError, BackendErrorCode, BountyRequestNotFoundError
from bountyexpo.shared.modules.log.logger import get_logger

bp = Blueprint("bounty_request_controller", __name__)
logger = get_logger("bounty_request_controller")

FAILURE_STATUS_CODES = {
    AcceptanceErrorCode.REQUEST_NOT_FOUND.value: 404,
    AcceptanceErrorCode.REMOTE_REJECTED.value: 409,
}


def _board_json(board):
    return {
        "viewer_id": board.viewer_id,
        "bounty_requests": [r.model_dump(mode="json") for r in board.bounty_requests],
        "my_bounties": [b.model_dump(mode="json") for b in board.my_bounties],
        "in_progress_bounties": [b.model_dump(mode="json") for b in board.in_progress_bounties],
        "error": board.error,
        "show_add_money": board.show_add_money,
    }


def _viewer_from(payload):
    viewer_id = payload.get("viewer_id")
    if not viewer_id:
        raise ValueError("Missing 'viewer_id' field")
    return str(viewer_id)


@bp.route("/users/<user_id>/board", methods=["GET"])
def get_board(user_id):
    """
    Load the viewer's board: pending requests on their bounties, their own
    bounties and the bounties they are working on.
    Pass ?refresh=true to bypass the cache.
    """
    try:
        force_refresh = request.args.get("refresh", "false").lower() == "true"
        loader = ServiceFactory.create_board_loader()
        board = loader.load_board(user_id, force_refresh=force_refresh)
        return jsonify(_board_json(board)), 200
    except Exception as e:
        logger.error(f"Failed to load board for {user_id}: {e}")
        return jsonify({"error": str(e)}), 500


@bp.route("/bounty-requests/<request_id>/accept", methods=["POST"])
def accept_request(request_id):
    """
    Accept a hunter's request on behalf of the poster. The balance checked
    against a paid bounty is the poster's stored wallet balance.

    payload = {"viewer_id": "poster-1"}
    """
    try:
        payload = request.get_json(force=True) or {}
        viewer_id = _viewer_from(payload)

        service = ServiceFactory.create_request_acceptance_service()
        balance = service.backend.get_profile(viewer_id).balance
        board = service.loader.load_board(viewer_id)
        outcome = service.accept_request(board, request_id, balance)

        body = {"outcome": outcome.model_dump(mode="json"), "board": _board_json(board)}
        if outcome.succeeded():
            return jsonify(body), 200
        if outcome.status == AcceptanceStatus.ABORTED.value:
            return jsonify(body), 402
        return jsonify(body), FAILURE_STATUS_CODES.get(outcome.error_code, 500)
    except BackendError as e:
        if e.code == BackendErrorCode.NOT_FOUND:
            return jsonify({"error": e.message}), 404
        logger.error(f"Failed to accept request {request_id}: {e!r}")
        return jsonify({"error": e.message}), 502
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Failed to accept request {request_id}: {e}")
        return jsonify({"error": str(e)}), 500


@bp.route("/bounty-requests/<request_id>/reject", methods=["POST"])
def reject_request(request_id):
    try:
        payload = request.get_json(force=True) or {}
        viewer_id = _viewer_from(payload)

        service = ServiceFactory.create_request_acceptance_service()
        board = service.loader.load_board(viewer_id)
        rejected = service.reject_request(board, request_id)
        return jsonify({"rejected": rejected, "board": _board_json(board)}), 200 if rejected else 502
    except BountyRequestNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Failed to reject request {request_id}: {e}")
        return jsonify({"error": str(e)}), 500
