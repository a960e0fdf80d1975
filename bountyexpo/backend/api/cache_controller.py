from flask import Blueprint, jsonify

from bountyexpo.backend.factories.service_factory import ServiceFactory

bp = Blueprint("cache_controller", __name__)


@bp.route("/cache/stats", methods=["GET"])
def cache_stats():
    return jsonify(ServiceFactory.get_cached_data_service().get_stats()), 200


@bp.route("/cache/<path:key>", methods=["DELETE"])
def invalidate_key(key):
    ServiceFactory.get_cached_data_service().invalidate(key)
    return jsonify({"invalidated": key}), 200


@bp.route("/cache", methods=["DELETE"])
def clear_cache():
    cleared = ServiceFactory.get_cached_data_service().clear_all()
    return jsonify({"cleared": cleared}), 200
