# Overview: Shared helpers for turning service Results into JSON responses.

from flask import jsonify

from ..extensions import db


def result_error_response(result):
    """Roll back the caller's transaction and render a failed Result."""
    db.session.rollback()
    return jsonify(result.error_dict()), result.http_status
