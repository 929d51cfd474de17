"""Interactive API documentation and the OpenAPI document."""

from __future__ import annotations

from flask import Blueprint, jsonify, redirect, render_template, url_for

from ..openapi import build_openapi_document

bp = Blueprint("docs", __name__)


@bp.get("/api/v1/openapi")
def openapi_document():
    return jsonify(build_openapi_document())


@bp.get("/api/v1/ui")
def swagger_ui() -> str:
    return render_template(
        "swagger_ui.html",
        title="Privileges API",
        openapi_url=url_for("docs.openapi_document"),
    )


@bp.get("/")
@bp.get("/ui")
@bp.get("/api/docs")
@bp.get("/api/v1/docs")
def redirect_to_ui():
    return redirect(url_for("docs.swagger_ui"))
