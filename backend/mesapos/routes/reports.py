# Overview: Flask API routes for sales reports; parses date ranges and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..services import reporting_service
from ..validation import ValidationError, parse_optional_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/period")
def period_report():
    try:
        report = reporting_service.get_report_by_period(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/vendors")
def vendor_report():
    try:
        report = reporting_service.get_report_by_vendor(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/products")
def product_report():
    try:
        limit = parse_optional_int(request.args.get("limit"), "limit") or 10
        report = reporting_service.get_report_by_product(
            start=request.args.get("start"),
            end=request.args.get("end"),
            limit=limit,
        )
        return jsonify(report), 200
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/hours")
def hour_report():
    try:
        report = reporting_service.get_report_by_hour(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
