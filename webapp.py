from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from flask import Flask, Response, flash, jsonify, redirect, render_template, request, url_for
from pydantic import ValidationError

from collab_admin.audit import InMemoryAuditStore, JsonAuditLogger
from collab_admin.config import AdminConfig
from collab_admin.models import SupplierRequest
from collab_admin.nickname import InvalidNicknameError
from collab_admin.reporting import render_summary_csv
from collab_admin.tenant_manager import TenantManager


def _parse_limit(raw: Optional[str], default: int = 100) -> int:
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def create_app(
    config_path: str | os.PathLike[str] = "config/tenants.yaml",
    manager: Optional[TenantManager] = None,
    audit_store: Optional[InMemoryAuditStore] = None,
) -> Flask:
    audit_store = audit_store or InMemoryAuditStore()
    if manager is None:
        config = AdminConfig.load(Path(config_path))
        manager = TenantManager(config, audit_logger=JsonAuditLogger(store=audit_store))

    app = Flask(__name__)
    app.secret_key = os.getenv("FLASK_SECRET_KEY", "replace-this-secret")
    app.config["TENANT_MANAGER"] = manager
    app.config["AUDIT_STORE"] = audit_store

    @app.route("/")
    def index() -> str:
        return render_template("index.html", tenants=manager.config.tenants)

    @app.post("/provision")
    def provision() -> Any:
        tenant_id = request.form.get("tenant_id")
        correlation_id = str(uuid.uuid4())
        result: Optional[Dict[str, Any]] = None

        if not tenant_id:
            flash("Tenant is required", "danger")
            return redirect(url_for("index"))

        emails = (request.form.get("contact_emails") or "").splitlines()
        try:
            tenant = manager.get_tenant(tenant_id)
            expiry_raw = request.form.get("expiry_days")
            supplier = SupplierRequest(
                name=request.form.get("name") or "",
                domain=request.form.get("domain") or "",
                contact_emails=emails,
                expiry_days=int(expiry_raw) if expiry_raw else tenant.provisioning.expiry_days,
            )
        except (KeyError, ValueError, ValidationError) as exc:
            flash(f"Invalid supplier request: {exc}", "danger")
            return redirect(url_for("index"))

        try:
            outcome = manager.run_operation(
                tenant_id=tenant_id,
                correlation_id=correlation_id,
                operation=lambda ops: ops.provision_supplier(supplier),
            )
            result = outcome.to_dict()
            for warning in outcome.warnings:
                flash(warning, "warning")
        except (InvalidNicknameError, httpx.HTTPError) as exc:
            flash(f"Provisioning failed: {exc}", "danger")

        return render_template(
            "index.html",
            tenants=manager.config.tenants,
            result=result,
            correlation_id=correlation_id,
            tenant_id=tenant_id,
        )

    @app.get("/reports/guest-domains.csv")
    def guest_domains_csv() -> Any:
        tenant_id = request.args.get("tenant_id")
        if not tenant_id:
            return jsonify({"error": "tenant_id is required"}), 400
        try:
            rows = manager.run_operation(
                tenant_id=tenant_id,
                operation=lambda ops: ops.guest_domain_summary(),
            )
        except KeyError as exc:
            return jsonify({"error": str(exc)}), 404
        except httpx.HTTPError as exc:
            return jsonify({"error": f"Guest listing failed: {exc}"}), 502

        if not rows:
            return Response(status=204)
        return Response(
            render_summary_csv(rows),
            mimetype="text/csv",
            headers={"Content-Disposition": "attachment; filename=guest_domain_summary.csv"},
        )

    @app.get("/audit")
    def audit() -> str:
        limit = _parse_limit(request.args.get("limit"))
        events = audit_store.list(limit=limit, correlation_id=request.args.get("correlation_id"))
        return render_template("audit.html", events=events, limit=limit)

    @app.get("/audit.json")
    def audit_json() -> Any:
        limit = _parse_limit(request.args.get("limit"))
        events = audit_store.list(limit=limit, correlation_id=request.args.get("correlation_id"))
        payload = [event.to_dict() for event in events]
        return jsonify({"events": payload, "count": len(payload)})

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", 5000)), debug=True)
