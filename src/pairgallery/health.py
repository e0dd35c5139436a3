"""
Health checks for pairgallery.

Three checks: the local preferences database, the hosted gateway and the
environment configuration. Each returns a plain dictionary with ``status``,
``message`` and ``timestamp`` so the page can render it or print it as JSON.
"""

import json
import platform
import time
from typing import Any

import requests
import streamlit as st

from pairgallery import __version__
from pairgallery.config import (
    get_cloudinary_relay_url,
    get_environment,
    get_imagekit_auth_endpoint,
    get_imagekit_public_key,
    get_preferences_db_path,
    get_supabase_anon_key,
    get_supabase_url,
    is_production,
)
from pairgallery.logging_config import get_logger
from pairgallery.models.database import get_database_manager

logger = get_logger(__name__)

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"


def _result(status: str, message: str, **extra: Any) -> dict[str, Any]:
    return {"status": status, "message": message, "timestamp": time.time(), **extra}


def _uptime() -> float:
    return time.time() - st.session_state.get("app_start_time", time.time())


def check_database_health(db_path: str | None = None) -> dict[str, Any]:
    """The preferences database opens and its schema is complete."""
    path = db_path or get_preferences_db_path()
    try:
        with get_database_manager(path) as db:
            if not db.verify_schema():
                return _result(UNHEALTHY, "Preferences schema is incomplete", path=path)
            db.execute_query("SELECT COUNT(*) FROM preferences")
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e), path=path)
        return _result(UNHEALTHY, f"Preferences database failed: {e}")
    return _result(HEALTHY, "Preferences database is available", path=path)


def check_gateway_health(session: requests.Session | None = None, timeout: float = 5.0) -> dict[str, Any]:
    """
    The hosted gateway answers its REST root.

    Without ``SUPABASE_URL`` development runs on the in-memory gateway, which
    is always available; production without it is unhealthy.
    """
    base_url = get_supabase_url()
    if not base_url:
        if is_production():
            return _result(UNHEALTHY, "SUPABASE_URL is not set")
        return _result(HEALTHY, "Using the in-memory development gateway")

    http = session or requests.Session()
    try:
        response = http.get(f"{base_url}/rest/v1/", headers={"apikey": get_supabase_anon_key() or ""}, timeout=timeout)
    except requests.RequestException as e:
        logger.error("gateway_health_check_failed", error=str(e))
        return _result(UNHEALTHY, f"Gateway unreachable: {e}")

    if response.status_code >= 500:
        return _result(UNHEALTHY, f"Gateway returned HTTP {response.status_code}", status_code=response.status_code)
    return _result(HEALTHY, "Gateway is reachable", status_code=response.status_code)


def _missing_production_settings() -> list[str]:
    missing = [
        name
        for name, value in (("SUPABASE_URL", get_supabase_url()), ("SUPABASE_ANON_KEY", get_supabase_anon_key()))
        if not value
    ]
    imagekit_ready = bool(get_imagekit_public_key() and get_imagekit_auth_endpoint())
    if not imagekit_ready and not get_cloudinary_relay_url():
        missing.append("IMAGEKIT_PUBLIC_KEY/IMAGEKIT_AUTH_ENDPOINT or CLOUDINARY_RELAY_URL")
    return missing


def check_environment_health() -> dict[str, Any]:
    """Production needs a gateway and at least one upload provider."""
    try:
        missing_vars = _missing_production_settings() if is_production() else []
    except Exception as e:
        logger.error("environment_health_check_failed", error=str(e))
        return _result(UNHEALTHY, f"Environment check failed: {e}")

    if missing_vars:
        return _result(
            UNHEALTHY, f"Missing environment variables: {', '.join(missing_vars)}", missing_vars=missing_vars
        )
    gateway = "rest" if get_supabase_url() else "memory"
    return _result(
        HEALTHY, "Environment configuration is valid", config={"environment": get_environment(), "gateway": gateway}
    )


def get_application_info() -> dict[str, Any]:
    return {
        "name": "pairgallery",
        "version": __version__,
        "environment": get_environment(),
        "timestamp": time.time(),
        "uptime": _uptime(),
        "python_version": platform.python_version(),
        "platform": platform.system(),
    }


def perform_health_check() -> dict[str, Any]:
    """Run every check and summarize."""
    started = time.perf_counter()
    if "app_start_time" not in st.session_state:
        st.session_state.app_start_time = time.time()

    checks = {
        "database": check_database_health(),
        "gateway": check_gateway_health(),
        "environment": check_environment_health(),
    }
    unhealthy_services = [name for name, result in checks.items() if result["status"] != HEALTHY]

    report: dict[str, Any] = {
        "status": UNHEALTHY if unhealthy_services else HEALTHY,
        "timestamp": time.time(),
        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        "application": get_application_info(),
        "checks": checks,
    }
    if unhealthy_services:
        report["unhealthy_services"] = unhealthy_services

    logger.info(
        "health_check_completed",
        status=report["status"],
        duration_ms=report["duration_ms"],
        unhealthy_services=unhealthy_services,
    )
    return report


def check_readiness() -> dict[str, Any]:
    """Ready when local state and configuration are fine, and the gateway when one is configured."""
    checks = {"database": check_database_health(), "environment": check_environment_health()}
    if get_supabase_url():
        checks["gateway"] = check_gateway_health()

    ready = all(check["status"] == HEALTHY for check in checks.values())
    return {"status": "ready" if ready else "not_ready", "timestamp": time.time(), "checks": checks}


def check_liveness() -> dict[str, Any]:
    return {"status": "alive", "timestamp": time.time(), "uptime": _uptime()}


def health_check_json() -> str:
    return json.dumps(perform_health_check(), indent=2)


def render_health_page() -> None:
    st.set_page_config(page_title="Health - pairgallery", page_icon="🩺", layout="wide")
    st.title("🩺 pairgallery health")

    with st.spinner("Checking services..."):
        report = perform_health_check()

    summary = f"checked in {report['duration_ms']} ms"
    if report["status"] == HEALTHY:
        st.success(f"All services are healthy ({summary})")
    else:
        st.error(f"Unhealthy: {', '.join(report['unhealthy_services'])} ({summary})")

    app_info = report["application"]
    for column, (label, value) in zip(
        st.columns(4),
        (
            ("Version", app_info["version"]),
            ("Environment", app_info["environment"]),
            ("Python", app_info["python_version"]),
            ("Uptime", f"{app_info['uptime']:.1f}s"),
        ),
        strict=True,
    ):
        column.metric(label, value)

    for name, result in report["checks"].items():
        healthy = result["status"] == HEALTHY
        with st.expander(f"{'✅' if healthy else '❌'} {name.title()}", expanded=not healthy):
            st.write(result["message"])
            st.json(result)


ENDPOINTS = {
    "health": perform_health_check,
    "readiness": check_readiness,
    "liveness": check_liveness,
}


def main() -> None:
    """Health page; ``?format=json`` with ``?endpoint=health|readiness|liveness`` prints JSON."""
    if st.query_params.get("format", "html") != "json":
        render_health_page()
        return

    endpoint = ENDPOINTS.get(st.query_params.get("endpoint", "health"), perform_health_check)
    st.text(json.dumps(endpoint(), indent=2))


if __name__ == "__main__":
    main()
