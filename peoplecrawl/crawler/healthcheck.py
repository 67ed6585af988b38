from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from . import config
from .config_validation import validate_runtime_config
from .logging_utils import _crawler_event
from .utils import log_line


@dataclass
class HealthResult:
    ok: bool
    checks: dict[str, dict[str, Any]]


def _writable_dir_check(path: Optional[Path]) -> dict[str, Any]:
    if path is None:
        return {"ok": True, "enabled": False}
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return {"ok": False, "enabled": True, "path": str(path), "error": str(exc)}
    return {"ok": os.access(path, os.W_OK), "enabled": True, "path": str(path)}


def run_health_checks(entrypoint: str = "cli") -> HealthResult:
    checks: dict[str, dict[str, Any]] = {}

    try:
        validate_runtime_config(entrypoint or "cli")
        checks["config"] = {
            "ok": True,
            "target_domain": config.TARGET_DOMAIN,
            "max_pages_limit": config.max_pages_limit(),
        }
    except ValueError as exc:
        checks["config"] = {"ok": False, "error": str(exc)}

    checks["diagnostics"] = _writable_dir_check(config.DIAGNOSTICS_DIR)
    checks["log_file"] = _writable_dir_check(config.LOG_FILE.parent if config.LOG_FILE else None)

    overall_ok = all(check.get("ok", False) for check in checks.values())
    _crawler_event(
        "state" if overall_ok else "error",
        phase="health",
        context="healthcheck",
        ok=overall_ok,
        checks=checks,
    )
    return HealthResult(ok=overall_ok, checks=checks)


if __name__ == "__main__":  # pragma: no cover
    result = run_health_checks(entrypoint="cli")
    for name, info in result.checks.items():
        status = "OK" if info.get("ok") else "FAIL"
        log_line(f"[HEALTH] {name}: {status} {info}")
    raise SystemExit(0 if result.ok else 1)
