#!/usr/bin/env python3
"""Validate that the booking service and engine can run locally."""

from __future__ import annotations

import asyncio
import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fastapi.testclient import TestClient

from app import create_app
from venuebook.client.api_client import BookingApiClient
from venuebook.domain.constraints import resolve_timezone
from venuebook.engine.approval import ApprovalStateMachine
from venuebook.repository.data_repository import DataRepository
from venuebook.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="venuebook-env-")

    if sys.version_info >= (3, 11):
        ok, line = _result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _result("Python version >= 3.11", False, f"found {sys.version.split()[0]}")
    results.append(line)
    all_passed = all_passed and ok

    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("requests", "requests"),
        ("pandas", "pandas"),
        ("streamlit", "streamlit"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _result("Required packages", False, "missing -> " + "; ".join(import_errors))
    else:
        ok, line = _result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "validation.db",
            admin_token=None,
        )

        try:
            resolve_timezone(settings.local_timezone)
            ok, line = _result(f"Time zone {settings.local_timezone}", True)
        except ValueError as exc:
            ok, line = _result("Time zone", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        repository = DataRepository(settings)
        try:
            repository.initialize_database()
            seeded = repository.seed_synthetic_data()
            if seeded <= 0:
                raise RuntimeError("no bookings were seeded")
            ok, line = _result("Database and seed", True, f": {seeded} bookings")
        except RuntimeError as exc:
            ok, line = _result("Database and seed", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        try:
            with TestClient(create_app(settings)) as http:
                client = BookingApiClient(base_url="", session=http, settings=settings)
                client.login("validation")
                machine = ApprovalStateMachine(client, settings=settings)
                bookings = asyncio.run(machine.refresh())
                if machine.load_error:
                    raise RuntimeError(machine.load_error)
            ok, line = _result("API round trip", True, f": {len(bookings)} bookings loaded")
        except Exception as exc:
            ok, line = _result("API round trip", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Venue Booking Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
