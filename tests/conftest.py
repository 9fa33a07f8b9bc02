"""
Shared fixtures for dep-license-report tests.
"""

import json
import logging
import tempfile
from pathlib import Path

import httpx
import pytest

from dep_license_report.cli_config import reset_config
from dep_license_report.error_handling import get_error_handler

LICENSE_BODY = "MIT License\n\nPermission is hereby granted, free of charge,\nto any person obtaining a copy.\n"


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Run every test with default configuration and a clean package logger."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in (
        "DEP_LICENSE_REPORT_USER_AGENT",
        "DEP_LICENSE_REPORT_PROBE_TIMEOUT",
        "DEP_LICENSE_REPORT_FETCH_TIMEOUT",
        "DEP_LICENSE_REPORT_CRAWLER_TIMEOUT",
        "DEP_LICENSE_REPORT_GUESS_PATH",
        "DEP_LICENSE_REPORT_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)

    reset_config()
    get_error_handler().reset_stats()
    yield
    reset_config()

    package_logger = logging.getLogger("dep_license_report")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


def make_transport(routes, requests=None):
    """
    Build an ``httpx.MockTransport`` from ``{(method, url): response}``.

    Values may be an ``httpx.Response``, an exception instance to raise, or a
    coroutine function taking the request. Unknown routes answer 404.
    """

    async def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append((request.method, str(request.url)))
        route = routes.get((request.method, str(request.url)))
        if route is None:
            return httpx.Response(404)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return await route(request)
        return route

    return httpx.MockTransport(handler)


def text_response(body: str = LICENSE_BODY, content_type: str = "text/plain; charset=utf-8"):
    return httpx.Response(200, text=body, headers={"content-type": content_type})


@pytest.fixture
def sample_package_json(temp_dir):
    """A project directory with package.json and a saved crawl."""
    package_json = {
        "name": "acme-app",
        "version": "2.0.0",
        "dependencies": {"widget": "^1.0.0"},
        "dependenciesExtra": {
            "widget": {"usage": "runtime"},
            "gadget": {"usage": "build", "approved": True},
        },
    }
    (temp_dir / "package.json").write_text(json.dumps(package_json), encoding="utf-8")
    return temp_dir


@pytest.fixture
def sample_crawl_file(temp_dir):
    crawl = {
        "widget@1.2.3": {
            "licenses": "MIT",
            "repository": "https://github.com/acme/widget",
            "licenseUrl": "https://github.com/acme/widget/blob/main/LICENSE",
            "parents": "acme-app",
        },
        "gadget@0.1.0": {
            "licenses": "ISC",
            "repository": "git+https://github.com/acme/gadget.git",
            "licenseUrl": "git+https://github.com/acme/gadget.git",
            "parents": "widget",
        },
    }
    crawl_file = temp_dir / "crawl.json"
    crawl_file.write_text(json.dumps(crawl), encoding="utf-8")
    return crawl_file
