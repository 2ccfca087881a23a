import functools
import http.server
import subprocess
import sys
import threading
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def pytest_configure(config):
    """Configure pytest to add custom markers for Playwright tests."""
    config.addinivalue_line(
        "markers", "playwright: mark test as requiring Playwright and a Chromium browser"
    )


@functools.lru_cache(maxsize=None)
def check_playwright_browser_installed():
    """Check if Playwright's Chromium can be launched."""
    try:
        result = subprocess.run(
            [sys.executable, "-c",
             "from playwright.sync_api import sync_playwright; "
             "p = sync_playwright().start(); "
             "p.chromium.launch(headless=True).close(); "
             "p.stop()"],
            capture_output=True,
            text=True,
            timeout=60
        )
        return result.returncode == 0
    except subprocess.TimeoutExpired:
        return False
    except OSError:
        return False


def pytest_collection_modifyitems(config, items):
    """Skip browser-backed tests when Chromium is not available."""
    browser_items = [item for item in items if "playwright" in item.keywords]
    if not browser_items or check_playwright_browser_installed():
        return
    skip_browser = pytest.mark.skip(
        reason="Chromium not available. Install with: python -m playwright install chromium"
    )
    for item in browser_items:
        item.add_marker(skip_browser)


class _QuietHandler(http.server.SimpleHTTPRequestHandler):
    def log_message(self, format, *args):
        pass


@pytest.fixture(scope="session")
def fixture_server():
    """Serve the fixtures directory over HTTP; yields the base URL."""
    handler = functools.partial(_QuietHandler, directory=str(FIXTURES_DIR))
    server = http.server.ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR
