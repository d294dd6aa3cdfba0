"""Shared test fixtures for apicensus.

Provides reusable fixtures for sample controller sources, source trees on
disk, isolated config environments, output state and CLI invocation.
These fixtures are automatically discovered by pytest and available to
all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from apicensus.models import MonitoringConfig, RepositoryConfig
from apicensus.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use and closes any run log left attached.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Java controller sources
# ---------------------------------------------------------------------------


ORDER_CONTROLLER = """\
package com.example.orders;

import org.springframework.web.bind.annotation.*;

@RestController
@RequestMapping("/api/orders")
public class OrderController {

    @GetMapping
    public List<Order> list() {
        return service.findAll();
    }

    @GetMapping({"", "/{id}"})
    public Order get(@PathVariable Long id) {
        return service.find(id);
    }

    @Deprecated
    @PostMapping(value = "/legacy", produces = "application/json")
    public Order legacyCreate(@RequestBody Order order) {
        return service.save(order);
    }

    @RequestMapping(value = "/search", method = RequestMethod.GET)
    public List<Order> search(@RequestParam String q) {
        return service.search(q);
    }

    private void helper() {
    }
}
"""

# Missing closing brace of the class body: tree-sitter reports an error.
BROKEN_CONTROLLER = """\
package com.example.users;

@RestController
@RequestMapping("/api/users")
public class UserController {

    @GetMapping("/{id}")
    public User get(@PathVariable Long id) {
        return service.find(id);
    }

    // @GetMapping("/commented-out")

    @Deprecated
    @DeleteMapping(path = "/{id}")
    public void remove(@PathVariable Long id) {
        service.delete(id)
    }
"""

PLAIN_CONTROLLER = """\
package com.example.health;

@RestController
public class HealthController {

    @GetMapping("health")
    public String health() {
        return "ok";
    }
}
"""


@pytest.fixture
def order_controller() -> str:
    """A controller that parses cleanly."""
    return ORDER_CONTROLLER


@pytest.fixture
def broken_controller() -> str:
    """A controller with a syntax error that forces the pattern fallback."""
    return BROKEN_CONTROLLER


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """A small Java source root with three controllers and some noise.

    Layout::

        src/
          .gitignore                    (ignores generated/)
          main/java/com/example/OrderController.java
          main/java/com/example/UserController.java      (broken)
          main/java/com/example/health/HealthConrtoller.java
          main/java/com/example/OrderService.java        (not a controller)
          generated/FooController.java                   (git-ignored)
          target/classes/BarController.java              (build output)
    """
    root = tmp_path / "src"
    pkg = root / "main" / "java" / "com" / "example"
    (pkg / "health").mkdir(parents=True)
    (pkg / "OrderController.java").write_text(ORDER_CONTROLLER, encoding="utf-8")
    (pkg / "UserController.java").write_text(BROKEN_CONTROLLER, encoding="utf-8")
    (pkg / "health" / "HealthConrtoller.java").write_text(PLAIN_CONTROLLER, encoding="utf-8")
    (pkg / "OrderService.java").write_text("public class OrderService {}\n", encoding="utf-8")

    (root / "generated").mkdir()
    (root / "generated" / "FooController.java").write_text(PLAIN_CONTROLLER, encoding="utf-8")
    (root / "target" / "classes").mkdir(parents=True)
    (root / "target" / "classes" / "BarController.java").write_text(
        PLAIN_CONTROLLER, encoding="utf-8"
    )
    (root / ".gitignore").write_text("generated/\n", encoding="utf-8")
    return root


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def monitoring_config() -> MonitoringConfig:
    """Monitoring enabled for 2025-01-25..2025-02-05 against a fake URL."""
    return MonitoringConfig(
        enabled=True,
        url="https://monitoring.test/yard/api",
        cookie="JSESSIONID=abc123",
        start_date="20250125",
        end_date="20250205",
        okinds="101,102",
        okinds_name="payments",
    )


@pytest.fixture
def repository_config(source_tree: Path) -> RepositoryConfig:
    """Repository settings pointing at :func:`source_tree`."""
    return RepositoryConfig(
        name="orders-api",
        domain="https://api.example.com",
        root_path=str(source_tree),
    )


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_DATA_HOME to a subdirectory of tmp_path so that tests never
    touch real user data. Clears all APICENSUS_* environment variables and
    changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["APICENSUS_COOKIE", "APICENSUS_OUTPUT_DIR"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Set up a quiet output manager for tests that don't care about output.

    Installs a PLAIN-format, quiet OutputManager as the global output
    and resets it after the test completes.
    """
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
