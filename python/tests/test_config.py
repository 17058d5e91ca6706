"""
Tests for SyncConfig: defaults, validation and environment overrides.
"""

import logging
from pathlib import Path

import pytest

from wpsync.config import SyncConfig


# ============================================================================
# DEFAULTS AND DERIVED PATHS
# ============================================================================


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = SyncConfig(plugin_path=Path("my-plugin"))

    assert config.plugin_path == (tmp_path / "my-plugin").resolve()
    assert config.wp_root == (tmp_path / "wordpress-dev-env").resolve()
    assert (config.port, config.wp_port) == (3000, 8080)
    assert config.debounce == 0.2
    assert config.prune_artifacts is False
    assert config.activate is True
    assert config.wp_cli is None
    assert config.level == logging.INFO


def test_derived_paths(tmp_path):
    config = SyncConfig(plugin_path=tmp_path / "my-plugin", wp_root=tmp_path / "wp")

    assert config.plugin_name == "my-plugin"
    assert config.build_root == tmp_path.resolve() / "my-plugin" / "dist"
    assert config.target_root == tmp_path.resolve() / "wp" / "wp-content" / "plugins" / "my-plugin"


def test_reload_globs_cover_php_js_css(tmp_path):
    config = SyncConfig(plugin_path=tmp_path / "p", wp_root=tmp_path / "wp")
    globs = config.reload_globs()

    assert [Path(g).name for g in globs] == ["*.php", "*.js", "*.css"]
    assert all(g.startswith(str(config.target_root)) for g in globs)


# ============================================================================
# VALIDATION TESTS
# ============================================================================


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"port": 0}, "port must be between"),
        ({"wp_port": 70000}, "wp_port must be between"),
        ({"port": 8080}, "must differ"),
        ({"debounce": -1}, "debounce must be"),
        ({"debounce": 15}, "debounce must be between 0 and 10"),
        ({"build_dir": "/abs/dist"}, "build_dir"),
        ({"build_dir": ""}, "build_dir"),
        ({"log_level": "LOUD"}, "Unknown log level"),
    ],
)
def test_invalid_values_rejected(tmp_path, overrides, message):
    with pytest.raises(ValueError, match=message):
        SyncConfig(plugin_path=tmp_path, **overrides)


def test_same_ports_allowed_without_proxy(tmp_path):
    """Test: Ports only conflict when both servers run."""
    config = SyncConfig(plugin_path=tmp_path, port=8080, reload=False)
    assert config.port == config.wp_port


# ============================================================================
# ENVIRONMENT TESTS
# ============================================================================


def test_from_env_reads_variables(tmp_path):
    environ = {
        "WPSYNC_PORT": "4000",
        "WPSYNC_WP_PORT": "9000",
        "WPSYNC_WP_ROOT": str(tmp_path / "runtime"),
        "WPSYNC_DEBOUNCE": "0.5",
        "WPSYNC_LOG_LEVEL": "debug",
        "WPSYNC_WP_CLI": "php /opt/wp-cli.phar",
    }
    config = SyncConfig.from_env(tmp_path / "p", environ=environ)

    assert (config.port, config.wp_port) == (4000, 9000)
    assert config.wp_root == (tmp_path / "runtime").resolve()
    assert config.debounce == 0.5
    assert config.level == logging.DEBUG
    assert config.wp_cli == "php /opt/wp-cli.phar"


def test_explicit_overrides_win_over_environment(tmp_path):
    config = SyncConfig.from_env(
        tmp_path / "p", environ={"WPSYNC_PORT": "4000"}, port=5000, wp_port=None
    )
    assert config.port == 5000
    assert config.wp_port == 8080


def test_from_env_ignores_empty_values(tmp_path):
    assert SyncConfig.from_env(tmp_path, environ={"WPSYNC_PORT": ""}).port == 3000


def test_from_env_rejects_garbage(tmp_path):
    with pytest.raises(ValueError, match="Invalid value for WPSYNC_PORT"):
        SyncConfig.from_env(tmp_path, environ={"WPSYNC_PORT": "three thousand"})


def test_with_overrides_skips_none(tmp_path):
    config = SyncConfig(plugin_path=tmp_path)
    assert config.with_overrides(port=None, debounce=0).debounce == 0
    assert config.with_overrides(port=None).port == 3000
