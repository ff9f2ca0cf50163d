"""
Tests for session configuration and the exposure runner.

Covers:
* Config loading and validation (valid YAML, missing fields, bad values)
* Pre-flight checks (warm-up, override, interlocks, query errors)
* Exposure start (pass, blocked, pre-flight only)
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from pantak_hf75 import CommunicationFault, ConfigError, InterlockStatus, InvalidParameter
from pantak_hf75.config import ExposureSettings, SessionConfig, load_config, parse_config
from pantak_hf75.exposure import (
    check_interlocks,
    check_warmup,
    preflight,
    run_exposure,
)

# ══════════════════════════════════════════════════════════════════════════
#  Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture()
def config_dir(tmp_path: Path) -> Path:
    """Return a temp directory for config files."""
    return tmp_path


def write_config(path: Path, content: str) -> Path:
    """Write a YAML config file and return its path."""
    config_file = path / "session.yaml"
    config_file.write_text(textwrap.dedent(content))
    return config_file


VALID_CONFIG = """\
    port: /dev/ttyUSB0
    trace: false
    override_warmup: true
    exposure:
      kv: 40
      ma: 5.5
"""

MINIMAL_CONFIG = """\
    port: /dev/ttyUSB0
"""

INTERLOCKS_CLEAR = "000000000>"


# ══════════════════════════════════════════════════════════════════════════
#  Config loading: valid configs
# ══════════════════════════════════════════════════════════════════════════


class TestLoadConfigValid:
    def test_port(self, config_dir):
        config = load_config(write_config(config_dir, VALID_CONFIG))
        assert config.port == "/dev/ttyUSB0"

    def test_flags(self, config_dir):
        config = load_config(write_config(config_dir, VALID_CONFIG))
        assert config.trace is False
        assert config.override_warmup is True

    def test_exposure_values(self, config_dir):
        config = load_config(write_config(config_dir, VALID_CONFIG))
        assert config.exposure == ExposureSettings(kv=40.0, ma=5.5)

    def test_defaults(self, config_dir):
        config = load_config(write_config(config_dir, MINIMAL_CONFIG))
        assert config.trace is True
        assert config.override_warmup is False
        assert config.exposure is None

    def test_accepts_str_path(self, config_dir):
        path = write_config(config_dir, MINIMAL_CONFIG)
        assert load_config(str(path)).port == "/dev/ttyUSB0"

    def test_exposure_label(self):
        assert ExposureSettings(kv=40, ma=5.5).label == "40.0 kV / 5.5 mA"


# ══════════════════════════════════════════════════════════════════════════
#  Config loading: invalid configs
# ══════════════════════════════════════════════════════════════════════════


class TestLoadConfigInvalid:
    def test_file_not_found(self, config_dir):
        with pytest.raises(FileNotFoundError):
            load_config(config_dir / "nonexistent.yaml")

    def test_not_a_mapping(self, config_dir):
        path = write_config(config_dir, "- just\n- a\n- list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_unparseable_yaml(self, config_dir):
        path = write_config(config_dir, "port: [unclosed\n")
        with pytest.raises(ConfigError, match="Cannot parse"):
            load_config(path)

    def test_missing_port(self):
        with pytest.raises(ConfigError, match="port"):
            parse_config({"trace": True})

    def test_empty_port(self):
        with pytest.raises(ConfigError, match="port"):
            parse_config({"port": ""})

    def test_trace_must_be_bool(self):
        with pytest.raises(ConfigError, match="'trace' must be a boolean"):
            parse_config({"port": "/dev/ttyUSB0", "trace": "yes please"})

    def test_exposure_must_be_mapping(self):
        with pytest.raises(ConfigError, match="'exposure' must be a mapping"):
            parse_config({"port": "/dev/ttyUSB0", "exposure": [40, 5]})

    @pytest.mark.parametrize("field", ["kv", "ma"])
    def test_negative_exposure_value(self, field):
        exposure = {"kv": 40, "ma": 5, field: -1}
        with pytest.raises(ConfigError, match=field):
            parse_config({"port": "/dev/ttyUSB0", "exposure": exposure})

    @pytest.mark.parametrize("field", ["kv", "ma"])
    @pytest.mark.parametrize("value", [".nan", ".inf"])
    def test_non_finite_exposure_value(self, config_dir, field, value):
        other = "ma" if field == "kv" else "kv"
        content = f"port: /dev/ttyUSB0\nexposure:\n  {field}: {value}\n  {other}: 5\n"
        path = write_config(config_dir, content)
        with pytest.raises(ConfigError, match=f"'{field}'"):
            load_config(path)

    def test_missing_exposure_value(self):
        with pytest.raises(ConfigError, match="'ma'"):
            parse_config({"port": "/dev/ttyUSB0", "exposure": {"kv": 40}})

    def test_bool_is_not_a_number(self):
        with pytest.raises(ConfigError, match="'kv'"):
            parse_config({"port": "/dev/ttyUSB0", "exposure": {"kv": True, "ma": 1}})

    def test_kv_above_rating(self):
        with pytest.raises(ConfigError, match="at most"):
            parse_config({"port": "/dev/ttyUSB0", "exposure": {"kv": 80, "ma": 1}})

    def test_config_error_is_invalid_parameter(self):
        assert issubclass(ConfigError, InvalidParameter)


# ══════════════════════════════════════════════════════════════════════════
#  Pre-flight checks
# ══════════════════════════════════════════════════════════════════════════


class TestCheckWarmup:
    def test_warmed_up(self, controller, fake_serial):
        fake_serial.set_response("1>")
        result = check_warmup(controller)
        assert result.success
        assert fake_serial.written == [b"w\r"]

    def test_not_warmed_up(self, controller, fake_serial):
        fake_serial.set_response("0>")
        result = check_warmup(controller)
        assert not result.success
        assert "warm-up required" in result.message
        assert fake_serial.written == [b"w\r"]

    def test_override_sent_when_allowed(self, controller, fake_serial):
        fake_serial.set_response("0>")
        result = check_warmup(controller, override=True)
        assert result.success
        assert "overridden" in result.message
        assert fake_serial.written == [b"w\r", b"911\r"]

    def test_query_error(self, controller, fake_serial):
        fake_serial.set_response(">COMMUNICATION ERROR")
        result = check_warmup(controller)
        assert not result.success
        assert "query failed" in result.message


class TestCheckInterlocks:
    def test_all_clear(self, controller, fake_serial):
        fake_serial.set_response(INTERLOCKS_CLEAR)
        assert check_interlocks(controller).success

    def test_fault_reported(self, controller, monkeypatch):
        tripped = InterlockStatus((True,) + (False,) * 8)
        monkeypatch.setattr(controller, "get_interlocks", lambda: tripped)
        result = check_interlocks(controller)
        assert not result.success
        assert "Cooling" in result.message

    def test_query_error(self, controller, fake_serial):
        fake_serial.set_response(">COMMUNICATION ERROR")
        result = check_interlocks(controller)
        assert not result.success
        assert "query failed" in result.message


class TestPreflight:
    def test_all_ok(self, controller, fake_serial):
        fake_serial.queue_responses("1>", INTERLOCKS_CLEAR)
        report = preflight(controller)
        assert report.all_ok
        assert report.summary == "2/2 checks OK"

    def test_one_failure(self, controller, fake_serial):
        fake_serial.queue_responses("0>", INTERLOCKS_CLEAR)
        report = preflight(controller)
        assert not report.all_ok
        assert report.summary == "1/2 checks FAILED"


# ══════════════════════════════════════════════════════════════════════════
#  Exposure
# ══════════════════════════════════════════════════════════════════════════


class TestRunExposure:
    def test_starts_emission_after_preflight(self, controller, fake_serial):
        config = SessionConfig(port="/dev/fake", exposure=ExposureSettings(kv=10, ma=30))
        fake_serial.queue_responses("1>", INTERLOCKS_CLEAR)
        report = run_exposure(controller, config)
        assert report.emitting
        assert report.sent_ma == 30
        assert fake_serial.written == [b"w\r", b"i\r", b"V0100\r", b"M0300\r", b"S\r"]

    def test_clamped_current_reported(self, controller, fake_serial):
        config = SessionConfig(port="/dev/fake", exposure=ExposureSettings(kv=10, ma=100))
        fake_serial.queue_responses("1>", INTERLOCKS_CLEAR)
        report = run_exposure(controller, config)
        assert report.sent_ma == 45.0

    def test_failed_preflight_blocks_emission(self, controller, fake_serial):
        config = SessionConfig(port="/dev/fake", exposure=ExposureSettings(kv=10, ma=30))
        fake_serial.queue_responses("0>", INTERLOCKS_CLEAR)
        report = run_exposure(controller, config)
        assert not report.emitting
        assert fake_serial.written == [b"w\r", b"i\r"]

    def test_override_from_config(self, controller, fake_serial):
        config = SessionConfig(
            port="/dev/fake",
            override_warmup=True,
            exposure=ExposureSettings(kv=10, ma=30),
        )
        fake_serial.queue_responses("0>", ">", INTERLOCKS_CLEAR)
        report = run_exposure(controller, config)
        assert report.emitting
        assert fake_serial.written[:3] == [b"w\r", b"911\r", b"i\r"]

    def test_no_exposure_section_is_preflight_only(self, controller, fake_serial):
        config = SessionConfig(port="/dev/fake")
        fake_serial.queue_responses("1>", INTERLOCKS_CLEAR)
        report = run_exposure(controller, config)
        assert report.all_ok
        assert not report.emitting
        assert fake_serial.written == [b"w\r", b"i\r"]

    def test_start_fault_propagates(self, controller, fake_serial):
        config = SessionConfig(port="/dev/fake", exposure=ExposureSettings(kv=10, ma=30))
        fake_serial.queue_responses("1>", INTERLOCKS_CLEAR, ">", ">", ">COMMUNICATION ERROR")
        with pytest.raises(CommunicationFault):
            run_exposure(controller, config)
