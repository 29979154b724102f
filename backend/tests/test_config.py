import pytest

from deepscan.config import DEFAULT_CONFIG, ScanSettings
from deepscan.errors import DeepScanError, InvalidSettingsError


def test_defaults():
    s = ScanSettings()
    assert s.chunk_size == DEFAULT_CONFIG["chunk_size"] == 500
    assert s.connect_timeout == 1.0
    assert s.forensic_timeout == 1.5
    assert s.forensics_enabled is True
    assert s.concurrency_limit == 500


def test_from_env_overrides():
    s = ScanSettings.from_env({
        "DEEPSCAN_CHUNK_SIZE": "250",
        "DEEPSCAN_TLS_TIMEOUT": "2.5",
        "DEEPSCAN_FORENSICS_ENABLED": "no",
        "DEEPSCAN_INTER_CHUNK_DELAY": "",
        "UNRELATED": "x",
    })
    assert s.chunk_size == 250
    assert s.tls_timeout == 2.5
    assert s.forensics_enabled is False
    assert s.inter_chunk_delay == DEFAULT_CONFIG["inter_chunk_delay"]


def test_from_env_rejects_garbage():
    with pytest.raises(InvalidSettingsError, match="DEEPSCAN_CHUNK_SIZE"):
        ScanSettings.from_env({"DEEPSCAN_CHUNK_SIZE": "lots"})


@pytest.mark.parametrize("field,value", [
    ("chunk_size", 0),
    ("max_concurrency", -1),
    ("connect_timeout", 0),
    ("banner_timeout", -0.5),
    ("tls_timeout", 0),
    ("forensic_timeout", 0),
    ("inter_chunk_delay", -0.01),
])
def test_validation(field, value):
    with pytest.raises(InvalidSettingsError):
        ScanSettings(**{field: value})


def test_invalid_settings_error_hierarchy():
    assert issubclass(InvalidSettingsError, DeepScanError)
    assert issubclass(InvalidSettingsError, ValueError)


def test_with_overrides_ignores_none():
    base = ScanSettings(chunk_size=100)
    s = base.with_overrides(chunk_size=None, connect_timeout=0.25)
    assert s.chunk_size == 100
    assert s.connect_timeout == 0.25
    assert base.connect_timeout == 1.0


def test_with_overrides_validates():
    with pytest.raises(InvalidSettingsError):
        ScanSettings().with_overrides(chunk_size=0)


def test_concurrency_limit_never_exceeds_chunk():
    assert ScanSettings(chunk_size=50, max_concurrency=500).concurrency_limit == 50
    assert ScanSettings(chunk_size=500, max_concurrency=64).concurrency_limit == 64
