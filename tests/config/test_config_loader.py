"""Tests for moma_config: YAML loading, parsing, checksum and bridges."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from moma_config import get_active_config
from moma_config.bridges import (
    build_boe_terms,
    build_claim_pairs,
    build_co_regulator,
    build_event_sequence,
    build_memory_component,
    build_verifier,
)
from moma_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_date,
    parse_decimal_str,
    parse_model_config,
)
from moma_kernel.exceptions import InvalidTimelineOrderError
from moma_engines.boe import BoeLifecycle
from moma_engines.invariance import CANONICAL_CLAIM_PAIRS

DEFAULT_SET = Path(__file__).resolve().parents[2] / "moma_config" / "sets" / "default.yaml"


@pytest.fixture
def raw_default():
    return load_yaml_file(DEFAULT_SET)


def _write_set(tmp_path: Path, name: str, data: dict) -> Path:
    path = tmp_path / f"{name}.yaml"
    path.write_text(yaml.safe_dump(data))
    return tmp_path


class TestGetActiveConfig:

    def test_default_set(self):
        config = get_active_config()
        assert config.config_id == "default"
        assert config.boe.face_value == "5000"
        assert config.event_sequence.start_date == date(2025, 1, 15)
        assert len(config.claim_pairs) == 9

    def test_trace_emitted(self, captured_logs):
        config = get_active_config()
        (trace,) = [r for r in captured_logs() if r["message"] == "MOMA_CONFIG_TRACE"]
        assert trace["config_set_id"] == "default"
        assert trace["checksum"] == config.checksum
        assert trace["claim_pair_count"] == 9

    def test_missing_set(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config("nope", config_dir=tmp_path)

    def test_override_directory(self, tmp_path, raw_default):
        raw_default["config_id"] = "stress"
        sets = _write_set(tmp_path, "stress", raw_default)
        assert get_active_config("stress", config_dir=sets).config_id == "stress"


class TestParsing:

    def test_parse_date(self):
        assert parse_date("2024-03-02") == date(2024, 3, 2)
        assert parse_date(date(2024, 3, 2)) == date(2024, 3, 2)
        with pytest.raises(ValueError):
            parse_date(20240302)

    def test_decimal_strings_keep_yaml_text(self):
        assert parse_decimal_str(0.1, "rate") == "0.1"
        assert parse_decimal_str("1e-10", "tol") == "1e-10"
        with pytest.raises(ValueError):
            parse_decimal_str("ten", "face")
        with pytest.raises(ValueError):
            parse_decimal_str(True, "face")

    def test_missing_required_section(self, raw_default):
        del raw_default["boe"]
        with pytest.raises(KeyError):
            parse_model_config(raw_default)

    def test_empty_claim_pairs(self, raw_default):
        raw_default["claim_pairs"] = []
        with pytest.raises(ValueError):
            parse_model_config(raw_default)

    def test_duplicate_claim_pairs(self, raw_default):
        raw_default["claim_pairs"].append(dict(raw_default["claim_pairs"][0]))
        with pytest.raises(ValueError, match="cb_loans_seller_bank"):
            parse_model_config(raw_default)

    def test_optional_sections_default(self, raw_default):
        for key in ("verification", "memory", "co_regulator"):
            raw_default.pop(key)
        config = parse_model_config(raw_default)
        assert config.verification.tolerance == "1e-10"
        assert config.memory.capacity == 10


class TestChecksum:

    def test_deterministic(self, raw_default):
        assert compute_checksum(raw_default) == compute_checksum(dict(reversed(list(raw_default.items()))))

    def test_changes_with_content(self, raw_default):
        before = compute_checksum(raw_default)
        raw_default["boe"]["face_value"] = "6000"
        assert compute_checksum(raw_default) != before


class TestBridges:

    def test_claim_pairs_match_canonical(self):
        assert build_claim_pairs(get_active_config()) == CANONICAL_CLAIM_PAIRS

    def test_boe_terms(self):
        terms = build_boe_terms(get_active_config())
        assert terms.face_value == Decimal("5000")
        assert terms.commercial_rate == Decimal("0.10")
        assert terms.timeline.settlement == date(2024, 6, 2)

    def test_configured_lifecycle_runs(self):
        config = get_active_config()
        log = BoeLifecycle(build_boe_terms(config)).run()
        verifier = build_verifier(config)
        assert len(log) == 6
        assert all(verifier.run_all_checks(entry.diagram) for entry in log)

    def test_unordered_timeline(self, tmp_path, raw_default):
        raw_default["boe"]["timeline"]["maturity"] = "2024-01-15"
        sets = _write_set(tmp_path, "broken", raw_default)
        with pytest.raises(InvalidTimelineOrderError):
            build_boe_terms(get_active_config("broken", config_dir=sets))

    def test_event_sequence(self):
        sequence = build_event_sequence(get_active_config())
        assert sequence[0].position("CB", "PaperMoney") == Decimal("1000")
        assert sequence[1].position("CB", "LoansToBanks") == Decimal("200")

    def test_verifier_settings(self):
        verifier = build_verifier(get_active_config())
        assert verifier.tolerance == Decimal("1e-10")

    def test_memory_settings(self):
        config = get_active_config()
        assert build_memory_component(config).capacity == 10
        assert build_co_regulator(config).threshold == Decimal("0.5")
