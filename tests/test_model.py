from datetime import datetime, timezone

import pytest

from decomp_verifier import MalformedReport, Report
from decomp_verifier.model import parse_timestamp

from conftest import scenario_dict


class TestReportFromDict:
    def test_scenario_fields(self, scenario_report):
        assert scenario_report.total_progress == 0.5
        assert scenario_report.matched_objects == 1
        assert scenario_report.total_objects == 2
        assert [u.name for u in scenario_report.units] == ["a.o", "b.o"]

        b = scenario_report.get_unit("b.o")
        assert b.match_percent == 0.25
        assert [s.name for s in b.symbols] == ["fn1", "fn2"]
        assert b.symbols[0].base_size == 100
        assert b.symbols[0].target_size == 120

    def test_mismatch_classification(self, scenario_report):
        assert not scenario_report.get_unit("a.o").is_mismatch
        assert scenario_report.get_unit("b.o").is_mismatch
        assert scenario_report.mismatch_count == 1

    def test_mismatched_symbols_skips_full_matches(self, scenario_report):
        b = scenario_report.get_unit("b.o")
        assert [s.name for s in b.mismatched_symbols()] == ["fn1"]

    def test_get_unit_unknown_name(self, scenario_report):
        assert scenario_report.get_unit("missing.o") is None

    def test_snake_case_keys_accepted(self):
        data = {
            "total_progress": 0.25,
            "matched_objects": 0,
            "total_objects": 1,
            "timestamp": "2024-05-01T12:00:00+00:00",
            "units": [
                {
                    "name": "main.o",
                    "match_percent": 0.25,
                    "symbols": [
                        {"name": "main", "match_percent": 0.25, "base_size": 8, "target_size": 12}
                    ],
                }
            ],
        }
        report = Report.from_dict(data)
        assert report.units[0].symbols[0].target_size == 12

    def test_integral_float_sizes_accepted(self, scenario):
        scenario["units"][1]["symbols"][0]["baseSize"] = 100.0
        report = Report.from_dict(scenario)
        assert report.units[1].symbols[0].base_size == 100
        assert isinstance(report.units[1].symbols[0].base_size, int)

    def test_empty_units(self):
        data = scenario_dict()
        data["units"] = []
        assert Report.from_dict(data).units == []


class TestReportValidation:
    def test_not_an_object(self):
        with pytest.raises(MalformedReport, match="must be an object"):
            Report.from_dict([1, 2, 3])

    def test_missing_units(self, scenario):
        del scenario["units"]
        with pytest.raises(MalformedReport, match="units"):
            Report.from_dict(scenario)

    def test_units_wrong_type(self, scenario):
        scenario["units"] = {"a.o": {}}
        with pytest.raises(MalformedReport, match="must be a list"):
            Report.from_dict(scenario)

    def test_missing_symbols(self, scenario):
        del scenario["units"][0]["symbols"]
        with pytest.raises(MalformedReport, match=r"units\[0\]\.symbols"):
            Report.from_dict(scenario)

    def test_error_names_nested_field(self, scenario):
        scenario["units"][1]["symbols"][1]["targetSize"] = "40"
        with pytest.raises(MalformedReport) as excinfo:
            Report.from_dict(scenario)
        assert "units[1].symbols[1].targetSize" in excinfo.value.detail

    def test_bool_is_not_a_number(self, scenario):
        scenario["totalProgress"] = True
        with pytest.raises(MalformedReport, match="totalProgress"):
            Report.from_dict(scenario)

    @pytest.mark.parametrize("value", [-0.1, 1.5])
    def test_fraction_out_of_range(self, scenario, value):
        scenario["units"][0]["matchPercent"] = value
        with pytest.raises(MalformedReport, match="between 0 and 1"):
            Report.from_dict(scenario)

    def test_nan_rejected(self, scenario):
        scenario["totalProgress"] = float("nan")
        with pytest.raises(MalformedReport, match="finite"):
            Report.from_dict(scenario)

    def test_negative_size_rejected(self, scenario):
        scenario["units"][1]["symbols"][0]["baseSize"] = -4
        with pytest.raises(MalformedReport, match="non-negative integer"):
            Report.from_dict(scenario)

    def test_fractional_count_rejected(self, scenario):
        scenario["matchedObjects"] = 1.5
        with pytest.raises(MalformedReport, match="matchedObjects"):
            Report.from_dict(scenario)

    def test_matched_exceeds_total(self, scenario):
        scenario["matchedObjects"] = 3
        with pytest.raises(MalformedReport, match="exceeds"):
            Report.from_dict(scenario)

    def test_duplicate_unit_names(self, scenario):
        scenario["units"][1]["name"] = "a.o"
        with pytest.raises(MalformedReport, match="duplicate unit name"):
            Report.from_dict(scenario)

    def test_unit_name_must_be_string(self, scenario):
        scenario["units"][0]["name"] = 7
        with pytest.raises(MalformedReport, match="must be a string"):
            Report.from_dict(scenario)

    def test_bad_timestamp(self, scenario):
        scenario["timestamp"] = "yesterday"
        with pytest.raises(MalformedReport, match="timestamp"):
            Report.from_dict(scenario)


class TestParseTimestamp:
    def test_iso_with_z(self):
        assert parse_timestamp("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    def test_naive_iso_is_utc(self):
        assert parse_timestamp("2024-05-01T12:00:00").tzinfo is not None

    def test_number_is_epoch_millis(self):
        assert parse_timestamp(1714564800000) == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    def test_null_rejected(self):
        with pytest.raises(MalformedReport):
            parse_timestamp(None)

    def test_rfc1123_string(self):
        parsed = parse_timestamp("Wed, 01 May 2024 12:00:00 GMT")
        assert parsed == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    def test_nanosecond_fraction_truncated(self):
        parsed = parse_timestamp("2024-05-01T12:00:00.123456789Z")
        assert parsed.microsecond == 123456
        assert parsed.replace(microsecond=0) == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    def test_short_fraction(self):
        assert parse_timestamp("2024-05-01T12:00:00.5Z").microsecond == 500000
