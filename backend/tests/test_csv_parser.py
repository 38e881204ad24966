"""
Test CSV Parser
測試 CSV 解析
"""
import pytest

from services.csv_parser import (
    BareTimePolicy,
    ColumnMapping,
    CsvVocabulary,
    combine_bare_time,
    detect_vocabulary,
    parse_csv,
    parse_csv_report,
    parse_datetime_ms,
    parse_float,
    sniff_vocabulary,
)

from conftest import NOW_MS

SECOND = 1000
DAY_MS = 24 * 60 * 60 * 1000


class TestDeviceFormat:
    """Device 格式"""

    def test_parses_every_valid_row(self, device_csv, now_ms):
        samples = parse_csv(device_csv, now_ms=now_ms)

        assert len(samples) == 3
        first = samples[0]
        assert first.device == "d1"
        assert first.x == 0.012
        assert first.y == -0.004
        assert first.z == 0.981
        assert first.stroke_mm == 25.437
        assert first.temperature_c == 21.6

    def test_chart_fields_mirror_device_readings(self, device_csv, now_ms):
        sample = parse_csv(device_csv, now_ms=now_ms)[0]
        assert sample.vibration == sample.x
        assert sample.acceleration == sample.y
        assert sample.strain == sample.stroke_mm
        assert sample.temperature == sample.temperature_c

    def test_bare_time_uses_parse_date(self, device_csv, now_ms):
        samples = parse_csv(device_csv, now_ms=now_ms)
        assert [s.timestamp for s in samples] == [
            now_ms - 30 * SECOND,
            now_ms - 60 * SECOND,
            now_ms - 90 * SECOND,
        ]

    def test_preserves_file_order(self, now_ms):
        csv_text = "\n".join([
            "Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C",
            "d1,08:00:00,1,1,1,1,1",
            "d1,08:09:00,2,2,2,2,2",
            "d1,08:05:00,3,3,3,3,3",
        ])
        samples = parse_csv(csv_text, now_ms=now_ms)
        assert [s.x for s in samples] == [1.0, 2.0, 3.0]

    def test_row_ids_are_row_numbers(self, device_csv, now_ms):
        samples = parse_csv(device_csv, now_ms=now_ms)
        assert [s.id for s in samples] == ["1", "2", "3"]
        assert samples[0].created_at.startswith("2025-12-22T08:09:30")


class TestGenericFormat:
    """Generic / ThingSpeak 格式"""

    def test_parses_generic_fields(self, generic_csv, now_ms):
        samples = parse_csv(generic_csv, now_ms=now_ms)

        assert len(samples) == 2
        first = samples[0]
        assert first.vibration == 1.2
        assert first.acceleration == 0.25
        assert first.strain == 120.5
        assert first.temperature == 22.1
        assert first.timestamp == now_ms - 10 * SECOND
        assert first.id == "30"
        assert first.created_at == "2025-12-22T08:09:50Z"

    def test_device_fields_are_omitted(self, generic_csv, now_ms):
        sample = parse_csv(generic_csv, now_ms=now_ms)[0]
        assert sample.x is None
        assert sample.stroke_mm is None
        assert sample.temperature_c is None

    def test_both_vocabularies_without_mode(self, device_csv, generic_csv, now_ms):
        device_report = parse_csv_report(device_csv, now_ms=now_ms)
        generic_report = parse_csv_report(generic_csv, now_ms=now_ms)

        assert device_report.vocabulary is CsvVocabulary.DEVICE
        assert generic_report.vocabulary is CsvVocabulary.GENERIC
        assert len(device_report.samples) == 3
        assert len(generic_report.samples) == 2

    def test_named_generic_columns(self, now_ms):
        csv_text = "created_at,vibration,acceleration,strain,temperature\n" \
                   "2025-12-22 08:00:00,1.5,0.3,110,20.5"
        sample = parse_csv(csv_text, now_ms=now_ms)[0]
        assert sample.vibration == 1.5
        assert sample.temperature == 20.5


class TestTolerance:
    """格式錯誤與邊界情況"""

    def test_missing_column_row_is_skipped(self, now_ms):
        csv_text = "\n".join([
            "Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C",
            "d1,08:09:50,1,1,1,1,1",
            "d1,08:09:40,2,2,2,2,2",
            "d1,08:09:30,3,3,3,3",
            "d1,08:09:20,4,4,4,4,4",
            "d1,08:09:10,5,5,5,5,5",
        ])
        report = parse_csv_report(csv_text, now_ms=now_ms)

        assert [s.x for s in report.samples] == [1.0, 2.0, 4.0, 5.0]
        assert [s.id for s in report.samples] == ["1", "2", "4", "5"]
        assert report.skipped_rows == 1

    def test_all_nan_row_is_dropped(self, now_ms):
        csv_text = "\n".join([
            "Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C",
            "d1,08:09:50,1,1,1,1,1",
            "d1,08:09:40,N/A,N/A,N/A,N/A,N/A",
        ])
        report = parse_csv_report(csv_text, now_ms=now_ms)

        assert len(report.samples) == 1
        assert report.dropped_rows == 1

    def test_partial_nan_becomes_zero(self, now_ms):
        csv_text = "Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C\n" \
                   "d1,08:09:50,N/A,,0.5,abc,21"
        sample = parse_csv(csv_text, now_ms=now_ms)[0]
        assert sample.x == 0.0
        assert sample.y == 0.0
        assert sample.z == 0.5
        assert sample.stroke_mm == 0.0
        assert sample.temperature_c == 21.0

    def test_values_with_units(self, now_ms):
        csv_text = "Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C\n" \
                   "d1,08:09:50,1,1,1,25.437mm,21.6C"
        sample = parse_csv(csv_text, now_ms=now_ms)[0]
        assert sample.stroke_mm == 25.437
        assert sample.temperature_c == 21.6
        assert sample.strain == 25.437

    @pytest.mark.parametrize("value", [
        "9999-12-31T23:59:59-05:00",
        "0001-01-01T00:00:00+01:00",
    ])
    def test_out_of_range_datetime_does_not_abort(self, now_ms, value):
        csv_text = "\n".join([
            "Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C",
            "d1,08:09:50,1,1,1,1,1",
            f"d1,{value},2,2,2,2,2",
            "d1,08:09:40,3,3,3,3,3",
        ])
        report = parse_csv_report(csv_text, now_ms=now_ms)

        assert [s.x for s in report.samples] == [1.0, 2.0, 3.0]
        assert report.samples[1].timestamp == now_ms
        assert report.fallback_time_rows == 1

    def test_missing_header_column_defaults_to_zero(self, now_ms):
        csv_text = "Device,Timestamp,X,Y,Z\nd1,08:09:50,1,2,3"
        sample = parse_csv(csv_text, now_ms=now_ms)[0]
        assert sample.z == 3.0
        assert sample.stroke_mm == 0.0
        assert sample.temperature_c == 0.0

    def test_header_only(self):
        assert parse_csv("Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C") == []

    def test_empty_input(self):
        assert parse_csv("") == []
        assert parse_csv("\n\n  \n") == []

    def test_none_input_raises(self):
        with pytest.raises(TypeError):
            parse_csv(None)

    def test_crlf_and_blank_lines(self, now_ms):
        csv_text = "Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C\r\n" \
                   "d1,08:09:50,1,1,1,1,21.5\r\n\r\n" \
                   "d1,08:09:40,2,2,2,2,21.4\r\n"
        samples = parse_csv(csv_text, now_ms=now_ms)
        assert len(samples) == 2
        assert samples[0].temperature_c == 21.5

    def test_bytes_with_bom(self, device_csv, now_ms):
        raw = ("\ufeff" + device_csv).encode("utf-8")
        report = parse_csv_report(raw, now_ms=now_ms)
        assert report.vocabulary is CsvVocabulary.DEVICE
        assert len(report.samples) == 3

    def test_header_is_case_and_space_insensitive(self, now_ms):
        csv_text = " device , TIMESTAMP ,x, y ,Z,stroke_MM,temperature_c\n" \
                   "d2,08:09:50,1,2,3,4,5"
        sample = parse_csv(csv_text, now_ms=now_ms)[0]
        assert sample.device == "d2"
        assert sample.temperature_c == 5.0

    def test_quoted_fields(self, now_ms):
        csv_text = 'Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C\n' \
                   '"d1",08:09:50,"1.5",2,3,4,5'
        sample = parse_csv(csv_text, now_ms=now_ms)[0]
        assert sample.device == "d1"
        assert sample.x == 1.5

    def test_unrecognised_header(self, now_ms):
        assert parse_csv("a,b,c\n1,2,3", now_ms=now_ms) == []


class TestTimestamps:
    """時間戳解析與優先順序"""

    def test_unparseable_timestamp_falls_back_to_now(self, now_ms):
        csv_text = "Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C\n" \
                   "d1,not-a-time,1,1,1,1,1"
        report = parse_csv_report(csv_text, now_ms=now_ms)
        assert report.samples[0].timestamp == now_ms
        assert report.fallback_time_rows == 1

    def test_full_datetime_beats_bare_time(self, now_ms):
        csv_text = "Device,Timestamp,created_at,X,Y,Z,Stroke_mm,Temperature_C\n" \
                   "d1,08:09:50,2025-12-20T10:00:00Z,1,1,1,1,1"
        sample = parse_csv(csv_text, now_ms=now_ms)[0]
        assert sample.timestamp == parse_datetime_ms("2025-12-20T10:00:00Z")

    def test_generic_prefers_created_at(self, now_ms):
        csv_text = "created_at,entry_id,timestamp,field1,field2,field3,field4\n" \
                   "2025-12-22T08:00:00Z,1,2025-12-22T07:00:00Z,1,1,1,1"
        sample = parse_csv(csv_text, now_ms=now_ms)[0]
        assert sample.timestamp == parse_datetime_ms("2025-12-22T08:00:00Z")

    def test_generic_bare_time_used_when_no_datetime(self, now_ms):
        csv_text = "created_at,entry_id,time,field1,field2,field3,field4\n" \
                   ",1,08:09:00,1,1,1,1"
        report = parse_csv_report(csv_text, now_ms=now_ms)
        assert report.samples[0].timestamp == now_ms - 60 * SECOND
        assert report.bare_time_rows == 1

    def test_rollback_policy_moves_future_time_to_previous_day(self, now_ms):
        csv_text = "Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C\n" \
                   "d1,23:50:00,1,1,1,1,1"
        today = parse_csv(csv_text, now_ms=now_ms, bare_time_policy=BareTimePolicy.TODAY)[0]
        rolled = parse_csv(csv_text, now_ms=now_ms, bare_time_policy=BareTimePolicy.ROLLBACK)[0]

        assert today.timestamp > now_ms
        assert rolled.timestamp == today.timestamp - DAY_MS

    def test_same_bare_time_differs_across_days(self):
        csv_text = "Device,Timestamp,X,Y,Z,Stroke_mm,Temperature_C\n" \
                   "d1,08:00:00,1,1,1,1,1"
        first = parse_csv(csv_text, now_ms=NOW_MS)[0]
        second = parse_csv(csv_text, now_ms=NOW_MS + DAY_MS)[0]
        assert second.timestamp - first.timestamp == DAY_MS

    def test_combine_bare_time_rejects_invalid_clock(self, now_ms):
        assert combine_bare_time("25:00:00", now_ms) is None
        assert combine_bare_time("08:61:00", now_ms) is None
        assert combine_bare_time("8:05:00", now_ms) == now_ms - 5 * 60 * SECOND

    @pytest.mark.parametrize("value", [
        "2025-12-22T08:10:00Z",
        "2025-12-22T08:10:00+00:00",
        "2025-12-22 08:10:00",
        "2025/12/22 08:10:00",
        "12/22/2025 08:10:00",
        "2025-12-22 08:10:00 UTC",
        "2025-12-22T09:10:00+01:00",
    ])
    def test_datetime_formats(self, value):
        assert parse_datetime_ms(value) == NOW_MS

    def test_datetime_rejects_bare_time_and_garbage(self):
        assert parse_datetime_ms("08:10:00") is None
        assert parse_datetime_ms("yesterday") is None
        assert parse_datetime_ms("") is None

    @pytest.mark.parametrize("value", [
        "9999-12-31T23:59:59-05:00",
        "0001-01-01T00:00:00+01:00",
    ])
    def test_datetime_outside_supported_range(self, value):
        assert parse_datetime_ms(value) is None


class TestHelpers:
    """輔助函式"""

    @pytest.mark.parametrize("text,expected", [
        ("25.437", 25.437),
        (" -1.5 ", -1.5),
        ("1e3", 1000.0),
        ("25.437mm", 25.437),
        ("21.6C", 21.6),
        (".5", 0.5),
        ("+3", 3.0),
        ("7e", 7.0),
    ])
    def test_parse_float(self, text, expected):
        assert parse_float(text) == expected

    @pytest.mark.parametrize("text", ["N/A", "", None, "abc", "inf", "nan", "-", "1e999", "mm25"])
    def test_parse_float_invalid_is_nan(self, text):
        value = parse_float(text)
        assert value != value

    def test_detect_vocabulary(self):
        assert detect_vocabulary(["Device", "Timestamp", "X"]) is CsvVocabulary.DEVICE
        assert detect_vocabulary(["created_at", "entry_id", "field1"]) is CsvVocabulary.GENERIC
        assert detect_vocabulary(["created_at", "temperature"]) is None

    def test_sniff_vocabulary(self, device_csv, generic_csv):
        assert sniff_vocabulary(device_csv) is CsvVocabulary.DEVICE
        assert sniff_vocabulary(generic_csv.encode()) is CsvVocabulary.GENERIC
        assert sniff_vocabulary("<html><body>Sign in</body></html>") is None
        assert sniff_vocabulary("") is None

    def test_column_mapping_aliases(self):
        mapping = ColumnMapping.from_header(["Device", "Time", "X", "Stroke", "Temp"])
        assert mapping.vocabulary is CsvVocabulary.DEVICE
        assert mapping.numeric == {"x": 2, "stroke_mm": 3, "temperature_c": 4}
        assert mapping.timestamp == (1,)
        assert mapping.device == 0
