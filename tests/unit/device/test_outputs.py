"""Tests for output views."""

from lec.device.outputs import (
    OutputMetric,
    is_streaming,
    parse_output_metrics,
    parse_outputs,
)


class TestParseOutputs:
    """Tests for parse_outputs."""

    def test_walks_nested_branches(self) -> None:
        document = {
            "shadows": [
                {
                    "shadow_name": "Outputs",
                    "reported": {
                        "state": [
                            {
                                "output_id": 20,
                                "type": "SRT",
                                "config": {"enable": True, "destination_port": 10001},
                            }
                        ]
                    },
                },
                {"shadow_name": "Extra", "reported": {"nested": {"output_id": "21"}}},
            ]
        }

        outputs = {o.output_id: o for o in parse_outputs(document)}

        assert set(outputs) == {20, 21}
        assert outputs[20].enabled
        assert outputs[20].type == "srt"
        assert outputs[20].port == 10001
        assert not outputs[21].enabled

    def test_duplicates_prefer_entry_with_port(self) -> None:
        document = [
            {"output_id": 5, "enabled": True},
            {"output_id": 5, "port": 9000},
        ]

        (output,) = parse_outputs(document)

        assert output.port == 9000

    def test_outputs_shadow_entries_reported_by_id(self) -> None:
        document = {
            "shadows": [
                {
                    "shadow_name": "Outputs",
                    "reported": {
                        "state": {
                            "20": {
                                "type": "srt",
                                "config": {
                                    "enable": True,
                                    "name": "main",
                                    "destination_port": 10001,
                                },
                            },
                            "21": {"out_stream_id": 21, "type": "rtmp"},
                        }
                    },
                }
            ]
        }

        outputs = {o.output_id: o for o in parse_outputs(document)}

        assert set(outputs) == {20, 21}
        assert outputs[20].enabled
        assert outputs[20].name == "main"
        assert outputs[20].port == 10001
        assert outputs[21].type == "rtmp"
        assert not outputs[21].enabled

    def test_non_numeric_ids_are_ignored(self) -> None:
        assert parse_outputs({"output_id": "abc"}) == []


class TestOutputMetrics:
    def test_metrics_from_outputs_shadow(self) -> None:
        document = {
            "shadows": [
                {
                    "shadow_name": "Outputs",
                    "reported": {
                        "state": [
                            {
                                "id": 20,
                                "type": "srt",
                                "status_code": "RUNNING",
                                "config": {"destination_ip": "", "destination_port": 10001},
                            }
                        ]
                    },
                }
            ]
        }

        metrics = parse_output_metrics(document)

        assert metrics == [OutputMetric(20, "srt", "", 10001, "RUNNING")]
        assert is_streaming(metrics)

    def test_no_outputs_shadow(self) -> None:
        assert parse_output_metrics({"shadows": []}) == []
        assert not is_streaming([OutputMetric(1, "rtmp", None, None, "RUNNING")])
