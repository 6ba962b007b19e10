"""Tests for the running-statistics Aggregator."""

import pytest

from metricqueue import AggregateEntry, Aggregator, AggregatorPort, InvalidParameters


class TestAggregator:
    """Tests for Aggregator.add() and aggregates()."""

    @pytest.mark.core
    def test_implements_aggregator_port(self) -> None:
        assert isinstance(Aggregator(), AggregatorPort)

    @pytest.mark.core
    def test_tracks_count_sum_min_max(self) -> None:
        aggregator = Aggregator()
        aggregator.add(timing=102).add(timing=203)

        assert aggregator.aggregates() == [
            AggregateEntry(name="timing", count=2, sum=305.0, min=102.0, max=203.0)
        ]

    @pytest.mark.core
    def test_statistics_are_floats(self) -> None:
        entry = Aggregator().add(timing=7).aggregates()[0]
        assert isinstance(entry.sum, float)
        assert isinstance(entry.min, float)
        assert isinstance(entry.max, float)

    @pytest.mark.core
    def test_tracks_sources_separately(self) -> None:
        aggregator = Aggregator()
        aggregator.add(timing={"value": 1, "source": "a"})
        aggregator.add(timing={"value": 3, "source": "b"})
        aggregator.add(timing={"value": 5, "source": "a"})

        by_source = {e.source: e for e in aggregator.aggregates()}
        assert by_source["a"].count == 2
        assert by_source["a"].sum == 6.0
        assert by_source["b"].count == 1

    @pytest.mark.core
    def test_prefix_is_prepended(self) -> None:
        aggregator = Aggregator(prefix="app")
        aggregator.add(timing=1)
        assert aggregator.aggregates()[0].name == "app.timing"

    @pytest.mark.core
    def test_queued_payload(self) -> None:
        aggregator = Aggregator(source="aggregator").add(timing=4)
        assert aggregator.queued() == {
            "gauges": [
                {"name": "timing", "count": 1, "sum": 4.0, "min": 4.0, "max": 4.0}
            ],
            "source": "aggregator",
        }

    @pytest.mark.core
    def test_empty_and_clear(self) -> None:
        aggregator = Aggregator()
        assert aggregator.is_empty()
        assert aggregator.queued() == {}

        aggregator.add(a=1, b=2)
        assert aggregator.size() == 2

        aggregator.clear()
        assert aggregator.is_empty()

    @pytest.mark.core
    @pytest.mark.parametrize(
        "raw", ["12", None, {"value": 1, "tags": {"a": "b"}}, {"source": "a"}]
    )
    def test_invalid_values_raise(self, raw: object) -> None:
        aggregator = Aggregator()
        with pytest.raises(InvalidParameters):
            aggregator.add(timing=raw)
        assert aggregator.is_empty()

    @pytest.mark.core
    def test_non_mapping_argument_raises(self) -> None:
        aggregator = Aggregator()
        with pytest.raises(InvalidParameters):
            aggregator.add([("timing", 1)])  # type: ignore[arg-type]
        assert aggregator.is_empty()
