"""Tests for Pydantic data models."""

import pytest
from pydantic import ValidationError

from duco2mqtt.models import (
    DEFAULT_NODE_KINDS,
    DEVICE_KIND,
    DiscoveryRegistry,
    MeasurementSpec,
    NodeKindSpec,
    PublishedState,
    Snapshot,
    SupportedNode,
    UnsupportedNode,
    ValueType,
    build_node_kinds,
)


class TestMeasurementSpec:
    """Tests for MeasurementSpec model."""

    def test_default_values(self):
        """Test default values are set correctly."""
        spec = MeasurementSpec(name="co2", source="Sensor/Co2")

        assert spec.value_type == ValueType.NUMERIC
        assert spec.precision == 0
        assert spec.sentinels == [65535]
        assert spec.path == ("Sensor", "Co2")

    def test_name_must_be_topic_safe(self):
        """Test names with topic separators are rejected."""
        with pytest.raises(ValidationError):
            MeasurementSpec(name="co2/level", source="Sensor/Co2")

        with pytest.raises(ValidationError):
            MeasurementSpec(name="CO2", source="Sensor/Co2")

    def test_encode_numeric_uses_precision(self):
        """Test numeric values are encoded with a fixed precision."""
        spec = MeasurementSpec(name="temperature", source="Sensor/Temp", precision=1)

        assert spec.encode(21) == "21.0"
        assert spec.encode(21.5) == "21.5"
        assert spec.encode(21.04) == "21.0"

    def test_encode_integer(self):
        """Test zero precision drops the decimals."""
        spec = MeasurementSpec(name="co2", source="Sensor/Co2")

        assert spec.encode(512) == "512"
        assert spec.encode(512.0) == "512"

    def test_encode_boolean(self):
        """Test booleans are encoded as true/false."""
        spec = MeasurementSpec(
            name="identify",
            source="General/Identify",
            value_type=ValueType.BOOLEAN,
        )

        assert spec.encode(True) == "true"
        assert spec.encode(False) == "false"

    def test_encode_enum(self):
        """Test enum values are passed through."""
        spec = MeasurementSpec(
            name="ventilation_state",
            source="Ventilation/State",
            value_type=ValueType.ENUM,
        )

        assert spec.encode("AUTO") == "AUTO"

    def test_display_name(self):
        """Test label falls back to the name."""
        assert MeasurementSpec(name="flow_level", source="a/b").display_name == "Flow level"
        assert MeasurementSpec(name="co2", source="a/b", label="CO2").display_name == "CO2"


class TestNodeKindSpec:
    """Tests for NodeKindSpec model."""

    def test_duplicate_measurements_rejected(self):
        """Test a kind cannot list the same measurement twice."""
        spec = MeasurementSpec(name="co2", source="Sensor/Co2")

        with pytest.raises(ValidationError):
            NodeKindSpec(name="Sensor", measurements=[spec, spec])

    def test_default_table(self):
        """Test the built-in table covers the common node types."""
        for code in ["BOX", "UCCO2", "UCRH", "UCHR", "BSRH", "VLV", "VLVRH", "VLVCO2", "VLVCO2RH"]:
            assert code in DEFAULT_NODE_KINDS

        assert DEVICE_KIND in DEFAULT_NODE_KINDS

    def test_build_node_kinds_overrides(self):
        """Test configured kinds extend and replace the defaults."""
        custom = NodeKindSpec(
            name="Custom",
            measurements=[MeasurementSpec(name="co2", source="Sensor/Co2")],
        )

        kinds = build_node_kinds({"BOX": custom, "NEW": custom})

        assert kinds["BOX"] is custom
        assert kinds["NEW"] is custom
        assert "UCCO2" in kinds
        # Defaults are not modified
        assert DEFAULT_NODE_KINDS["BOX"] is not custom
        assert "NEW" not in DEFAULT_NODE_KINDS


class TestSnapshot:
    """Tests for Snapshot model."""

    def test_supported_and_unsupported(self):
        """Test nodes are split by kind support."""
        snapshot = Snapshot(
            nodes=(
                SupportedNode(id=1, kind="BOX", measurements={"ventilation_state": "AUTO"}),
                UnsupportedNode(id=2, kind="SWITCH", raw={"Node": 2}),
            )
        )

        assert [n.id for n in snapshot.supported_nodes] == [1]
        assert [n.id for n in snapshot.unsupported_nodes] == [2]
        assert snapshot.node(2).kind == "SWITCH"
        assert snapshot.node(3) is None

    def test_frozen(self):
        """Test snapshots cannot be modified."""
        node = SupportedNode(id=1, kind="BOX")

        with pytest.raises(ValidationError):
            node.kind = "VLV"


class TestPublishedState:
    """Tests for PublishedState."""

    def test_set_get_clear(self):
        """Test basic bookkeeping."""
        state = PublishedState()
        assert state.get(1, "temperature") is None

        state.set(1, "temperature", "21.0")

        assert state.get(1, "temperature") == "21.0"
        assert (1, "temperature") in state
        assert len(state) == 1
        assert state.as_dict() == {(1, "temperature"): "21.0"}

        state.clear()
        assert len(state) == 0


class TestDiscoveryRegistry:
    """Tests for DiscoveryRegistry."""

    def test_add(self):
        """Test node ids are remembered."""
        registry = DiscoveryRegistry()
        registry.add(1)
        registry.add("box")
        registry.add(1)

        assert 1 in registry
        assert "box" in registry
        assert 2 not in registry
        assert len(registry) == 2
