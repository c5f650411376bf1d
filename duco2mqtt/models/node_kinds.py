"""Node kind table: which measurements each Duco node type reports.

The table maps the board's node type code (``General/Type``) to the
ordered list of measurements that are read from the node and published.
Kinds missing from the table are reported as unsupported. Entries can be
added or overridden from the YAML configuration (``node_kinds``).
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

# Raw value the board uses for "no reading available"
UNAVAILABLE_SENTINEL = 65535

# Pseudo node kind for the board-level record read from /info
DEVICE_KIND = "DEVICE"
DEVICE_NODE_ID = "box"


class ValueType(str, Enum):
    """How a raw board value is interpreted."""
    NUMERIC = "numeric"
    ENUM = "enum"
    BOOLEAN = "boolean"


class MeasurementSpec(BaseModel):
    """Description of one measurement of a node kind."""

    name: str = Field(
        ...,
        pattern=r"^[a-z0-9_]+$",
        description="Topic-safe measurement name"
    )
    source: str = Field(
        ...,
        description="Slash separated path to the field in the board JSON"
    )
    value_type: ValueType = Field(
        default=ValueType.NUMERIC,
        description="Interpretation of the raw value"
    )
    precision: int = Field(
        default=0,
        ge=0,
        le=6,
        description="Decimal places used when publishing numeric values"
    )
    label: Optional[str] = Field(
        default=None,
        description="Human readable name"
    )
    unit: Optional[str] = Field(
        default=None,
        description="Unit of measurement"
    )
    device_class: Optional[str] = Field(
        default=None,
        description="Home Assistant device class"
    )
    state_class: Optional[str] = Field(
        default=None,
        description="Home Assistant state class"
    )
    icon: Optional[str] = Field(
        default=None,
        description="Home Assistant icon"
    )
    sentinels: list[float] = Field(
        default_factory=lambda: [UNAVAILABLE_SENTINEL],
        description="Raw numeric values meaning 'not available'"
    )

    model_config = {"frozen": True}

    @property
    def path(self) -> tuple[str, ...]:
        """Source path split into its components."""
        return tuple(self.source.split("/"))

    @property
    def display_name(self) -> str:
        """Name shown in Home Assistant."""
        return self.label or self.name.replace("_", " ").capitalize()

    def encode(self, value: Union[bool, int, float, str]) -> str:
        """Encode a value as MQTT payload.

        Numeric values always use the configured precision so that the
        same reading always yields the same payload.
        """
        if self.value_type == ValueType.BOOLEAN:
            return "true" if value else "false"
        if self.value_type == ValueType.NUMERIC:
            return f"{float(value):.{self.precision}f}"
        return str(value)


class NodeKindSpec(BaseModel):
    """A supported node kind and its measurements."""

    name: str = Field(
        ...,
        description="Human readable kind name"
    )
    measurements: list[MeasurementSpec] = Field(
        default_factory=list,
        description="Measurements in publish order"
    )

    model_config = {"frozen": True}

    @field_validator("measurements")
    @classmethod
    def unique_names(cls, v):
        """Reject duplicate measurement names."""
        names = [m.name for m in v]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate measurement names: {sorted(duplicates)}")
        return v


# Measurements shared by most node kinds
VENTILATION_STATE = MeasurementSpec(
    name="ventilation_state",
    source="Ventilation/State",
    value_type=ValueType.ENUM,
    label="Ventilation State",
    icon="mdi:fan",
)
VENTILATION_MODE = MeasurementSpec(
    name="ventilation_mode",
    source="Ventilation/Mode",
    value_type=ValueType.ENUM,
    label="Ventilation Mode",
    icon="mdi:fan-auto",
)
STATE_TIME_REMAINING = MeasurementSpec(
    name="state_time_remaining",
    source="Ventilation/TimeStateRemain",
    label="State Time Remaining",
    unit="s",
    device_class="duration",
    icon="mdi:timer",
)
FLOW_LEVEL_TARGET = MeasurementSpec(
    name="flow_level_target",
    source="Ventilation/FlowLvlTgt",
    label="Flow Level Target",
    unit="%",
    state_class="measurement",
    icon="mdi:fan-clock",
)
IDENTIFY = MeasurementSpec(
    name="identify",
    source="General/Identify",
    value_type=ValueType.BOOLEAN,
    label="Identify",
    icon="mdi:led-on",
)
TEMPERATURE = MeasurementSpec(
    name="temperature",
    source="Sensor/Temp",
    precision=1,
    label="Temperature",
    unit="°C",
    device_class="temperature",
    state_class="measurement",
)
HUMIDITY = MeasurementSpec(
    name="humidity",
    source="Sensor/Rh",
    precision=1,
    label="Humidity",
    unit="%",
    device_class="humidity",
    state_class="measurement",
)
IAQ_RH = MeasurementSpec(
    name="iaq_rh",
    source="Sensor/IaqRh",
    label="Air Quality (Humidity)",
    unit="%",
    state_class="measurement",
    icon="mdi:water-percent",
)
CO2 = MeasurementSpec(
    name="co2",
    source="Sensor/Co2",
    label="CO2",
    unit="ppm",
    device_class="carbon_dioxide",
    state_class="measurement",
)
IAQ_CO2 = MeasurementSpec(
    name="iaq_co2",
    source="Sensor/IaqCo2",
    label="Air Quality (CO2)",
    unit="%",
    state_class="measurement",
    icon="mdi:molecule-co2",
)

_VENTILATION = [VENTILATION_STATE, VENTILATION_MODE, STATE_TIME_REMAINING, FLOW_LEVEL_TARGET]

DEFAULT_NODE_KINDS: dict[str, NodeKindSpec] = {
    "BOX": NodeKindSpec(
        name="Ventilation Box",
        measurements=[*_VENTILATION, IDENTIFY],
    ),
    "UCCO2": NodeKindSpec(
        name="CO2 Room Sensor",
        measurements=[VENTILATION_STATE, TEMPERATURE, CO2, IAQ_CO2, IDENTIFY],
    ),
    "UCRH": NodeKindSpec(
        name="Humidity Room Sensor",
        measurements=[VENTILATION_STATE, TEMPERATURE, HUMIDITY, IAQ_RH, IDENTIFY],
    ),
    "UCHR": NodeKindSpec(
        name="Humidity Room Sensor",
        measurements=[VENTILATION_STATE, TEMPERATURE, HUMIDITY, IAQ_RH, IDENTIFY],
    ),
    "BSRH": NodeKindSpec(
        name="Humidity Box Sensor",
        measurements=[TEMPERATURE, HUMIDITY, IAQ_RH],
    ),
    "VLV": NodeKindSpec(
        name="Control Valve",
        measurements=[*_VENTILATION, IDENTIFY],
    ),
    "VLVRH": NodeKindSpec(
        name="Humidity Control Valve",
        measurements=[*_VENTILATION, TEMPERATURE, HUMIDITY, IAQ_RH, IDENTIFY],
    ),
    "VLVCO2": NodeKindSpec(
        name="CO2 Control Valve",
        measurements=[*_VENTILATION, CO2, IAQ_CO2, IDENTIFY],
    ),
    "VLVCO2RH": NodeKindSpec(
        name="CO2/Humidity Control Valve",
        measurements=[*_VENTILATION, TEMPERATURE, HUMIDITY, CO2, IAQ_CO2, IAQ_RH, IDENTIFY],
    ),
    DEVICE_KIND: NodeKindSpec(
        name="Connectivity Board",
        measurements=[
            MeasurementSpec(
                name="box_name",
                source="General/Board/BoxName",
                value_type=ValueType.ENUM,
                label="Box Name",
                icon="mdi:information",
            ),
            MeasurementSpec(
                name="box_subtype",
                source="General/Board/BoxSubTypeName",
                value_type=ValueType.ENUM,
                label="Box Type",
                icon="mdi:information",
            ),
            MeasurementSpec(
                name="filter_days_remaining",
                source="HeatRecovery/General/TimeFilterRemain",
                label="Filter Days Remaining",
                unit="d",
                state_class="measurement",
                icon="mdi:air-filter",
            ),
        ],
    ),
}


def build_node_kinds(
    overrides: Optional[dict[str, NodeKindSpec]] = None,
) -> dict[str, NodeKindSpec]:
    """Merge configured node kinds over the built-in table.

    Args:
        overrides: Kind code to NodeKindSpec, replacing or extending the defaults

    Returns:
        New table with the overrides applied
    """
    kinds = dict(DEFAULT_NODE_KINDS)
    if overrides:
        kinds.update(overrides)
    return kinds
