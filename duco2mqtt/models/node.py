"""Pydantic data models for Duco nodes and board snapshots."""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

NodeId = Union[int, str]
MeasurementValue = Union[bool, int, float, str]


class SupportedNode(BaseModel):
    """A node whose kind is present in the node kind table."""

    id: NodeId = Field(
        ...,
        description="Node number on the board"
    )
    kind: str = Field(
        ...,
        description="Node type code reported by the board (e.g. BOX)"
    )
    measurements: dict[str, MeasurementValue] = Field(
        default_factory=dict,
        description="Available readings; unavailable ones are left out"
    )

    model_config = {"frozen": True}

    @property
    def supported(self) -> bool:
        return True


class UnsupportedNode(BaseModel):
    """A node of a kind this bridge does not know how to report."""

    id: NodeId = Field(
        ...,
        description="Node number on the board"
    )
    kind: Optional[str] = Field(
        default=None,
        description="Raw node type, if the board reported one"
    )
    raw: dict[str, Any] = Field(
        default_factory=dict,
        description="Unmodified node payload for diagnostics"
    )

    model_config = {"frozen": True}

    @property
    def supported(self) -> bool:
        return False


Node = Union[SupportedNode, UnsupportedNode]


class Snapshot(BaseModel):
    """Complete board state at one poll instant."""

    nodes: tuple[Node, ...] = Field(
        default=(),
        description="Nodes in board order"
    )
    fetched_at: datetime = Field(
        default_factory=datetime.now,
        description="Time the board was queried"
    )

    model_config = {"frozen": True}

    @property
    def supported_nodes(self) -> list[SupportedNode]:
        """Nodes that can be published."""
        return [n for n in self.nodes if isinstance(n, SupportedNode)]

    @property
    def unsupported_nodes(self) -> list[UnsupportedNode]:
        return [n for n in self.nodes if isinstance(n, UnsupportedNode)]

    def node(self, node_id: NodeId) -> Optional[Node]:
        """Look up a node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None
