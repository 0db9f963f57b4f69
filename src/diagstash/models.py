"""Diagram data model — saved records, drafts, editor state, and type lookups."""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Union

OptionValue = Union[str, int, float, bool]

# Returns the current wall-clock time in epoch milliseconds.
Clock = Callable[[], int]


def system_clock() -> int:
    return int(time.time() * 1000)


class DiagramType(str, Enum):
    """Diagram kinds supported by Kroki."""

    ACTDIAG = "actdiag"
    BLOCKDIAG = "blockdiag"
    BPMN = "bpmn"
    BYTEFIELD = "bytefield"
    C4PLANTUML = "c4plantuml"
    D2 = "d2"
    DBML = "dbml"
    DITAA = "ditaa"
    ERD = "erd"
    EXCALIDRAW = "excalidraw"
    GRAPHVIZ = "graphviz"
    MERMAID = "mermaid"
    NOMNOML = "nomnoml"
    NWDIAG = "nwdiag"
    PACKETDIAG = "packetdiag"
    PIKCHR = "pikchr"
    PLANTUML = "plantuml"
    RACKDIAG = "rackdiag"
    SEQDIAG = "seqdiag"
    STRUCTURIZR = "structurizr"
    SVGBOB = "svgbob"
    SYMBOLATOR = "symbolator"
    TIKZ = "tikz"
    UMLET = "umlet"
    VEGA = "vega"
    VEGALITE = "vegalite"
    WAVEDROM = "wavedrom"
    WIREVIZ = "wireviz"


class OutputFormat(str, Enum):
    SVG = "svg"
    PNG = "png"
    JPEG = "jpeg"
    PDF = "pdf"
    TXT = "txt"
    BASE64 = "base64"


DIAGRAM_LABELS: dict[DiagramType, str] = {
    DiagramType.PLANTUML: "PlantUML",
    DiagramType.MERMAID: "Mermaid",
    DiagramType.GRAPHVIZ: "Graphviz (DOT)",
    DiagramType.D2: "D2",
    DiagramType.BPMN: "BPMN",
    DiagramType.BLOCKDIAG: "BlockDiag",
    DiagramType.SEQDIAG: "SeqDiag",
    DiagramType.ACTDIAG: "ActDiag",
    DiagramType.NWDIAG: "NwDiag",
    DiagramType.PACKETDIAG: "PacketDiag",
    DiagramType.RACKDIAG: "RackDiag",
    DiagramType.C4PLANTUML: "C4 PlantUML",
    DiagramType.DITAA: "Ditaa",
    DiagramType.ERD: "ERD",
    DiagramType.EXCALIDRAW: "Excalidraw",
    DiagramType.NOMNOML: "Nomnoml",
    DiagramType.PIKCHR: "Pikchr",
    DiagramType.STRUCTURIZR: "Structurizr",
    DiagramType.SVGBOB: "Svgbob",
    DiagramType.SYMBOLATOR: "Symbolator",
    DiagramType.TIKZ: "TikZ",
    DiagramType.UMLET: "UMlet",
    DiagramType.VEGA: "Vega",
    DiagramType.VEGALITE: "Vega-Lite",
    DiagramType.WAVEDROM: "WaveDrom",
    DiagramType.BYTEFIELD: "Bytefield",
    DiagramType.DBML: "DBML",
    DiagramType.WIREVIZ: "WireViz",
}

_RASTER = [OutputFormat.PNG, OutputFormat.SVG, OutputFormat.PDF]
_PLANTUML_LIKE = [
    OutputFormat.PNG,
    OutputFormat.SVG,
    OutputFormat.PDF,
    OutputFormat.TXT,
    OutputFormat.BASE64,
]

FORMAT_SUPPORT: dict[DiagramType, list[OutputFormat]] = {
    DiagramType.BLOCKDIAG: _RASTER,
    DiagramType.BPMN: [OutputFormat.SVG],
    DiagramType.BYTEFIELD: [OutputFormat.SVG],
    DiagramType.SEQDIAG: _RASTER,
    DiagramType.ACTDIAG: _RASTER,
    DiagramType.NWDIAG: _RASTER,
    DiagramType.PACKETDIAG: _RASTER,
    DiagramType.RACKDIAG: _RASTER,
    DiagramType.C4PLANTUML: _PLANTUML_LIKE,
    DiagramType.D2: [OutputFormat.SVG],
    DiagramType.DBML: [OutputFormat.SVG],
    DiagramType.DITAA: [OutputFormat.PNG, OutputFormat.SVG],
    DiagramType.ERD: [OutputFormat.PNG, OutputFormat.SVG, OutputFormat.JPEG, OutputFormat.PDF],
    DiagramType.EXCALIDRAW: [OutputFormat.SVG],
    DiagramType.GRAPHVIZ: [OutputFormat.PNG, OutputFormat.SVG, OutputFormat.JPEG, OutputFormat.PDF],
    DiagramType.MERMAID: [OutputFormat.PNG, OutputFormat.SVG],
    DiagramType.NOMNOML: [OutputFormat.SVG],
    DiagramType.PIKCHR: [OutputFormat.SVG],
    DiagramType.PLANTUML: _PLANTUML_LIKE,
    DiagramType.STRUCTURIZR: _PLANTUML_LIKE,
    DiagramType.SVGBOB: [OutputFormat.SVG],
    DiagramType.SYMBOLATOR: [OutputFormat.SVG],
    DiagramType.TIKZ: [OutputFormat.PNG, OutputFormat.SVG, OutputFormat.JPEG, OutputFormat.PDF],
    DiagramType.UMLET: [OutputFormat.PNG, OutputFormat.SVG, OutputFormat.JPEG],
    DiagramType.VEGA: _RASTER,
    DiagramType.VEGALITE: _RASTER,
    DiagramType.WAVEDROM: [OutputFormat.SVG],
    DiagramType.WIREVIZ: [OutputFormat.PNG, OutputFormat.SVG],
}


def supported_formats(diagram_type: DiagramType) -> list[OutputFormat]:
    """Output formats Kroki can render for a diagram type (svg if unknown)."""
    return list(FORMAT_SUPPORT.get(diagram_type, [OutputFormat.SVG]))


def is_format_supported(diagram_type: DiagramType, fmt: OutputFormat) -> bool:
    return fmt in supported_formats(diagram_type)


def generate_diagram_id(now: int) -> str:
    return f"diagram-{now}-{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True)
class SavedDiagram:
    """A persisted diagram. Only ``name`` and ``is_pinned`` change after creation."""

    id: str
    name: str
    source: str
    diagram_type: DiagramType
    output_format: OutputFormat
    options: dict[str, OptionValue] = field(default_factory=dict)
    timestamp: int = 0
    is_pinned: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["diagram_type"] = self.diagram_type.value
        data["output_format"] = self.output_format.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SavedDiagram:
        """Build a record from stored fields. Raises KeyError/ValueError if malformed."""
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            source=str(data["source"]),
            diagram_type=DiagramType(data["diagram_type"]),
            output_format=OutputFormat(data.get("output_format", OutputFormat.SVG.value)),
            options=dict(data.get("options") or {}),
            timestamp=int(data["timestamp"]),
            is_pinned=bool(data.get("is_pinned", False)),
        )

    def with_pin(self, pinned: bool) -> SavedDiagram:
        return replace(self, is_pinned=pinned)

    def with_name(self, name: str) -> SavedDiagram:
        return replace(self, name=name)


@dataclass
class DiagramDraft:
    """Input to a save: everything but the generated id/timestamp/pin state."""

    name: str
    source: str
    diagram_type: DiagramType | str | None
    output_format: OutputFormat | str = OutputFormat.SVG
    options: dict[str, OptionValue] = field(default_factory=dict)


@dataclass
class EditorState:
    """The live editing tuple owned by the editor."""

    source: str = ""
    diagram_type: DiagramType = DiagramType.PLANTUML
    output_format: OutputFormat = OutputFormat.SVG
    options: dict[str, OptionValue] = field(default_factory=dict)

    def snapshot(self) -> EditorState:
        """Detached copy, safe to hold while the editor keeps changing."""
        return replace(self, options=dict(self.options))

    def load(self, diagram: SavedDiagram) -> None:
        self.source = diagram.source
        self.diagram_type = diagram.diagram_type
        self.output_format = diagram.output_format
        self.options = dict(diagram.options)
