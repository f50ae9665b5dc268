"""Pydantic models for the HUGR JSON serialization.

The models cover the subset of the schema the encoder emits. Every union is
discriminated by the same tag field the schema uses (``op`` for operations,
``t``/``s`` for types, ``v`` for values, ``tya`` for type arguments), so a
serialized package validates back into the same models.
"""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SERIAL_VERSION = "live"


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class TypeBound(StrEnum):
    """Copyability of a type."""

    COPYABLE = "C"
    ANY = "A"  # Linear


# --------------------------------------------------------------------------- #
# Type arguments
# --------------------------------------------------------------------------- #


class BoundedNatArg(_Model):
    tya: Literal["BoundedNat"] = "BoundedNat"
    n: int


class StringArg(_Model):
    tya: Literal["String"] = "String"
    arg: str


TypeArg = Annotated[BoundedNatArg | StringArg, Field(discriminator="tya")]


# --------------------------------------------------------------------------- #
# Types
# --------------------------------------------------------------------------- #


class Opaque(_Model):
    """A type defined by an extension."""

    t: Literal["Opaque"] = "Opaque"
    extension: str
    id: str
    args: list[TypeArg] = Field(default_factory=list)
    bound: TypeBound = TypeBound.COPYABLE


class UnitSum(_Model):
    """A sum of ``size`` empty variants. ``size == 2`` is the boolean type."""

    t: Literal["Sum"] = "Sum"
    s: Literal["Unit"] = "Unit"
    size: int


class GeneralSum(_Model):
    t: Literal["Sum"] = "Sum"
    s: Literal["General"] = "General"
    rows: list[list["Type"]]


SumType = Annotated[UnitSum | GeneralSum, Field(discriminator="s")]
Type = Annotated[Opaque | SumType, Field(discriminator="t")]


class FunctionType(_Model):
    input: list[Type] = Field(default_factory=list)
    output: list[Type] = Field(default_factory=list)


class PolyFuncType(_Model):
    params: list[Any] = Field(default_factory=list)
    body: FunctionType


# --------------------------------------------------------------------------- #
# Values
# --------------------------------------------------------------------------- #


class CustomConst(_Model):
    c: str
    v: Any


class ExtensionValue(_Model):
    v: Literal["Extension"] = "Extension"
    typ: Type
    value: CustomConst


class SumValue(_Model):
    v: Literal["Sum"] = "Sum"
    tag: int
    typ: SumType
    vs: list["Value"] = Field(default_factory=list)


Value = Annotated[ExtensionValue | SumValue, Field(discriminator="v")]


# --------------------------------------------------------------------------- #
# Operations
# --------------------------------------------------------------------------- #


class _Op(_Model):
    parent: int = 0


class Module(_Op):
    op: Literal["Module"] = "Module"


class FuncDefn(_Op):
    op: Literal["FuncDefn"] = "FuncDefn"
    name: str
    signature: PolyFuncType
    visibility: Literal["Public", "Private"] = "Public"


class FuncDecl(_Op):
    op: Literal["FuncDecl"] = "FuncDecl"
    name: str
    signature: PolyFuncType
    visibility: Literal["Public", "Private"] = "Public"


class Input(_Op):
    op: Literal["Input"] = "Input"
    types: list[Type] = Field(default_factory=list)


class Output(_Op):
    op: Literal["Output"] = "Output"
    types: list[Type] = Field(default_factory=list)


class DFG(_Op):
    op: Literal["DFG"] = "DFG"
    signature: FunctionType


class Conditional(_Op):
    op: Literal["Conditional"] = "Conditional"
    sum_rows: list[list[Type]]
    other_inputs: list[Type] = Field(default_factory=list)
    outputs: list[Type] = Field(default_factory=list)


class Case(_Op):
    op: Literal["Case"] = "Case"
    signature: FunctionType


class TailLoop(_Op):
    op: Literal["TailLoop"] = "TailLoop"
    just_inputs: list[Type] = Field(default_factory=list)
    just_outputs: list[Type] = Field(default_factory=list)
    rest: list[Type] = Field(default_factory=list)


class Call(_Op):
    op: Literal["Call"] = "Call"
    func_sig: PolyFuncType
    type_args: list[TypeArg] = Field(default_factory=list)
    instantiation: FunctionType


class Const(_Op):
    op: Literal["Const"] = "Const"
    v: Value


class LoadConstant(_Op):
    op: Literal["LoadConstant"] = "LoadConstant"
    datatype: Type


class ExtensionOp(_Op):
    op: Literal["Extension"] = "Extension"
    extension: str
    name: str
    signature: FunctionType
    args: list[TypeArg] = Field(default_factory=list)


class Tag(_Op):
    op: Literal["Tag"] = "Tag"
    tag: int
    variants: list[list[Type]]


OpType = Annotated[
    Module
    | FuncDefn
    | FuncDecl
    | Input
    | Output
    | DFG
    | Conditional
    | Case
    | TailLoop
    | Call
    | Const
    | LoadConstant
    | ExtensionOp
    | Tag,
    Field(discriminator="op"),
]

# ((source node, source port), (target node, target port)); ports are None on order edges
EdgeEnd = tuple[int, int | None]


class SerialHugr(_Model):
    """A single HUGR in its JSON form."""

    version: Literal["live"] = SERIAL_VERSION
    nodes: list[OpType]
    edges: list[tuple[EdgeEnd, EdgeEnd]]
    metadata: list[dict[str, Any] | None] | None = None
    encoder: str | None = None
    entrypoint: int | None = None


class Package(_Model):
    """A set of HUGR modules and the extensions they use."""

    modules: list[SerialHugr]
    extensions: list[Any] = Field(default_factory=list)


GeneralSum.model_rebuild()
SumValue.model_rebuild()
