"""
pnab.config
===========

Input-file parser and the typed run parameters it produces.

The input file is a list of categories, each followed by ``field = value``
lines::

    # comment
    RUNTIME PARAMETERS
    Rise = 3.38
    Strand = Adenine, Adenine
    ...

Rules
-----
- ``#`` starts a comment; blank lines are skipped; surrounding whitespace is
  stripped.
- A line without ``=`` names a category (case-insensitive).
- Field names are case-insensitive; values keep their case (file paths).
- Vector values are comma separated.

Every problem is reported as a :class:`ConfigError` carrying a message that
names the line, category or field involved.

Examples
--------
>>> parser = FileParser()
>>> params = parser.read_file("input.dat")  # doctest: +SKIP
>>> params.runtime.search_size  # doctest: +SKIP
1000000
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path

from pnab.energy import EnergyFilter
from pnab.helical import HelicalParameters

logger = logging.getLogger(__name__)

DEFAULT_FORCE_FIELD = "amber14-all.xml"
ALGORITHMS = ("monte carlo",)


class ConfigError(RuntimeError):
    """
    Raised for unreadable, malformed or incomplete input files.
    """

    pass


class FieldType(Enum):
    SIZE = "size"
    SIZE_VEC = "size vector"
    STRING = "string"
    STRING_VEC = "string vector"
    DOUBLE = "double"
    DOUBLE_VEC = "double vector"
    BOOL = "bool"


_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


def _size(text: str) -> int:
    value = int(text)
    if value < 0:
        raise ValueError(f"negative size {value}")
    return value


def _bool(text: str) -> bool:
    key = text.lower()
    if key in _TRUE:
        return True
    if key in _FALSE:
        return False
    raise ValueError(f"not a boolean: {text}")


def _split(text: str) -> list[str]:
    return [item.strip() for item in text.split(",") if item.strip()]


_CONVERTERS = {
    FieldType.SIZE: _size,
    FieldType.SIZE_VEC: lambda text: [_size(item) for item in _split(text)],
    FieldType.STRING: str,
    FieldType.STRING_VEC: _split,
    FieldType.DOUBLE: float,
    FieldType.DOUBLE_VEC: lambda text: [float(item) for item in _split(text)],
    FieldType.BOOL: _bool,
}


class Field:
    """
    One typed ``name = value`` entry of a category.

    Parameters
    ----------
    name : str
        Canonical field name (as documented); matched case-insensitively.
    kind : FieldType
    required : bool, default=True
    """

    def __init__(self, name: str, kind: FieldType, required: bool = True):
        self.name = name
        self.kind = kind
        self.required = required
        self.value = None

    @property
    def is_set(self) -> bool:
        return self.value is not None

    def parse(self, text: str, category: str) -> None:
        try:
            value = _CONVERTERS[self.kind](text)
        except ValueError as e:
            raise ConfigError(
                f'Field "{self.name}" in category "{category}" expects a '
                f'{self.kind.value}, got "{text}".'
            ) from e
        if isinstance(value, list) and not value:
            raise ConfigError(
                f'Error: Empty field "{self.name.lower()}" in category "{category}.'
            )
        self.value = value


class Category:
    """
    Named group of registered fields.
    """

    def __init__(self, name: str):
        self.name = name.upper()
        self.fields: dict[str, Field] = {}

    def register(self, name: str, kind: FieldType, required: bool = True) -> Field:
        field = Field(name, kind, required)
        self.fields[name.lower()] = field
        return field

    def parse_line(self, line: str) -> None:
        name, _, value = line.partition("=")
        name = name.strip().lower()
        value = value.strip()
        if not value:
            raise ConfigError(f'Error: Empty field "{name}" in category "{self.name}.')
        field = self.fields.get(name)
        if field is None:
            raise ConfigError(
                f'Field "{name}" in category "{self.name} is not registered. '
                "Please check input file."
            )
        field.parse(value, self.name)

    def missing(self) -> list[str]:
        return [
            f'Required field "{field.name}" is not set.'
            for field in self.fields.values()
            if field.required and not field.is_set
        ]

    def get(self, name: str):
        return self.fields[name.lower()].value


@dataclass(frozen=True)
class RuntimeParameters:
    """
    Values of the ``RUNTIME PARAMETERS`` category.

    Helical values are in Å and degrees; energy ceilings in kcal/mol
    (``None`` means no ceiling).
    """

    rise: float
    x_disp: float
    y_disp: float
    inclination: float
    tip: float
    twist: float
    max_distance: float
    search_size: int
    strand: tuple[str, ...]
    max_total_energy: float | None = None
    max_angle_energy: float | None = None
    max_bond_energy: float | None = None
    max_vdw_energy: float | None = None
    max_torsion_energy: float | None = None
    force_field_type: str = DEFAULT_FORCE_FIELD
    force_field_parameter_file: str | None = None
    base_to_backbone_bond_length: float | None = None
    algorithm: str = "Monte Carlo"
    chain_length: int | None = None
    is_double_stranded: bool = False
    seed: int | None = None

    def helical_parameters(self) -> HelicalParameters:
        return HelicalParameters.from_values(
            rise=self.rise,
            x_disp=self.x_disp,
            y_disp=self.y_disp,
            inclination=self.inclination,
            tip=self.tip,
            twist=self.twist,
        )

    def energy_filter(self) -> EnergyFilter:
        return EnergyFilter(
            max_total=self.max_total_energy,
            max_angle=self.max_angle_energy,
            max_bond=self.max_bond_energy,
            max_vdw=self.max_vdw_energy,
            max_torsion=self.max_torsion_energy,
        )

    @property
    def force_field_files(self) -> list[str]:
        files = [self.force_field_type]
        if self.force_field_parameter_file:
            files.append(self.force_field_parameter_file)
        return files


@dataclass(frozen=True)
class BackboneParameters:
    """
    Values of the ``BACKBONE PARAMETERS`` category (indices 1-based).
    """

    file_path: str
    interconnects: tuple[int, int]
    base_connect: tuple[int, int]


@dataclass(frozen=True)
class BaseDefinition:
    """
    One base of the ``BASE PARAMETERS`` category (indices 1-based).
    """

    code: str
    name: str
    file_path: str
    backbone_connect: tuple[int, int]
    pair_name: str | None = None


@dataclass(frozen=True)
class InputParameters:
    runtime: RuntimeParameters
    backbone: BackboneParameters
    bases: tuple[BaseDefinition, ...]

    def pairs(self) -> dict[str, str]:
        """Lower-cased complement token for every base name and code."""
        pairs = {}
        for base in self.bases:
            if base.pair_name:
                pairs[base.name.lower()] = base.pair_name.lower()
                pairs[base.code.lower()] = base.pair_name.lower()
        return pairs

    def describe(self) -> list[str]:
        """
        One line per category and per set field, for the run log.

        Examples
        --------
        >>> params.describe()[:2]  # doctest: +SKIP
        ['RUNTIME PARAMETERS', '\\trise: 3.38']
        """
        lines = ["RUNTIME PARAMETERS", *_field_lines(self.runtime, "\t")]
        lines += ["BACKBONE PARAMETERS", *_field_lines(self.backbone, "\t")]
        lines.append("BASE PARAMETERS")
        for number, base in enumerate(self.bases, start=1):
            lines.append(f"\tbase {number}")
            lines += _field_lines(base, "\t\t")
        return lines


def _format(value) -> str:
    if isinstance(value, (tuple, list)):
        return ", ".join(str(item) for item in value)
    return str(value)


def _field_lines(parameters, indent: str) -> list[str]:
    return [
        f"{indent}{f.name}: {_format(getattr(parameters, f.name))}"
        for f in fields(parameters)
        if getattr(parameters, f.name) is not None
    ]


class FileParser:
    """
    Registry of the known categories and fields, and the file reader.
    """

    def __init__(self):
        self.categories: dict[str, Category] = {}

        runtime = Category("RUNTIME PARAMETERS")
        for name in ("Rise", "X_Disp", "Y_Disp", "Inclination", "Tip", "Twist"):
            runtime.register(name, FieldType.DOUBLE_VEC)
        for name in (
            "Max_Total_Energy",
            "Max_Angle_Energy",
            "Max_Bond_Energy",
            "Max_VDW_Energy",
            "Max_Torsion_Energy",
        ):
            runtime.register(name, FieldType.DOUBLE, required=False)
        runtime.register("Max_Distance", FieldType.DOUBLE)
        runtime.register("Force_Field_Type", FieldType.STRING, required=False)
        runtime.register("Force_Field_Parameter_File", FieldType.STRING, required=False)
        runtime.register(
            "Base_to_Backbone_Bond_Length", FieldType.DOUBLE, required=False
        )
        runtime.register("Algorithm", FieldType.STRING, required=False)
        runtime.register("Search_Size", FieldType.SIZE)
        runtime.register("Chain_Length", FieldType.SIZE, required=False)
        runtime.register("Strand", FieldType.STRING_VEC)
        runtime.register("Is_Double_Stranded", FieldType.BOOL, required=False)
        runtime.register("Seed", FieldType.SIZE, required=False)
        self.register_category(runtime)

        backbone = Category("BACKBONE PARAMETERS")
        backbone.register("Interconnects", FieldType.SIZE_VEC)
        backbone.register("Base_Connect", FieldType.SIZE_VEC)
        backbone.register("Backbone_File_Path", FieldType.STRING)
        self.register_category(backbone)

        bases = Category("BASE PARAMETERS")
        for name in ("Code", "Name", "Base_File_Path"):
            bases.register(name, FieldType.STRING_VEC)
        bases.register("Backbone_Connect", FieldType.SIZE_VEC)
        bases.register("Pair_Name", FieldType.STRING_VEC, required=False)
        self.register_category(bases)

    def register_category(self, category: Category) -> None:
        self.categories[category.name] = category

    def read_lines(self, lines: Sequence[str]) -> None:
        """Parse input lines into the registered fields."""
        current: Category | None = None
        for line_number, line in enumerate(lines, start=1):
            text = line.split("#", 1)[0].strip()
            if not text:
                continue
            if "=" in text:
                if current is None:
                    raise ConfigError(
                        f"Declared field before declaring a category on line "
                        f'{line_number} with text "{line.rstrip()}". Please place '
                        "field under appropriate category"
                    )
                current.parse_line(text)
                continue
            name = " ".join(text.upper().split())
            if name not in self.categories:
                raise ConfigError(
                    f'Category "{name}" on line {line_number} does not exist. '
                    "Please check the input file."
                )
            current = self.categories[name]

        missing = [msg for c in self.categories.values() for msg in c.missing()]
        if missing:
            raise ConfigError("\n".join(missing))

    def read_file(self, path: str | Path) -> InputParameters:
        """
        Read and validate an input file.

        Raises
        ------
        ConfigError
            If the file cannot be opened or its content is invalid.
        """
        try:
            with open(path) as f:
                lines = f.readlines()
        except OSError as e:
            raise ConfigError(f"There was an error opening file: {path}") from e
        logger.info("Reading: %s", path)
        self.read_lines(lines)
        return self.parameters()

    def parameters(self) -> InputParameters:
        return InputParameters(
            runtime=self._runtime(),
            backbone=self._backbone(),
            bases=self._bases(),
        )

    def _runtime(self) -> RuntimeParameters:
        c = self.categories["RUNTIME PARAMETERS"]
        algorithm = c.get("Algorithm") or "Monte Carlo"
        if " ".join(algorithm.lower().split()) not in ALGORITHMS:
            raise ConfigError(
                f'Algorithm "{algorithm}" is not supported. Use "Monte Carlo".'
            )
        max_distance = c.get("Max_Distance")
        if math.isnan(max_distance) or max_distance < 0:
            raise ConfigError("Max_Distance must be a non-negative number.")
        chain_length = c.get("Chain_Length")
        if chain_length is not None and chain_length < 1:
            raise ConfigError("Chain_Length must be at least 1.")
        return RuntimeParameters(
            rise=c.get("Rise")[0],
            x_disp=c.get("X_Disp")[0],
            y_disp=c.get("Y_Disp")[0],
            inclination=c.get("Inclination")[0],
            tip=c.get("Tip")[0],
            twist=c.get("Twist")[0],
            max_distance=max_distance,
            search_size=c.get("Search_Size"),
            strand=tuple(c.get("Strand")),
            max_total_energy=c.get("Max_Total_Energy"),
            max_angle_energy=c.get("Max_Angle_Energy"),
            max_bond_energy=c.get("Max_Bond_Energy"),
            max_vdw_energy=c.get("Max_VDW_Energy"),
            max_torsion_energy=c.get("Max_Torsion_Energy"),
            force_field_type=c.get("Force_Field_Type") or DEFAULT_FORCE_FIELD,
            force_field_parameter_file=c.get("Force_Field_Parameter_File"),
            base_to_backbone_bond_length=c.get("Base_to_Backbone_Bond_Length"),
            algorithm=algorithm,
            chain_length=chain_length,
            is_double_stranded=bool(c.get("Is_Double_Stranded")),
            seed=c.get("Seed"),
        )

    def _backbone(self) -> BackboneParameters:
        c = self.categories["BACKBONE PARAMETERS"]
        return BackboneParameters(
            file_path=c.get("Backbone_File_Path"),
            interconnects=_pair(c.get("Interconnects"), "Interconnects"),
            base_connect=_pair(c.get("Base_Connect"), "Base_Connect"),
        )

    def _bases(self) -> tuple[BaseDefinition, ...]:
        c = self.categories["BASE PARAMETERS"]
        codes, names, paths = c.get("Code"), c.get("Name"), c.get("Base_File_Path")
        if not len(codes) == len(names) == len(paths):
            raise ConfigError(
                "Code, Name and Base_File_Path must list the same number of bases."
            )
        connect = c.get("Backbone_Connect")
        if len(connect) == 2:
            connects = [tuple(connect)] * len(names)
        elif len(connect) == 2 * len(names):
            connects = [tuple(connect[2 * i : 2 * i + 2]) for i in range(len(names))]
        else:
            raise ConfigError(
                "Backbone_Connect needs one pair of atoms, or one pair per base."
            )
        pair_names = c.get("Pair_Name")
        if pair_names is not None and len(pair_names) != len(names):
            raise ConfigError("Pair_Name must list one complement per base.")
        return tuple(
            BaseDefinition(
                code=codes[i],
                name=names[i],
                file_path=paths[i],
                backbone_connect=connects[i],
                pair_name=pair_names[i] if pair_names else None,
            )
            for i in range(len(names))
        )


def _pair(values: Sequence[int], name: str) -> tuple[int, int]:
    if len(values) != 2:
        raise ConfigError(f"{name} needs exactly two atom indices.")
    return values[0], values[1]


def read_input(path: str | Path) -> InputParameters:
    """Parse and validate the input file at ``path``."""
    return FileParser().read_file(path)
