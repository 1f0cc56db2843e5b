"""
Typed tile properties.

=============================================================================
TWO VIEWS OF THE SAME DATA
=============================================================================

In a TMX file properties are a flat list of XML records:

    <properties>
        <property name="solid" type="bool" value="true"/>
        <property name="height" type="int" value="3"/>
        <property name="kind" value="tree"/>         (type defaults to string)
    </properties>

That list is awkward to work with (duplicate names, values kept as text), so
in memory we hold a Properties bag instead: three mappings, one per supported
type, where a name lives in exactly ONE of them at a time.

    Property  -> one XML record (used only at the file boundary)
    Properties -> the bag the rest of the package works with

Only string, int and bool are supported. Any other TMX type (float, color,
file, object) is read back as a string.

=============================================================================
"""

import json
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from .errors import ParseError


# Property types (doc.mapeditor.org/en/stable/reference/tmx-map-format/#properties)
PROP_STRING = "string"
PROP_INT = "int"
PROP_BOOL = "bool"


# =============================================================================
# PROPERTY RECORD
# =============================================================================

@dataclass
class Property:
    """A single <property> element, value kept as text."""
    name: str
    value: str = ""
    type: str = PROP_STRING

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'Property':
        return cls(
            name=elem.get('name', ''),
            value=elem.get('value', ''),
            type=elem.get('type', PROP_STRING),
        )

    def to_xml(self) -> ET.Element:
        elem = ET.Element('property')
        elem.set('name', self.name)
        elem.set('value', self.value)
        # Only include type attribute if not string (string is default)
        if self.type != PROP_STRING:
            elem.set('type', self.type)
        return elem


def properties_from_xml(parent: ET.Element) -> List[Property]:
    """Read the <properties> child of `parent` (empty list if missing)."""
    props_elem = parent.find('properties')
    if props_elem is None:
        return []
    return [Property.from_xml(p) for p in props_elem.findall('property')]


def properties_to_xml(parent: ET.Element, props: Iterable[Property]):
    """Append a <properties> child to `parent` if there is anything to write."""
    props = list(props)
    if not props:
        return
    props_elem = ET.SubElement(parent, 'properties')
    for prop in props:
        props_elem.append(prop.to_xml())


# =============================================================================
# PROPERTY BAG
# =============================================================================

@dataclass
class Properties:
    """
    Typed key/value bag with string, int and bool values.

    Setting a key under one type removes it from the other two, so every key
    has exactly one type. Getters return None when the key is not set under
    that type.

    Example:
        props = Properties()
        props.set_int("height", 3)
        props.set_string("height", "tall")   # evicts the int
        props.get_int("height")               # -> None
        props.get_string("height")            # -> "tall"
    """
    strings: Dict[str, str] = field(default_factory=dict)
    ints: Dict[str, int] = field(default_factory=dict)
    bools: Dict[str, bool] = field(default_factory=dict)

    # -------------------------------------------------------------------------
    # Typed access
    # -------------------------------------------------------------------------

    def get_string(self, key: str) -> Optional[str]:
        return self.strings.get(key)

    def set_string(self, key: str, value: str):
        self.strings[key] = value
        self.ints.pop(key, None)
        self.bools.pop(key, None)

    def get_int(self, key: str) -> Optional[int]:
        return self.ints.get(key)

    def set_int(self, key: str, value: int):
        self.ints[key] = value
        self.strings.pop(key, None)
        self.bools.pop(key, None)

    def get_bool(self, key: str) -> Optional[bool]:
        return self.bools.get(key)

    def set_bool(self, key: str, value: bool):
        self.bools[key] = value
        self.strings.pop(key, None)
        self.ints.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self.strings or key in self.ints or key in self.bools

    def names(self) -> List[str]:
        """All keys, regardless of type."""
        return list(self.ints) + list(self.bools) + list(self.strings)

    # -------------------------------------------------------------------------
    # Merging
    # -------------------------------------------------------------------------

    def merge(self, other: Optional['Properties']) -> 'Properties':
        """
        Copy every key of `other` into this bag and return self.

        Keys are matched by name only: a key in `other` replaces the same key
        here even when the types differ. Merging None is a no-op.
        """
        if other is None:
            return self
        for k, v in other.ints.items():
            self.set_int(k, v)
        for k, v in other.strings.items():
            self.set_string(k, v)
        for k, v in other.bools.items():
            self.set_bool(k, v)
        return self

    def copy(self) -> 'Properties':
        return Properties(
            strings=dict(self.strings),
            ints=dict(self.ints),
            bools=dict(self.bools),
        )

    # -------------------------------------------------------------------------
    # Conversions
    # -------------------------------------------------------------------------

    def to_list(self) -> List[Property]:
        """Flatten to XML records: ints, then bools, then strings."""
        props = [Property(k, str(v), PROP_INT) for k, v in self.ints.items()]
        props += [Property(k, 'true' if v else 'false', PROP_BOOL)
                  for k, v in self.bools.items()]
        props += [Property(k, v, PROP_STRING) for k, v in self.strings.items()]
        return props

    @classmethod
    def from_list(cls, records: Iterable[Property]) -> 'Properties':
        """
        Build a bag from XML records.

        Unknown types are kept as strings. A later record with the same name
        replaces an earlier one.

        Raises:
        -------
        ParseError : if an int property does not hold an integer
        """
        props = cls()
        for rec in records:
            if rec.type == PROP_INT:
                try:
                    props.set_int(rec.name, int(rec.value))
                except ValueError as err:
                    raise ParseError(
                        f"property {rec.name!r}: invalid int value {rec.value!r}"
                    ) from err
            elif rec.type == PROP_BOOL:
                props.set_bool(rec.name, rec.value.lower() == 'true')
            else:
                # we don't use float, color, file etc
                props.set_string(rec.name, rec.value)
        return props

    @classmethod
    def from_strings(cls, values: Mapping[str, str]) -> 'Properties':
        """
        Parse loosely typed `key=value` input (e.g. from the command line).

        "true"/"false" become bools, decimal integers become ints and
        everything else stays a string.
        """
        props = cls()
        for k, v in values.items():
            if v in ('true', 'false'):
                props.set_bool(k, v == 'true')
                continue
            try:
                props.set_int(k, int(v, 10))
            except ValueError:
                props.set_string(k, v)
        return props

    def to_json(self) -> str:
        """Serialize for the persistent store."""
        return json.dumps({"I": self.ints, "S": self.strings, "B": self.bools},
                          sort_keys=True)

    @classmethod
    def from_json(cls, data: str) -> 'Properties':
        block = json.loads(data) if data else {}
        return cls(
            strings=dict(block.get("S") or {}),
            ints=dict(block.get("I") or {}),
            bools=dict(block.get("B") or {}),
        )
