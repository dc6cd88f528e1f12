"""Descriptor reading and writing.

Maven descriptors (pom.xml) are parsed with ElementTree, keeping comments and
the default POM namespace so that rewritten files stay readable and
diff-friendly. Node manifests (package.json) keep their key order.

All writes are atomic: the new content goes to a temporary file next to the
target which then replaces it, so a failed write never leaves a half-updated
descriptor behind.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from .errors import DescriptorMalformed, DescriptorNotFound, PropagationWriteFailure
from .models import Coordinate

POM_FILE = "pom.xml"
MANIFEST_FILE = "package.json"
POM_NAMESPACE = "http://maven.apache.org/POM/4.0.0"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"
XML_DECLARATION = b'<?xml version="1.0" encoding="UTF-8"?>\n'

# Elements whose groupId/artifactId/version children identify an artifact
REFERENCE_TAGS = ("parent", "dependency", "plugin")

ET.register_namespace("", POM_NAMESPACE)
ET.register_namespace("xsi", XSI_NAMESPACE)


class PomDescriptor(BaseModel):
    """Typed view of the parts of a pom.xml the release tooling cares about.

    Attributes:
        coordinate: The project's own coordinate (groupId inherited from
            <parent> when absent).
        parent: The <parent> reference, if any.
        parent_relative_path: <parent><relativePath>, if any.
        modules: <modules><module> entries, in declaration order.
        managed_dependencies: <dependencyManagement><dependencies> entries.
        managed_plugins: <build><pluginManagement><plugins> entries.
        dependencies: Plain <dependencies> entries.
        has_dependency_management: Whether a <dependencyManagement> section
            exists at all.
    """

    coordinate: Coordinate
    parent: Coordinate | None = None
    parent_relative_path: str | None = None
    modules: list[str] = Field(default_factory=list)
    managed_dependencies: list[Coordinate] = Field(default_factory=list)
    managed_plugins: list[Coordinate] = Field(default_factory=list)
    dependencies: list[Coordinate] = Field(default_factory=list)
    has_dependency_management: bool = False


@dataclass
class Reference:
    """A coordinate-bearing element inside a loaded pom.xml.

    Keeps hold of the <version> element so the propagator can rewrite it in
    place. version_element is None when the reference has no explicit
    version (e.g. a dependency managed by the BOM).
    """

    kind: str
    group_id: str | None
    artifact_id: str | None
    version_element: ET.Element | None

    @property
    def key(self) -> tuple[str | None, str | None]:
        return (self.group_id, self.artifact_id)

    @property
    def version(self) -> str | None:
        if self.version_element is None:
            return None
        return _strip(self.version_element.text)


def local_name(tag: Any) -> str:
    """Strip the namespace from an ElementTree tag ("{ns}project" → "project")."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def descriptor_name(module_path: str, filename: str = POM_FILE) -> str:
    """Display path of a module's descriptor relative to the repository root."""
    if module_path in ("", "."):
        return filename
    return f"{module_path}/{filename}"


def parse_pom(root: ET.Element, source: str = POM_FILE) -> PomDescriptor:
    """Build a typed PomDescriptor from a parsed <project> element.

    Raises:
        DescriptorMalformed: If the root is not <project> or has no artifactId.
    """
    if local_name(root.tag) != "project":
        raise DescriptorMalformed(source, f"root element is <{local_name(root.tag)}>")

    parent_el = _child(root, "parent")
    parent = _coordinate(parent_el) if parent_el is not None else None

    artifact_id = _text(root, "artifactId")
    if not artifact_id:
        raise DescriptorMalformed(source, "missing <artifactId>")
    group_id = _text(root, "groupId")
    if group_id is None and parent is not None:
        group_id = parent.group_id

    dep_mgmt = _child(root, "dependencyManagement")
    return PomDescriptor(
        coordinate=Coordinate(
            group_id=group_id, artifact_id=artifact_id, version=_text(root, "version")
        ),
        parent=parent,
        parent_relative_path=_text(parent_el, "relativePath")
        if parent_el is not None
        else None,
        modules=[
            el.text.strip()
            for el in _path(root, "modules", "module")
            if el.text and el.text.strip()
        ],
        managed_dependencies=_coordinates(
            _path(root, "dependencyManagement", "dependencies", "dependency")
        ),
        managed_plugins=_coordinates(
            _path(root, "build", "pluginManagement", "plugins", "plugin")
        ),
        dependencies=_coordinates(_path(root, "dependencies", "dependency")),
        has_dependency_management=dep_mgmt is not None,
    )


def iter_references(root: ET.Element) -> Iterator[Reference]:
    """Yield every coordinate-bearing element of a pom.xml in document order.

    Covers the project's own coordinate, the parent reference, and every
    dependency and plugin entry wherever it is nested (managed sections,
    profiles, plugin dependencies).
    """
    for el in root.iter():
        if el is root:
            group_id = _text(el, "groupId")
            if group_id is None:
                parent_el = _child(el, "parent")
                if parent_el is not None:
                    group_id = _text(parent_el, "groupId")
            yield Reference(
                "project", group_id, _text(el, "artifactId"), _child(el, "version")
            )
        elif local_name(el.tag) in REFERENCE_TAGS:
            yield Reference(
                local_name(el.tag),
                _text(el, "groupId"),
                _text(el, "artifactId"),
                _child(el, "version"),
            )


class DescriptorStore:
    """Reads and writes the descriptors of a monorepo checkout.

    Module paths are relative to the repository root, with "." for the root
    module itself.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def pom_path(self, module_path: str) -> Path:
        return self.root / module_path / POM_FILE

    def manifest_path(self, module_path: str) -> Path:
        return self.root / module_path / MANIFEST_FILE

    def has_pom(self, module_path: str) -> bool:
        return self.pom_path(module_path).is_file()

    def has_manifest(self, module_path: str) -> bool:
        return self.manifest_path(module_path).is_file()

    def load_pom(self, module_path: str) -> ET.ElementTree:
        """Load a module's pom.xml as an ElementTree, comments included.

        Raises:
            DescriptorNotFound: If the module has no pom.xml.
            DescriptorMalformed: If the file is not well-formed XML.
        """
        path = self.pom_path(module_path)
        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
        try:
            return ET.parse(path, parser=parser)
        except FileNotFoundError as exc:
            raise DescriptorNotFound(descriptor_name(module_path)) from exc
        except ET.ParseError as exc:
            raise DescriptorMalformed(descriptor_name(module_path), str(exc)) from exc

    def read_pom(self, module_path: str) -> PomDescriptor:
        tree = self.load_pom(module_path)
        return parse_pom(tree.getroot(), descriptor_name(module_path))

    def save_pom(self, module_path: str, tree: ET.ElementTree) -> None:
        """Write a pom.xml back to disk atomically.

        Raises:
            PropagationWriteFailure: If serializing or writing fails; the
                file on disk is left untouched.
        """
        path = self.pom_path(module_path)
        try:
            body = ET.tostring(
                tree.getroot(), encoding="UTF-8", xml_declaration=False
            )
        except (TypeError, ValueError) as exc:
            raise PropagationWriteFailure(descriptor_name(module_path), exc) from exc
        _write_atomically(
            path, XML_DECLARATION + body + b"\n", descriptor_name(module_path)
        )

    def load_manifest(self, module_path: str) -> dict[str, Any]:
        """Load a module's package.json, preserving key order.

        Raises:
            DescriptorNotFound: If the module has no package.json.
            DescriptorMalformed: If it is not a JSON object with a string
                "version".
        """
        data = self._read_manifest(module_path)
        if not _has_version(data):
            raise DescriptorMalformed(
                descriptor_name(module_path, MANIFEST_FILE),
                'expected an object with a "version" string',
            )
        return data

    def manifest_version(self, module_path: str) -> str | None:
        """The "version" of a module's package.json, if it has one.

        A module without a package.json, or whose package.json carries no
        version string (a tooling-only manifest), is not a node module.

        Raises:
            DescriptorMalformed: If the package.json is not valid JSON.
        """
        if not self.has_manifest(module_path):
            return None
        data = self._read_manifest(module_path)
        return data["version"] if _has_version(data) else None

    def _read_manifest(self, module_path: str) -> Any:
        name = descriptor_name(module_path, MANIFEST_FILE)
        try:
            return json.loads(self.manifest_path(module_path).read_text())
        except FileNotFoundError as exc:
            raise DescriptorNotFound(name) from exc
        except json.JSONDecodeError as exc:
            raise DescriptorMalformed(name, str(exc)) from exc

    def save_manifest(self, module_path: str, data: dict[str, Any]) -> None:
        name = descriptor_name(module_path, MANIFEST_FILE)
        text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
        _write_atomically(self.manifest_path(module_path), text.encode("utf-8"), name)


def _write_atomically(path: Path, data: bytes, name: str) -> None:
    """Replace path with data in one step, keeping the existing file mode."""
    tmp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            dir=path.parent, prefix=f".{path.name}.", delete=False
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(data)
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise PropagationWriteFailure(name, exc) from exc


def _has_version(data: Any) -> bool:
    return isinstance(data, dict) and isinstance(data.get("version"), str)


def _strip(text: str | None) -> str | None:
    if text is None:
        return None
    return text.strip() or None


def _child(el: ET.Element, name: str) -> ET.Element | None:
    for child in el:
        if local_name(child.tag) == name:
            return child
    return None


def _text(el: ET.Element, name: str) -> str | None:
    child = _child(el, name)
    return _strip(child.text) if child is not None else None


def _path(el: ET.Element, *names: str) -> list[ET.Element]:
    """Follow a chain of child names, returning every match of the last one."""
    current = [el]
    for name in names:
        current = [c for parent in current for c in parent if local_name(c.tag) == name]
    return current


def _coordinate(el: ET.Element) -> Coordinate:
    return Coordinate(
        group_id=_text(el, "groupId"),
        artifact_id=_text(el, "artifactId") or "",
        version=_text(el, "version"),
    )


def _coordinates(elements: list[ET.Element]) -> list[Coordinate]:
    return [_coordinate(el) for el in elements]
