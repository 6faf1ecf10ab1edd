"""
Reader and writer for APT source declarations.

Two formats are handled:

* deb822 ``.sources`` files, parsed into :class:`Stanza` records. A stanza
  disabled by commenting every field line is still recognised as a stanza,
  so it can be re-enabled without guessing where the block ends.
* one-line ``.list`` files, parsed into :class:`LegacyLine` records that keep
  the raw text so lines the run does not touch are written back unchanged.
"""

import re
from typing import Optional

from pydantic import BaseModel, Field

FIELD_RE = re.compile(r"^([A-Za-z][A-Za-z0-9-]*):[ \t]*(.*)$")
COMMENT_RE = re.compile(r"^\s*# ?")
LEGACY_RE = re.compile(
    r"^\s*(?P<comment>#\s*)?(?P<type>deb|deb-src)\s+"
    r"(?:\[(?P<options>[^\]]*)\]\s+)?"
    r"(?P<uri>\S+)\s+(?P<suite>\S+)(?:\s+(?P<components>[^#]*?))?\s*(?:#.*)?$"
)


def _is_comment(line: str) -> bool:
    return line.lstrip().startswith("#")


def _uncomment(line: str) -> str:
    return COMMENT_RE.sub("", line, count=1)


class Stanza(BaseModel):
    """
    One deb822 paragraph.

    ``fields`` keeps the original field order. Multi-line values hold their
    continuation lines verbatim, joined with newlines. ``comments`` are the
    comment lines that belong to the paragraph but are not fields.
    """

    fields: dict[str, str] = Field(default_factory=dict)
    comments: list[str] = Field(default_factory=list)
    commented: bool = False

    @classmethod
    def create(
        cls,
        uris: list[str],
        suites: list[str],
        components: list[str],
        signed_by: Optional[str] = None,
        types: Optional[list[str]] = None,
    ) -> "Stanza":
        fields = {
            "Types": " ".join(types or ["deb"]),
            "URIs": " ".join(uris),
            "Suites": " ".join(suites),
            "Components": " ".join(components),
        }
        if signed_by:
            fields["Signed-By"] = signed_by
        return cls(fields=fields)

    def field_key(self, name: str) -> Optional[str]:
        for key in self.fields:
            if key.lower() == name.lower():
                return key
        return None

    def get(self, name: str, default: str = "") -> str:
        """
        Look up a field value, ignoring the case of the field name.
        """
        key = self.field_key(name)
        return self.fields[key] if key is not None else default

    def words(self, name: str) -> list[str]:
        return self.get(name).split()

    @property
    def is_paragraph(self) -> bool:
        return bool(self.fields)

    @property
    def uris(self) -> list[str]:
        return self.words("URIs")

    @property
    def components(self) -> list[str]:
        return self.words("Components")

    @property
    def enabled(self) -> bool:
        if not self.is_paragraph or self.commented:
            return False
        return self.get("Enabled", "yes").strip().lower() != "no"

    def has_component(self, component: str) -> bool:
        return component in self.components

    def disable(self) -> bool:
        """
        Comment the paragraph out. Returns whether anything changed.
        """
        if self.commented or not self.is_paragraph:
            return False
        self.commented = True
        return True

    def enable(self) -> bool:
        """
        Uncomment the paragraph and drop ``Enabled: no``.
        """
        if self.enabled or not self.is_paragraph:
            return False
        self.commented = False
        key = self.field_key("Enabled")
        if key is not None:
            del self.fields[key]
        return True

    def render(self) -> str:
        lines = list(self.comments)
        prefix = "# " if self.commented else ""
        for key, value in self.fields.items():
            first, *rest = value.split("\n")
            lines.append(f"{prefix}{key}: {first}" if first else f"{prefix}{key}:")
            lines.extend(f"{prefix}{line}" for line in rest)
        return "\n".join(lines)


def _parse_block(lines: list[str]) -> Stanza:
    commented = all(_is_comment(line) for line in lines)
    fields: dict[str, str] = {}
    comments: list[str] = []
    last_key: Optional[str] = None

    for raw in lines:
        if commented:
            line = _uncomment(raw)
        elif _is_comment(raw):
            comments.append(raw)
            continue
        else:
            line = raw

        match = FIELD_RE.match(line)
        if match:
            last_key = match.group(1)
            fields[last_key] = match.group(2).rstrip()
        elif last_key is not None and line[:1] in (" ", "\t"):
            fields[last_key] += "\n" + line.rstrip()
        else:
            comments.append(raw)
            last_key = None

    if commented and not any(key.lower() == "types" for key in fields):
        # Plain comment block, not a disabled paragraph.
        return Stanza(comments=list(lines))
    return Stanza(fields=fields, comments=comments, commented=commented)


def parse_sources(text: str) -> list[Stanza]:
    """
    Parse the contents of a deb822 ``.sources`` file.
    """
    stanzas = []
    block: list[str] = []
    for line in text.splitlines():
        if line.strip():
            block.append(line)
        elif block:
            stanzas.append(_parse_block(block))
            block = []
    if block:
        stanzas.append(_parse_block(block))
    return stanzas


def dump_sources(stanzas: list[Stanza]) -> str:
    """
    Serialize stanzas as blank-line separated paragraphs.
    """
    blocks = [stanza.render() for stanza in stanzas]
    blocks = [block for block in blocks if block]
    if not blocks:
        return ""
    return "\n\n".join(blocks) + "\n"


class LegacyLine(BaseModel):
    """
    One line of a one-line-style ``.list`` file.
    """

    raw: str

    @property
    def parsed(self) -> Optional[re.Match]:
        return LEGACY_RE.match(self.raw)

    @property
    def is_entry(self) -> bool:
        return self.parsed is not None

    @property
    def enabled(self) -> bool:
        return self.is_entry and self.parsed.group("comment") is None

    @property
    def uri(self) -> Optional[str]:
        match = self.parsed
        return match.group("uri") if match else None

    @property
    def components(self) -> list[str]:
        match = self.parsed
        if match is None or not match.group("components"):
            return []
        return match.group("components").split()

    def mentions(self, text: str) -> bool:
        return text.lower() in self.raw.lower()

    def disable(self) -> bool:
        if not self.enabled:
            return False
        self.raw = f"# {self.raw}"
        return True


def parse_list(text: str) -> list[LegacyLine]:
    """
    Parse the contents of a one-line-style sources file.
    """
    return [LegacyLine(raw=line) for line in text.splitlines()]


def dump_list(lines: list[LegacyLine]) -> str:
    if not lines:
        return ""
    return "\n".join(line.raw for line in lines) + "\n"


def format_list_entry(uri: str, suite: str, components: list[str], kind: str = "deb") -> str:
    """
    Build a one-line source entry.
    """
    return " ".join([kind, uri, suite, *components])
