"""Mod metadata: parsing and fingerprinting of definition diffs (pdiffs).

A pdiff is a small line-oriented text a mod ships to describe what it adds
to the game's persistent data definitions:

    // comments run to end of line
    $ENUM_ADD gamemodes
        my_gamemode
    $ENUM_END

    $PROP_START
        bool hasSeenIntro
        int unlocks[8]
    $PROP_END

The SHA-1 of the raw text is the mod's compatibility fingerprint. It is
computed before parsing, so two servers running the same pdiff share a
hash even when the parser rejects it.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from masterlist.registry.types import DefinitionDiff, ModInfo, PropDefinition, RegisteredMod

logger = structlog.get_logger()

_IDENTIFIER = r"[A-Za-z_][A-Za-z0-9_]*"
_IDENTIFIER_RE = re.compile(rf"^{_IDENTIFIER}$")
_PROP_RE = re.compile(rf"^(?P<type>{_IDENTIFIER})\s+(?P<name>{_IDENTIFIER})(?:\[(?P<size>{_IDENTIFIER}|\d+)\])?$")

ENUM_ADD = "$ENUM_ADD"
ENUM_END = "$ENUM_END"
PROP_START = "$PROP_START"
PROP_END = "$PROP_END"


class DiffParseError(Exception):
    def __init__(self, line_number: int, message: str) -> None:
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number


def pdiff_hash(raw: str) -> str:
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()  # noqa: S324


def _strip_comment(line: str) -> str:
    return line.split("//", 1)[0].strip()


def parse_definition_diff(raw: str) -> DefinitionDiff:
    """Parse pdiff text into a DefinitionDiff. Raise DiffParseError on malformed input."""
    enum_adds: dict[str, list[str]] = {}
    props: list[PropDefinition] = []
    open_enum: str | None = None
    in_props = False
    block_start = 0

    for line_number, raw_line in enumerate(raw.splitlines(), start=1):
        line = _strip_comment(raw_line)
        if not line:
            continue

        if line.startswith("$"):
            directive, _, argument = line.partition(" ")
            argument = argument.strip()
            if directive == ENUM_ADD:
                if open_enum is not None or in_props:
                    raise DiffParseError(line_number, "nested block")
                if not _IDENTIFIER_RE.match(argument):
                    raise DiffParseError(line_number, f"invalid enum name {argument!r}")
                open_enum = argument
                enum_adds.setdefault(open_enum, [])
                block_start = line_number
            elif directive == ENUM_END:
                if open_enum is None:
                    raise DiffParseError(line_number, f"{ENUM_END} without {ENUM_ADD}")
                open_enum = None
            elif directive == PROP_START:
                if open_enum is not None or in_props:
                    raise DiffParseError(line_number, "nested block")
                in_props = True
                block_start = line_number
            elif directive == PROP_END:
                if not in_props:
                    raise DiffParseError(line_number, f"{PROP_END} without {PROP_START}")
                in_props = False
            else:
                raise DiffParseError(line_number, f"unknown directive {directive!r}")
            continue

        if open_enum is not None:
            if not _IDENTIFIER_RE.match(line):
                raise DiffParseError(line_number, f"invalid enum member {line!r}")
            enum_adds[open_enum].append(line)
        elif in_props:
            match = _PROP_RE.match(line)
            if match is None:
                raise DiffParseError(line_number, f"invalid property {line!r}")
            props.append(PropDefinition(type=match["type"], name=match["name"], array_size=match["size"]))
        else:
            raise DiffParseError(line_number, "content outside of a block")

    if open_enum is not None or in_props:
        raise DiffParseError(block_start, "unterminated block")

    return DefinitionDiff(enum_adds=enum_adds, props=props)


class ModPayload(BaseModel):
    """One entry of the mod-info JSON a server uploads on registration."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(default="", validation_alias="Name")
    version: str = Field(default="", validation_alias="Version")
    required_on_client: bool = Field(default=False, validation_alias="RequiredOnClient")
    pdiff: str | None = None


class ModInfoPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    mods: list[ModPayload] = Field(validation_alias="Mods")


def parse_mod_info(raw: bytes | str) -> ModInfoPayload | None:
    """Decode the uploaded mod-info document. Return None when it is malformed."""
    try:
        data: Any = json.loads(raw)
        return ModInfoPayload.model_validate(data)
    except (ValueError, RecursionError, ValidationError) as e:
        logger.warning("ignoring malformed mod info", error=str(e))
        return None


def process_mod(mod: ModPayload) -> RegisteredMod:
    registered = RegisteredMod(
        name=mod.name,
        version=mod.version,
        required_on_client=mod.required_on_client,
    )
    if not mod.pdiff:
        return registered

    registered.pdiff_hash = pdiff_hash(mod.pdiff)
    try:
        diff = parse_definition_diff(mod.pdiff)
    except DiffParseError as e:
        logger.info("discarding unparseable pdiff", mod=mod.name, error=str(e))
        return registered
    diff.hash = registered.pdiff_hash
    registered.pdiff = diff
    return registered


def process_mod_info(payload: ModInfoPayload | None) -> ModInfo | None:
    if payload is None:
        return None
    return ModInfo(mods=[process_mod(mod) for mod in payload.mods])
