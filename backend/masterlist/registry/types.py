from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PropDefinition(BaseModel):
    type: str
    name: str
    array_size: str | None = Field(default=None, serialization_alias="arraySize")


class DefinitionDiff(BaseModel):
    """Structured form of a mod's pdiff, fingerprinted by the hash of its raw text."""

    enum_adds: dict[str, list[str]] = Field(default_factory=dict, serialization_alias="enumAdds")
    props: list[PropDefinition] = Field(default_factory=list)
    hash: str = ""


class RegisteredMod(BaseModel):
    name: str = Field(default="", serialization_alias="Name")
    version: str = Field(default="", serialization_alias="Version")
    required_on_client: bool = Field(default=False, serialization_alias="RequiredOnClient")
    pdiff_hash: str | None = Field(default=None, serialization_alias="pdiffHash")
    pdiff: DefinitionDiff | None = None


class ModInfo(BaseModel):
    mods: list[RegisteredMod] = Field(default_factory=list, serialization_alias="Mods")


class ServerCandidate(BaseModel):
    """Everything a registration supplies before the store assigns an id."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    ip: str
    port: int
    auth_port: int
    map: str = ""
    playlist: str = ""
    max_players: int = 0
    password: str = ""
    mod_info: ModInfo | None = None


class ServerRecord(BaseModel):
    id: str
    name: str
    description: str = ""
    ip: str
    port: int
    auth_port: int = Field(serialization_alias="authPort")
    map: str = ""
    playlist: str = ""
    player_count: int = Field(default=0, serialization_alias="playerCount")
    max_players: int = Field(default=0, serialization_alias="maxPlayers")
    password: str = ""
    mod_info: ModInfo | None = Field(default=None, serialization_alias="modInfo")
    last_heartbeat: float = Field(serialization_alias="lastHeartbeat")

    @property
    def has_password(self) -> bool:
        return self.password != ""

    def public_view(self) -> dict[str, Any]:
        """Listing payload: never exposes the owner address or the password itself."""
        data = self.model_dump(by_alias=True, exclude={"ip", "password"})
        data["hasPassword"] = self.has_password
        return data


class PatchableField(StrEnum):
    """Wire names of the fields update_values may change."""

    NAME = "name"
    DESCRIPTION = "description"
    MAP = "map"
    PLAYLIST = "playlist"
    PASSWORD = "password"
    PLAYER_COUNT = "playerCount"
    MAX_PLAYERS = "maxPlayers"

    @property
    def attribute(self) -> str:
        return _PATCH_ATTRIBUTES[self]

    @property
    def is_integer(self) -> bool:
        return self in {PatchableField.PLAYER_COUNT, PatchableField.MAX_PLAYERS}


_PATCH_ATTRIBUTES: dict[PatchableField, str] = {
    PatchableField.NAME: "name",
    PatchableField.DESCRIPTION: "description",
    PatchableField.MAP: "map",
    PatchableField.PLAYLIST: "playlist",
    PatchableField.PASSWORD: "password",
    PatchableField.PLAYER_COUNT: "player_count",
    PatchableField.MAX_PLAYERS: "max_players",
}


class MutationResult(StrEnum):
    APPLIED = "applied"
    NOT_AUTHORIZED = "not_authorized"


@dataclass(frozen=True)
class OwnershipCheck:
    """Outcome of matching a caller address against a record's owner.

    Unknown ids and foreign callers both come back as not authorized, so
    nothing downstream can tell which ids exist.
    """

    record: ServerRecord | None = None

    @property
    def authorized(self) -> bool:
        return self.record is not None

    @classmethod
    def denied(cls) -> OwnershipCheck:
        return cls(record=None)
