from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from masterlist.registration.diffs import ModInfoPayload, process_mod_info
from masterlist.registry.types import ServerCandidate

if TYPE_CHECKING:
    from masterlist.registration.sanitizer import ProfanitySanitizer
    from masterlist.registration.verification import VerificationClient
    from masterlist.registry.store import RegistryStore


class RegisterServerRequest(BaseModel):
    """Query parameters of POST /server/add_server."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    port: int
    auth_port: int = Field(alias="authPort")
    name: str
    description: str = ""
    map: str = ""
    playlist: str = ""
    max_players: int = Field(default=0, alias="maxPlayers")
    password: str = ""


class RegistrationResult(BaseModel):
    success: bool
    id: str | None = None


class RegistrationService:
    def __init__(
        self,
        store: RegistryStore,
        verifier: VerificationClient,
        sanitizer: ProfanitySanitizer,
    ) -> None:
        self._store = store
        self._verifier = verifier
        self._sanitizer = sanitizer

    async def register(
        self,
        request: RegisterServerRequest,
        ip: str,
        mod_info: ModInfoPayload | None = None,
    ) -> RegistrationResult:
        """Verify the registrant, then build and insert its record.

        ip must come from the transport layer. The verification callback is
        awaited before the store is touched, so a slow registrant never holds
        up other registry operations.
        """
        if not await self._verifier.verify(ip, request.auth_port):
            return RegistrationResult(success=False)

        candidate = ServerCandidate(
            name=self._sanitizer.clean(request.name),
            description=self._sanitizer.clean(request.description),
            ip=ip,
            port=request.port,
            auth_port=request.auth_port,
            map=request.map,
            playlist=request.playlist,
            max_players=request.max_players,
            password=request.password,
            mod_info=process_mod_info(mod_info),
        )
        server_id = await self._store.insert(candidate)
        return RegistrationResult(success=True, id=server_id)
