"""Per-request caller context, passed explicitly to every operation that needs it."""

from dataclasses import dataclass, field

from portal.schemas.auth import CurrentUser
from portal.services.audit import RequestSource
from portal.services.rbac import Capabilities, capabilities


@dataclass(frozen=True)
class RequestContext:
    user: CurrentUser
    session_id: str
    source: RequestSource = field(default_factory=RequestSource)

    @property
    def actor_id(self) -> int:
        return self.user.id

    @property
    def role(self) -> str:
        return self.user.role

    @property
    def capabilities(self) -> Capabilities:
        return capabilities(self.user.role)
