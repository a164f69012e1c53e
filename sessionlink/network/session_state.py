"""Session identity and disconnect bookkeeping for the reconnecting connection."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
import uuid


class DisconnectReason(enum.Enum):
    """Classification of a transport close."""

    FORCED = "FORCED"
    NORMAL = "NORMAL"
    ABNORMAL = "ABNORMAL"
    EXHAUSTED = "EXHAUSTED"


def default_session_id() -> str:
    return str(uuid.uuid4())


def with_query_params(url: str, params: dict[str, object]) -> str:
    """Append query parameters to ``url``, keeping any existing query string."""

    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((key, str(value)) for key, value in params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


@dataclass(frozen=True)
class SessionIdentity:
    """Logical session that outlives every transport instance it is carried on."""

    base_url: str
    session_query_param: str = "sessionId"
    attempt_query_param: str = "attempt"
    id_factory: Callable[[], str] = field(default=default_session_id, repr=False, compare=False)
    session_id: str = field(default="", init=False)
    target_address: str = field(default="", init=False)

    def __post_init__(self) -> None:
        session_id = self.id_factory()
        if not session_id:
            raise ValueError("Session id factory returned an empty token")
        object.__setattr__(self, "session_id", session_id)
        object.__setattr__(
            self,
            "target_address",
            with_query_params(self.base_url, {self.session_query_param: session_id}),
        )

    def attempt_address(self, total_attempts: int) -> str:
        """Address for one connection attempt, tagged with the lifetime attempt counter."""

        return with_query_params(self.target_address, {self.attempt_query_param: total_attempts})
