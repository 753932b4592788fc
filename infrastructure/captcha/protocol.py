"""CaptchaProvider protocol — the gate depends on this, not the concrete implementation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


class CaptchaTransportError(Exception):
    """The provider could not be reached or answered with an undecodable body."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.cause = cause


class CaptchaProvider(Protocol):
    async def verify(self, token: str, remote_ip: str) -> bool:
        """Return the provider's verdict; raise CaptchaTransportError on transport faults."""
        ...


class VerificationStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    TRANSPORT_FAILURE = "transport_failure"


@dataclass(frozen=True)
class VerificationOutcome:
    status: VerificationStatus
    cause: Optional[CaptchaTransportError] = None

    @classmethod
    def accepted(cls) -> "VerificationOutcome":
        return cls(VerificationStatus.ACCEPTED)

    @classmethod
    def rejected(cls) -> "VerificationOutcome":
        return cls(VerificationStatus.REJECTED)

    @classmethod
    def transport_failure(cls, cause: CaptchaTransportError) -> "VerificationOutcome":
        return cls(VerificationStatus.TRANSPORT_FAILURE, cause)
