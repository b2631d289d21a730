"""
Delegated-authorization inputs.

A transfer in delegated mode carries one of two explicit variants:

    - Authenticated: a real Permit2 signature produced by the token owner.
    - Unauthenticated: an explicit bypass for test and integration
      environments. Nothing is verified; callers must flag it as
      non-production in anything user-facing.

The variants are discriminated by ``kind`` so they survive JSON round trips
(``TypeAdapter(Authorization).validate_python({"kind": "unauthenticated"})``).
"""

from typing import Annotated, Literal, Union

from pydantic import Field

from .bases import CanonicalModel


#: Literal accepted by the CLI ``--sig`` flag to select the bypass.
UNAUTHENTICATED_TOKEN = "unauthenticated"


class Authenticated(CanonicalModel):
    """Owner-signed authorization (0x-prefixed 65-byte hex signature)."""
    kind: Literal["authenticated"] = "authenticated"
    signature: str = Field(..., min_length=1, description="Serialized r || s || v signature")

    def __repr__(self) -> str:
        return "Authenticated(signature=***)"


class Unauthenticated(CanonicalModel):
    """Testing-only bypass; never verified."""
    kind: Literal["unauthenticated"] = "unauthenticated"


Authorization = Annotated[
    Union[Authenticated, Unauthenticated],
    Field(discriminator="kind"),
]
