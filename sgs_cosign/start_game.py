"""
``start_game``: the two-player call that locks both players' points.

The game contract requires each player's authorization over only the
arguments that player commits to:

    player1.require_auth_for_args([session_id, player1_points])
    player2.require_auth_for_args([session_id, player2_points])

so an exported player 1 entry carries exactly ``(u32 session_id,
i128 player1_points)`` and the player 1 address. Player 2 recovers those
values from the artifact and rebuilds the same call with its own points.

Flow:
    player 1: prepare_start_game()  → artifact
    player 2: import_start_game()   → CONFIRMED handshake
"""

from __future__ import annotations

from dataclasses import dataclass

from sgs_cosign.assembler import Handshake
from sgs_cosign.codec import InvocationShape, check_shape
from sgs_cosign.entry import AuthorizationEntry, CredentialKind, Invocation
from sgs_cosign.errors import UnsupportedCredential
from sgs_cosign.scval import ScVal, ScValType, validate_address
from sgs_cosign.service import CosignService

START_GAME = "start_game"

# Arguments each player attests to: session id, then their own points.
START_GAME_SHAPE = InvocationShape(
    function_name=START_GAME,
    arg_types=(ScValType.U32, ScValType.I128),
)


@dataclass(frozen=True)
class StartGameArgs:
    """Full argument list of ``start_game``."""

    session_id: int
    player1: str
    player2: str
    player1_points: int
    player2_points: int

    def __post_init__(self) -> None:
        validate_address(self.player1, field_name="player1")
        validate_address(self.player2, field_name="player2")
        if self.player1 == self.player2:
            raise ValueError("Player 1 and Player 2 must be different addresses")
        # Range checks
        ScVal.u32(self.session_id)
        ScVal.i128(self.player1_points)
        ScVal.i128(self.player2_points)

    def to_invocation(self, contract_id: str) -> Invocation:
        return Invocation(
            contract_id=contract_id,
            function_name=START_GAME,
            args=(
                ScVal.u32(self.session_id),
                ScVal.address(self.player1),
                ScVal.address(self.player2),
                ScVal.i128(self.player1_points),
                ScVal.i128(self.player2_points),
            ),
        )

    @classmethod
    def from_invocation(cls, invocation: Invocation) -> StartGameArgs:
        """Inverse of ``to_invocation``.

        Raises:
            ValueError: If the invocation is not a well-formed start_game call.
        """
        expected = (
            ScValType.U32,
            ScValType.ADDRESS,
            ScValType.ADDRESS,
            ScValType.I128,
            ScValType.I128,
        )
        if invocation.function_name != START_GAME:
            raise ValueError(f"not a start_game call: {invocation.function_name!r}")
        if tuple(a.type for a in invocation.args) != expected:
            raise ValueError("start_game arguments do not match (u32, address, address, i128, i128)")
        session_id, player1, player2, p1_points, p2_points = (a.value for a in invocation.args)
        return cls(
            session_id=int(session_id),
            player1=str(player1),
            player2=str(player2),
            player1_points=int(p1_points),
            player2_points=int(p2_points),
        )


@dataclass(frozen=True)
class StartGameParams:
    """What player 2 learns from player 1's artifact."""

    session_id: int
    player1: str
    player1_points: int


def recover_start_game_params(entry: AuthorizationEntry) -> StartGameParams:
    """Extract the shared game parameters from player 1's signed entry.

    Raises:
        UnsupportedCredential: If the entry is not an ADDRESS entry.
        FunctionMismatch / ArgumentShapeMismatch: If the entry does not
            authorize ``start_game(session_id, points)``.
    """
    if entry.credential_kind != CredentialKind.ADDRESS:
        raise UnsupportedCredential(
            f"unsupported credentials type: {entry.credential_kind.name}"
        )
    check_shape(entry, START_GAME_SHAPE)
    session_id, points = entry.invocation_args
    return StartGameParams(
        session_id=int(session_id.value),
        player1=str(entry.signer_address),
        player1_points=int(points.value),
    )


async def prepare_start_game(
    service: CosignService,
    args: StartGameArgs,
    *,
    contract_id: str,
    ttl_minutes: float | None = None,
) -> str:
    """Player 1: sign and export the start_game authorization.

    The bundle is built with player 2 as fee payer, the party that will
    eventually submit it.

    Raises:
        ValueError: If the service does not sign for player 1.
    """
    if service.address != args.player1:
        raise ValueError(
            f"service signs for {service.address}, not player1 {args.player1}"
        )
    return await service.export_authorization(
        args.to_invocation(contract_id),
        fee_payer=args.player2,
        ttl_minutes=ttl_minutes,
    )


async def import_start_game(
    service: CosignService,
    artifact: str,
    *,
    contract_id: str,
    player2_points: int,
    handshake: Handshake | None = None,
) -> Handshake:
    """Player 2: import player 1's artifact, sign and submit start_game."""
    player2 = service.address

    def rebuild(entry: AuthorizationEntry) -> Invocation:
        params = recover_start_game_params(entry)
        return StartGameArgs(
            session_id=params.session_id,
            player1=params.player1,
            player2=player2,
            player1_points=params.player1_points,
            player2_points=player2_points,
        ).to_invocation(contract_id)

    return await service.complete_authorization(
        artifact,
        shape=START_GAME_SHAPE,
        rebuild=rebuild,
        handshake=handshake,
    )
