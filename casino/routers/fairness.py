from fastapi import APIRouter

from casino.domain.verification import verify_outcome
from casino.errors import ValidationFailed
from casino.load_secrets import crash_max_multiplier
from casino.models.dc_models import VerifyModel

fairness_router = APIRouter(prefix="/fairness", tags=["fairness"])


class FairnessAPI:
    @staticmethod
    @fairness_router.post("/verify")
    async def verify(request: VerifyModel) -> dict:
        """Recompute a finished outcome from its revealed seeds

        Args:
            request (VerifyModel): game, both seeds, optionally the commitment and game inputs

        Returns:
            dict: crash point, mine cells or the dealt/final hand
        """
        if request.mines is not None and not 1 <= request.mines <= 24:
            raise ValidationFailed("mines must be within 1..24", field="mines")
        try:
            return verify_outcome(
                request.game.value,
                request.public_seed,
                request.private_seed,
                private_seed_hash=request.private_seed_hash,
                mines=request.mines,
                hold_mask=request.hold_mask,
                max_multiplier=crash_max_multiplier,
            )
        except ValueError as e:
            raise ValidationFailed(str(e)) from e
