from fastapi import HTTPException

from ..errors import STATUS_CODES
from ..schemas import SigningResult


def raise_for_result(result: SigningResult) -> SigningResult:
    if not result.ok:
        raise HTTPException(STATUS_CODES.get(result.error, 400), result.model_dump(mode="json"))
    return result
