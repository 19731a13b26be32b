import hmac
from typing import Optional
from fastapi import Header, HTTPException
from rootledger.config import settings


def require_mining_token(
    x_mining_token: Optional[str] = Header(default=None, alias="x-mining-token"),
) -> None:
    # notifier endpoint stays closed until a token is configured
    if not settings.mining_token:
        raise HTTPException(status_code=403, detail="mining_confirmation_disabled")
    if not x_mining_token:
        raise HTTPException(status_code=401, detail="missing_mining_token")
    if not hmac.compare_digest(x_mining_token.encode(), settings.mining_token.encode()):
        raise HTTPException(status_code=403, detail="invalid_mining_token")
