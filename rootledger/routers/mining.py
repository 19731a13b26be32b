from fastapi import APIRouter, Depends

from rootledger.mining import MiningCoordinator
from rootledger.routers.public import checkpoint_out
from rootledger.schemas import CheckpointOut, MiningConfirmation
from rootledger.security import require_mining_token
from rootledger.service import get_coordinator
from rootledger.util import parse_hex32

router = APIRouter(prefix="/mining")


@router.post("/confirm", response_model=CheckpointOut, dependencies=[Depends(require_mining_token)])
def confirm(body: MiningConfirmation, coordinator: MiningCoordinator = Depends(get_coordinator)):
    cp = coordinator.mark_mined(parse_hex32(body.root), body.mined_at)
    return checkpoint_out(cp)


@router.get("/pending", response_model=list[CheckpointOut])
def pending(coordinator: MiningCoordinator = Depends(get_coordinator)):
    return [checkpoint_out(cp) for cp in coordinator.pending_roots()]
