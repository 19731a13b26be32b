from fastapi import APIRouter, Depends, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.orm import Session

from rootledger.config import settings
from rootledger.db import get_db
from rootledger.identity_ledger import IdentityLedger
from rootledger.models import RootCheckpoint, RootStatus
from rootledger.root_registry import RootRegistry
from rootledger.schemas import CheckpointOut, IdentityExport, InclusionProofOut, InclusionProofRequest, InsertIdentityRequest
from rootledger.sequencer import Sequencer
from rootledger.service import get_sequencer
from rootledger.util import hex32, parse_hex32

router = APIRouter()


def checkpoint_out(cp: RootCheckpoint) -> dict:
    return {
        "root": hex32(cp.root),
        "last_identity": hex32(cp.last_identity),
        "leaf_index": int(cp.last_leaf_index),
        "identity_count": int(cp.identity_count),
        "status": RootStatus(cp.status).value,
        "created_at": cp.created_at,
        "mined_at": cp.mined_at,
    }


def _root_param(root_hex: str) -> bytes:
    try:
        return parse_hex32(root_hex)
    except ValueError:
        raise HTTPException(status_code=422, detail="bad_root")


@router.get("/")
def root():
    return {"ok": True, "service": "rootledger"}


@router.get("/health")
def health():
    return {"ok": True}


@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    # verify DB
    db.execute(text("SELECT 1"))
    return {"ok": True}


@router.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.post("/insertIdentity", response_model=CheckpointOut)
def insert_identity(body: InsertIdentityRequest, seq: Sequencer = Depends(get_sequencer)):
    cp = seq.append_identity(parse_hex32(body.identity_commitment))
    return checkpoint_out(cp)


@router.post("/inclusionProof", response_model=InclusionProofOut)
def inclusion_proof(body: InclusionProofRequest, seq: Sequencer = Depends(get_sequencer)):
    p = seq.inclusion_proof(parse_hex32(body.identity_commitment))
    return {
        "leaf_index": p.leaf_index,
        "status": p.status.value,
        "root": hex32(p.root),
        "leaf": hex32(p.proof.leaf),
        "siblings": [[side, hex32(h)] for side, h in p.proof.siblings],
        "proof_valid": p.valid,
    }


@router.get("/roots/latest", response_model=CheckpointOut)
def latest_root(db: Session = Depends(get_db)):
    return checkpoint_out(RootRegistry(db).get_latest())


@router.get("/roots/{root_hex}", response_model=CheckpointOut)
def get_root(root_hex: str, db: Session = Depends(get_db)):
    return checkpoint_out(RootRegistry(db).get(_root_param(root_hex)))


@router.get("/roots", response_model=list[CheckpointOut])
def list_roots(status: RootStatus = RootStatus.PENDING, db: Session = Depends(get_db)):
    return [checkpoint_out(cp) for cp in RootRegistry(db).list_by_status(status)]


@router.get("/identities", response_model=IdentityExport)
def export_identities(cursor: int | None = None, limit: int = 500, db: Session = Depends(get_db)):
    if limit < 1 or limit > settings.max_export_limit:
        raise HTTPException(status_code=400, detail="bad_limit")
    ledger = IdentityLedger(db)
    items, next_cursor = ledger.page(cursor, limit)
    return {"items": items, "next_cursor": next_cursor, "count": ledger.count()}
