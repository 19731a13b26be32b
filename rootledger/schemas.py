import datetime as dt
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional

from rootledger.util import parse_hex32


class CommitmentRequest(BaseModel):
    identity_commitment: str = Field(min_length=64, max_length=66)

    @field_validator("identity_commitment")
    @classmethod
    def check_hex(cls, v: str) -> str:
        parse_hex32(v)
        return v


class InsertIdentityRequest(CommitmentRequest):
    pass


class InclusionProofRequest(CommitmentRequest):
    pass


class MiningConfirmation(BaseModel):
    root: str = Field(min_length=64, max_length=66)
    mined_at: dt.datetime

    @field_validator("root")
    @classmethod
    def check_hex(cls, v: str) -> str:
        parse_hex32(v)
        return v


class CheckpointOut(BaseModel):
    root: str
    last_identity: str
    leaf_index: int
    identity_count: int
    status: Literal["pending", "mined"]
    created_at: dt.datetime
    mined_at: Optional[dt.datetime] = None


class InclusionProofOut(BaseModel):
    leaf_index: int
    status: Literal["pending", "mined"]
    root: str
    leaf: str
    siblings: List[List[str]]  # [side, hash]
    proof_valid: bool


class IdentityItem(BaseModel):
    leaf_index: int
    commitment: str


class IdentityExport(BaseModel):
    items: List[IdentityItem]
    next_cursor: Optional[int]
    count: int
