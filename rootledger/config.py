from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # Core
    database_url: str = Field(default="sqlite:///./rootledger.db", alias="DATABASE_URL")

    # Tree shape. Defaults match Semaphore.sol (depth 21, keccak-derived initial leaf)
    tree_depth: int = Field(default=21, alias="ROOTLEDGER_TREE_DEPTH")
    initial_leaf_hex: str = Field(
        default="1c4823575d154474ee3e5ac838d002456a815181437afd14f126da58a9912bbe",
        alias="ROOTLEDGER_INITIAL_LEAF",
    )

    # Upper bound for one append (lock wait + transaction), seconds
    append_timeout_s: float = Field(default=10.0, alias="ROOTLEDGER_APPEND_TIMEOUT_S")

    # Shared secret presented by the mining notifier
    mining_token: str | None = Field(default=None, alias="ROOTLEDGER_MINING_TOKEN")

    # Optional
    allowed_origins: str = Field(default="*", alias="ROOTLEDGER_ALLOWED_ORIGINS")
    log_level: str = Field(default="INFO", alias="ROOTLEDGER_LOG_LEVEL")

    # Export paging
    max_export_limit: int = 5000

    @property
    def allowed_origins_list(self):
        v = (self.allowed_origins or "*").strip()
        if v == "*" or v == "":
            return ["*"]
        return [x.strip() for x in v.split(",") if x.strip()]

    @property
    def initial_leaf(self) -> bytes:
        return bytes.fromhex(self.initial_leaf_hex.removeprefix("0x"))


settings = Settings()
