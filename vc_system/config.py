"""
config.py - Central configuration for the credential core
"""
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings


class VCSettings(BaseSettings):
    # Issuer
    ISSUER_PRIVATE_KEY: Optional[str] = None
    DID_METHOD: str = "ethr"

    # Persisted state
    DATA_DIR: Path = Path.cwd() / "data"
    VCS_FILE: str = "vcs.json"
    REVOKE_FILE: str = "revocations.json"
    UPLOAD_DIR_NAME: str = "uploads"

    # Verification
    RESOLVER_TIMEOUT: float = 10.0  # seconds
    CLOCK_SKEW_SECONDS: int = 300

    # Credential defaults
    DEFAULT_CREDENTIAL_TYPE: str = "IdentityCredential"
    CREDENTIAL_CONTEXT: List[str] = ["https://www.w3.org/2018/credentials/v1"]

    class Config:
        env_file = ".env"

    @property
    def vcs_path(self) -> Path:
        return self.DATA_DIR / self.VCS_FILE

    @property
    def revocations_path(self) -> Path:
        return self.DATA_DIR / self.REVOKE_FILE

    @property
    def upload_dir(self) -> Path:
        return self.DATA_DIR / self.UPLOAD_DIR_NAME


settings = VCSettings()
