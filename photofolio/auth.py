import pickle
from pathlib import Path
from typing import Optional

from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google_auth_oauthlib.flow import InstalledAppFlow
from loguru import logger

from photofolio.config import SCOPES
from photofolio.errors import ConfigError


class AuthManager:
    """
    Manages Google Drive API authentication,
    reading/writing token files, refreshing creds, etc.
    """

    def __init__(
        self,
        credentials_file: Path,
        token_file: Path,
        service_account_file: Optional[Path] = None
    ):
        self.credentials_json = Path(credentials_file)
        self.token_file = Path(token_file)
        self.service_account_json = Path(service_account_file) if service_account_file else None
        self.creds = None

    def authenticate(self):
        """
        Uses the service account if one is configured; otherwise loads
        credentials from the token file if valid, or performs the OAuth flow.
        """
        if self.service_account_json is not None:
            if not self.service_account_json.exists():
                raise ConfigError(f"service account file not found: {self.service_account_json}")
            logger.debug("using service account {}", self.service_account_json)
            self.creds = service_account.Credentials.from_service_account_file(
                str(self.service_account_json),
                scopes=SCOPES
            )
            return self.creds

        if self.token_file.exists():
            with open(self.token_file, "rb") as token:
                try:
                    self.creds = pickle.load(token)
                except (pickle.UnpicklingError, EOFError, AttributeError, ValueError):
                    logger.warning("token file corrupt, re-authenticating")
                    self.creds = None
            if self.creds is None:
                self.token_file.unlink()

        # If no creds, or invalid/expired creds, do the flow
        if not self.creds or not self.creds.valid:
            if self.creds and self.creds.expired and self.creds.refresh_token:
                self.creds.refresh(Request())
            else:
                if not self.credentials_json.exists():
                    raise ConfigError(f"oauth client file not found: {self.credentials_json}")
                flow = InstalledAppFlow.from_client_secrets_file(
                    str(self.credentials_json),
                    SCOPES
                )
                self.creds = flow.run_local_server(port=0)
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.token_file, "wb") as token:
                pickle.dump(self.creds, token)

        return self.creds
