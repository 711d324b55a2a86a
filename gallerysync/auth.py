import json
import logging
import os
import pickle
from pathlib import Path
from typing import Mapping, Optional

from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google_auth_oauthlib.flow import InstalledAppFlow

from gallerysync.config import DATA_DIR, SCOPES
from gallerysync.errors import ConfigError

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_ENV = "GDRIVE_SERVICE_ACCOUNT_JSON"


class AuthManager:
    """
    Produces Google Drive credentials: a service account from
    GDRIVE_SERVICE_ACCOUNT_JSON when set, otherwise the installed-app
    OAuth flow with a cached token file.
    """

    def __init__(self, data_dir: Path = DATA_DIR, environ: Optional[Mapping[str, str]] = None):
        self.credentials_json = data_dir / "credentials.json"
        self.token_file = data_dir / "token.json"
        self.environ = os.environ if environ is None else environ
        self.creds = None

    def authenticate(self):
        raw = self.environ.get(SERVICE_ACCOUNT_ENV, "").strip()
        if raw:
            self.creds = self.service_account_credentials(raw)
        else:
            self.creds = self.installed_app_credentials()
        return self.creds

    def service_account_credentials(self, raw: str):
        """
        Parse the service account JSON. Any parse failure is a ConfigError.
        """
        try:
            info = json.loads(raw)
            return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        except (ValueError, KeyError, TypeError) as e:
            raise ConfigError(f"Cannot parse {SERVICE_ACCOUNT_ENV}: {e}") from e

    def installed_app_credentials(self):
        """
        Loads credentials from token file if valid; otherwise performs OAuth flow.
        """
        creds = None
        if self.token_file.exists():
            with open(self.token_file, "rb") as token:
                try:
                    creds = pickle.load(token)
                except (pickle.UnpicklingError, EOFError, AttributeError):
                    logger.warning("Token file corrupt. Re-authenticating.")
                    self.token_file.unlink()
                    creds = None

        if creds and creds.valid:
            return creds

        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            if not self.credentials_json.exists():
                raise ConfigError(
                    f"No credentials: set {SERVICE_ACCOUNT_ENV} or provide {self.credentials_json}"
                )
            flow = InstalledAppFlow.from_client_secrets_file(
                str(self.credentials_json),
                SCOPES
            )
            creds = flow.run_local_server(port=0)
        with open(self.token_file, "wb") as token:
            pickle.dump(creds, token)
        return creds
