# -*- coding: utf-8 -*-

import logging
import os
import subprocess
from typing import Optional

import keyring
from keyring.errors import KeyringError

from domain.errors import CredentialsError

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "tallytime"
KEYRING_USER = "google-sheets"


def execute_credentials_helper(helper_path: str) -> bytes:
    """
    Run the helper and return its stdout, trimmed.
    The helper must exist, be executable and exit 0.
    """
    if not os.path.exists(helper_path):
        raise CredentialsError(f"credentials helper not found: {helper_path}")
    if not os.access(helper_path, os.X_OK):
        raise CredentialsError(
            f"credentials helper is not executable: {helper_path} "
            f"(run: chmod +x {helper_path})"
        )

    try:
        proc = subprocess.run([helper_path], capture_output=True, check=False)
    except OSError as e:
        raise CredentialsError("failed to execute credentials helper", cause=e) from e

    if proc.returncode != 0:
        stderr = proc.stderr.decode("utf-8", errors="replace").strip()
        raise CredentialsError(
            f"credentials helper failed (exit {proc.returncode}): {stderr}"
        )

    return proc.stdout.strip()


def get_credentials(credentials_helper: Optional[str] = None) -> bytes:
    if credentials_helper:
        logger.debug("reading credentials from helper %s", credentials_helper)
        return execute_credentials_helper(credentials_helper)

    try:
        secret = keyring.get_password(KEYRING_SERVICE, KEYRING_USER)
    except KeyringError as e:
        raise CredentialsError("failed to get credentials from keyring", cause=e) from e
    if not secret:
        raise CredentialsError(
            f"no credentials in keyring for {KEYRING_SERVICE}/{KEYRING_USER}"
        )
    return secret.encode("utf-8")
