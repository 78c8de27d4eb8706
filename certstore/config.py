"""Locations and passphrase of the platform default stores.

Values come from the environment (a ``.env`` file is honoured) and fall back
to the conventional locations: a trust-anchor bundle under the interpreter
installation root and a per-user identity bundle in the home directory.
"""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_PASSPHRASE = "changeit"
DEFAULT_KEY_ALGORITHM = "RSA"

TRUST_STORE_ENV = "CERTSTORE_TRUST_STORE_FILE"
KEY_STORE_ENV = "CERTSTORE_KEY_STORE_FILE"
PASSPHRASE_ENV = "CERTSTORE_DEFAULT_PASSPHRASE"


def default_trust_store_path() -> str:
    return os.path.join(sys.prefix, "lib", "security", "cacerts")


def default_key_store_path() -> str:
    return os.path.join(os.path.expanduser("~"), ".keystore")


@dataclass(frozen=True)
class Settings:
    trust_store_file: str
    key_store_file: str
    default_passphrase: str = DEFAULT_PASSPHRASE


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Load settings from the environment.

    :param env_file: Optional path to a dotenv file; by default ``.env`` is
        searched for the usual way. Variables already set in the process
        environment take precedence over the file.
    :return: Settings for default-store seeding
    """
    load_dotenv(env_file)

    return Settings(
        trust_store_file=os.getenv(TRUST_STORE_ENV) or default_trust_store_path(),
        key_store_file=os.getenv(KEY_STORE_ENV) or default_key_store_path(),
        default_passphrase=os.getenv(PASSPHRASE_ENV, DEFAULT_PASSPHRASE),
    )
