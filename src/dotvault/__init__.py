"""
dotvault -- keep .env files and 1Password vaults in step.

Push local secrets into a vault, pull vault secrets into a .env file,
or just look at what differs. The .env file is edited in place: comments,
blank lines and ordering survive every round trip.
"""

import os

__version__ = "0.1.0"
__author__ = "dotvault contributors"

CONFIG_FILE_NAME = os.environ.get("DOTVAULT_CONFIG", "1pass.yaml")
