"""
Sync Engine -- reconciles a .env file with a vault.

    dotvault push  ->  read .env  -> write every local secret to the vault
    dotvault pull  ->  read vault -> upsert differing secrets into .env
    dotvault diff  ->  read both  -> report, touch nothing

Pull is additive: keys only the .env file has are never removed.
The .env file is read once and written at most once per operation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from ..diff import DiffReport, compute_diff
from ..envfile.codec import is_lossy
from ..envfile.document import EnvDocument, is_valid_key
from .models import ApplyResult, PullResult, SyncDirection
from .strategies import StorageStrategy

logger = logging.getLogger("dotvault.sync.engine")


class Reconciler:
    """Drives push, pull and diff between one .env file and one vault.

    The storage strategy decides how secrets map onto vault items; the
    reconciler only decides which side wins.
    """

    def __init__(self, strategy: StorageStrategy, env_path: Path):
        """Initialize the reconciler.

        Args:
            strategy: Storage strategy bound to a store and vault.
            env_path: The .env file to read and update.
        """
        self.strategy = strategy
        self.env_path = Path(env_path)

    def load_local(self) -> EnvDocument:
        """Parse the .env file.

        Raises:
            LocalFileError: If the file is missing or unreadable.
        """
        return EnvDocument.load(self.env_path)

    def push(self) -> ApplyResult:
        """Write local secrets to the vault.

        Returns:
            ApplyResult. Per-key failures (separate mode) are listed in
            ``failed`` rather than raised.
        """
        secrets = self.load_local().to_secret_map()
        logger.info(
            "Pushing %d secret(s) from %s (%s mode)",
            len(secrets), self.env_path.name, self.strategy.name,
        )
        result = self.strategy.apply_local_map(secrets)

        if result.changed:
            logger.info("Secrets synced in 1Password:")
            if result.updated:
                logger.info(
                    "Updated %d secret(s): %s",
                    len(result.updated), ", ".join(result.updated),
                )
            if result.created:
                logger.info(
                    "Created %d new secret(s): %s",
                    len(result.created), ", ".join(result.created),
                )
        elif not result.failed:
            logger.info("No changes detected, exiting...")

        if result.partial:
            logger.warning(
                "Push partially failed for %d secret(s): %s",
                len(result.failed), ", ".join(result.failed),
            )
        return result

    def pull(self) -> PullResult:
        """Write vault secrets into the .env file.

        Keys are upserted only when the decoded local value differs.
        Keys missing locally are appended; local-only keys stay.
        """
        document = self.load_local()
        remote = self.strategy.fetch_remote_map()
        result = PullResult()

        for key, value in remote.items():
            if not is_valid_key(key):
                logger.warning("Skipping '%s': not a valid env variable name", key)
                result.skipped.append(key)
                continue
            if is_lossy(value):
                logger.warning(
                    "Value of '%s' mixes newlines with literal escape "
                    "sequences and will not read back identically",
                    key,
                )

            existed = key in document
            if document.get(key) == value:
                result.unchanged.append(key)
            elif document.upsert(key, value):
                (result.updated if existed else result.added).append(key)

        if result.changed:
            document.save(self.env_path)
            result.written = True
            logger.info("Secrets synced from 1Password to %s:", self.env_path.name)
            if result.updated:
                logger.info(
                    "Updated %d secret(s): %s",
                    len(result.updated), ", ".join(result.updated),
                )
            if result.added:
                logger.info(
                    "Added %d new secret(s): %s",
                    len(result.added), ", ".join(result.added),
                )
        else:
            logger.info("No changes detected, %s is up to date.", self.env_path.name)

        return result

    def diff(self) -> DiffReport:
        """Compare the .env file with the vault without changing either."""
        local = self.load_local().to_secret_map()
        remote = self.strategy.fetch_remote_map(include_empty=True)
        report = compute_diff(local, remote)
        logger.debug("Diff summary: %s", report.summary())
        return report

    def run(
        self, direction: Union[SyncDirection, str]
    ) -> Union[ApplyResult, PullResult, DiffReport]:
        """Dispatch to push, pull or diff."""
        direction = SyncDirection(direction)
        if direction == SyncDirection.PUSH:
            return self.push()
        if direction == SyncDirection.PULL:
            return self.pull()
        return self.diff()
