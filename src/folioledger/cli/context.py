"""Shared state of one CLI invocation."""

from dataclasses import dataclass, field
from pathlib import Path

import click

from folioledger.services.ledger import LedgerService, Portfolio
from folioledger.services.store import ILedgerStore, create_store
from folioledger.system import SystemConfig


@dataclass
class CliContext:
    """Config plus lazily built store and ledger service.

    Attributes:
        config: Loaded system configuration
        db_path: Overrides store.path (and forces the sqlite backend) when set
    """

    config: SystemConfig
    db_path: Path | None = None
    _store: ILedgerStore | None = field(default=None, repr=False)
    _service: LedgerService | None = field(default=None, repr=False)

    @property
    def store(self) -> ILedgerStore:
        if self._store is None:
            store_config = self.config.store
            if self.db_path is not None:
                store_config.backend = "sqlite"
                store_config.path = str(self.db_path)
            if store_config.backend == "sqlite":
                Path(store_config.path).parent.mkdir(parents=True, exist_ok=True)
            self._store = create_store(store_config)
        return self._store

    @property
    def service(self) -> LedgerService:
        if self._service is None:
            self._service = LedgerService(self.store, self.config.ledger)
        return self._service

    def resolve_portfolio(self, reference: str | None) -> Portfolio:
        """Portfolio by id, code or name; the current portfolio when reference is None."""
        if reference:
            return self.service.find_portfolio(reference)
        return self.service.ensure_default_portfolio()

    def close(self) -> None:
        if self._store is not None:
            self._store.close()


pass_cli = click.make_pass_decorator(CliContext)

portfolio_option = click.option(
    "--portfolio",
    "-p",
    "portfolio_ref",
    default=None,
    help="Portfolio id, code or name (default: current portfolio)",
)
