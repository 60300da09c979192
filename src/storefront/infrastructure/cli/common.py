"""Helpers shared by the CLI command modules."""

from __future__ import annotations

import click

from storefront.domain.exceptions import DomainException
from storefront.domain.model.principal import Principal, Role


def caller_options(func):
    """Add ``--user``/``--admin``: who is calling (stands in for auth)."""
    func = click.option(
        "--admin", is_flag=True, default=False, help="Act with the admin role."
    )(func)
    func = click.option("--user", "user_id", required=True, help="Caller's user ID.")(func)
    return func


def as_principal(user_id: str, admin: bool) -> Principal:
    return Principal(user_id=user_id, role=Role.ADMIN if admin else Role.CUSTOMER)


def fail(exc: DomainException) -> click.ClickException:
    return click.ClickException(f"[{exc.code}] {exc.message}")
