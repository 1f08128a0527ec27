"""TokenVault CLI — manage your account and bearer tokens from a shell.

Usage:
    tokenvault signup ann@example.com --name Ann      # prints the first token
    tokenvault login ann@example.com                  # prints a new token
    tokenvault me                                     # who does this token belong to
    tokenvault tokens                                 # active tokens (truncated)
    tokenvault rotate [--keep-old]                    # swap the current token
    tokenvault revoke [TOKEN]                         # revoke one (default: current)
    tokenvault revoke-all                             # revoke every token

Commands that need a token read it from --token or TOKENVAULT_TOKEN.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import os
import sys
from typing import Optional

import click
import httpx

from tokenvault import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"
AUTH = "/api/v1/auth"


def _api_url() -> str:
    return os.environ.get("TOKENVAULT_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the TokenVault backend."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _require_token(token: Optional[str]) -> str:
    """Resolve the bearer token from flag or TOKENVAULT_TOKEN env var."""
    tok = token or os.environ.get("TOKENVAULT_TOKEN")
    if not tok:
        click.secho(
            "Error: --token required (or set TOKENVAULT_TOKEN env var)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return tok


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _check(r: httpx.Response) -> dict:
    """Return the JSON body, or print the server's error and exit 1."""
    try:
        body = r.json()
    except ValueError:
        body = {}
    if r.status_code >= 400 or body.get("success") is False:
        errors = body.get("errors") or []
        if errors:
            for err in errors:
                field = err.get("field")
                prefix = f"{field}: " if field else ""
                click.secho(f"Error: {prefix}{err.get('msg')}", fg="red", err=True)
        else:
            click.secho(
                f"Error: {body.get('error') or f'HTTP {r.status_code}'}",
                fg="red",
                err=True,
            )
        sys.exit(1)
    return body


def _print_user(user: dict) -> None:
    click.echo(f"  id:    {user['id']}")
    click.echo(f"  email: {user['email']}")
    click.echo(f"  name:  {user['name']}")


token_option = click.option(
    "--token", "-k", help="Bearer token (or set TOKENVAULT_TOKEN)"
)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="tokenvault")
def main():
    """TokenVault — issue, rotate and revoke your bearer tokens."""


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


@main.command()
@click.argument("email")
@click.option("--name", "-n", required=True, help="Display name")
@click.password_option()
def signup(email: str, name: str, password: str):
    """Create an account and print its first token."""
    _run(_signup_impl(email, name, password))


async def _signup_impl(email: str, name: str, password: str):
    async with _client() as c:
        r = await c.post(
            f"{AUTH}/signup",
            json={"email": email, "password": password, "name": name},
        )
    data = _check(r)["data"]
    click.secho(f"Account created for {data['user']['email']}", fg="green")
    click.echo(data["token"])


@main.command()
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True)
def login(email: str, password: str):
    """Log in and print a new token."""
    _run(_login_impl(email, password))


async def _login_impl(email: str, password: str):
    async with _client() as c:
        r = await c.post(f"{AUTH}/login", json={"email": email, "password": password})
    data = _check(r)["data"]
    click.echo(data["token"])


@main.command()
@token_option
def me(token: Optional[str]):
    """Show the account behind the token."""
    _run(_me_impl(_require_token(token)))


async def _me_impl(token: str):
    async with _client() as c:
        r = await c.get(f"{AUTH}/me", headers=_bearer(token))
    user = _check(r)["data"]["user"]
    click.secho("Current user:", bold=True)
    _print_user(user)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@main.command()
@token_option
def tokens(token: Optional[str]):
    """List active tokens (truncated)."""
    _run(_tokens_impl(_require_token(token)))


async def _tokens_impl(token: str):
    async with _client() as c:
        r = await c.get(f"{AUTH}/tokens", headers=_bearer(token))
    data = _check(r)["data"]
    click.secho(f"{data['count']} active token(s)", bold=True)
    for t in data["tokens"]:
        last_used = t.get("lastUsedAt") or "—"
        click.echo(f"  {t['token']:26s}  {t['description']:14s}  last used {last_used}")


@main.command()
@token_option
@click.option("--keep-old", is_flag=True, help="Do not revoke the current token")
def rotate(token: Optional[str], keep_old: bool):
    """Swap the current token for a new one and print it."""
    _run(_rotate_impl(_require_token(token), keep_old))


async def _rotate_impl(token: str, keep_old: bool):
    async with _client() as c:
        r = await c.post(
            f"{AUTH}/rotate",
            json={"revokeOld": not keep_old},
            headers=_bearer(token),
        )
    data = _check(r)["data"]
    if data["revokedOldToken"]:
        click.secho("Old token revoked.", fg="yellow", err=True)
    click.echo(data["token"])


@main.command()
@click.argument("target", required=False)
@token_option
def revoke(target: Optional[str], token: Optional[str]):
    """Revoke TARGET, or the current token if omitted."""
    _run(_revoke_impl(_require_token(token), target))


async def _revoke_impl(token: str, target: Optional[str]):
    body = {"token": target} if target else {}
    async with _client() as c:
        r = await c.post(f"{AUTH}/revoke", json=body, headers=_bearer(token))
    click.secho(_check(r)["message"], fg="green")


@main.command("revoke-all")
@token_option
@click.confirmation_option(prompt="Revoke every token on this account?")
def revoke_all(token: Optional[str]):
    """Revoke every token on the account, the current one included."""
    _run(_revoke_all_impl(_require_token(token)))


async def _revoke_all_impl(token: str):
    async with _client() as c:
        r = await c.post(f"{AUTH}/revoke-all", headers=_bearer(token))
    click.secho(_check(r)["message"], fg="green")


if __name__ == "__main__":
    main()
