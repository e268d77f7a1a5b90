"""Interactive Telethon login for the ``client`` Telegram method.

Run once through ``newsreel login``; the resulting session file is reused by
every later ``send``. ``LOGIN_METHOD``, ``PHONE`` and ``TELEGRAM_2FA`` can be
set in ``.env`` to skip the matching prompts.
"""

from __future__ import annotations

import asyncio
import logging
import os
from getpass import getpass
from typing import Awaitable, Callable, Dict, Tuple

import qrcode
from telethon import TelegramClient, errors

LOGGER = logging.getLogger(__name__)

QR_TIMEOUT_SECONDS = 60
QR_ATTEMPTS = 3
CODE_ATTEMPTS = 3


def _show_qr_code(url: str) -> None:
    code = qrcode.QRCode(border=2)
    code.add_data(url)
    code.print_ascii(invert=True)


async def _login_with_qr(client: TelegramClient) -> None:
    qr_login = await client.qr_login()
    for attempt in range(1, QR_ATTEMPTS + 1):
        _show_qr_code(qr_login.url)
        print("Telegram > Settings > Devices > Link Desktop Device, then scan.")
        try:
            await qr_login.wait(timeout=QR_TIMEOUT_SECONDS)
            return
        except asyncio.TimeoutError:
            if attempt == QR_ATTEMPTS:
                raise RuntimeError("QR login was not confirmed in time") from None
            LOGGER.info("QR code expired; generating a new one")
            await qr_login.recreate()


async def _login_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE", "").strip() or input("Phone (+country code): ").strip()
    await client.send_code_request(phone)
    for attempt in range(1, CODE_ATTEMPTS + 1):
        try:
            await client.sign_in(phone=phone, code=input("Code from Telegram: ").strip())
            return
        except errors.PhoneCodeInvalidError:
            if attempt == CODE_ATTEMPTS:
                raise
            print("That code was not accepted, try again.")


async def _submit_password(client: TelegramClient) -> None:
    password = os.getenv("TELEGRAM_2FA")
    for attempt in range(1, CODE_ATTEMPTS + 1):
        try:
            await client.sign_in(password=password or getpass("Cloud password (2FA): "))
            return
        except errors.PasswordHashInvalidError:
            if attempt == CODE_ATTEMPTS:
                raise
            password = None
            print("Wrong password.")


Authorizer = Callable[[TelegramClient], Awaitable[None]]

_METHODS: Dict[str, Tuple[str, Authorizer]] = {
    "1": ("qr", _login_with_qr),
    "2": ("phone", _login_with_phone),
}


def _choose_method() -> Authorizer:
    preset = os.getenv("LOGIN_METHOD", "").strip().lower()
    for name, authorizer in _METHODS.values():
        if name == preset:
            return authorizer

    menu = "  ".join(f"[{key}] {name}" for key, (name, _) in _METHODS.items())
    while True:
        choice = input(f"Sign in with {menu}  [q] quit\nnewsreel > ").strip().lower()
        if choice == "q":
            raise SystemExit(0)
        if choice in _METHODS:
            return _METHODS[choice][1]


async def authorize(client: TelegramClient) -> None:
    """Log the client in unless its session is already authorized."""

    if await client.is_user_authorized():
        LOGGER.info("Session is already authorized")
        return

    authorizer = _choose_method()
    try:
        await authorizer(client)
    except errors.SessionPasswordNeededError:
        await _submit_password(client)


async def login(client: TelegramClient) -> None:
    """Connect, authorize and report who the session belongs to."""

    await client.connect()
    try:
        await authorize(client)
        account = await client.get_me()
        LOGGER.info("Session saved for %s (@%s)", account.first_name, account.username or "-")
    finally:
        await client.disconnect()
