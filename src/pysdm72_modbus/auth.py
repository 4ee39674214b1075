"""
Authorization gate for settings changes.

The meter only accepts settings writes while key parameter programming
authorization (KPPA) is granted; it is obtained by writing the password to
the KPPA register. The state belongs to the device and is re-read before
every mutation. Between the read and the password write another master may
change it; this check-then-act race is a limitation of the protocol.
"""

import asyncio
import logging
import time

from .aio import AsyncSDM72Client
from .client import SDM72Client
from .errors import AuthorizationError
from .values import KPPA, Password

logger = logging.getLogger(__name__)


def ensure_authorization(
    client: SDM72Client,
    password: Password | None,
    delay: float = 0.0,
    verify: bool = False,
) -> KPPA:
    """
    Make sure settings writes are authorized, writing ``password`` if needed.

    Raises AuthorizationError when authorization is missing and no password is
    given, or when ``verify`` is set and the meter still reports not authorized
    after the password write.
    """
    state = client.kppa()
    if state is KPPA.AUTHORIZED:
        logger.debug("Settings access already authorized")
        return state
    if password is None:
        raise AuthorizationError("Authorization is required to change settings, but no password was given")

    if delay > 0:
        time.sleep(delay)
    logger.info("Requesting settings authorization")
    client.set_kppa(password)
    if not verify:
        return KPPA.AUTHORIZED

    if delay > 0:
        time.sleep(delay)
    state = client.kppa()
    if state is not KPPA.AUTHORIZED:
        raise AuthorizationError("Authorization failed, the meter did not accept the password")
    return state


async def ensure_authorization_async(
    client: AsyncSDM72Client,
    password: Password | None,
    delay: float = 0.0,
    verify: bool = False,
) -> KPPA:
    """Cooperative twin of ensure_authorization."""
    state = await client.kppa()
    if state is KPPA.AUTHORIZED:
        logger.debug("Settings access already authorized")
        return state
    if password is None:
        raise AuthorizationError("Authorization is required to change settings, but no password was given")

    if delay > 0:
        await asyncio.sleep(delay)
    logger.info("Requesting settings authorization")
    await client.set_kppa(password)
    if not verify:
        return KPPA.AUTHORIZED

    if delay > 0:
        await asyncio.sleep(delay)
    state = await client.kppa()
    if state is not KPPA.AUTHORIZED:
        raise AuthorizationError("Authorization failed, the meter did not accept the password")
    return state
