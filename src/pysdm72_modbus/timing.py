"""RTU inter-frame timing: minimum safe delay between requests for a baud rate."""

import logging

from .values import BaudRate

logger = logging.getLogger(__name__)

# 1 start bit, 8 data bits, 1 parity bit, 1 stop bit
BITS_PER_CHARACTER = 11

# Modbus RTU frames are separated by a silent interval of 3.5 character times
SILENT_CHARACTERS = 3.5

# Fixed floor for baud rates above 19200
MINIMUM_DELAY_S = 0.00175


def minimum_rtu_delay(baud_rate: BaudRate | int) -> float:
    """
    Return the minimum delay in seconds between two RTU requests.

    The silent interval is truncated to whole milliseconds; when it drops
    below 1750 µs the fixed floor is used instead.
    """
    character_time_s = BITS_PER_CHARACTER / int(baud_rate)
    delay_ms = int(character_time_s * SILENT_CHARACTERS * 1000)
    delay_s = delay_ms / 1000
    return max(delay_s, MINIMUM_DELAY_S)


def check_rtu_delay(requested: float, baud_rate: BaudRate | int) -> float:
    """Clamp a requested delay in seconds to the RTU minimum for baud_rate."""
    minimum = minimum_rtu_delay(baud_rate)
    if requested < minimum:
        logger.warning(
            "RTU delay of %.4fs is below the minimum delay of %.4fs at %s baud, falling back to the minimum",
            requested,
            minimum,
            int(baud_rate),
        )
        return minimum
    return requested
