"""Core data model: register table enum, wire representation, and RegisterParam."""

from dataclasses import dataclass
from enum import Enum


class RegisterTable(str, Enum):
    """Modbus register tables used by the SDM72."""

    HOLDING_REGISTER = "holding_register"
    INPUT_REGISTER = "input_register"


class WireType(str, Enum):
    """Big-endian binary layout a register value is transmitted as."""

    FLOAT32 = "float32"
    UINT16 = "uint16"
    UINT32 = "uint32"

    @property
    def word_count(self) -> int:
        """Number of 16-bit words the representation occupies."""
        return 1 if self is WireType.UINT16 else 2


@dataclass(frozen=True)
class RegisterParam:
    """Static register descriptor: name, start address, word quantity, wire type, table."""

    name: str
    address: int
    quantity: int
    wire_type: WireType
    table: RegisterTable = RegisterTable.HOLDING_REGISTER

    def __post_init__(self) -> None:
        if not 0 <= self.address <= 0xFFFF:
            raise ValueError(f"address must be in 0..0xFFFF, got {self.address:#x}")
        if self.quantity != self.wire_type.word_count:
            raise ValueError(
                f"{self.name}: quantity {self.quantity} does not match "
                f"{self.wire_type.value} ({self.wire_type.word_count} words)"
            )
        if self.address + self.quantity > 0x10000:
            raise ValueError(f"{self.name}: register range exceeds address space")

    @property
    def byte_length(self) -> int:
        return self.quantity * 2

    @property
    def end(self) -> int:
        """Address one past the last word of the register."""
        return self.address + self.quantity
