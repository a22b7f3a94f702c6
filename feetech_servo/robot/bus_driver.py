"""
Abstract serial bus driver.

The controller actor is the only caller. Converted-unit methods use the
control table's units (radians, volts, celsius, percent, bool); the *_raw
methods take and return register integers. Failures raise CommunicationError.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence, Tuple

from .control_table import ControlTable


class BusDriver(ABC):
    """
    Interface every bus backend implements (FeetechDriver, test fakes).
    """

    @abstractmethod
    def start(self, port: str, baud_rate: int, control_table: ControlTable) -> None:
        """
        Open the bus.

        Raises:
            DriverStartError: the port could not be opened or configured
        """

    @abstractmethod
    def stop(self) -> None:
        """Close the bus."""

    @property
    @abstractmethod
    def is_alive(self) -> bool:
        """True while the bus is open."""

    @abstractmethod
    def read(self, servo_id: int, param: str) -> Any:
        pass

    @abstractmethod
    def read_raw(self, servo_id: int, param: str) -> int:
        pass

    @abstractmethod
    def write(self, servo_id: int, param: str, value: Any, wait_for_ack: bool = True) -> None:
        pass

    @abstractmethod
    def write_raw(self, servo_id: int, param: str, value: int, wait_for_ack: bool = True) -> None:
        pass

    @abstractmethod
    def bulk_read(self, servo_ids: Sequence[int], param: str) -> List[Any]:
        """
        Read one parameter from many servos in a single transaction.

        Returns:
            Values in the order of servo_ids. Any failure fails the whole batch.
        """

    @abstractmethod
    def bulk_write(self, param: str, values: Sequence[Tuple[int, Any]]) -> None:
        pass

    @abstractmethod
    def bulk_write_raw(self, param: str, values: Sequence[Tuple[int, int]]) -> None:
        pass

    @abstractmethod
    def staged_write(self, servo_id: int, param: str, value: Any) -> None:
        """Store a write in the servo's pending buffer without applying it."""

    @abstractmethod
    def commit_staged(self) -> None:
        """Apply every staged write on the bus at once."""

    @abstractmethod
    def ping(self, servo_id: int) -> Dict[str, Any]:
        pass
