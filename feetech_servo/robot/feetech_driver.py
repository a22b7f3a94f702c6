"""
Feetech STS/SMS bus driver on top of scservo_sdk.

Single-servo access uses the packet handler's read/write helpers, batched
access uses GroupSyncRead / GroupSyncWrite, staged writes use REG_WRITE and
commit_staged sends one broadcast ACTION.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from scservo_sdk import GroupSyncRead, GroupSyncWrite, PortHandler
from scservo_sdk.scservo_def import BROADCAST_ID, COMM_SUCCESS
from scservo_sdk.sms_sts import sms_sts

from ..core.errors import CommunicationError, DriverStartError
from .bus_driver import BusDriver
from .control_table import ControlTable, Register


class FeetechDriver(BusDriver):
    """
    One open serial port shared by every servo on the bus.

    All transactions hold an internal lock: the controller actor is the
    normal caller, but safety disarm hooks run on other threads.
    """

    def __init__(self):
        self.port_handler: Optional[PortHandler] = None
        self.packet_handler: Optional[sms_sts] = None
        self.control_table: Optional[ControlTable] = None
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def start(self, port: str, baud_rate: int, control_table: ControlTable) -> None:
        try:
            port_handler = PortHandler(port)
            if not port_handler.openPort():
                raise DriverStartError(f"failed to open port {port}")
            if not port_handler.setBaudRate(baud_rate):
                port_handler.closePort()
                raise DriverStartError(f"failed to set baud rate {baud_rate} on {port}")
        except OSError as e:
            raise DriverStartError(e) from e

        self.port_handler = port_handler
        self.packet_handler = sms_sts(port_handler)
        self.control_table = control_table
        self._logger.info("[FeetechDriver] Opened %s at %d baud (%s)", port, baud_rate, control_table.name)

    def stop(self) -> None:
        with self._lock:
            if self.port_handler is not None:
                self.port_handler.closePort()
            self.port_handler = None
            self.packet_handler = None
        self._logger.info("[FeetechDriver] Closed")

    @property
    def is_alive(self) -> bool:
        return self.port_handler is not None and bool(self.port_handler.is_open)

    # ------------------------------------------------------------------
    # Single servo
    # ------------------------------------------------------------------

    def read(self, servo_id: int, param: str) -> Any:
        return self._table().to_units(param, self.read_raw(servo_id, param))

    def read_raw(self, servo_id: int, param: str) -> int:
        register = self._register(param)
        ph = self._handler()
        with self._lock:
            try:
                if register.size == 1:
                    value, result, error = ph.read1ByteTxRx(servo_id, register.address)
                else:
                    value, result, error = ph.read2ByteTxRx(servo_id, register.address)
            except OSError as e:
                raise CommunicationError(f"read {param}", e, servo_id) from e
        self._check(f"read {param}", result, error, servo_id)
        return value

    def write(self, servo_id: int, param: str, value: Any, wait_for_ack: bool = True) -> None:
        raw = self._table().from_units(param, value)
        self.write_raw(servo_id, param, raw, wait_for_ack=wait_for_ack)

    def write_raw(self, servo_id: int, param: str, value: int, wait_for_ack: bool = True) -> None:
        register = self._register(param)
        ph = self._handler()
        error = 0
        with self._lock:
            try:
                if wait_for_ack:
                    if register.size == 1:
                        result, error = ph.write1ByteTxRx(servo_id, register.address, value)
                    else:
                        result, error = ph.write2ByteTxRx(servo_id, register.address, value)
                elif register.size == 1:
                    result = ph.write1ByteTxOnly(servo_id, register.address, value)
                else:
                    result = ph.write2ByteTxOnly(servo_id, register.address, value)
            except OSError as e:
                raise CommunicationError(f"write {param}", e, servo_id) from e
        self._check(f"write {param}", result, error, servo_id)

    def ping(self, servo_id: int) -> Dict[str, Any]:
        ph = self._handler()
        with self._lock:
            try:
                model_number, result, error = ph.ping(servo_id)
            except OSError as e:
                raise CommunicationError("ping", e, servo_id) from e
        if result != COMM_SUCCESS:
            raise CommunicationError("ping", ph.getTxRxResult(result), servo_id)
        return {"servo_id": servo_id, "model_number": model_number, "error": error}

    # ------------------------------------------------------------------
    # Batched
    # ------------------------------------------------------------------

    def bulk_read(self, servo_ids: Sequence[int], param: str) -> List[Any]:
        table = self._table()
        return [table.to_units(param, raw) for raw in self._bulk_read_raw(servo_ids, param)]

    def _bulk_read_raw(self, servo_ids: Sequence[int], param: str) -> List[int]:
        register = self._register(param)
        ph = self._handler()
        group = GroupSyncRead(ph, register.address, register.size)
        for servo_id in servo_ids:
            if not group.addParam(servo_id):
                raise CommunicationError(f"bulk read {param}", "duplicate id", servo_id)

        with self._lock:
            try:
                result = group.txRxPacket()
            except OSError as e:
                raise CommunicationError(f"bulk read {param}", e) from e
        if result != COMM_SUCCESS:
            raise CommunicationError(f"bulk read {param}", ph.getTxRxResult(result))

        values = []
        for servo_id in servo_ids:
            available, _error = group.isAvailable(servo_id, register.address, register.size)
            if not available:
                raise CommunicationError(f"bulk read {param}", "no data", servo_id)
            values.append(group.getData(servo_id, register.address, register.size))
        return values

    def bulk_write(self, param: str, values: Sequence[Tuple[int, Any]]) -> None:
        table = self._table()
        self.bulk_write_raw(param, [(servo_id, table.from_units(param, v)) for servo_id, v in values])

    def bulk_write_raw(self, param: str, values: Sequence[Tuple[int, int]]) -> None:
        if not values:
            return
        register = self._register(param)
        ph = self._handler()
        group = GroupSyncWrite(ph, register.address, register.size)
        for servo_id, value in values:
            if not group.addParam(servo_id, self._to_bytes(value, register)):
                raise CommunicationError(f"bulk write {param}", "duplicate id", servo_id)

        with self._lock:
            try:
                result = group.txPacket()
            except OSError as e:
                raise CommunicationError(f"bulk write {param}", e) from e
            finally:
                group.clearParam()
        if result != COMM_SUCCESS:
            raise CommunicationError(f"bulk write {param}", ph.getTxRxResult(result))

    def staged_write(self, servo_id: int, param: str, value: Any) -> None:
        register = self._register(param)
        raw = self._table().from_units(param, value)
        ph = self._handler()
        with self._lock:
            try:
                result, error = ph.regWriteTxRx(
                    servo_id, register.address, register.size, self._to_bytes(raw, register)
                )
            except OSError as e:
                raise CommunicationError(f"staged write {param}", e, servo_id) from e
        self._check(f"staged write {param}", result, error, servo_id)

    def commit_staged(self) -> None:
        ph = self._handler()
        with self._lock:
            try:
                result = ph.action(BROADCAST_ID)
            except OSError as e:
                raise CommunicationError("commit staged writes", e) from e
        if result != COMM_SUCCESS:
            raise CommunicationError("commit staged writes", ph.getTxRxResult(result))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _handler(self) -> sms_sts:
        if self.packet_handler is None:
            raise CommunicationError("bus access", "driver is not started")
        return self.packet_handler

    def _table(self) -> ControlTable:
        if self.control_table is None:
            raise CommunicationError("bus access", "driver is not started")
        return self.control_table

    def _register(self, param: str) -> Register:
        try:
            return self._table().register(param)
        except KeyError as e:
            raise CommunicationError(f"access {param}", e.args[0]) from None

    def _to_bytes(self, value: int, register: Register) -> List[int]:
        if register.size == 1:
            return [value & 0xFF]
        ph = self._handler()
        return [ph.scs_lobyte(value), ph.scs_hibyte(value)]

    def _check(self, operation: str, result: int, error: int, servo_id: int) -> None:
        if result != COMM_SUCCESS:
            raise CommunicationError(operation, self._handler().getTxRxResult(result), servo_id)
        if error:
            self._logger.debug(
                "[FeetechDriver] Servo %d status byte after %s: %s",
                servo_id, operation, self._handler().getRxPacketError(error),
            )
