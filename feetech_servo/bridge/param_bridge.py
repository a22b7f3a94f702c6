"""
Parameter bridge: read and write servo parameters by id.

Parameter ids look like "<servo_id>:<param>", e.g. "1:position_p_gain".
Every access goes through the controller's generic parameter interface.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Tuple

from ..core.actor import MailboxActor
from ..core.errors import InvalidParamId, ReadOnlyParam, TorqueMustBeDisabled, UnknownParam
from ..core.messages import GetControlTable, ListServos, Read, Write
from . import param_metadata
from .param_metadata import ParamCategory, ParamInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteParam:
    """One servo parameter as listed by the bridge."""
    id: str
    servo_id: int
    name: str
    category: ParamCategory
    writable: bool
    requires_torque_off: bool
    doc: str


class ParamBridge:
    """Exposes the parameters of every registered servo."""

    def __init__(self, controller: MailboxActor):
        self.controller = controller
        self.control_table = controller.call(GetControlTable())

    def list_remote(self) -> List[RemoteParam]:
        servo_ids = self.controller.call(ListServos())
        params = []
        for servo_id in servo_ids:
            for name in param_metadata.list_params(self.control_table):
                info = param_metadata.param_info(name)
                params.append(RemoteParam(
                    id=f"{servo_id}:{name}",
                    servo_id=servo_id,
                    name=name,
                    category=info.category,
                    writable=info.writable,
                    requires_torque_off=info.requires_torque_off,
                    doc=info.doc,
                ))
        return params

    def get_remote(self, param_id: str) -> Any:
        servo_id, name, _info = self._resolve(param_id)
        return self.controller.call(Read(servo_id, name))

    def set_remote(self, param_id: str, value: Any) -> None:
        """
        Write a parameter.

        Raises:
            InvalidParamId, UnknownParam, ReadOnlyParam
            TorqueMustBeDisabled: config parameter written while torque is on
        """
        servo_id, name, info = self._resolve(param_id)
        if not info.writable:
            raise ReadOnlyParam(name)

        if info.requires_torque_off and self.controller.call(Read(servo_id, "torque_enable")):
            raise TorqueMustBeDisabled(name, servo_id)

        self.controller.call(Write(servo_id, name, value))
        logger.info("[ParamBridge] Servo %d %s = %r", servo_id, name, value)

    def _resolve(self, param_id: str) -> Tuple[int, str, ParamInfo]:
        servo_id, name = parse_param_id(param_id)
        info = param_metadata.param_info(name)
        if info is None:
            raise UnknownParam(name)
        return servo_id, name, info


def parse_param_id(param_id: str) -> Tuple[int, str]:
    servo_part, sep, name = param_id.partition(":")
    if not sep or not name:
        raise InvalidParamId(param_id)
    try:
        return int(servo_part), name
    except ValueError:
        raise InvalidParamId(param_id) from None
