"""Parameter bridge over the controller's generic parameter interface."""

from .param_bridge import ParamBridge, RemoteParam, parse_param_id
from .param_metadata import ParamCategory, ParamInfo

__all__ = [
    "ParamBridge",
    "RemoteParam",
    "parse_param_id",
    "ParamCategory",
    "ParamInfo",
]
