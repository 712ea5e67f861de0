"""
Process environment builder.

Marshals a Request into the environment variables handed to executed
programs:

    HEADER_<NAME>   one per header (upper-cased, "-" becomes "_")
    QUERY_<name>    one per query parameter (name kept verbatim)
    VERB            request method
    REQUESTED       request path
    PROTO           protocol the request arrived on
    STATUS          current response status (response-side stages only)
"""

import logging
import os
from typing import Dict, Mapping, Optional

from ..models.request import Request

logger = logging.getLogger("wwebs.env_builder")


def header_variable(name: str) -> str:
    return "HEADER_" + name.upper().replace("-", "_")


def query_variable(name: str) -> str:
    return "QUERY_" + name


def _is_valid(name: str, value: str) -> bool:
    return bool(name) and "=" not in name and "\0" not in name and "\0" not in value


class EnvironmentBuilder:
    def __init__(self, pass_path: bool = True):
        """
        Args:
            pass_path: forward the server's PATH to programs
        """
        self.pass_path = pass_path

    def build(
        self,
        request: Request,
        *,
        extra_env: Optional[Mapping[str, str]] = None,
        status: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, str]:
        """
        Build the environment for one program.

        Args:
            request: current request
            extra_env: `env` option of the layered directory config
            status: current response status; set only for response-side stages
            headers: headers to expose instead of the request's own

        Returns:
            Dict of variable name -> value
        """
        env: Dict[str, str] = {}

        def put(name: str, value: str) -> None:
            if _is_valid(name, value):
                env[name] = value
            else:
                logger.warning(f"Skipping environment variable with invalid name or value: {name!r}")

        put("PROTO", request.protocol)
        for name, value in (request.headers if headers is None else headers).items():
            put(header_variable(name), value)
        for name, value in request.query.items():
            put(query_variable(name), value)
        put("VERB", request.method)
        put("REQUESTED", request.path)

        for name, value in (extra_env or {}).items():
            put(name, value)

        if status is not None:
            env["STATUS"] = str(status)

        if self.pass_path and "PATH" in os.environ:
            env["PATH"] = os.environ["PATH"]

        return env
