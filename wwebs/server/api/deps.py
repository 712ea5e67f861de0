"""
Dependency Injection for the server API.

Manage request handler dependencies using FastAPI Depends.
"""

from typing import Annotated

from fastapi import Depends, Request

from ..services.processor import RequestProcessor


def get_request_processor(request: Request) -> RequestProcessor:
    return request.app.state.request_processor


RequestProcessorDep = Annotated[RequestProcessor, Depends(get_request_processor)]
