"""
RpcInvoker - named remote procedure calls for the IDM backend.

Runs through the same request pipeline as table queries, so auth,
refresh and error handling are identical.
"""

from typing import Optional, Dict, Any
from urllib.parse import quote

from .config import RPC_ENDPOINT
from .http import RequestPipeline
from .types import IdmResponse


class RpcInvoker:
    """Invokes server-side functions by name."""

    def __init__(self, pipeline: RequestPipeline) -> None:
        self._pipeline = pipeline

    async def invoke(
        self,
        function_name: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> IdmResponse[Any]:
        """POST params to the function endpoint. HTTP and transport failures raise."""
        path = f"{RPC_ENDPOINT}/{quote(function_name, safe='')}"
        response = await self._pipeline.api_fetch(
            path, "POST", params if params is not None else {}, headers
        )
        return IdmResponse(data=response.data, error=None)
