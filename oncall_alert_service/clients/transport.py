"""Outbound HTTP helper shared by all provider clients."""

import logging
from typing import Dict, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, SecretStr, ValidationError

from oncall_alert_service.config.logging import LoggingService

logger = logging.getLogger(__name__)
logging_service = LoggingService(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

MAX_LOGGED_BODY = 512


def truncate_body(text: str, limit: int = MAX_LOGGED_BODY) -> str:
    """Trim a response body so it can be logged or embedded in an error."""
    text = text.strip()
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...[{len(text) - limit} more characters]"


class TransportError(Exception):
    """Base class for failures talking to an external provider."""


class HttpRequestError(TransportError):
    """The request could not be executed (connection refused, DNS, timeout)."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"failed to execute request to {url!r}: {cause}")


class HttpErrorResponse(TransportError):
    """The provider answered with a 4xx/5xx and a readable body."""

    def __init__(self, status: int, url: str, body: str):
        self.status = status
        self.url = url
        self.body = body
        super().__init__(
            f"http response {status} for {url!r} with response body {truncate_body(body)!r}"
        )


class HttpErrorResponseUndecodable(TransportError):
    """The provider answered with a 4xx/5xx whose body could not be read."""

    def __init__(self, status: int, url: str, decode_error: Exception):
        self.status = status
        self.url = url
        self.decode_error = decode_error
        super().__init__(
            f"http response {status} for {url!r} with an undecodable response body: {decode_error}"
        )


class ParseJsonError(TransportError):
    """A successful response did not contain the expected JSON document."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"failed to parse json response from {url!r}: {cause}")


def path_segment(value: str, safe: str = "") -> str:
    """Percent-encode a value so it stays one url path segment.

    Dots of a bare ``.`` or ``..`` are encoded as well, otherwise a relative
    join would resolve them away and change the endpoint.
    """
    segment = quote(value, safe=safe)
    if segment in (".", ".."):
        return segment.replace(".", "%2E")
    return segment


def build_auth_headers(credential: SecretStr) -> Dict[str, str]:
    """Return the outbound Authorization header for a provider credential.

    This is the only place a credential is revealed.
    """
    return {"Authorization": credential.get_secret_value()}


async def raise_for_error_status(response: httpx.Response) -> httpx.Response:
    """Raise if the response is a client or server error, keeping its body.

    ``httpx.Response.raise_for_status`` drops the body, which is usually the
    only explanation a provider gives for rejecting a request.
    """
    if not (response.is_client_error or response.is_server_error):
        return response

    url = str(response.request.url)
    try:
        raw = await response.aread()
        body = raw.decode(response.encoding or "utf-8")
    except (httpx.HTTPError, UnicodeDecodeError, LookupError) as e:
        logging_service.log_operation(
            "warning",
            "Upstream error response with undecodable body",
            operation="http_request",
            url=url,
            status_code=response.status_code,
            error=str(e),
        )
        raise HttpErrorResponseUndecodable(response.status_code, url, e) from e

    logging_service.log_operation(
        "warning",
        "Upstream returned error response",
        operation="http_request",
        url=url,
        status_code=response.status_code,
        body=repr(truncate_body(body)),
    )
    raise HttpErrorResponse(response.status_code, url, body.strip())


async def send_request(client: httpx.AsyncClient, request: httpx.Request) -> httpx.Response:
    """Send a request and fail on transport errors and error statuses."""
    url = str(request.url)
    try:
        response = await client.send(request)
    except httpx.HTTPError as e:
        logging_service.log_error(
            "Request to upstream failed",
            e,
            operation="http_request",
            url=url,
        )
        raise HttpRequestError(url, e) from e

    logger.debug("Got response from server", extra={"url": url, "status_code": response.status_code})
    return await raise_for_error_status(response)


async def send_json_request(client: httpx.AsyncClient, request: httpx.Request,
                            response_model: Type[ModelT]) -> ModelT:
    """Send a request and parse the JSON body of a successful response.

    Args:
        client: Shared HTTP client
        request: Fully built request, see ``httpx.AsyncClient.build_request``
        response_model: Pydantic model the body is validated into

    Returns:
        The parsed response body

    Raises:
        HttpRequestError: If the request could not be sent
        HttpErrorResponse: If the provider answered with 4xx/5xx
        HttpErrorResponseUndecodable: Same, but the body was not readable
        ParseJsonError: If the body is not valid JSON for ``response_model``
    """
    response = await send_request(client, request)
    try:
        return response_model.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        logging_service.log_error(
            "Failed to parse upstream response",
            e,
            operation="http_request",
            url=str(request.url),
            body=repr(truncate_body(response.text)),
        )
        raise ParseJsonError(str(request.url), e) from e
