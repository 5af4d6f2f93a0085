"""Tests for MemoryGateway (HTTP client side of the memories API)."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from src.errors import StorageError, ValidationError
from src.images import Attachment
from src.map.gateway import MemoryGateway

BASE = "http://api.test"


@pytest.fixture
def gateway() -> MemoryGateway:
    return MemoryGateway(base_url=BASE + "/")


def _mock_httpx_client(mock_client_cls: MagicMock, response: httpx.Response) -> AsyncMock:
    """Wire up an AsyncClient context-manager mock that returns *response*."""
    mock_client = AsyncMock()
    mock_client.request.return_value = response
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


def _response(payload=None, status_code: int = 200, text: str | None = None) -> httpx.Response:
    if text is not None:
        return httpx.Response(status_code=status_code, text=text)
    return httpx.Response(status_code=status_code, json=payload)


def _record(id: str = "abc", **kwargs) -> dict:
    return {
        "id": id,
        "message": "hello",
        "receiver": "Alice",
        "latitude": 40.7,
        "longitude": -74.0,
        "time": "2024-01-01T00:00:00+00:00",
        "has_image": False,
        **kwargs,
    }


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


async def test_create_sends_json_without_image(gateway: MemoryGateway) -> None:
    resp = _response({"success": True, "data": [_record()]}, status_code=201)

    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(mock_cls, resp)
        memory = await gateway.create("hello", "Alice", -74.0, 40.7)

    args, kwargs = mock_client.request.call_args
    assert args == ("POST", f"{BASE}/api/submit")
    assert kwargs["json"] == {"message": "hello", "receiver": "Alice", "latitude": 40.7, "longitude": -74.0}
    assert memory.id == "abc"
    assert (memory.latitude, memory.longitude) == (40.7, -74.0)
    assert not memory.has_image


async def test_create_sends_multipart_with_image(gateway: MemoryGateway) -> None:
    record = _record(has_image=True, image_path="memories/a.jpg", image_url="http://blobs/a.jpg")
    resp = _response({"success": True, "data": [record]}, status_code=201)
    image = Attachment(filename="a.jpg", data=b"\xff\xd8jpeg", content_type="image/jpeg", compressed=True)

    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(mock_cls, resp)
        memory = await gateway.create("hello", "Alice", -74.0, 40.7, image=image)

    kwargs = mock_client.request.call_args.kwargs
    assert kwargs["data"]["latitude"] == "40.7"
    assert kwargs["data"]["longitude"] == "-74.0"
    assert kwargs["files"] == {"image": ("a.jpg", b"\xff\xd8jpeg", "image/jpeg")}
    assert memory.image_url == "http://blobs/a.jpg"


@pytest.mark.parametrize(("message", "receiver"), [("", "Alice"), ("hi", "  ")])
async def test_create_blank_fields_rejected_locally(
    gateway: MemoryGateway, message: str, receiver: str
) -> None:
    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        with pytest.raises(ValidationError, match="Please fill in all fields"):
            await gateway.create(message, receiver, 0, 0)
    mock_cls.assert_not_called()


async def test_create_bad_request_surfaces_server_message(gateway: MemoryGateway) -> None:
    resp = _response({"success": False, "error": "latitude out of range: 91"}, status_code=400)
    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, resp)
        with pytest.raises(ValidationError, match="latitude out of range"):
            await gateway.create("hi", "Bob", 0, 91)


async def test_create_server_error(gateway: MemoryGateway) -> None:
    resp = _response({"success": False, "error": "Failed to store memory"}, status_code=500)
    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, resp)
        with pytest.raises(StorageError, match="500"):
            await gateway.create("hi", "Bob", 0, 0)


async def test_create_without_id_is_invalid(gateway: MemoryGateway) -> None:
    resp = _response({"success": True, "data": []}, status_code=201)
    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, resp)
        with pytest.raises(StorageError, match="Invalid response"):
            await gateway.create("hi", "Bob", 0, 0)


@pytest.mark.parametrize("entry", ["abc", None, ["abc"]])
async def test_create_non_object_record_is_invalid(gateway: MemoryGateway, entry) -> None:
    resp = _response({"success": True, "data": [entry]}, status_code=201)
    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, resp)
        with pytest.raises(StorageError, match="Invalid response"):
            await gateway.create("hi", "Bob", 0, 0)


async def test_transport_error_becomes_storage_error(gateway: MemoryGateway) -> None:
    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(mock_cls, _response([]))
        mock_client.request.side_effect = httpx.ConnectError("refused")
        with pytest.raises(StorageError, match="refused"):
            await gateway.create("hi", "Bob", 0, 0)


# ---------------------------------------------------------------------------
# list / search
# ---------------------------------------------------------------------------


async def test_list_all(gateway: MemoryGateway) -> None:
    resp = _response([_record("a"), _record("b")])
    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(mock_cls, resp)
        memories = await gateway.list_all()

    assert mock_client.request.call_args.args == ("GET", f"{BASE}/api/messages")
    assert [m.id for m in memories] == ["a", "b"]


async def test_list_skips_malformed_records(gateway: MemoryGateway) -> None:
    resp = _response([{"id": "x"}, _record("ok")])
    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, resp)
        memories = await gateway.list_all()
    assert [m.id for m in memories] == ["ok"]


async def test_list_rejects_non_list_body(gateway: MemoryGateway) -> None:
    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, _response({"data": []}))
        with pytest.raises(StorageError):
            await gateway.list_all()


async def test_list_invalid_json(gateway: MemoryGateway) -> None:
    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, _response(text="<html>oops</html>"))
        with pytest.raises(StorageError, match="invalid JSON"):
            await gateway.list_all()


async def test_search_passes_receiver(gateway: MemoryGateway) -> None:
    resp = _response([_record("a", receiver="Alice")])
    with patch("src.map.gateway.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(mock_cls, resp)
        memories = await gateway.search_by_receiver("ali")

    args, kwargs = mock_client.request.call_args
    assert args == ("GET", f"{BASE}/api/search")
    assert kwargs["params"] == {"receiver": "ali"}
    assert memories[0].receiver == "Alice"


async def test_search_blank_rejected(gateway: MemoryGateway) -> None:
    with pytest.raises(ValidationError, match="Missing receiver"):
        await gateway.search_by_receiver("  ")
