from __future__ import annotations

import json
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from admin_mirror.errors import UpstreamUnavailable


class UpstreamApi(Protocol):
    def fetch_orders(self, *, include_cleared: bool = True) -> list[dict]: ...

    def fetch_menu(self) -> list[dict]: ...

    def patch_order_status(self, order_id: str, status: str) -> Any: ...

    def post_refund(self, order_id: str) -> Any: ...

    def create_menu_item(self, payload: dict) -> Any: ...

    def patch_menu_item(self, menu_id: str, payload: dict) -> Any: ...

    def fetch_daily_code(self) -> dict: ...

    def regenerate_daily_code(self) -> Any: ...

    def clear_daily_code(self) -> Any: ...


class UpstreamClient:
    """Thin JSON client for the upstream order/menu API.

    Every call is a fresh request: no retries, no caching. Failures of any kind
    surface as ``UpstreamUnavailable`` carrying the status code and body text.
    """

    def __init__(self, *, base_url: str, token: str, timeout_seconds: int) -> None:
        self.base_url = base_url.rstrip('/')
        self.timeout_seconds = timeout_seconds
        self.headers = {
            'Authorization': f'Bearer {token}',
            'Accept': 'application/json',
        }

    def _request(self, method: str, path: str, payload: dict | None = None) -> Any:
        headers = dict(self.headers)
        data = None
        if payload is not None:
            data = json.dumps(payload).encode('utf-8')
            headers['Content-Type'] = 'application/json'
        req = Request(
            url=f'{self.base_url}{path}',
            data=data,
            headers=headers,
            method=method,
        )
        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                raw = response.read().decode('utf-8')
        except HTTPError as exc:
            body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
            raise UpstreamUnavailable(
                f'Upstream error {exc.code} on {method} {path}', status_code=exc.code, body=body
            ) from exc
        except URLError as exc:
            raise UpstreamUnavailable(f'Upstream network error on {method} {path}: {exc.reason}') from exc

        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise UpstreamUnavailable(f'Upstream returned invalid JSON on {method} {path}', body=raw) from exc

    def _list(self, path: str) -> list[dict]:
        parsed = self._request('GET', path)
        if not isinstance(parsed, list):
            raise UpstreamUnavailable(f'Upstream returned a non-list payload on GET {path}')
        return parsed

    def _record(self, method: str, path: str) -> dict:
        parsed = self._request(method, path)
        if not isinstance(parsed, dict):
            raise UpstreamUnavailable(f'Upstream returned a non-object payload on {method} {path}')
        return parsed

    def fetch_orders(self, *, include_cleared: bool = True) -> list[dict]:
        return self._list(f'/orders?includeCleared={1 if include_cleared else 0}')

    def fetch_menu(self) -> list[dict]:
        return self._list('/menu')

    def patch_order_status(self, order_id: str, status: str) -> Any:
        return self._request('PATCH', f'/orders/{quote(order_id, safe="")}', {'status': status})

    def post_refund(self, order_id: str) -> Any:
        return self._request('POST', f'/refund/{quote(order_id, safe="")}')

    def create_menu_item(self, payload: dict) -> Any:
        return self._request('POST', '/menu', payload)

    def patch_menu_item(self, menu_id: str, payload: dict) -> Any:
        return self._request('PATCH', f'/menu/{quote(menu_id, safe="")}', payload)

    def fetch_daily_code(self) -> dict:
        return self._record('GET', '/daily-code')

    def regenerate_daily_code(self) -> Any:
        return self._request('POST', '/daily-code/regen')

    def clear_daily_code(self) -> Any:
        return self._request('POST', '/daily-code/clear')
