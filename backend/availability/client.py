"""Async HTTP client for the Availability API with a small read cache.

Reads are cached per resource key (``groups``, ``group:<id>``,
``events:<group_id>``, ``event:<id>``, ``responses:<event_id>``,
``invite:<token>``, ``dashboard``, ``profile``). Every mutation drops the
keys whose data it can change, so a later read goes back to the server.
"""

import logging
from typing import Any
from uuid import UUID

import httpx

from availability.auth.settings import auth_settings

logger = logging.getLogger(__name__)


class AvailabilityAPIError(Exception):
    def __init__(self, status_code: int, detail: str, errors: list | None = None):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
        self.errors = errors or []


class ResourceCache:
    def __init__(self):
        self._entries: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def invalidate(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()


class AvailabilityClient:
    def __init__(
        self,
        base_url: str,
        session_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 20.0,
    ):
        cookies = {auth_settings.COOKIE_NAME: session_token} if session_token else None
        self._http = httpx.AsyncClient(
            base_url=base_url, cookies=cookies, transport=transport, timeout=timeout
        )
        self.cache = ResourceCache()

    async def __aenter__(self) -> "AvailabilityClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, url: str, json: dict | None = None) -> Any:
        try:
            response = await self._http.request(method, url, json=json)
        except httpx.RequestError as e:
            logger.error("Request error on %s %s: %s", method, url, e)
            raise

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {"detail": response.text}
            logger.debug("%s %s failed with %s", method, url, response.status_code)
            raise AvailabilityAPIError(
                response.status_code, body.get("detail", ""), body.get("errors"))
        return response.json()

    async def _cached(self, key: str, url: str, refresh: bool = False) -> Any:
        if not refresh and key in self.cache:
            return self.cache.get(key)
        data = await self._request("GET", url)
        self.cache.set(key, data)
        return data

    def _forget_event(self, event_id: UUID | str) -> None:
        """Drop an event and the group-level reads that embed it."""
        cached = self.cache.get(f"event:{event_id}")
        if cached and cached.get("group_id"):
            self.cache.invalidate(f"events:{cached['group_id']}", f"group:{cached['group_id']}")
        else:
            self.cache.invalidate_prefix("events:")
            self.cache.invalidate_prefix("group:")
        self.cache.invalidate(f"event:{event_id}", f"responses:{event_id}", "dashboard")

    # -- Session --------------------------------------------------------------

    async def sign_out(self) -> dict:
        """End the session and drop everything cached for this user."""
        result = await self._request("POST", "/auth/signout")
        self._http.cookies.clear()
        self.cache.clear()
        return result

    # -- Dashboard and profile ------------------------------------------------

    async def get_dashboard(self, refresh: bool = False) -> dict:
        return await self._cached("dashboard", "/dashboard", refresh)

    async def get_profile(self, refresh: bool = False) -> dict:
        return await self._cached("profile", "/profile", refresh)

    async def update_profile(self, name: str) -> dict:
        user = await self._request("PUT", "/profile", {"name": name})
        self.cache.invalidate("profile")
        return user

    # -- Groups ---------------------------------------------------------------

    async def list_groups(self, refresh: bool = False) -> list[dict]:
        return await self._cached("groups", "/groups/", refresh)

    async def get_group(self, group_id: UUID | str, refresh: bool = False) -> dict:
        return await self._cached(f"group:{group_id}", f"/groups/{group_id}", refresh)

    async def create_group(self, name: str, description: str | None = None) -> dict:
        group = await self._request(
            "POST", "/groups/", {"name": name, "description": description})
        self.cache.invalidate("groups", "dashboard")
        return group

    async def update_group(self, group_id: UUID | str, **changes) -> dict:
        group = await self._request("PUT", f"/groups/{group_id}", changes)
        self.cache.invalidate("groups", f"group:{group_id}")
        return group

    async def delete_group(self, group_id: UUID | str) -> dict:
        result = await self._request("DELETE", f"/groups/{group_id}")
        self._forget_group(group_id)
        return result

    async def leave_group(self, group_id: UUID | str) -> dict:
        result = await self._request("DELETE", f"/groups/{group_id}/leave")
        self._forget_group(group_id)
        return result

    def _forget_group(self, group_id: UUID | str) -> None:
        self.cache.invalidate(
            "groups", f"group:{group_id}", f"events:{group_id}", "dashboard", "profile")

    async def update_member_role(
        self, group_id: UUID | str, user_id: UUID | str, role: str
    ) -> dict:
        member = await self._request(
            "PATCH", f"/groups/{group_id}/members/{user_id}", {"role": role})
        self.cache.invalidate("groups", f"group:{group_id}")
        return member

    async def remove_member(self, group_id: UUID | str, user_id: UUID | str) -> dict:
        result = await self._request("DELETE", f"/groups/{group_id}/members/{user_id}")
        self.cache.invalidate("groups", f"group:{group_id}")
        return result

    # -- Invites --------------------------------------------------------------

    async def list_invites(self, group_id: UUID | str) -> list[dict]:
        return await self._request("GET", f"/groups/{group_id}/invites")

    async def send_invite(self, group_id: UUID | str, email: str) -> dict:
        result = await self._request("POST", f"/groups/{group_id}/invites", {"email": email})
        self.cache.invalidate(f"group:{group_id}")
        return result

    async def get_invite(self, token: str, refresh: bool = False) -> dict:
        return await self._cached(f"invite:{token}", f"/invites/{token}", refresh)

    async def respond_to_invite(self, token: str, action: str) -> dict:
        result = await self._request("POST", f"/invites/{token}", {"action": action})
        self.cache.invalidate(f"invite:{token}", "groups", "dashboard", "profile")
        if result.get("group_id"):
            self.cache.invalidate(f"group:{result['group_id']}")
        return result

    # -- Events and responses -------------------------------------------------

    async def list_events(self, group_id: UUID | str, refresh: bool = False) -> list[dict]:
        return await self._cached(f"events:{group_id}", f"/groups/{group_id}/events", refresh)

    async def get_event(self, event_id: UUID | str, refresh: bool = False) -> dict:
        return await self._cached(f"event:{event_id}", f"/events/{event_id}", refresh)

    async def create_event(self, group_id: UUID | str, **fields) -> dict:
        event = await self._request("POST", f"/groups/{group_id}/events", fields)
        self.cache.invalidate(f"events:{group_id}", f"group:{group_id}", "dashboard", "profile")
        return event

    async def update_event(self, event_id: UUID | str, **changes) -> dict:
        result = await self._request("PUT", f"/events/{event_id}", changes)
        self._forget_event(event_id)
        group_id = result.get("event", {}).get("group_id")
        if group_id:
            self.cache.invalidate(f"events:{group_id}", f"group:{group_id}")
        return result

    async def delete_event(self, event_id: UUID | str) -> dict:
        result = await self._request("DELETE", f"/events/{event_id}")
        self._forget_event(event_id)
        self.cache.invalidate("profile")
        return result

    async def list_responses(self, event_id: UUID | str, refresh: bool = False) -> list[dict]:
        return await self._cached(
            f"responses:{event_id}", f"/events/{event_id}/responses", refresh)

    async def submit_response(
        self, event_id: UUID | str, status: str, comment: str | None = None
    ) -> dict:
        result = await self._request(
            "POST", f"/events/{event_id}/responses", {"status": status, "comment": comment})
        self._forget_event(event_id)
        self.cache.invalidate("profile")
        return result
