from typing import List, Optional

import httpx

from app.client.live import LiveQuery
from app.client.optimistic import OptimisticCounters
from app.core.errors import FeedError, UnauthenticatedError, error_from_code


class FeedClient:
    """Async client for the feed API; every call raises the server's typed error."""

    def __init__(self, base_url: str = "", token: Optional[str] = None, http: Optional[httpx.AsyncClient] = None):
        self.token = token
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=15.0)

    def sign_in(self, token: str) -> None:
        self.token = token

    def sign_out(self) -> None:
        self.token = None

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, url: str, auth: bool = True, **kwargs):
        headers = kwargs.pop("headers", {})
        if auth:
            if not self.token:
                raise UnauthenticatedError("Not signed in")
            headers["Authorization"] = f"Bearer {self.token}"
        response = await self._http.request(method, url, headers=headers, **kwargs)
        if response.is_error:
            raise self._error(response)
        return response.json()

    @staticmethod
    def _error(response: httpx.Response) -> FeedError:
        try:
            body = response.json()
        except ValueError:
            return FeedError(response.text or f"HTTP {response.status_code}")
        detail = body.get("detail")
        return error_from_code(body.get("code", ""), detail if isinstance(detail, str) else str(detail))

    # users
    async def sync_user(self, name: str, email: str, avatar: Optional[str] = None) -> int:
        result = await self._request("POST", "/api/auth/sync", json={"name": name, "email": email, "avatar": avatar})
        return result["user_id"]

    async def get_current_user(self) -> Optional[dict]:
        return await self._request("GET", "/api/users/me")

    async def update_avatar(self, avatar: str) -> dict:
        return await self._request("PUT", "/api/users/me/avatar", json={"avatar": avatar})

    # storage
    async def generate_upload_url(self) -> dict:
        return await self._request("POST", "/api/storage/upload-url")

    async def upload(self, upload_url: str, data: bytes, content_type: str) -> str:
        result = await self._request(
            "POST", upload_url, auth=False, content=data, headers={"Content-Type": content_type}
        )
        return result["storageId"]

    async def upload_image(self, data: bytes, content_type: str) -> str:
        ticket = await self.generate_upload_url()
        return await self.upload(ticket["uploadUrl"], data, content_type)

    # posts
    async def create_post(self, content: str, image: Optional[str] = None) -> int:
        result = await self._request("POST", "/api/posts/", json={"content": content, "image": image})
        return result["id"]

    async def update_post(self, post_id: int, content: str) -> int:
        result = await self._request("PATCH", f"/api/posts/{post_id}", json={"content": content})
        return result["version"]

    async def delete_post(self, post_id: int) -> None:
        await self._request("DELETE", f"/api/posts/{post_id}")

    async def share_post(self, post_id: int) -> None:
        await self._request("POST", f"/api/posts/{post_id}/share")

    async def get_all_posts(self) -> List[dict]:
        return await self._request("GET", "/api/posts/", auth=False)

    async def get_user_posts(self, user_id: int) -> List[dict]:
        return await self._request("GET", f"/api/posts/user/{user_id}", auth=False)

    # likes
    async def toggle_like(self, post_id: int) -> bool:
        result = await self._request("POST", f"/api/likes/{post_id}/toggle")
        return result["liked"]

    async def has_user_liked(self, post_id: int) -> bool:
        result = await self._request("GET", f"/api/likes/{post_id}/me")
        return result["liked"]

    async def get_post_likes(self, post_id: int) -> List[dict]:
        return await self._request("GET", f"/api/likes/{post_id}", auth=False)

    # comments
    async def create_comment(self, post_id: int, content: str) -> dict:
        return await self._request("POST", "/api/comments/", json={"post_id": post_id, "content": content})

    async def delete_comment(self, comment_id: int) -> dict:
        return await self._request("DELETE", f"/api/comments/{comment_id}")

    async def get_post_comments(self, post_id: int) -> List[dict]:
        return await self._request("GET", f"/api/comments/post/{post_id}", auth=False)


class FeedSession:
    """State behind a feed screen: the live feed plus optimistic comment counts."""

    def __init__(self, client: FeedClient, sub_id: str = "feed"):
        self.client = client
        self.feed = LiveQuery(sub_id, "posts.getAllPosts")
        self.comment_counts = OptimisticCounters()

    def apply(self, message: dict) -> bool:
        """Feed a live-query frame from the socket into the session."""
        changed = self.feed.apply(message)
        if changed:
            for post in self.feed.value:
                self.comment_counts.observe(post["id"], post["version"])
        return changed

    def posts(self) -> Optional[List[dict]]:
        """Feed with displayed comment counts, or None while still loading."""
        if self.feed.loading:
            return None
        return [
            {**post, "comments_count": self.comment_counts.display(post["id"], post["comments_count"])}
            for post in self.feed.value
        ]

    async def add_comment(self, post_id: int, content: str) -> int:
        token = self.comment_counts.advance(post_id, 1)
        try:
            result = await self.client.create_comment(post_id, content)
        except (FeedError, httpx.HTTPError):
            self.comment_counts.revert(token)
            raise
        self.comment_counts.confirm(token, result["post_version"])
        return result["id"]

    async def remove_comment(self, post_id: int, comment_id: int) -> None:
        token = self.comment_counts.advance(post_id, -1)
        try:
            result = await self.client.delete_comment(comment_id)
        except (FeedError, httpx.HTTPError):
            self.comment_counts.revert(token)
            raise
        if result.get("post_version") is None:
            # the post itself is gone; nothing left to reconcile against
            self.comment_counts.revert(token)
        else:
            self.comment_counts.confirm(token, result["post_version"])

    def sign_out(self) -> None:
        self.client.sign_out()
