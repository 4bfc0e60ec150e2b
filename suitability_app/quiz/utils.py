from __future__ import annotations

from dataclasses import dataclass
import ipaddress

from django.http import HttpRequest

USER_AGENT_LIMIT = 512


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _valid_ip(value: str) -> str | None:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


@dataclass(frozen=True)
class ClientInfo:
    """Request metadata stored alongside a submission."""

    ip_address: str | None = None
    user_agent: str = ""

    @classmethod
    def from_request(cls, request: HttpRequest) -> "ClientInfo":
        meta = request.META
        ip = None
        if meta.get("HTTP_CLIENT_IP"):
            ip = _valid_ip(meta["HTTP_CLIENT_IP"])
        if ip is None and meta.get("HTTP_X_FORWARDED_FOR"):
            # First hop is the original client
            ip = _valid_ip(meta["HTTP_X_FORWARDED_FOR"].split(",")[0])
        if ip is None and meta.get("REMOTE_ADDR"):
            ip = _valid_ip(meta["REMOTE_ADDR"])
        user_agent = (meta.get("HTTP_USER_AGENT") or "")[:USER_AGENT_LIMIT]
        return cls(ip_address=ip, user_agent=user_agent)

    def as_fields(self) -> dict:
        fields = {}
        if self.ip_address:
            fields["ip_address"] = self.ip_address
        if self.user_agent:
            fields["user_agent"] = self.user_agent
        return fields
