"""Per-operation policy overrides.

Exceptions to the generic compile/dispatch behaviour live here, keyed by
operation id, so each one can be audited and tested on its own.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional


PROXY_USERS_OPERATION = "getProxyUsers"

ResponseFormatter = Callable[[Any], Optional[List[str]]]


@dataclass(frozen=True)
class OperationPolicy:
    # Only applied when the declared path equals ``force_trailing_slash_path``.
    force_trailing_slash_path: Optional[str] = None
    proxy_user_selection: bool = False
    response_formatter: Optional[ResponseFormatter] = None


def _proxy_user_records(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        records = payload
    elif isinstance(payload, dict) and isinstance(payload.get("items"), list):
        records = payload["items"]
    else:
        return []

    users: List[Dict[str, Any]] = []
    for record in records:
        if not isinstance(record, dict):
            continue
        user_id = record.get("id")
        if user_id is None or str(user_id) == "":
            continue
        name = record.get("name")
        users.append({"id": str(user_id), "name": str(name) if name else None})
    return users


def format_proxy_users(payload: Any) -> Optional[List[str]]:
    """Render a proxy-user listing as a numbered list plus a structured block.

    Returns ``None`` when the payload does not look like a user listing.
    """
    users = _proxy_user_records(payload)
    if not users:
        return None

    lines = "\n".join(
        f"{index}. {user['name'] or 'Unnamed'} (ID: {user['id']})"
        for index, user in enumerate(users, start=1)
    )
    example = json.dumps({"proxy_user_id": users[0]["id"]})
    listing = (
        f"Available Proxy Users:\n\n{lines}\n\n"
        f"To set a proxy user for subsequent API calls, call {PROXY_USERS_OPERATION} again "
        "with the 'proxy_user_id' parameter set to one of the IDs above.\n\n"
        f"Example: Call {PROXY_USERS_OPERATION} with arguments: {example}"
    )
    structured = json.dumps({"proxyUsers": users, "selected": None}, indent=2)
    return [listing, f"\n\n[STRUCTURED_DATA]\n{structured}\n[/STRUCTURED_DATA]"]


def proxy_user_confirmation(proxy_user_id: str) -> str:
    return (
        f"Proxy user successfully set to: {proxy_user_id}\n\n"
        "This proxy user will be used for all subsequent API calls until changed."
    )


OPERATION_POLICIES: Dict[str, OperationPolicy] = {
    # The upstream only answers the proxy listing on "/account/", although the
    # published document declares "/account".
    PROXY_USERS_OPERATION: OperationPolicy(
        force_trailing_slash_path="/account",
        proxy_user_selection=True,
        response_formatter=format_proxy_users,
    ),
}


def policy_for(operation_id: str) -> OperationPolicy:
    return OPERATION_POLICIES.get(operation_id, OperationPolicy())
