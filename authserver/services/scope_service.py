"""Scope negotiation

A scope is a set of short dot-namespaced permission strings. The granted
scope of every token is computed by `intersect`, which is shared by the
authorization request, implicit, password and client_credentials grants and
the consent dialog.
"""

from collections.abc import Iterable

DEFAULT_SCOPE = "auth.none"
OFFLINE_ACCESS_SCOPE = "offline_access"


class ScopeService:
    """Pure set logic over client, user and requested scopes"""

    def intersect(
        self,
        requested_scope: Iterable[str] | None,
        allowed_scope: Iterable[str] | None,
        default_scope: Iterable[str] | None = None,
        role: Iterable[str] | None = None,
        has_user: bool = False,
    ) -> list[str]:
        """
        Compute the granted scope

        Args:
            requested_scope: Scope asked for in the request (may be empty)
            allowed_scope: Client's allowed scope
            default_scope: Client's default scope, used when nothing was requested
            role: User's role, the user's maximal permitted scope
            has_user: Whether a user takes part in the grant

        Returns:
            Sorted granted scope, or ["auth.none"] if a required input is
            missing or empty
        """
        allowed = set(allowed_scope or ())
        user_role = set(role or ())
        if not allowed or (has_user and not user_role):
            return [DEFAULT_SCOPE]

        requested = set(requested_scope or ())
        if requested:
            granted = requested & allowed
        else:
            granted = allowed & set(default_scope or ())

        if has_user:
            granted &= user_role

        return sorted(granted)

    def has_offline_access(self, scope: Iterable[str]) -> bool:
        """Check whether a scope makes its grant eligible for a refresh token"""
        return OFFLINE_ACCESS_SCOPE in set(scope)

    def has_any(self, scope: Iterable[str], required: Iterable[str]) -> bool:
        """Check whether scope contains at least one of the required values"""
        return not set(scope).isdisjoint(required)

    def to_scope_string(self, scope: Iterable[str] | None) -> str:
        """Join a scope set into a comma-separated string"""
        return ",".join(s.strip() for s in scope or () if s.strip())

    def parse_scope_list(self, scope_string: str | None) -> list[str]:
        """
        Split a human-edited scope string into a list

        Commas and whitespace both separate values, so the OAuth2
        space-delimited form is accepted as well. Duplicates are dropped
        and first-seen order is kept.
        """
        if not scope_string:
            return []
        values = scope_string.replace(",", " ").split()
        return list(dict.fromkeys(values))


# Global instance
scope_service = ScopeService()
