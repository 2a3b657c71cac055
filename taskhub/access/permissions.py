"""DRF permission classes backed by the guards."""

from __future__ import annotations

from rest_framework.permissions import BasePermission

from .guards import Action
from .guards import allow
from .guards import log_denial
from .roles import is_global_admin

_METHOD_ACTIONS = {
    "GET": Action.READ,
    "HEAD": Action.READ,
    "OPTIONS": Action.READ,
    "PUT": Action.UPDATE,
    "PATCH": Action.UPDATE,
    "DELETE": Action.DELETE,
}


class IsGlobalAdmin(BasePermission):
    """Allow only users whose global role is admin, or superusers."""

    def has_permission(self, request, view) -> bool:
        return is_global_admin(getattr(request, "user", None))


class ResourceGuardPermission(BasePermission):
    """Object-level check that maps the HTTP method onto a guard action.

    Views may set ``guard_actions`` (``{view.action: Action}``, or
    ``{view.action: {method: Action}}``) to override the method mapping for
    custom actions. For updates the payload keys are passed
    through so field-restricted rules can inspect them.
    """

    def has_object_permission(self, request, view, obj) -> bool:
        overrides = getattr(view, "guard_actions", {}) or {}
        action = overrides.get(getattr(view, "action", None))
        if isinstance(action, dict):
            action = action.get(request.method)
        if action is None:
            action = _METHOD_ACTIONS.get(request.method, Action.UPDATE)
        fields = None
        if action == Action.UPDATE and hasattr(request.data, "keys"):
            fields = list(request.data.keys())
        if allow(request.user, action, obj, fields=fields):
            return True
        log_denial(request.user, action, obj)
        return False
