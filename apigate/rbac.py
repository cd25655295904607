"""RBAC matching of declared scopes against the requested method and resource."""

from typing import Iterable

from .errors import ScopeMismatchError
from .models import RequestDescriptor, ScopeDescriptor


def match_rbac(request: RequestDescriptor, scopes: Iterable[ScopeDescriptor]) -> None:
    """
    Succeed if any declared scope equals the request exactly.

    No wildcard or partial matching. Raises ScopeMismatchError otherwise.
    """
    for scope in scopes:
        if request.matches(scope):
            return
    raise ScopeMismatchError(
        details={"method": request.method, "resource": request.resource},
    )
