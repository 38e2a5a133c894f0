"""Kubernetes integration exceptions.

Every failure that leaves the accessor layer is one of these, so the
dashboard can turn it into a single readable banner message.
"""

from __future__ import annotations


class KubernetesError(Exception):
    """Base exception for cluster operations.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code from the API server, if any.
        resource_type: Kind of the object involved (e.g. "Pod").
        resource_name: Name of the object involved.
        namespace: Namespace of the object involved.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.resource_type = resource_type
        self.resource_name = resource_name
        self.namespace = namespace

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code:
            parts.append(f"(status: {self.status_code})")
        if self.resource_type and self.resource_name:
            loc = f"[{self.resource_type}/{self.resource_name}"
            if self.namespace:
                loc += f" in {self.namespace}"
            loc += "]"
            parts.append(loc)
        return " ".join(parts)


class KubernetesConnectionError(KubernetesError):
    """Raised when a context cannot be loaded or its API server is unreachable."""

    def __init__(
        self,
        message: str = "Failed to connect to Kubernetes cluster",
        original_error: Exception | None = None,
    ) -> None:
        """Initialize KubernetesConnectionError.

        Args:
            message: Human-readable error message.
            original_error: The exception that caused this error.
        """
        super().__init__(message=message)
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error is not None:
            return f"{self.message}: {self.original_error}"
        return self.message


class KubernetesAuthError(KubernetesError):
    """Raised on 401/403 responses (bad credentials or RBAC denial)."""

    def __init__(
        self,
        message: str = "Kubernetes authentication/authorization failed",
        status_code: int | None = 401,
        reason: str | None = None,
    ) -> None:
        super().__init__(message=message, status_code=status_code)
        self.reason = reason


class KubernetesNotFoundError(KubernetesError):
    """Raised when the requested object does not exist (404)."""

    def __init__(
        self,
        message: str = "Kubernetes resource not found",
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        if resource_type and resource_name:
            message = f"{resource_type} '{resource_name}' not found"
            if namespace:
                message += f" in namespace '{namespace}'"
        super().__init__(
            message=message,
            status_code=404,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )


class KubernetesConflictError(KubernetesError):
    """Raised on 409 responses, typically a stale resourceVersion on replace."""

    def __init__(
        self,
        message: str = "Resource conflict",
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        if resource_type and resource_name:
            message = f"{resource_type} '{resource_name}' was modified concurrently"
            if namespace:
                message += f" in namespace '{namespace}'"
        super().__init__(
            message=message,
            status_code=409,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )


class KubernetesValidationError(KubernetesError):
    """Raised when the API server rejects an object (400/422) or the input is malformed."""

    def __init__(
        self,
        message: str = "Invalid resource specification",
        status_code: int | None = 422,
    ) -> None:
        super().__init__(message=message, status_code=status_code)


class UnsupportedActionError(KubernetesError):
    """Raised for an action that makes no sense for a resource type.

    Restarting a PersistentVolumeClaim is the only case today. The request
    is rejected before any API call is made.
    """

    def __init__(self, action: str, resource_type: str) -> None:
        """Initialize UnsupportedActionError.

        Args:
            action: Past participle of the requested action (e.g. "restarted").
            resource_type: Display name of the resource type.
        """
        super().__init__(message=f"{resource_type} cannot be {action}")
        self.action = action
