"""Kubernetes API client wrapper.

One ``KubernetesClient`` is bound to one kubeconfig context. Switching
context means connecting a new client, which keeps clients for different
clusters independent of each other (search talks to every context at once).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from kterm.integrations.kubernetes.exceptions import (
    KubernetesAuthError,
    KubernetesConflictError,
    KubernetesConnectionError,
    KubernetesError,
    KubernetesNotFoundError,
    KubernetesValidationError,
)

if TYPE_CHECKING:
    from kubernetes.client import ApiClient, AppsV1Api, CoreV1Api

logger = structlog.get_logger()

DEFAULT_NAMESPACE = "default"


class KubernetesClient:
    """Kubernetes API client for a single context.

    Wraps the official kubernetes Python client with:
    - Lazy API group initialization on a private ``ApiClient``
    - Kubeconfig context discovery helpers
    - Retry decorator for transient connection errors
    - Consistent error translation to custom exceptions

    Example:
        ```python
        with KubernetesClient.connect("kind-dev") as client:
            pods = client.core_v1.list_namespaced_pod("default")
        ```
    """

    def __init__(
        self,
        api_client: ApiClient,
        context: str,
        default_namespace: str = DEFAULT_NAMESPACE,
        retry_attempts: int = 3,
    ) -> None:
        """Initialize the client around an already configured ``ApiClient``.

        Args:
            api_client: Configured kubernetes ApiClient.
            context: Name of the kubeconfig context it was built from.
            default_namespace: Namespace used when none is given.
            retry_attempts: Attempts for retried operations.
        """
        self._api_client = api_client
        self._context = context
        self._default_namespace = default_namespace
        self._retries = max(retry_attempts, 1)

        self._core_v1: CoreV1Api | None = None
        self._apps_v1: AppsV1Api | None = None

    @classmethod
    def connect(
        cls,
        context: str,
        kubeconfig: str | None = None,
        retry_attempts: int = 3,
    ) -> KubernetesClient:
        """Build a client for ``context`` from kubeconfig.

        Args:
            context: Kubeconfig context name.
            kubeconfig: Kubeconfig path, or None for the default lookup.
            retry_attempts: Attempts for retried operations.

        Returns:
            A connected client.

        Raises:
            KubernetesConnectionError: If the context cannot be loaded.
        """
        from kubernetes import config
        from kubernetes.config import ConfigException

        try:
            api_client = config.new_client_from_config(config_file=kubeconfig, context=context)
        except (ConfigException, OSError, TypeError, ValueError) as e:
            raise KubernetesConnectionError(
                message=f"Failed to load context '{context}'",
                original_error=e,
            ) from e

        logger.debug("client_connected", context=context, kubeconfig=kubeconfig)
        return cls(
            api_client,
            context,
            default_namespace=cls.context_namespace(context, kubeconfig),
            retry_attempts=retry_attempts,
        )

    # =========================================================================
    # Lazy API Group Accessors
    # =========================================================================

    @property
    def core_v1(self) -> CoreV1Api:
        """Get CoreV1Api instance (pods, PVCs, namespaces, events)."""
        if self._core_v1 is None:
            from kubernetes.client import CoreV1Api

            self._core_v1 = CoreV1Api(self._api_client)
        return self._core_v1

    @property
    def apps_v1(self) -> AppsV1Api:
        """Get AppsV1Api instance (statefulsets)."""
        if self._apps_v1 is None:
            from kubernetes.client import AppsV1Api

            self._apps_v1 = AppsV1Api(self._api_client)
        return self._apps_v1

    @property
    def api_client(self) -> ApiClient:
        """The underlying ApiClient, used for serialization."""
        return self._api_client

    # =========================================================================
    # Kubeconfig Discovery
    # =========================================================================

    @staticmethod
    def _read_contexts(kubeconfig: str | None) -> tuple[list[dict[str, Any]], dict[str, Any] | None]:
        from kubernetes import config
        from kubernetes.config import ConfigException

        try:
            contexts, active = config.list_kube_config_contexts(config_file=kubeconfig)
        except (ConfigException, OSError) as e:
            raise KubernetesConnectionError(
                message="Failed to read kubeconfig",
                original_error=e,
            ) from e
        return contexts or [], active

    @classmethod
    def list_contexts(cls, kubeconfig: str | None = None) -> list[str]:
        """List context names in kubeconfig order.

        Raises:
            KubernetesConnectionError: If kubeconfig cannot be read.
        """
        contexts, _ = cls._read_contexts(kubeconfig)
        return [ctx.get("name", "") for ctx in contexts if ctx.get("name")]

    @classmethod
    def current_context(cls, kubeconfig: str | None = None) -> str:
        """Return the kubeconfig ``current-context`` (empty string if unset).

        Raises:
            KubernetesConnectionError: If kubeconfig cannot be read.
        """
        _, active = cls._read_contexts(kubeconfig)
        return (active or {}).get("name", "")

    @classmethod
    def context_namespace(cls, context: str, kubeconfig: str | None = None) -> str:
        """Return the namespace configured for ``context``, or "default"."""
        try:
            contexts, _ = cls._read_contexts(kubeconfig)
        except KubernetesConnectionError:
            return DEFAULT_NAMESPACE
        for ctx in contexts:
            if ctx.get("name") == context:
                return (ctx.get("context") or {}).get("namespace") or DEFAULT_NAMESPACE
        return DEFAULT_NAMESPACE

    # =========================================================================
    # Error Translation
    # =========================================================================

    @staticmethod
    def translate_api_exception(
        e: Exception,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> KubernetesError:
        """Translate a kubernetes ApiException to a custom exception.

        Args:
            e: The original exception.
            resource_type: Kind of object being operated on.
            resource_name: Name of the object.
            namespace: Namespace of the object.

        Returns:
            An appropriate KubernetesError subclass.
        """
        from kubernetes.client import ApiException
        from urllib3.exceptions import HTTPError

        if isinstance(e, KubernetesError):
            return e

        if isinstance(e, (HTTPError, ConnectionError)):
            return KubernetesConnectionError(message="API server unreachable", original_error=e)

        if not isinstance(e, ApiException):
            return KubernetesError(
                message=str(e),
                resource_type=resource_type,
                resource_name=resource_name,
                namespace=namespace,
            )

        status = e.status

        if status in (401, 403):
            return KubernetesAuthError(
                message=e.reason or "Authentication/authorization failed",
                status_code=status,
                reason=e.reason,
            )

        if status == 404:
            return KubernetesNotFoundError(
                resource_type=resource_type,
                resource_name=resource_name,
                namespace=namespace,
            )

        if status == 409:
            return KubernetesConflictError(
                resource_type=resource_type,
                resource_name=resource_name,
                namespace=namespace,
            )

        if status in (400, 422):
            return KubernetesValidationError(
                message=e.reason or "Validation failed",
                status_code=status,
            )

        return KubernetesError(
            message=e.reason or f"Kubernetes API error: {status}",
            status_code=status,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )

    # =========================================================================
    # Retry Decorator
    # =========================================================================

    def make_retry_decorator(self) -> Any:
        """Create a retry decorator for transient connection errors.

        Returns:
            A tenacity retry decorator configured with exponential backoff.
        """
        return retry(
            retry=retry_if_exception_type(KubernetesConnectionError),
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def context(self) -> str:
        """Name of the context this client talks to."""
        return self._context

    @property
    def default_namespace(self) -> str:
        """Namespace configured for the context in kubeconfig."""
        return self._default_namespace

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Close the client and release its connection pool."""
        self._core_v1 = None
        self._apps_v1 = None
        self._api_client.close()
        logger.debug("client_closed", context=self._context)

    def __enter__(self) -> KubernetesClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
