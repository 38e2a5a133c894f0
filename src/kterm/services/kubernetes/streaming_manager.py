"""Pod log streaming."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from kterm.services.kubernetes.base import K8sBaseManager

DEFAULT_TAIL_LINES = 100


class LogStream:
    """Blocking iterator over the lines of a followed pod log.

    :meth:`close` may be called from another thread; it closes the HTTP
    response, which ends a blocked read.
    """

    def __init__(self, response: Any) -> None:
        self._response = response
        self._closed = False

    def __iter__(self) -> Iterator[str]:
        for line in self._response:
            if self._closed:
                return
            if isinstance(line, bytes):
                line = line.decode("utf-8", errors="replace")
            yield str(line).rstrip("\r\n")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._response.close()
        self._response.release_conn()


class StreamingManager(K8sBaseManager):
    """Manager for streaming pod logs."""

    _entity_name = "streaming"

    def stream_logs(
        self,
        pod_name: str,
        namespace: str | None = None,
        *,
        container: str | None = None,
        tail_lines: int | None = DEFAULT_TAIL_LINES,
    ) -> LogStream:
        """Follow the logs of a pod.

        Args:
            pod_name: Pod name.
            namespace: Target namespace.
            container: Specific container name.
            tail_lines: Number of existing lines to start from.

        Returns:
            A closeable line iterator.
        """
        ns = self._resolve_namespace(namespace)
        self._log.debug("streaming_logs", pod=pod_name, namespace=ns, container=container)

        kwargs: dict[str, Any] = {
            "name": pod_name,
            "namespace": ns,
            "follow": True,
            "_preload_content": False,
        }
        if container:
            kwargs["container"] = container
        if tail_lines is not None:
            kwargs["tail_lines"] = tail_lines

        try:
            response = self._client.core_v1.read_namespaced_pod_log(**kwargs)
        except Exception as e:
            self._handle_api_error(e, "Pod", pod_name, ns)
        return LogStream(response)
