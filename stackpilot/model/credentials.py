"""Cluster credentials."""

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from pydantic import BaseModel


class ClusterCredentials(BaseModel):
    """How to reach a cluster: a kubeconfig file or inline kubeconfig content."""

    kubeconfig_path: Optional[Path] = None
    kubeconfig: Optional[str] = None
    context: Optional[str] = None

    def __repr__(self) -> str:
        # Never print inline kubeconfig content
        inline = "<inline>" if self.kubeconfig else None
        return (
            f"ClusterCredentials(kubeconfig_path={self.kubeconfig_path!r}, "
            f"kubeconfig={inline!r}, context={self.context!r})"
        )

    __str__ = __repr__

    @contextmanager
    def materialize(self) -> Iterator[Optional[Path]]:
        """Yield a kubeconfig path usable by kubectl/helm.

        Inline content is written to a private temporary file that is removed
        when the context exits. Yields None when the ambient kubeconfig applies.
        """
        if not self.kubeconfig:
            yield self.kubeconfig_path
            return

        fd, path = tempfile.mkstemp(prefix="stackpilot-kubeconfig-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w") as handle:
                handle.write(self.kubeconfig)
            yield Path(path)
        finally:
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass
