"""Kubernetes client wrapper."""

import json
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..errors import ConnectivityError, ProbeError, ProbePermissionError
from ..utils.logger import get_logger

logger = get_logger(__name__)

PERMISSION_MARKERS = ("forbidden", "cannot list", "unauthorized")


class K8sClient:
    """Wrapper for kubectl commands."""

    def __init__(
        self,
        context: Optional[str] = None,
        namespace: Optional[str] = None,
        kubeconfig: Optional[Path] = None,
        request_timeout: int = 30,
    ):
        self.context = context
        self.namespace = namespace
        self.kubeconfig = kubeconfig
        self.request_timeout = request_timeout
        self._verify_kubectl()

    def _verify_kubectl(self):
        """Verify kubectl is available."""
        try:
            subprocess.run(
                ["kubectl", "version", "--client", "-o", "json"],
                capture_output=True,
                text=True,
                check=True,
            )
            logger.debug("kubectl verified successfully")
        except FileNotFoundError:
            raise ConnectivityError("kubectl command not found. Please install kubectl.")
        except subprocess.CalledProcessError:
            logger.warning("kubectl verification failed")

    def _build_command(self, args: List[str]) -> List[str]:
        """Build kubectl command with kubeconfig, context and namespace."""
        cmd = ["kubectl"]

        if self.kubeconfig:
            cmd.extend(["--kubeconfig", str(self.kubeconfig)])

        if self.context:
            cmd.extend(["--context", self.context])

        cmd.extend(args)

        if self.namespace and "--all-namespaces" not in args and "-n" not in args:
            cmd.extend(["-n", self.namespace])

        return cmd

    def execute(self, args: List[str]) -> Tuple[bool, str]:
        """Execute kubectl command and return success status and output."""
        cmd = self._build_command(args)
        logger.debug(f"Executing: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.request_timeout + 5,
            )
            return True, result.stdout
        except subprocess.CalledProcessError as e:
            logger.debug(f"Command failed: {e.stderr}")
            return False, e.stderr or ""
        except subprocess.TimeoutExpired:
            logger.debug(f"Command timed out: {' '.join(cmd)}")
            return False, f"kubectl timed out after {self.request_timeout}s"

    def get_version(self) -> Dict[str, Any]:
        """Get cluster version information.

        Raises ConnectivityError when the server version cannot be read.
        """
        success, output = self.execute(
            ["version", "-o", "json", f"--request-timeout={self.request_timeout}s"]
        )
        if not success:
            raise ConnectivityError(
                "Failed to reach the cluster control plane", details={"output": output.strip()}
            )
        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            raise ConnectivityError("Failed to parse cluster version output")

        if not data.get("serverVersion"):
            raise ConnectivityError("Cluster did not report a server version")
        return data

    def list_items(
        self,
        resource_type: str,
        namespace: Optional[str] = None,
        all_namespaces: bool = False,
    ) -> List[Dict[str, Any]]:
        """List resources of one type and return their ``items``.

        Raises ProbePermissionError when RBAC denies the request and
        ProbeError for any other failure.
        """
        args = ["get", resource_type]

        if all_namespaces:
            args.append("--all-namespaces")
        elif namespace:
            args.extend(["-n", namespace])

        args.extend(["-o", "json", f"--request-timeout={self.request_timeout}s"])

        success, output = self.execute(args)
        if not success:
            lowered = output.lower()
            if any(marker in lowered for marker in PERMISSION_MARKERS):
                raise ProbePermissionError(
                    f"Permission denied listing {resource_type}", resource_type=resource_type
                )
            raise ProbeError(
                f"Failed to list {resource_type}: {output.strip()}", resource_type=resource_type
            )

        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            raise ProbeError(
                f"Failed to parse {resource_type} output", resource_type=resource_type
            )
        return data.get("items", [])
