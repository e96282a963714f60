"""Helm client for interacting with Helm."""

import json
import os
import platform
import shutil
import stat
import subprocess
import tarfile
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple

import requests
from pydantic import BaseModel

from ..config import STATE_DIR
from ..errors import BootstrapError, SourceRegistrationError
from ..model.credentials import ClusterCredentials
from ..model.plan import DeploymentStep
from ..utils.logger import get_logger

logger = get_logger(__name__)

HELM_DOWNLOAD_URL = "https://get.helm.sh/helm-{version}-{os}-{arch}.tar.gz"
TIMEOUT_EXIT_STATUS = 124
NOT_EXECUTABLE_EXIT_STATUS = 126

ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


class HelmRepository(BaseModel):
    """Helm repository information."""

    name: str
    url: str


class PackageManager(ABC):
    """Driver the step executor uses to install packages."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return True when the tool can be invoked right now."""

    @abstractmethod
    def ensure_installed(self) -> None:
        """Make the tool available, installing it if needed. Raises BootstrapError."""

    @abstractmethod
    def add_source(self, name: str, url: str) -> None:
        """Register a package repository. Repeat calls are no-ops."""

    @abstractmethod
    def install(
        self,
        step: DeploymentStep,
        values_path: Path,
        credentials: ClusterCredentials,
        timeout: int,
    ) -> Tuple[str, int]:
        """Install the step's package and return (combined output, exit status)."""

    @abstractmethod
    def run_command(
        self, argv: List[str], credentials: ClusterCredentials, timeout: int
    ) -> Tuple[str, int]:
        """Run a raw step command and return (combined output, exit status)."""


def _decode(output) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode(errors="replace")
    return output


def run_bounded(cmd: List[str], timeout: int, env: Optional[dict] = None) -> Tuple[str, int]:
    """Run a command with stderr folded into stdout.

    The child is killed when the timeout expires or when the caller is
    interrupted while waiting.
    """
    logger.debug(f"Executing: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
            env=env,
        )
        return result.stdout or "", result.returncode
    except subprocess.TimeoutExpired as e:
        output = _decode(e.stdout)
        return f"{output}\nCommand timed out after {timeout}s".lstrip(), TIMEOUT_EXIT_STATUS
    except FileNotFoundError:
        return f"Command not found: {cmd[0]}", 127
    except OSError as e:
        return f"Cannot execute {cmd[0]}: {e}", NOT_EXECUTABLE_EXIT_STATUS


class HelmClient(PackageManager):
    """Client for Helm operations."""

    def __init__(
        self,
        version: str = "v3.15.0",
        bin_dir: Optional[Path] = None,
        namespace: str = "default",
    ):
        self.version = version
        self.bin_dir = Path(bin_dir) if bin_dir else STATE_DIR / "bin"
        self.namespace = namespace
        self._helm_path: Optional[str] = None

    @property
    def helm_path(self) -> str:
        return self._helm_path or self._locate_helm() or "helm"

    def _locate_helm(self) -> Optional[str]:
        found = shutil.which("helm")
        if found:
            return found
        local = self.bin_dir / "helm"
        if local.exists():
            return str(local)
        return None

    def _check_helm(self) -> bool:
        """Check if Helm is available."""
        path = self._locate_helm()
        if not path:
            return False
        try:
            subprocess.run([path, "version"], capture_output=True, check=True)
        except (subprocess.CalledProcessError, FileNotFoundError):
            logger.warning("Helm not available")
            return False
        self._helm_path = path
        return True

    def is_available(self) -> bool:
        return self._helm_path is not None or self._check_helm()

    def _execute(self, args: List[str]) -> Tuple[bool, str]:
        """Execute Helm command."""
        if not self.is_available():
            return False, "Helm not available"

        cmd = [self.helm_path] + args
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=True)
            return True, result.stdout
        except subprocess.CalledProcessError as e:
            return False, e.stderr

    def ensure_installed(self) -> None:
        """Install Helm into ``bin_dir`` if it is not already usable."""
        if self.is_available():
            return

        logger.info(f"Helm not found, installing {self.version} into {self.bin_dir}")
        try:
            self._install_helm()
        except (requests.RequestException, tarfile.TarError, OSError) as e:
            raise BootstrapError(f"Failed to install helm: {e}") from e

        if not self._check_helm():
            raise BootstrapError("Helm was installed but does not run")
        logger.info(f"Helm installed at {self._helm_path}")

    def _download_url(self) -> str:
        system = platform.system().lower()
        machine = platform.machine().lower()
        arch = ARCH_ALIASES.get(machine)
        if system not in ("linux", "darwin") or arch is None:
            raise BootstrapError(f"No helm build for platform {system}/{machine}")
        return HELM_DOWNLOAD_URL.format(version=self.version, os=system, arch=arch)

    def _install_helm(self) -> None:
        url = self._download_url()
        member_suffix = "/helm"

        with tempfile.TemporaryDirectory(prefix="stackpilot-helm-") as tmp:
            archive = Path(tmp) / "helm.tar.gz"
            with requests.get(url, stream=True, timeout=60) as response:
                response.raise_for_status()
                with open(archive, "wb") as handle:
                    for chunk in response.iter_content(chunk_size=65536):
                        handle.write(chunk)

            with tarfile.open(archive, "r:gz") as tar:
                member = next(
                    (m for m in tar.getmembers() if m.isfile() and m.name.endswith(member_suffix)),
                    None,
                )
                if member is None:
                    raise BootstrapError(f"Helm binary not found in {url}")
                source = tar.extractfile(member)
                if source is None:
                    raise BootstrapError(f"Helm binary not readable in {url}")

                self.bin_dir.mkdir(parents=True, exist_ok=True)
                target = self.bin_dir / "helm"
                with source, open(target, "wb") as handle:
                    shutil.copyfileobj(source, handle)

        mode = os.stat(target).st_mode
        os.chmod(target, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    def get_repositories(self) -> List[HelmRepository]:
        """Get configured Helm repositories.

        ``helm repo list`` fails when nothing is configured; that reads as empty.
        """
        success, output = self._execute(["repo", "list", "-o", "json"])

        if not success:
            return []

        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            logger.error("Failed to parse Helm repositories")
            return []

        return [HelmRepository(name=item.get("name", ""), url=item.get("url", "")) for item in data or []]

    def add_source(self, name: str, url: str) -> None:
        """Add a Helm repository unless one with the same URL exists."""
        normalized = url.rstrip("/")
        existing = self.get_repositories()

        if any(repo.url.rstrip("/") == normalized for repo in existing):
            logger.debug(f"Repository {url} already registered")
            return

        args = ["repo", "add", name, url]
        if any(repo.name == name for repo in existing):
            args.append("--force-update")

        success, output = self._execute(args)
        if not success:
            raise SourceRegistrationError(
                f"Failed to add helm repository {name}", name=name, url=url, output=output
            )

        success, output = self._execute(["repo", "update", name])
        if not success:
            raise SourceRegistrationError(
                f"Failed to update helm repository {name}", name=name, url=url, output=output
            )
        logger.info(f"Added helm repository {name} ({url})")

    def _cluster_flags(self, kubeconfig: Optional[Path], credentials: ClusterCredentials) -> List[str]:
        flags = []
        if kubeconfig:
            flags.extend(["--kubeconfig", str(kubeconfig)])
        if credentials.context:
            flags.extend(["--kube-context", credentials.context])
        return flags

    def build_install_command(
        self,
        step: DeploymentStep,
        values_path: Path,
        kubeconfig: Optional[Path],
        credentials: ClusterCredentials,
        timeout: int,
    ) -> List[str]:
        """Build the ``helm upgrade --install`` command line for a step."""
        package = step.package
        if package is None:
            raise ValueError(f"Step {step.id} is not bound to a package")

        cmd = [
            self.helm_path,
            "upgrade",
            "--install",
            package.name,
            package.chart_reference,
            "--values",
            str(values_path),
            "--namespace",
            step.namespace or self.namespace,
            "--create-namespace",
            "--wait",
            "--timeout",
            f"{timeout}s",
        ]
        if package.version:
            cmd.extend(["--version", package.version])
        cmd.extend(self._cluster_flags(kubeconfig, credentials))
        return cmd

    def install(
        self,
        step: DeploymentStep,
        values_path: Path,
        credentials: ClusterCredentials,
        timeout: int,
    ) -> Tuple[str, int]:
        with credentials.materialize() as kubeconfig:
            cmd = self.build_install_command(step, values_path, kubeconfig, credentials, timeout)
            # Give helm's own --wait a moment to report before we kill it
            return run_bounded(cmd, timeout + 30)

    def run_command(
        self, argv: List[str], credentials: ClusterCredentials, timeout: int
    ) -> Tuple[str, int]:
        with credentials.materialize() as kubeconfig:
            env = None
            if kubeconfig:
                env = dict(os.environ, KUBECONFIG=str(kubeconfig))
            return run_bounded(argv, timeout, env=env)
