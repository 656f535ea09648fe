from dataclasses import dataclass
from pathlib import Path

from kodo.config import Config, get_config, kodo_home
from kodo.logging import get_logger
from kodo.utils import sanitize_path_component

_logger = get_logger(__name__)


@dataclass(frozen=True)
class Paths:
    """Filesystem layout for one project (working directory)."""

    data_dir: Path
    cwd: Path

    @property
    def project_dir(self) -> Path:
        return self.data_dir / "projects" / sanitize_path_component(str(self.cwd))

    @property
    def sessions_db_path(self) -> Path:
        return self.project_dir / "sessions.db"

    @property
    def sessions_dir(self) -> Path:
        return self.project_dir / "sessions"

    @property
    def requests_dir(self) -> Path:
        return self.project_dir / "requests"

    def session_log_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}.jsonl"

    def request_log_path(self, request_id: str) -> Path:
        return self.requests_dir / f"{request_id}.jsonl"

    def scratch_dir(self, session_id: str) -> Path:
        return self.project_dir / "scratch" / session_id

    def ensure(self) -> None:
        for path in (self.project_dir, self.sessions_dir, self.requests_dir):
            path.mkdir(parents=True, exist_ok=True)


@dataclass
class Context:
    """Explicit handle passed to every resolver and decision call."""

    cwd: Path
    product_name: str
    version: str
    config: Config
    paths: Paths

    @classmethod
    def create(
        cls,
        cwd: str | Path,
        product_name: str,
        version: str,
        config_overrides: dict | None = None,
        data_dir: Path | None = None,
    ) -> "Context":
        cwd = Path(cwd).resolve()
        config = get_config(cwd, config_overrides)
        paths = Paths(data_dir=data_dir or kodo_home(), cwd=cwd)
        paths.ensure()
        _logger.debug("Context created for %s (project_dir=%s)", cwd, paths.project_dir)
        return cls(
            cwd=cwd,
            product_name=product_name.lower(),
            version=version,
            config=config,
            paths=paths,
        )
