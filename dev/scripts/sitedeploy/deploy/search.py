"""
Elasticsearch indices for sites using search_api_elasticsearch.
"""

from __future__ import annotations

import urllib.error
import urllib.request
from pathlib import Path

from sitedeploy.core.config import DeployConfig
from sitedeploy.core.errors import SearchIndexError
from sitedeploy.core.process import ProcessRunner
from sitedeploy.core.utils import log
from sitedeploy.deploy.collaborators import SearchIndex

SEARCH_MODULE = "search_api_elasticsearch"
ELASTICA_SERVICE_CLASS = "search_api_elasticsearch_elastica_service"
INDEX_QUERY = (
    "SELECT sai.machine_name FROM search_api_index sai "
    "INNER JOIN search_api_server sas ON sai.server = sas.machine_name "
    f"WHERE sas.class = '{ELASTICA_SERVICE_CLASS}'"
)


def uses_elasticsearch(www_dir: Path, profile_name: str) -> bool:
    return (www_dir / "profiles" / profile_name / "modules" / "contrib" / SEARCH_MODULE).exists()


def index_name(db_name: str, machine_name: str) -> str:
    return f"elasticsearch_index_{db_name}_{machine_name}"


class ElasticsearchClient:
    """Search-index client over plain HTTP."""

    def __init__(self, timeout: float = 10):
        self.timeout = timeout

    def _request(self, method: str, url: str) -> int:
        request = urllib.request.Request(url, method=method)
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                return response.status
        except urllib.error.HTTPError as e:
            return e.code
        except urllib.error.URLError as e:
            raise SearchIndexError(f"Search server unreachable at {url}: {e.reason}") from e

    def index_exists(self, base_url: str, index_name: str) -> bool:
        status = self._request("HEAD", base_url + index_name)
        if status == 404:
            return False
        if 200 <= status < 300:
            return True
        raise SearchIndexError(f"HEAD {base_url}{index_name} returned {status}")

    def create_index(self, base_url: str, index_name: str) -> None:
        status = self._request("PUT", base_url + index_name)
        if not 200 <= status < 300:
            raise SearchIndexError(f"PUT {base_url}{index_name} returned {status}")


def search_index_machine_names(config: DeployConfig, runner: ProcessRunner, db_name: str) -> list[str]:
    """Machine names of the site's Elasticsearch-backed search_api indices."""
    stack = config.stack
    result = runner.run([
        "mysql", "-N", "-B",
        f"-h{stack.mysql_host}",
        f"-P{stack.mysql_port}",
        f"-u{stack.mysql_root_user}",
        f"-p{stack.mysql_root_password}",
        "--database", db_name,
        "-e", INDEX_QUERY,
    ])
    if not result.ok:
        raise SearchIndexError(f"Could not read search indices from {db_name}")
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def ensure_indices(client: SearchIndex, base_url: str, db_name: str, machine_names: list[str]) -> list[str]:
    """Create missing indices; returns the names of the ones created."""
    created = []
    for machine_name in machine_names:
        name = index_name(db_name, machine_name)
        if client.index_exists(base_url, name):
            log.debug(f"Index {name} already exists")
            continue
        log.info(f"Creating empty Elasticsearch index {name}...")
        client.create_index(base_url, name)
        created.append(name)
    return created
