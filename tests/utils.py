"""Test utilities for search-mirror tests."""
import asyncio
import json
import re
from collections import defaultdict, deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Tuple

import httpx

from search_mirror._utils import parse_day
from search_mirror.config import (
    ExportConfig,
    RequestConfig,
    RunConfig,
    SearchServiceConfig,
)
from search_mirror.service import SearchServiceClient

TIMESTAMP_FIELD = "metadata_storage_last_modified"

FILTER_RE = re.compile(r"(\w+) ge (\S+) and \1 lt (\S+)")

# No waiting between retries in tests
FAST_REQUESTS = RequestConfig(timeout=5.0, retry_attempts=2, retry_min_wait=0, retry_max_wait=0)


def make_schema(name: str = "idx") -> Dict[str, Any]:
    return {
        "name": name,
        "fields": [
            {"name": "id", "type": "Edm.String", "key": True},
            {"name": "title", "type": "Edm.String"},
            {"name": TIMESTAMP_FIELD, "type": "Edm.DateTimeOffset", "sortable": True},
            {"name": "location", "type": "Edm.GeographyPoint"},
        ],
    }


def make_document(doc_id: str, timestamp: str, **fields: Any) -> Dict[str, Any]:
    return {"id": doc_id, "title": f"doc {doc_id}", TIMESTAMP_FIELD: timestamp, **fields}


class FakeSearchService:
    """In-memory search service speaking the index REST contract.

    Plug it into a SearchServiceClient through httpx.MockTransport. Requests
    are recorded, concurrent requests are counted and responses can be
    overridden per (method, path) with `fail`.
    """

    def __init__(self, latency: float = 0.0):
        self.schemas: Dict[str, Dict[str, Any]] = {}
        self.documents: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.requests: List[httpx.Request] = []
        self.failures: Dict[Tuple[str, str], Deque[int]] = defaultdict(deque)
        self.latency = latency
        self.in_flight = 0
        self.max_in_flight = 0

    def add_index(self, name: str, documents: Optional[List[Dict[str, Any]]] = None) -> None:
        self.schemas[name] = make_schema(name)
        self.documents[name] = {doc["id"]: doc for doc in documents or []}

    def fail(self, method: str, path: str, *statuses: int) -> None:
        """Answer the next requests to (method, path) with the given statuses."""
        self.failures[(method, path)].extend(statuses)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, index_name: str, request_config: RequestConfig = FAST_REQUESTS) -> SearchServiceClient:
        service = SearchServiceConfig(service_name="fake", api_key="secret", index_name=index_name)
        return SearchServiceClient(service, request_config, transport=self.transport())

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.latency)
            pending = self.failures.get((request.method, request.url.path))
            if pending:
                status = pending.popleft()
                return httpx.Response(status, json={"error": {"message": f"injected {status}"}})
            return self._route(request)
        finally:
            self.in_flight -= 1

    def _route(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        method = request.method

        if parts == ["indexes"] and method == "POST":
            return self._create_index(json.loads(request.content))
        if len(parts) == 2 and parts[0] == "indexes":
            name = parts[1]
            if method == "GET":
                return self._get_index(name)
            if method == "DELETE":
                return self._delete_index(name)
        if len(parts) == 4 and parts[0] == "indexes" and parts[2] == "docs":
            name, action = parts[1], parts[3]
            if name not in self.schemas:
                return httpx.Response(404, json={"error": {"message": f"index {name} not found"}})
            if action == "search" and method == "POST":
                return self._search(name, json.loads(request.content))
            if action == "index" and method == "POST":
                return self._upload(name, json.loads(request.content))
        return httpx.Response(400, json={"error": {"message": "unsupported request"}})

    def _get_index(self, name: str) -> httpx.Response:
        if name not in self.schemas:
            return httpx.Response(404, json={"error": {"message": f"index {name} not found"}})
        body = {
            "@odata.context": "https://fake.search.windows.net/$metadata#indexes/$entity",
            "@odata.etag": '"0x8DC"',
            **self.schemas[name],
        }
        return httpx.Response(200, text=json.dumps(body))

    def _create_index(self, schema: Dict[str, Any]) -> httpx.Response:
        name = schema["name"]
        if name in self.schemas:
            return httpx.Response(409, json={"error": {"message": f"index {name} exists"}})
        self.schemas[name] = schema
        self.documents[name] = {}
        return httpx.Response(201, json=schema)

    def _delete_index(self, name: str) -> httpx.Response:
        if name not in self.schemas:
            return httpx.Response(404, json={"error": {"message": f"index {name} not found"}})
        del self.schemas[name]
        del self.documents[name]
        return httpx.Response(204)

    def _search(self, name: str, body: Dict[str, Any]) -> httpx.Response:
        docs = list(self.documents[name].values())

        match = FILTER_RE.fullmatch(body.get("filter", "")) if body.get("filter") else None
        if match:
            field, lower, upper = match.groups()
            docs = [d for d in docs if lower <= d[field] < upper]

        if body.get("orderby"):
            field = body["orderby"].split()[0]
            docs.sort(key=lambda d: (d[field], d["id"]))

        skip = body.get("skip", 0)
        top = body.get("top", 50)
        page = [{"@search.score": 1.0, **d} for d in docs[skip:skip + top]]

        result: Dict[str, Any] = {"value": page}
        if body.get("count"):
            result["@odata.count"] = len(docs)
        return httpx.Response(200, json=result)

    def _upload(self, name: str, body: Dict[str, Any]) -> httpx.Response:
        results = []
        for doc in body["value"]:
            self.documents[name][doc["id"]] = doc
            results.append({"key": doc["id"], "status": True, "statusCode": 201})
        return httpx.Response(200, json={"value": results})


def create_test_config(backup_dir: Path, **export_overrides: Any) -> RunConfig:
    """Create run config pointing at the fake services with sensible defaults."""
    export_kwargs = {
        "start_date": "2024-01-01",
        "end_date": "2024-01-03",
        "max_batch_size": 2,
        "parallelization_count": 3,
    }
    export_kwargs.update(export_overrides)
    export_kwargs["start_date"] = parse_day(export_kwargs["start_date"])
    export_kwargs["end_date"] = parse_day(export_kwargs["end_date"])

    return RunConfig(
        source=SearchServiceConfig(service_name="fake", api_key="secret", index_name="idx"),
        target=SearchServiceConfig(service_name="fake", api_key="secret", index_name="idx-copy"),
        backup_dir=str(backup_dir),
        export=ExportConfig(**export_kwargs),
        request=FAST_REQUESTS,
    )


def read_export_file(path: Path) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)["value"]
