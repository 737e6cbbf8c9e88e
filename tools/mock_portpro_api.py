"""
Lightweight mock PortPro API and chat webhook sink for local runs.

Endpoints:
- GET  /loads?skip=&limit=   -> page of generated loads ({"data": [...]})
- GET  /loads/<reference>    -> single load
- POST /auth/refresh         -> {"accessToken": "..."}
- POST /chat                 -> stores a chat webhook message, returns 200
- GET  /_chat                -> returns stored chat messages
- POST /_reset               -> clears stored chat messages
- GET  /_health              -> returns 200

`sign_and_send` posts a signed webhook to a running gateway:

    python tools/mock_portpro_api.py send http://localhost:8000/webhooks/portpro/ REF-123 Delivered
"""
import json
import os
import sys
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import List
from urllib.parse import parse_qs, urlparse

import httpx

from portpro.services.signature import SIGNATURE_HEADER, compute_signature

LOAD_COUNT = int(os.getenv("MOCK_LOAD_COUNT", "25"))
STATUSES = ["PENDING", "DISPATCHED", "ENROUTE_TO_PICK_CONTAINER", "DROPCONTAINER_DEPARTED", "COMPLETED"]

CHAT_MESSAGES: List[dict] = []


def build_load(index: int) -> dict:
    now = datetime(2026, 1, 26, 10, 0, tzinfo=timezone.utc)
    return {
        "_id": f"mock-{index:04d}",
        "reference_number": f"REF-{index:04d}",
        "containerNo": f"MSCU{1000000 + index}",
        "containerSize": "40'",
        "containerType": "HC",
        "status": STATUSES[index % len(STATUSES)],
        "caller": {"company_name": f"Customer {index}", "email": f"ops{index}@example.com"},
        "shipper": {"company_name": "Port of Long Beach", "address": {"city": "Long Beach", "state": "CA"}},
        "consignee": {"company_name": "Warehouse", "address": {
            "address1": f"{index} Main St", "city": "Ontario", "state": "CA", "zip": "91761",
        }},
        "deliveryTimes": [{"deliveryFromTime": (now + timedelta(days=index % 5)).isoformat()}],
        "totalAmount": 850 + index,
        "driverPay": [{"amount": 300}],
        "updatedAt": (now + timedelta(minutes=index)).isoformat(),
    }


class Handler(BaseHTTPRequestHandler):
    def _send_json(self, status_code: int, payload: dict) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _read_json(self) -> dict:
        length = int(self.headers.get("Content-Length", "0"))
        raw = self.rfile.read(length).decode("utf-8") if length else ""
        try:
            return json.loads(raw) if raw else {}
        except json.JSONDecodeError:
            return {"_raw": raw}

    def do_GET(self):  # noqa: N802
        url = urlparse(self.path)

        if url.path == "/_health":
            return self._send_json(200, {"status": "ok"})

        if url.path == "/_chat":
            return self._send_json(200, {"messages": CHAT_MESSAGES})

        if url.path.rstrip("/").endswith("/loads"):
            query = parse_qs(url.query)
            skip = int(query.get("skip", ["0"])[0])
            limit = int(query.get("limit", ["100"])[0])
            loads = [build_load(i) for i in range(skip, min(skip + limit, LOAD_COUNT))]
            return self._send_json(200, {"data": loads})

        if "/loads/" in url.path:
            reference = url.path.rsplit("/", 1)[-1]
            for i in range(LOAD_COUNT):
                load = build_load(i)
                if reference in (load["reference_number"], load["_id"]):
                    return self._send_json(200, {"data": load})
            return self._send_json(404, {"error": "not_found"})

        return self._send_json(404, {"error": "not_found"})

    def do_POST(self):  # noqa: N802
        if self.path == "/_reset":
            CHAT_MESSAGES.clear()
            return self._send_json(200, {"status": "reset"})

        if self.path.endswith("/auth/refresh"):
            self._read_json()
            return self._send_json(200, {"accessToken": "mock-access-token"})

        if self.path.startswith("/chat"):
            CHAT_MESSAGES.append(self._read_json())
            return self._send_json(200, {"ok": True})

        return self._send_json(404, {"error": "not_found"})

    def log_message(self, format, *args):  # noqa: A003
        return


def sign_and_send(url: str, reference: str, status: str, secret: str) -> httpx.Response:
    body = json.dumps({
        "event": "load#status_updated",
        "reference_number": reference,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": {"reference_number": reference, "status": status},
    })
    return httpx.post(
        url,
        content=body,
        headers={"Content-Type": "application/json", SIGNATURE_HEADER: compute_signature(body, secret)},
        timeout=10.0,
    )


def main() -> None:
    if len(sys.argv) >= 5 and sys.argv[1] == "send":
        response = sign_and_send(sys.argv[2], sys.argv[3], sys.argv[4], os.getenv("PORTPRO_WEBHOOK_SECRET", ""))
        print(response.status_code, response.text)
        return

    server = HTTPServer(("0.0.0.0", int(os.getenv("MOCK_PORT", "8080"))), Handler)
    server.serve_forever()


if __name__ == "__main__":
    main()
