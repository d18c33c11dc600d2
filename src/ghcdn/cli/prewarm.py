"""Command-line utility for refreshing edge cache entries."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

import httpx


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Force the edge to refetch paths from origin")
    parser.add_argument("--base-url", required=True, help="Edge service base URL")
    parser.add_argument("--minified", action="store_true", help="Store minified payloads")
    parser.add_argument("--timeout", type=float, default=30.0, help="Per-request timeout in seconds")
    parser.add_argument("--json", action="store_true", help="Output raw JSON")
    parser.add_argument("paths", nargs="+", help="Repository paths such as owner/repo/branch/file.js")
    return parser.parse_args(argv)


async def prewarm_path(client: httpx.AsyncClient, base_url: str, path: str, minified: bool) -> dict[str, Any]:
    params = {"prewarm": "true", "meta": "true"}
    if minified:
        params["need"] = "minified"
    url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
    try:
        response = await client.get(url, params=params)
    except httpx.HTTPError as exc:
        return {"path": path, "ok": False, "error": str(exc)}
    if response.status_code != 200:
        return {"path": path, "ok": False, "status": response.status_code}
    try:
        metadata = response.json()
    except ValueError:
        metadata = None
    if not isinstance(metadata, dict):
        return {"path": path, "ok": False, "error": "edge returned non-JSON metadata"}
    return {"ok": True, **metadata}


async def prewarm_paths(
    base_url: str,
    paths: list[str],
    *,
    minified: bool = False,
    timeout: float = 30.0,
) -> list[dict[str, Any]]:
    async with httpx.AsyncClient(timeout=timeout) as client:
        return list(await asyncio.gather(*(prewarm_path(client, base_url, path, minified) for path in paths)))


def print_table(rows: list[dict[str, Any]]) -> None:
    headers = ["path", "ok", "source", "size", "integrity"]
    normalized: list[dict[str, str]] = []
    for row in rows:
        normalized.append(
            {
                "path": str(row.get("path", "")),
                "ok": "yes" if row.get("ok") else "no",
                "source": str(row.get("source") or row.get("status") or row.get("error") or "-"),
                "size": str(row.get("size", "-")),
                "integrity": str(row.get("integrity", "-")),
            }
        )
    widths = {header: max([len(header)] + [len(row[header]) for row in normalized]) for header in headers}
    print("  ".join(key.ljust(widths[key]) for key in headers))
    print("  ".join("-" * widths[key] for key in headers))
    for row in normalized:
        print("  ".join(row[key].ljust(widths[key]) for key in headers))


async def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    results = await prewarm_paths(args.base_url, args.paths, minified=args.minified, timeout=args.timeout)
    if args.json:
        print(json.dumps(results, indent=2))
    else:
        print_table(results)
    return 0 if all(row.get("ok") for row in results) else 1


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
