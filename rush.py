#!/usr/bin/env python3
"""
Afterschool booking rush (async load client)

Fires many concurrent single-lesson orders at one lesson and checks that
the service never oversells it:
  1) GET /api/lessons, pick the lesson (by --subject, else the first one)
  2) optionally PUT /api/lessons/{id} {"spaces": --spaces}
  3) POST /api/orders --total times, at most --concurrency in flight
  4) GET /api/lessons again and compare seats booked vs seats sold

Usage:
  python rush.py --base http://localhost:3001 --subject Drama \\
                 --spaces 5 --total 100 --concurrency 50
"""

import argparse
import asyncio
import random
import string
import sys
import time
from dataclasses import dataclass, field
from typing import List, Optional

import httpx


def _rand_name() -> str:
    return "".join(random.choices(string.ascii_lowercase, k=8)).title()


def _rand_phone() -> str:
    return "07" + "".join(random.choices(string.digits, k=9))


@dataclass
class Result:
    outcome: str  # BOOKED/SOLD_OUT/ERROR
    latency: float = 0.0
    err: Optional[str] = None


@dataclass
class Stats:
    results: List[Result] = field(default_factory=list)

    def add(self, r: Result):
        self.results.append(r)

    def count(self, outcome: str) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    def pct(self, p: float) -> float:
        lat = sorted(r.latency for r in self.results if r.latency > 0)
        if not lat:
            return 0.0
        k = int(max(0, min(len(lat)-1, round(p/100*(len(lat)-1)))))
        return lat[k]


async def one_order(client: httpx.AsyncClient, base: str,
                    lesson_id: str) -> Result:
    t0 = time.perf_counter()
    try:
        resp = await client.post(
            f"{base}/api/orders",
            json={"name": _rand_name(), "phone": _rand_phone(),
                  "lessons": [lesson_id]},
            timeout=30.0,
        )
    except httpx.HTTPError as e:
        return Result(outcome="ERROR", err=str(e))
    latency = time.perf_counter() - t0
    if resp.status_code == 200:
        return Result(outcome="BOOKED", latency=latency)
    if resp.status_code == 400:
        return Result(outcome="SOLD_OUT", latency=latency)
    return Result(outcome="ERROR", latency=latency,
                  err=f"HTTP {resp.status_code}")


async def find_lesson(client: httpx.AsyncClient, base: str,
                      subject: Optional[str]) -> dict:
    resp = await client.get(f"{base}/api/lessons")
    resp.raise_for_status()
    lessons = resp.json()
    for lesson in lessons:
        if subject is None or lesson["subject"].lower() == subject.lower():
            return lesson
    raise SystemExit(f"no lesson matching {subject!r}")


async def run_rush(base: str, subject: Optional[str], spaces: Optional[int],
                   total: int, concurrency: int):
    sem = asyncio.Semaphore(concurrency)
    stats = Stats()
    limits = httpx.Limits(
        max_keepalive_connections=concurrency, max_connections=concurrency
    )
    async with httpx.AsyncClient(
        limits=limits, headers={"User-Agent": "AfterschoolRush/1.0"}
    ) as client:
        lesson = await find_lesson(client, base, subject)
        if spaces is not None:
            resp = await client.put(f"{base}/api/lessons/{lesson['id']}",
                                    json={"spaces": spaces})
            resp.raise_for_status()
            lesson["spaces"] = spaces
        before = lesson["spaces"]

        async def worker():
            async with sem:
                stats.add(await one_order(client, base, lesson["id"]))

        await asyncio.gather(*(worker() for _ in range(total)))
        after = (await find_lesson(client, base, lesson["subject"]))["spaces"]

    return lesson, before, after, stats


def main():
    ap = argparse.ArgumentParser(description="Afterschool booking rush")
    ap.add_argument("--base", default="http://localhost:3001",
                    help="Base URL of the service")
    ap.add_argument("--subject", default=None,
                    help="Lesson subject to target (default: first lesson)")
    ap.add_argument("--spaces", type=int, default=None,
                    help="Set the lesson's spaces before the rush")
    ap.add_argument("--total", type=int, default=100,
                    help="Total orders to send")
    ap.add_argument("--concurrency", type=int, default=20,
                    help="Orders in flight at once")
    args = ap.parse_args()

    t_start = time.perf_counter()
    lesson, before, after, stats = asyncio.run(run_rush(
        base=args.base,
        subject=args.subject,
        spaces=args.spaces,
        total=args.total,
        concurrency=args.concurrency,
    ))
    elapsed = time.perf_counter() - t_start

    booked = stats.count("BOOKED")
    print("\n=== Rush Summary ===")
    print(f"Lesson: {lesson['subject']} @ {lesson['location']}")
    print(f"Orders: {len(stats.results)}   BOOKED: {booked}   "
          f"SOLD_OUT: {stats.count('SOLD_OUT')}   "
          f"ERROR: {stats.count('ERROR')}")
    print(f"Spaces: before {before}   after {after}")
    print(f"Latency: p50 {stats.pct(50):.3f}s   p90 {stats.pct(90):.3f}s   "
          f"p99 {stats.pct(99):.3f}s")
    print(f"Wall time: {elapsed:.3f}s   "
          f"Throughput: {len(stats.results)/elapsed:.1f} orders/s")

    errors = [r.err for r in stats.results if r.err]
    if errors:
        print(f"First error: {errors[0]}")
    if after < 0 or before - after != booked:
        print("OVERSOLD: seat count does not match bookings")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
