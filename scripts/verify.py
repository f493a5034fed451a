"""Smoke check against a running instance: python scripts/verify.py [base_url]"""
import httpx
import asyncio
import sys
import uuid

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:5000"

async def run_verification():
    print(f"🚀  Starting Verification against {BASE_URL}...\n")

    async with httpx.AsyncClient(base_url=BASE_URL, timeout=10.0) as client:
        # 1. Health Check
        print("1. [Health] Checking /health...")
        try:
            resp = await client.get("/health")
            if resp.status_code == 200 and resp.json() == {"status": "ok"}:
                print("   ✅  Health Check Passed")
            else:
                print(f"   ❌  Health Check Failed: {resp.text}")
                return
        except httpx.HTTPError as e:
            print(f"   ❌  Connection Error: {e}")
            return

        # 2. Shorten; a fresh URL each run so the enabled-duplicate rule does not trip
        print("\n2. [API] Shortening a URL...")
        long_url = f"https://www.example.com/verify/{uuid.uuid4().hex}"
        resp = await client.post("/url/shorten", json={"long_url": long_url})
        if resp.status_code == 201:
            short_url = resp.json()["short_url"]
            short_code = short_url.rsplit("/", 1)[1]
            print(f"   ✅  Created: {short_url}")
        else:
            print(f"   ❌  Create Failed: {resp.status_code} {resp.text}")
            return

        # 3. Duplicate
        print("\n3. [API] Verifying duplicate rejection...")
        resp = await client.post("/url/shorten", json={"long_url": long_url})
        if resp.status_code == 400:
            print("   ✅  Duplicate rejected")
        else:
            print(f"   ❌  Duplicate not rejected: {resp.status_code}")

        # 4. Redirect, twice: the second one should be served from the cache
        print("\n4. [API] Verifying Redirect...")
        for attempt in (1, 2):
            resp = await client.get(f"/url/{short_code}", follow_redirects=False)
            if resp.status_code == 302 and resp.headers.get("location") == long_url:
                print(f"   ✅  Redirect #{attempt} Location matches: {resp.headers['location']}")
            else:
                print(f"   ❌  Redirect #{attempt} Failed: {resp.status_code} {resp.headers.get('location')}")

        # 5. Unknown code
        print("\n5. [API] Verifying unknown code...")
        resp = await client.get("/url/aaabbb", follow_redirects=False)
        if resp.status_code == 404:
            print("   ✅  Unknown code is 404")
        else:
            print(f"   ❌  Unknown code returned {resp.status_code}")

        # 6. Metrics
        print("\n6. [Observability] Verifying Metrics...")
        resp = await client.get("/metrics")
        if resp.status_code == 200 and "clicks_recorded_total" in resp.text:
            print("   ✅  Metrics Endpoint Exposed")
            for line in resp.text.splitlines():
                if line.startswith(("cache_hits_total", "cache_misses_total", "clicks_recorded_total")):
                    print(f"      {line}")
        else:
            print(f"   ❌  Metrics Failed: {resp.status_code}")

    print("\n✨ Verification Complete!")

if __name__ == "__main__":
    asyncio.run(run_verification())
